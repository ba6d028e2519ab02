"""
Subscription helpers.

Mapping between stored entitlement levels, store product identifiers and
subscription tiers.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from app.config import APP_STORE_PRODUCT_IDS, STRIPE_PRODUCT_TIERS
from app.core.entitlements.models import (
    SubscriptionSource,
    SubscriptionState,
    SubscriptionTier,
)

_ENTITLEMENT_BY_TIER = {
    SubscriptionTier.FREE: 0,
    SubscriptionTier.COACH: 1,
    SubscriptionTier.ORGANIZATION: 2,
}


def entitlement_to_tier(entitlement: Optional[int]) -> SubscriptionTier:
    for tier, level in _ENTITLEMENT_BY_TIER.items():
        if level == entitlement:
            return tier
    return SubscriptionTier.FREE


def tier_to_entitlement(tier: SubscriptionTier) -> int:
    return _ENTITLEMENT_BY_TIER[SubscriptionTier.parse(tier)]


def tier_for_product(product_id: Optional[str]) -> Optional[SubscriptionTier]:
    """Tier sold by a Stripe product, or None for unknown products."""
    if not product_id:
        return None
    tier = STRIPE_PRODUCT_TIERS.get(product_id)
    return SubscriptionTier(tier) if tier else None


def get_subscription_source(active_subscriptions: Iterable[str]) -> SubscriptionSource:
    """Determine where a subscription was purchased from active product ids."""
    for sub in active_subscriptions:
        if any(product_id in sub for product_id in STRIPE_PRODUCT_TIERS):
            return SubscriptionSource.STRIPE
        if any(product_id in sub for product_id in APP_STORE_PRODUCT_IDS):
            return SubscriptionSource.APP_STORE
    return SubscriptionSource.NONE


def effective_tier(state: Optional[SubscriptionState], now: Optional[datetime] = None) -> SubscriptionTier:
    """
    Tier a subscription currently grants.

    Inactive or expired subscriptions grant FREE.
    """
    if state is None or not state.is_active:
        return SubscriptionTier.FREE
    if state.expires_at is not None:
        now = now or datetime.now(timezone.utc)
        expires_at = state.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return SubscriptionTier.FREE
    return state.tier
