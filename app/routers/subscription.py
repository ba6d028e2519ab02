from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query

from app.core import saas
from app.core.entitlements import (
    FEATURE_DISPLAY_NAMES,
    PRICING,
    TIER_DESCRIPTIONS,
    TIER_NAMES,
    FeatureFlags,
    SubscriptionTier,
    can_perform_action,
    remaining_quota,
    resolve_all_features,
)
from app.core.entitlements.subscription import effective_tier
from app.core.firebase_client import get_current_user
from app.core.security import MAX_FEATURE_KEY_LENGTH
from app.schemas import ActionCheckResponse, SubscriptionResponse, TierInfo, TiersResponse

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])


@router.get("", response_model=SubscriptionResponse)
async def get_subscription(
    user: Dict[str, Any] = Depends(get_current_user),
) -> SubscriptionResponse:
    """Current user's subscription and the features it unlocks."""
    uid = user["uid"]
    saas.get_or_create_user(uid, user.get("email"))
    state = saas.get_user_subscription(uid)
    tier = effective_tier(state)
    return SubscriptionResponse(
        tier=tier.value,
        tier_name=TIER_NAMES[tier],
        source=state.source.value,
        is_active=state.is_active and tier != SubscriptionTier.FREE,
        expires_at=state.expires_at,
        will_renew=state.will_renew,
        features=resolve_all_features(tier).as_dict(),
    )


@router.get("/features/{feature_key}", response_model=ActionCheckResponse)
async def check_feature(
    feature_key: str = Path(..., min_length=1, max_length=MAX_FEATURE_KEY_LENGTH),
    usage: Optional[int] = Query(default=None, ge=0, description="Current usage for numeric limits"),
    user: Dict[str, Any] = Depends(get_current_user),
) -> ActionCheckResponse:
    """Whether the current user may use a feature, and what to upgrade to if not."""
    tier = saas.get_user_tier(user["uid"])
    check = can_perform_action(tier, feature_key, usage)
    remaining = None
    if FeatureFlags.is_limit(feature_key):
        remaining = remaining_quota(tier, feature_key, usage or 0)
    return ActionCheckResponse(
        feature=feature_key,
        allowed=check.allowed,
        reason=check.reason,
        upgrade_tier=check.upgrade_tier.value if check.upgrade_tier else None,
        upgrade_message=check.upgrade_message,
        remaining=remaining,
    )


@router.get("/tiers", response_model=TiersResponse)
async def list_tiers() -> TiersResponse:
    """Public tier catalogue with pricing and flags."""
    tiers = [
        TierInfo(
            id=tier.value,
            name=TIER_NAMES[tier],
            description=TIER_DESCRIPTIONS[tier],
            price=PRICING[tier]["price"],
            price_string=PRICING[tier]["price_string"],
            period=PRICING[tier]["period"],
            features=resolve_all_features(tier).as_dict(),
        )
        for tier in SubscriptionTier.ordered()
    ]
    return TiersResponse(tiers=tiers, feature_names=dict(FEATURE_DISPLAY_NAMES))
