"""
Stripe billing integration.

Verifies Stripe webhooks and records the resulting subscription tier on the
user document, which is where entitlement checks read it from.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

import stripe

from app.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, logger
from app.core import saas
from app.core.entitlements.models import SubscriptionSource, SubscriptionState, SubscriptionTier
from app.core.entitlements.subscription import tier_for_product

ACTIVE_STATUSES = frozenset({"active", "trialing"})

SUBSCRIPTION_EVENTS = frozenset({
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
})
CHECKOUT_COMPLETED = "checkout.session.completed"


class BillingError(Exception):
    """Base exception for billing errors."""
    pass


class BillingWebhookError(BillingError):
    """Raised when a webhook cannot be verified or parsed."""
    pass


def construct_event(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    """
    Verify a Stripe webhook payload and return the event.

    Raises:
        BillingWebhookError: If the secret is unset or verification fails
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise BillingWebhookError("STRIPE_WEBHOOK_SECRET is not configured")
    if not sig_header:
        raise BillingWebhookError("Missing stripe-signature header")
    try:
        return stripe.Webhook.construct_event(payload, sig_header, STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        raise BillingWebhookError(f"Invalid payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        raise BillingWebhookError(f"Invalid signature: {e}") from e


def _product_id(item: Mapping[str, Any]) -> Optional[str]:
    product = (item.get("price") or {}).get("product")
    if isinstance(product, str):
        return product
    if isinstance(product, Mapping):
        return product.get("id")
    return None


def _items(subscription: Mapping[str, Any]) -> list:
    return list((subscription.get("items") or {}).get("data") or [])


def tier_from_subscription(subscription: Mapping[str, Any]) -> SubscriptionTier:
    """Highest tier sold by the subscription's items, FREE if none match."""
    tier = SubscriptionTier.FREE
    for item in _items(subscription):
        item_tier = tier_for_product(_product_id(item))
        if item_tier is not None and item_tier > tier:
            tier = item_tier
    return tier


def _period_end(subscription: Mapping[str, Any]) -> Optional[datetime]:
    period_end = subscription.get("current_period_end")
    if not period_end:
        items = _items(subscription)
        period_end = items[0].get("current_period_end") if items else None
    if not period_end:
        return None
    return datetime.fromtimestamp(int(period_end), tz=timezone.utc)


def subscription_state_from_stripe(subscription: Mapping[str, Any], deleted: bool = False) -> SubscriptionState:
    """Translate a Stripe subscription object into a stored subscription."""
    tier = tier_from_subscription(subscription)
    is_active = not deleted and subscription.get("status") in ACTIVE_STATUSES and tier != SubscriptionTier.FREE
    if not is_active:
        return SubscriptionState(
            tier=SubscriptionTier.FREE,
            source=SubscriptionSource.NONE,
            is_active=False,
        )
    return SubscriptionState(
        tier=tier,
        source=SubscriptionSource.STRIPE,
        is_active=True,
        expires_at=_period_end(subscription),
        will_renew=not subscription.get("cancel_at_period_end", False),
    )


def _customer_email(customer_id: Optional[str]) -> Optional[str]:
    if not customer_id or not STRIPE_SECRET_KEY:
        return None
    try:
        customer = stripe.Customer.retrieve(customer_id, api_key=STRIPE_SECRET_KEY)
    except stripe.StripeError as e:
        logger.warning("Failed to retrieve Stripe customer %s: %s", customer_id, e)
        return None
    return customer.get("email")


def _resolve_user_id(metadata: Mapping[str, Any], email: Optional[str]) -> Optional[str]:
    user_id = (metadata or {}).get("userId")
    if user_id:
        return user_id
    return saas.find_user_id_by_email(email) if email else None


def handle_event(event: Mapping[str, Any]) -> Optional[Tuple[str, SubscriptionState]]:
    """
    Apply a verified Stripe event.

    Returns:
        (uid, recorded subscription) when a user's subscription changed,
        None for events that carry no tier change or no matching user
    """
    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}

    if event_type in SUBSCRIPTION_EVENTS:
        subscription = data
        email = _customer_email(subscription.get("customer"))
    elif event_type == CHECKOUT_COMPLETED:
        subscription_id = data.get("subscription")
        if not subscription_id or not STRIPE_SECRET_KEY:
            logger.info("Checkout %s has no retrievable subscription", data.get("id"))
            return None
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, api_key=STRIPE_SECRET_KEY)
        except stripe.StripeError as e:
            raise BillingError(f"Failed to retrieve subscription {subscription_id}: {e}") from e
        email = data.get("customer_email") or (data.get("customer_details") or {}).get("email")
        subscription = dict(subscription)
        subscription["metadata"] = {
            **(data.get("metadata") or {}),
            **(subscription.get("metadata") or {}),
        }
    else:
        logger.debug("Ignoring Stripe event %s", event_type)
        return None

    uid = _resolve_user_id(subscription.get("metadata") or {}, email)
    if not uid:
        logger.warning("No user found for Stripe event %s (%s)", event.get("id"), event_type)
        return None

    state = subscription_state_from_stripe(
        subscription,
        deleted=event_type == "customer.subscription.deleted",
    )
    recorded = saas.set_user_subscription(uid, state)
    logger.info("Stripe event %s set user %s to tier %s", event_type, uid, recorded.tier.value)
    return uid, recorded
