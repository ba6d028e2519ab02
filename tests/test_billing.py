"""
Tests for Stripe billing integration.

Run with: pytest tests/test_billing.py -v
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import stripe

from app.core import billing
from app.core.entitlements.models import SubscriptionSource, SubscriptionState, SubscriptionTier

PRODUCT_TIERS = {"prod_coach": "coach", "prod_org": "organization"}
PERIOD_END = 1767225600  # 2026-01-01T00:00:00Z


def subscription(*products, status="active", metadata=None, **extra):
    sub = {
        "id": "sub_123",
        "customer": "cus_123",
        "status": status,
        "current_period_end": PERIOD_END,
        "cancel_at_period_end": False,
        "metadata": metadata or {},
        "items": {"data": [{"price": {"product": product}} for product in products]},
    }
    sub.update(extra)
    return sub


@pytest.fixture(autouse=True)
def product_tiers():
    with patch.dict("app.core.entitlements.subscription.STRIPE_PRODUCT_TIERS", PRODUCT_TIERS, clear=True):
        yield


@pytest.fixture
def recorded():
    """Capture subscriptions written to user documents."""
    with patch("app.core.billing.saas.set_user_subscription", side_effect=lambda uid, state: state) as mock:
        yield mock


class TestTierMapping:
    """Tests for Stripe subscription to tier mapping."""

    def test_single_product(self):
        assert billing.tier_from_subscription(subscription("prod_coach")) == SubscriptionTier.COACH

    def test_highest_item_wins(self):
        sub = subscription("prod_coach", "prod_org")
        assert billing.tier_from_subscription(sub) == SubscriptionTier.ORGANIZATION

    def test_expanded_product_object(self):
        sub = subscription({"id": "prod_org", "name": "Organization"})
        assert billing.tier_from_subscription(sub) == SubscriptionTier.ORGANIZATION

    def test_unknown_product_is_free(self):
        assert billing.tier_from_subscription(subscription("prod_other")) == SubscriptionTier.FREE
        assert billing.tier_from_subscription({}) == SubscriptionTier.FREE

    def test_active_state(self):
        state = billing.subscription_state_from_stripe(subscription("prod_coach", cancel_at_period_end=True))
        assert state.tier == SubscriptionTier.COACH
        assert state.source == SubscriptionSource.STRIPE
        assert state.is_active is True
        assert state.will_renew is False
        assert state.expires_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_trialing_counts_as_active(self):
        state = billing.subscription_state_from_stripe(subscription("prod_org", status="trialing"))
        assert state.tier == SubscriptionTier.ORGANIZATION
        assert state.is_active is True

    def test_item_level_period_end(self):
        sub = subscription("prod_coach", current_period_end=None)
        sub["items"]["data"][0]["current_period_end"] = PERIOD_END
        state = billing.subscription_state_from_stripe(sub)
        assert state.expires_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("status", ["past_due", "canceled", "incomplete", "unpaid"])
    def test_inactive_status_is_free(self, status):
        state = billing.subscription_state_from_stripe(subscription("prod_coach", status=status))
        assert state == SubscriptionState()

    def test_deleted_is_free(self):
        state = billing.subscription_state_from_stripe(subscription("prod_org"), deleted=True)
        assert state.tier == SubscriptionTier.FREE
        assert state.is_active is False


class TestConstructEvent:
    """Tests for webhook verification."""

    def test_missing_secret(self):
        with patch.object(billing, "STRIPE_WEBHOOK_SECRET", ""):
            with pytest.raises(billing.BillingWebhookError, match="not configured"):
                billing.construct_event(b"{}", "t=1,v1=abc")

    def test_missing_signature(self):
        with patch.object(billing, "STRIPE_WEBHOOK_SECRET", "whsec_test"):
            with pytest.raises(billing.BillingWebhookError, match="Missing stripe-signature"):
                billing.construct_event(b"{}", None)

    def test_bad_signature(self):
        error = stripe.SignatureVerificationError("bad", "t=1,v1=abc")
        with patch.object(billing, "STRIPE_WEBHOOK_SECRET", "whsec_test"), \
                patch("app.core.billing.stripe.Webhook.construct_event", side_effect=error):
            with pytest.raises(billing.BillingWebhookError, match="Invalid signature"):
                billing.construct_event(b"{}", "t=1,v1=abc")

    def test_valid_event(self):
        event = {"id": "evt_1", "type": "customer.subscription.updated"}
        with patch.object(billing, "STRIPE_WEBHOOK_SECRET", "whsec_test"), \
                patch("app.core.billing.stripe.Webhook.construct_event", return_value=event) as construct:
            assert billing.construct_event(b"payload", "sig") == event
        construct.assert_called_once_with(b"payload", "sig", "whsec_test")


class TestHandleEvent:
    """Tests for applying verified events."""

    def test_subscription_updated_with_user_metadata(self, recorded):
        event = {
            "id": "evt_1",
            "type": "customer.subscription.updated",
            "data": {"object": subscription("prod_org", metadata={"userId": "user-1"})},
        }
        with patch.object(billing, "_customer_email", return_value=None):
            uid, state = billing.handle_event(event)

        assert uid == "user-1"
        assert state.tier == SubscriptionTier.ORGANIZATION
        recorded.assert_called_once()

    def test_subscription_deleted_downgrades(self, recorded):
        event = {
            "id": "evt_2",
            "type": "customer.subscription.deleted",
            "data": {"object": subscription("prod_coach", status="canceled", metadata={"userId": "user-1"})},
        }
        with patch.object(billing, "_customer_email", return_value=None):
            uid, state = billing.handle_event(event)

        assert uid == "user-1"
        assert state.tier == SubscriptionTier.FREE
        assert state.source == SubscriptionSource.NONE

    def test_user_found_by_customer_email(self, recorded):
        event = {
            "id": "evt_3",
            "type": "customer.subscription.created",
            "data": {"object": subscription("prod_coach")},
        }
        with patch.object(billing, "_customer_email", return_value="coach@example.com"), \
                patch("app.core.billing.saas.find_user_id_by_email", return_value="user-2") as find:
            uid, state = billing.handle_event(event)

        find.assert_called_once_with("coach@example.com")
        assert uid == "user-2"
        assert state.tier == SubscriptionTier.COACH

    def test_no_matching_user(self, recorded):
        event = {
            "id": "evt_4",
            "type": "customer.subscription.created",
            "data": {"object": subscription("prod_coach")},
        }
        with patch.object(billing, "_customer_email", return_value=None):
            assert billing.handle_event(event) is None
        recorded.assert_not_called()

    def test_checkout_completed_retrieves_subscription(self, recorded):
        event = {
            "id": "evt_5",
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_1",
                "subscription": "sub_123",
                "customer_email": "coach@example.com",
                "metadata": {"userId": "user-3"},
            }},
        }
        with patch.object(billing, "STRIPE_SECRET_KEY", "sk_test"), \
                patch("app.core.billing.stripe.Subscription.retrieve", return_value=subscription("prod_coach")) as retrieve:
            uid, state = billing.handle_event(event)

        retrieve.assert_called_once_with("sub_123", api_key="sk_test")
        assert uid == "user-3"
        assert state.tier == SubscriptionTier.COACH

    def test_checkout_retrieve_failure(self, recorded):
        event = {
            "id": "evt_6",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_1", "subscription": "sub_123"}},
        }
        with patch.object(billing, "STRIPE_SECRET_KEY", "sk_test"), \
                patch("app.core.billing.stripe.Subscription.retrieve", side_effect=stripe.APIConnectionError("down")):
            with pytest.raises(billing.BillingError):
                billing.handle_event(event)

    def test_checkout_without_subscription(self, recorded):
        event = {
            "id": "evt_7",
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_1", "mode": "payment"}},
        }
        assert billing.handle_event(event) is None

    def test_unrelated_event_ignored(self, recorded):
        assert billing.handle_event({"type": "invoice.paid", "data": {"object": {}}}) is None
        recorded.assert_not_called()
