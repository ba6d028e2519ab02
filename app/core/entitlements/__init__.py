"""
Entitlements Module

Subscription tiers and the feature gates each tier unlocks.
"""

from app.core.entitlements.gates import FeatureGateError, FeatureGateTable, get_feature_gates
from app.core.entitlements.models import (
    ActionCheck,
    FeatureFlags,
    SubscriptionSource,
    SubscriptionState,
    SubscriptionTier,
)
from app.core.entitlements.resolver import (
    FEATURE_DISPLAY_NAMES,
    PRICING,
    TIER_DESCRIPTIONS,
    TIER_NAMES,
    can_add_assistant_coach,
    can_create_team,
    can_perform_action,
    can_upload_file,
    format_storage_size,
    get_upgrade_tier_for_feature,
    remaining_quota,
    resolve_all_features,
    resolve_feature,
    storage_percent_used,
)

__all__ = [
    "ActionCheck",
    "FeatureFlags",
    "FeatureGateError",
    "FeatureGateTable",
    "SubscriptionSource",
    "SubscriptionState",
    "SubscriptionTier",
    "FEATURE_DISPLAY_NAMES",
    "PRICING",
    "TIER_DESCRIPTIONS",
    "TIER_NAMES",
    "can_add_assistant_coach",
    "can_create_team",
    "can_perform_action",
    "can_upload_file",
    "format_storage_size",
    "get_feature_gates",
    "get_upgrade_tier_for_feature",
    "remaining_quota",
    "resolve_all_features",
    "resolve_feature",
    "storage_percent_used",
]
