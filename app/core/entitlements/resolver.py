"""
Entitlement Resolver

Answers feature gating questions for a subscription tier. Every function
here is a read-only lookup over the feature gate table; none of them raise
for unknown feature keys, they deny instead.
"""

from typing import Dict, Optional, Union

from app.config import logger
from app.core.entitlements.gates import get_feature_gates
from app.core.entitlements.models import (
    ActionCheck,
    FeatureFlags,
    FlagValue,
    SubscriptionTier,
)

TierLike = Union[SubscriptionTier, str]

TIER_NAMES: Dict[SubscriptionTier, str] = {
    SubscriptionTier.FREE: "Free",
    SubscriptionTier.COACH: "Coach",
    SubscriptionTier.ORGANIZATION: "Organization",
}

TIER_DESCRIPTIONS: Dict[SubscriptionTier, str] = {
    SubscriptionTier.FREE: "Basic features for getting started",
    SubscriptionTier.COACH: "Full features for individual coaches",
    SubscriptionTier.ORGANIZATION: "Multi-team management for schools and clubs",
}

PRICING: Dict[SubscriptionTier, Dict[str, Optional[Union[float, str]]]] = {
    SubscriptionTier.FREE: {"price": 0.0, "price_string": "Free", "period": None},
    SubscriptionTier.COACH: {"price": 2.49, "price_string": "$2.49", "period": "month"},
    SubscriptionTier.ORGANIZATION: {"price": 14.99, "price_string": "$14.99", "period": "month"},
}

FEATURE_DISPLAY_NAMES: Dict[str, str] = {
    "maxTeams": "Multiple Teams",
    "maxAssistantCoaches": "Assistant Coaches",
    "canExportPDF": "PDF Export",
    "canViewAnalytics": "Analytics & Reports",
    "canUploadFiles": "File Uploads",
    "canCreateTemplates": "Custom Templates",
    "canCreatePeriods": "Custom Periods",
    "canCreateAnnouncements": "Announcements",
    "canCreateTags": "Tags",
    "canCreateFolders": "Folder Organization",
    "canShareFiles": "File Sharing",
    "canAccessVersionHistory": "Version History",
    "maxFileVersions": "File Versions",
    "maxFileStorageBytes": "File Storage",
    "canAccessOrgDashboard": "Organization Dashboard",
    "canShareTemplatesAcrossTeams": "Shared Template Library",
    "canCustomizeBranding": "Team Branding",
    "hasPrioritySupport": "Priority Support",
}


def _is_known(feature_key: str) -> bool:
    return feature_key in FEATURE_DISPLAY_NAMES


def _within_limit(limit: Optional[int], usage: int) -> bool:
    """A None limit is unlimited."""
    return limit is None or usage < limit


def _value_allows(value: FlagValue, is_limit: bool, usage: Optional[int]) -> bool:
    if not is_limit:
        return value is True
    return _within_limit(value, usage or 0)


def resolve_all_features(tier: TierLike) -> FeatureFlags:
    """Complete flag set for a tier."""
    return get_feature_gates()[SubscriptionTier.parse(tier)]


def resolve_feature(tier: TierLike, feature_key: str) -> FlagValue:
    """
    Resolve a single feature value for a tier.

    Args:
        tier: Subscription tier
        feature_key: Feature key (e.g. 'canExportPDF', 'maxAssistantCoaches')

    Returns:
        The flag's value. Unknown keys resolve to False.
    """
    try:
        return resolve_all_features(tier).get(feature_key)
    except KeyError:
        logger.warning("Unknown feature key '%s' requested for tier %s, denying", feature_key, tier)
        return False


def get_upgrade_tier_for_feature(
    tier: TierLike,
    feature_key: str,
    usage: Optional[int] = None,
) -> Optional[SubscriptionTier]:
    """
    Lowest tier above the current one that would allow the action.

    Returns None when the current tier already allows it, when no higher tier
    does, or when the feature key is unknown.
    """
    current = SubscriptionTier.parse(tier)
    if not _is_known(feature_key):
        return None

    is_limit = FeatureFlags.is_limit(feature_key)
    if _value_allows(resolve_feature(current, feature_key), is_limit, usage):
        return None

    for candidate in SubscriptionTier.ordered():
        if candidate <= current:
            continue
        if _value_allows(resolve_feature(candidate, feature_key), is_limit, usage):
            return candidate
    return None


def can_perform_action(
    tier: TierLike,
    feature_key: str,
    usage: Optional[int] = None,
) -> ActionCheck:
    """
    Check whether a tier may perform a gated action.

    Boolean features are allowed when True. Numeric limits are allowed while
    ``usage`` (default 0) is below the limit.

    Args:
        tier: Subscription tier
        feature_key: Feature key
        usage: Caller's current usage count for numeric limits

    Returns:
        ActionCheck with the upgrade tier to suggest when denied
    """
    current = SubscriptionTier.parse(tier)
    if not _is_known(feature_key):
        logger.warning("Unknown feature key '%s' checked for tier %s, denying", feature_key, current.value)
        return ActionCheck(allowed=False, reason=f"Unknown feature '{feature_key}'")

    value = resolve_feature(current, feature_key)
    is_limit = FeatureFlags.is_limit(feature_key)
    if _value_allows(value, is_limit, usage):
        return ActionCheck(allowed=True)

    display_name = FEATURE_DISPLAY_NAMES[feature_key]
    if is_limit and value:
        reason = f"{display_name} limit of {value} reached on the {TIER_NAMES[current]} plan"
    else:
        reason = f"{display_name} is not included in the {TIER_NAMES[current]} plan"

    upgrade_tier = get_upgrade_tier_for_feature(current, feature_key, usage)
    upgrade_message = (
        f"Upgrade to {TIER_NAMES[upgrade_tier]} to unlock {display_name}"
        if upgrade_tier
        else None
    )
    return ActionCheck(
        allowed=False,
        reason=reason,
        upgrade_tier=upgrade_tier,
        upgrade_message=upgrade_message,
    )


def remaining_quota(tier: TierLike, feature_key: str, usage: int) -> Optional[int]:
    """Remaining headroom under a numeric limit; None means unlimited."""
    if not FeatureFlags.is_limit(feature_key):
        return 0
    limit = resolve_feature(tier, feature_key)
    if limit is None:
        return None
    return max(0, int(limit) - usage)


def can_add_assistant_coach(tier: TierLike, current_count: int) -> bool:
    return _within_limit(resolve_all_features(tier).max_assistant_coaches, current_count)


def can_create_team(tier: TierLike, current_count: int) -> bool:
    return _within_limit(resolve_all_features(tier).max_teams, current_count)


def can_upload_file(tier: TierLike, current_storage_bytes: int, file_size_bytes: int) -> ActionCheck:
    """Check a file upload against the tier's upload switch and storage quota."""
    flags = resolve_all_features(tier)
    if not flags.can_upload_files:
        return ActionCheck(
            allowed=False,
            reason="File uploads require a premium subscription",
            upgrade_tier=get_upgrade_tier_for_feature(tier, "canUploadFiles"),
        )

    quota = flags.max_file_storage_bytes
    if quota is not None and current_storage_bytes + file_size_bytes > quota:
        return ActionCheck(allowed=False, reason="Storage quota exceeded")

    return ActionCheck(allowed=True)


def storage_percent_used(tier: TierLike, current_storage_bytes: int) -> float:
    quota = resolve_all_features(tier).max_file_storage_bytes
    if quota is None:
        return 0.0
    if quota == 0:
        return 100.0
    return min(100.0, (current_storage_bytes / quota) * 100)


def format_storage_size(num_bytes: int) -> str:
    """Human-readable size, e.g. '1.5 KB' or '10 GB'."""
    if num_bytes <= 0:
        return "0 B"
    sizes = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while i < len(sizes) - 1 and num_bytes >= 1024 ** (i + 1):
        i += 1
    value = round(num_bytes / (1024 ** i), 1)
    return f"{value:g} {sizes[i]}"
