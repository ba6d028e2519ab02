"""
Entitlement Models

Type-safe models for subscription tiers, feature flags and gating results.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# A flag is either a boolean switch or a numeric limit. A limit of None means
# unlimited.
FlagValue = Union[bool, int, None]


class SubscriptionTier(str, Enum):
    """Subscription tiers, declared in ascending order."""
    FREE = "free"
    COACH = "coach"
    ORGANIZATION = "organization"

    @classmethod
    def ordered(cls) -> List["SubscriptionTier"]:
        return list(cls)

    @property
    def rank(self) -> int:
        return SubscriptionTier.ordered().index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Union[str, "SubscriptionTier", None]) -> "SubscriptionTier":
        """Coerce a stored tier value, falling back to FREE."""
        if isinstance(value, SubscriptionTier):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FREE


class SubscriptionSource(str, Enum):
    """Where the active subscription was purchased."""
    APP_STORE = "app_store"
    STRIPE = "stripe"
    NONE = "none"


class FeatureFlags(BaseModel):
    """Complete flag set for one tier."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_teams: Optional[int] = Field(0, alias="maxTeams", ge=0)
    max_assistant_coaches: Optional[int] = Field(0, alias="maxAssistantCoaches", ge=0)

    can_export_pdf: bool = Field(False, alias="canExportPDF")
    can_view_analytics: bool = Field(False, alias="canViewAnalytics")
    can_upload_files: bool = Field(False, alias="canUploadFiles")
    can_create_templates: bool = Field(False, alias="canCreateTemplates")
    can_create_periods: bool = Field(False, alias="canCreatePeriods")
    can_create_announcements: bool = Field(False, alias="canCreateAnnouncements")
    can_create_tags: bool = Field(False, alias="canCreateTags")

    can_create_folders: bool = Field(False, alias="canCreateFolders")
    can_share_files: bool = Field(False, alias="canShareFiles")
    can_access_version_history: bool = Field(False, alias="canAccessVersionHistory")
    max_file_versions: Optional[int] = Field(0, alias="maxFileVersions", ge=0)
    max_file_storage_bytes: Optional[int] = Field(0, alias="maxFileStorageBytes", ge=0)

    can_access_org_dashboard: bool = Field(False, alias="canAccessOrgDashboard")
    can_share_templates_across_teams: bool = Field(False, alias="canShareTemplatesAcrossTeams")
    can_customize_branding: bool = Field(False, alias="canCustomizeBranding")
    has_priority_support: bool = Field(False, alias="hasPrioritySupport")

    @classmethod
    def feature_keys(cls) -> List[str]:
        """Known feature keys, in declaration order."""
        return [field.alias or name for name, field in cls.model_fields.items()]

    @classmethod
    def is_limit(cls, feature_key: str) -> bool:
        """True if the key is a numeric limit rather than a boolean switch."""
        for name, field in cls.model_fields.items():
            if field.alias == feature_key:
                return field.annotation is not bool
        return False

    def get(self, feature_key: str) -> FlagValue:
        """Value of a feature by its public key; KeyError if unknown."""
        for name, field in type(self).model_fields.items():
            if field.alias == feature_key:
                return getattr(self, name)
        raise KeyError(feature_key)

    def as_dict(self) -> Dict[str, FlagValue]:
        return self.model_dump(by_alias=True)


class ActionCheck(BaseModel):
    """Result of a gated action check."""
    allowed: bool
    reason: Optional[str] = None
    upgrade_tier: Optional[SubscriptionTier] = None
    upgrade_message: Optional[str] = None


class SubscriptionState(BaseModel):
    """Subscription record stored on a user document."""
    tier: SubscriptionTier = SubscriptionTier.FREE
    entitlement: int = Field(default=0, ge=0, le=2)
    source: SubscriptionSource = SubscriptionSource.NONE
    is_active: bool = False
    expires_at: Optional[datetime] = None
    will_renew: bool = False
    last_verified: Optional[datetime] = None
