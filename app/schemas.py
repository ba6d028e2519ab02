"""
Pydantic models for request/response validation.

Provides type-safe, validated data structures for all API endpoints.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.entitlements.models import FlagValue
from app.core.migration.models import default_selection
from app.core.security import (
    MAX_EMAIL_LENGTH,
    MAX_UID_LENGTH,
    validate_email,
    validate_uid,
)


# -----------------------------------------------------------------------------
# Base Models
# -----------------------------------------------------------------------------

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        str_min_length=0,
    )


# -----------------------------------------------------------------------------
# Subscription Schemas
# -----------------------------------------------------------------------------

class SubscriptionResponse(BaseSchema):
    """Current user's subscription and resolved feature flags."""
    tier: str
    tier_name: str
    source: str
    is_active: bool
    expires_at: Optional[datetime] = None
    will_renew: bool = False
    features: Dict[str, FlagValue]


class ActionCheckResponse(BaseSchema):
    """Outcome of a gated action check."""
    feature: str
    allowed: bool
    reason: Optional[str] = None
    upgrade_tier: Optional[str] = None
    upgrade_message: Optional[str] = None
    remaining: Optional[int] = None


class TierInfo(BaseSchema):
    """Display and gating information for one tier."""
    id: str
    name: str
    description: str
    price: float
    price_string: str
    period: Optional[str] = None
    features: Dict[str, FlagValue]


class TiersResponse(BaseSchema):
    """All tiers, lowest first."""
    tiers: List[TierInfo]
    feature_names: Dict[str, str]


# -----------------------------------------------------------------------------
# Re-migration Schemas
# -----------------------------------------------------------------------------

class DataTypeInfo(BaseSchema):
    id: str
    label: str
    description: str


class DataTypesResponse(BaseSchema):
    data_types: List[DataTypeInfo]
    default_selection: List[str]


class MigrationRequest(BaseSchema):
    """Re-migrate one user's team data from the legacy project."""
    email: str = Field(..., min_length=1, max_length=MAX_EMAIL_LENGTH, description="Email of the legacy account")
    target_uid: str = Field(..., min_length=1, max_length=MAX_UID_LENGTH, description="Current-project user ID")
    data_types: List[str] = Field(
        default_factory=lambda: [dt.value for dt in default_selection()],
        description="Data categories to copy, in order",
    )

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("target_uid")
    @classmethod
    def validate_target_uid_field(cls, v: str) -> str:
        return validate_uid(v, field="target_uid")


class WSMigrationRequest(MigrationRequest):
    """First message on the re-migration WebSocket."""
    token: str = Field(..., min_length=1, description="Firebase auth token")


class MigrationResponse(BaseSchema):
    """Terminal result of a re-migration run."""
    state: str
    success: bool
    target_uid: str
    legacy_uid: Optional[str] = None
    migrated_count: int = 0
    categories: List[str] = Field(default_factory=list)
    documents_copied: int = 0
    error: Optional[str] = None


# -----------------------------------------------------------------------------
# Billing Schemas
# -----------------------------------------------------------------------------

class WebhookResponse(BaseSchema):
    received: bool = True
    user_id: Optional[str] = None
    tier: Optional[str] = None


# -----------------------------------------------------------------------------
# WebSocket Messages
# -----------------------------------------------------------------------------

class WSErrorMessage(BaseSchema):
    """WebSocket error message."""
    type: str = Field(default="error")
    message: str
    details: Optional[str] = None
    timestamp: Optional[str] = None


class WSProgressMessage(BaseSchema):
    """WebSocket progress message."""
    type: str = Field(default="progress")
    step: str
    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    itemName: Optional[str] = None
    percent: int = Field(..., ge=0, le=100)


class WSDoneMessage(BaseSchema):
    """WebSocket completion message."""
    type: str = Field(default="done")
    migratedCount: int = Field(..., ge=0)
    categories: List[str]
    documentsCopied: int = Field(..., ge=0)
    timestamp: Optional[str] = None


# -----------------------------------------------------------------------------
# Health Check
# -----------------------------------------------------------------------------

class HealthResponse(BaseSchema):
    """Health check response."""
    status: str = "healthy"
    version: str
    timestamp: datetime


class ReadinessResponse(BaseSchema):
    status: str
    checks: Dict[str, Union[bool, str]]
