"""
Re-migration Models

Data categories, progress values and terminal results for re-migration runs.
"""

from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, model_validator

from app.core.migration.exceptions import EmptySelectionError, UnknownDataTypeError


class DataType(str, Enum):
    """Team subcollections that can be re-migrated."""
    PLANS = "plans"
    PERIODS = "periods"
    TEMPLATES = "templates"
    TAGS = "tags"
    COACHES = "coaches"
    FILES = "files"
    ANNOUNCEMENTS = "announcements"

    @property
    def label(self) -> str:
        return DATA_TYPE_LABELS[self][0]

    @property
    def description(self) -> str:
        return DATA_TYPE_LABELS[self][1]


DATA_TYPE_LABELS = {
    DataType.PLANS: ("Plans", "Practice plans with activities"),
    DataType.PERIODS: ("Period Templates", "Reusable period templates"),
    DataType.TEMPLATES: ("Practice Templates", "Full practice plan templates"),
    DataType.TAGS: ("Tags", "Practice and activity tags"),
    DataType.COACHES: ("Coaches", "Team coaching staff"),
    DataType.FILES: ("Files", "Team files and documents"),
    DataType.ANNOUNCEMENTS: ("Announcements", "Team announcements"),
}


def default_selection() -> List[DataType]:
    """All data types, in display order."""
    return list(DataType)


def parse_selection(values: Iterable[str]) -> List[DataType]:
    """
    Validate a caller-supplied selection, preserving its order.

    Duplicates are dropped after their first occurrence.

    Raises:
        EmptySelectionError: If nothing is selected
        UnknownDataTypeError: If a value is not a known data type
    """
    selection: List[DataType] = []
    for value in values:
        try:
            data_type = DataType(str(value).strip().lower())
        except ValueError:
            raise UnknownDataTypeError(f"Unknown data type: {value}")
        if data_type not in selection:
            selection.append(data_type)
    if not selection:
        raise EmptySelectionError("Please select at least one data type to re-migrate")
    return selection


class MigrationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MigrationProgress(BaseModel):
    """Progress of a running re-migration."""

    step: str
    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    item_name: Optional[str] = None

    @model_validator(mode="after")
    def check_bounds(self) -> "MigrationProgress":
        if self.current > self.total:
            raise ValueError("current cannot exceed total")
        return self

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.current / self.total * 100)


class MigrationResult(BaseModel):
    """Terminal outcome of a re-migration run."""

    state: MigrationState
    target_uid: str
    legacy_uid: Optional[str] = None
    migrated_count: int = Field(default=0, ge=0)
    categories_copied: List[DataType] = Field(default_factory=list)
    documents_copied: int = Field(default=0, ge=0)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == MigrationState.SUCCEEDED
