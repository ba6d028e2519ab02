"""
Re-migration Module

Copies team data from the legacy Firebase project into the current one,
one category at a time with progress reporting.
"""

from app.core.migration.exceptions import (
    CategoryCopyError,
    EmptySelectionError,
    LegacyAccountNotFoundError,
    LegacyTeamNotFoundError,
    MigrationDisabledError,
    MigrationError,
    MigrationInProgressError,
    StepTimeoutError,
    UnknownDataTypeError,
)
from app.core.migration.models import (
    DataType,
    MigrationProgress,
    MigrationResult,
    MigrationState,
    default_selection,
    parse_selection,
)
from app.core.migration.tracker import ReMigrationTracker

__all__ = [
    "CategoryCopyError",
    "DataType",
    "EmptySelectionError",
    "LegacyAccountNotFoundError",
    "LegacyTeamNotFoundError",
    "MigrationDisabledError",
    "MigrationError",
    "MigrationInProgressError",
    "MigrationProgress",
    "MigrationResult",
    "MigrationState",
    "ReMigrationTracker",
    "StepTimeoutError",
    "UnknownDataTypeError",
    "default_selection",
    "parse_selection",
]
