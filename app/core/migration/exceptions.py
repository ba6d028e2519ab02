"""
Re-migration exceptions.
"""


class MigrationError(Exception):
    """Base exception for all re-migration errors."""
    pass


class MigrationDisabledError(MigrationError):
    """Raised when the legacy project is not configured for re-migration."""
    pass


class MigrationInProgressError(MigrationError):
    """Raised when a run is started while another is still running."""
    pass


class EmptySelectionError(MigrationError):
    """Raised when no data types are selected."""
    pass


class UnknownDataTypeError(MigrationError):
    """Raised when a selection names an unknown data type."""
    pass


class LegacyAccountNotFoundError(MigrationError):
    """Raised when no legacy account matches the target email."""
    pass


class LegacyTeamNotFoundError(MigrationError):
    """Raised when the legacy account has no team reference."""
    pass


class CategoryCopyError(MigrationError):
    """Raised when copying a single data category fails."""
    pass


class StepTimeoutError(MigrationError):
    """Raised when a single category copy exceeds the configured step timeout."""
    pass
