"""
Re-migration service wiring.

Builds trackers bound to the Firestore repository and exposes the data type
catalogue shown to operators.
"""

from typing import Dict, List, Optional

from app.config import MIGRATION_STEP_TIMEOUT_SECONDS
from app.core.migration.models import DataType
from app.core.migration.repository import TeamDataRepository
from app.core.migration.tracker import ReMigrationTracker

_UNSET = object()


def create_tracker(
    repository: Optional[TeamDataRepository] = None,
    step_timeout=_UNSET,
) -> ReMigrationTracker:
    """
    Create a tracker for one operator session.

    Args:
        repository: Firestore repository (default: configured projects)
        step_timeout: Per-category timeout override; defaults to
            MIGRATION_STEP_TIMEOUT_SECONDS

    Returns:
        ReMigrationTracker in the IDLE state
    """
    repo = repository or TeamDataRepository()
    timeout = MIGRATION_STEP_TIMEOUT_SECONDS if step_timeout is _UNSET else step_timeout
    return ReMigrationTracker(
        lookup_legacy_uid=repo.find_legacy_uid_by_email,
        copy_category=repo.copy_category,
        step_timeout=timeout,
    )


def list_data_types() -> List[Dict[str, str]]:
    """Data type catalogue, all selected by default."""
    return [
        {"id": dt.value, "label": dt.label, "description": dt.description}
        for dt in DataType
    ]
