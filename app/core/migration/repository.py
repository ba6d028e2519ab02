"""
Firestore access for re-migrations.

Reads team data from the legacy Firebase project and writes it into the
current one. Every write is a merge keyed by the legacy document id, so
copying the same category twice leaves the same end state.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from app.config import MIGRATION_ENABLED
from app.core.firebase_client import get_firestore_client, get_legacy_firestore_client
from app.core.migration.exceptions import (
    CategoryCopyError,
    LegacyAccountNotFoundError,
    LegacyTeamNotFoundError,
    MigrationDisabledError,
)
from app.core.migration.models import DataType
from app.core.migration.transforms import transform_document

logger = logging.getLogger(__name__)

# Firestore allows up to 500 operations per batch
BATCH_SIZE = 500


def team_id_from_ref(team_ref: Any) -> Optional[str]:
    """Team id from a DocumentReference or a 'teams/<id>' path string."""
    if not team_ref:
        return None
    if isinstance(team_ref, str):
        return team_ref.rstrip("/").split("/")[-1] or None
    return getattr(team_ref, "id", None)


class TeamDataRepository:
    """
    Copies team subcollections from the legacy project to the current one.

    Firestore calls are blocking; the async entry points run them in a
    worker thread.
    """

    def __init__(
        self,
        legacy_db: Optional[firestore.Client] = None,
        db: Optional[firestore.Client] = None,
        enabled: bool = MIGRATION_ENABLED,
    ):
        self._legacy_db = legacy_db
        self._db = db
        self.enabled = enabled
        # (legacy_uid, target_uid) -> (team_id, uid_map), reset by each legacy lookup
        self._team_contexts: Dict[Tuple[str, str], Tuple[str, Dict[str, str]]] = {}

    @property
    def legacy_db(self) -> firestore.Client:
        if not self.enabled:
            raise MigrationDisabledError("Migration not enabled or legacy database not available")
        if self._legacy_db is None:
            self._legacy_db = get_legacy_firestore_client()
        return self._legacy_db

    @property
    def db(self) -> firestore.Client:
        if self._db is None:
            self._db = get_firestore_client()
        return self._db

    # ------------------------------------------------------------------
    # Async collaborator entry points
    # ------------------------------------------------------------------

    async def find_legacy_uid_by_email(self, email: str) -> Optional[str]:
        # A lookup starts a new run; coaches may have migrated since the last one
        self._team_contexts.clear()
        return await asyncio.to_thread(self.get_legacy_uid_by_email, email)

    async def copy_category(self, legacy_uid: str, target_uid: str, data_type: DataType) -> int:
        return await asyncio.to_thread(self.copy_team_collection, legacy_uid, target_uid, data_type)

    # ------------------------------------------------------------------
    # Blocking operations
    # ------------------------------------------------------------------

    def get_legacy_uid_by_email(self, email: str) -> Optional[str]:
        """Legacy uid for an email, or None if no legacy user has it."""
        if not email:
            return None
        query = (
            self.legacy_db.collection("users")
            .where(filter=FieldFilter("email", "==", email))
            .limit(1)
        )
        for doc in query.stream():
            return doc.id
        return None

    def get_legacy_team_id(self, legacy_uid: str) -> str:
        """
        Team id of a legacy user.

        Raises:
            LegacyAccountNotFoundError: If the legacy user document is missing
            LegacyTeamNotFoundError: If the user has no team reference
        """
        snap = self.legacy_db.collection("users").document(legacy_uid).get()
        if not snap.exists:
            raise LegacyAccountNotFoundError("Legacy user document not found")
        data = snap.to_dict() or {}
        team_id = team_id_from_ref(data.get("teamRef"))
        if not team_id:
            raise LegacyTeamNotFoundError("User has no team reference")
        return team_id

    def build_uid_map(self, team_id: str, legacy_uid: str, target_uid: str) -> Dict[str, str]:
        """
        Map legacy uids of the team's coaches to their current uids.

        Coaches are matched by email against current users that have already
        been migrated. The migrating user is always mapped.
        """
        mapping = {legacy_uid: target_uid}

        coaches = self.legacy_db.collection("teams").document(team_id).collection("coaches").stream()
        coach_uids = {
            (doc.to_dict() or {}).get("userId")
            for doc in coaches
        }
        coach_uids.discard(None)
        coach_uids.discard(legacy_uid)

        users = self.legacy_db.collection("users")
        for old_uid in coach_uids:
            old_user = users.document(old_uid).get()
            if not old_user.exists:
                continue
            email = (old_user.to_dict() or {}).get("email")
            if not email:
                continue
            matches = (
                self.db.collection("users")
                .where(filter=FieldFilter("email", "==", email))
                .where(filter=FieldFilter("dataMigrated", "==", True))
                .limit(1)
                .stream()
            )
            for match in matches:
                mapping[old_uid] = match.id

        logger.debug("Built uid map for team %s with %d entries", team_id, len(mapping))
        return mapping

    def get_team_context(self, legacy_uid: str, target_uid: str) -> Tuple[str, Dict[str, str]]:
        """
        Legacy team id and uid map for a run, resolved once and reused for
        every category.
        """
        key = (legacy_uid, target_uid)
        if key not in self._team_contexts:
            team_id = self.get_legacy_team_id(legacy_uid)
            self._team_contexts[key] = (team_id, self.build_uid_map(team_id, legacy_uid, target_uid))
        return self._team_contexts[key]

    def copy_team_collection(self, legacy_uid: str, target_uid: str, data_type: DataType) -> int:
        """
        Copy one team subcollection into the current project.

        Returns:
            Number of documents written

        Raises:
            MigrationError subclasses for missing accounts or teams
            CategoryCopyError: If reading or writing fails
        """
        team_id, uid_map = self.get_team_context(legacy_uid, target_uid)

        new_team = self.db.collection("teams").document(team_id)
        target_collection = new_team.collection(data_type.value)

        def tag_ref(tag_id: str):
            return new_team.collection("tags").document(tag_id)

        try:
            source = (
                self.legacy_db.collection("teams")
                .document(team_id)
                .collection(data_type.value)
                .stream()
            )

            count = 0
            batch = self.db.batch()
            pending = 0
            for doc in source:
                data = transform_document(doc.to_dict() or {}, data_type, uid_map, tag_ref)
                batch.set(target_collection.document(doc.id), data, merge=True)
                pending += 1
                count += 1
                if pending >= BATCH_SIZE:
                    batch.commit()
                    batch = self.db.batch()
                    pending = 0
            if pending:
                batch.commit()
        except Exception as e:
            raise CategoryCopyError(f"Failed to migrate {data_type.value}: {e}") from e

        logger.info("Copied %d %s documents for team %s", count, data_type.value, team_id)
        return count
