"""
Tests for legacy document transforms and the Firestore re-migration repository.

Run with: pytest tests/test_transforms.py -v
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest

from app.core.migration import (
    CategoryCopyError,
    DataType,
    LegacyAccountNotFoundError,
    LegacyTeamNotFoundError,
    MigrationDisabledError,
)
from app.core.migration.repository import BATCH_SIZE, TeamDataRepository, team_id_from_ref
from app.core.migration.transforms import add_readable_timestamps, transform_document

UID_MAP = {"old-owner": "new-owner", "old-assistant": "new-assistant"}


class FakeRef:
    """Minimal DocumentReference look-alike."""

    def __init__(self, path):
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def __eq__(self, other):
        return isinstance(other, FakeRef) and other.path == self.path


def new_tag_ref(tag_id):
    return FakeRef(f"teams/team-1/tags/{tag_id}")


def legacy_tag(tag_id):
    return FakeRef(f"legacy/teams/team-1/tags/{tag_id}")


def snapshot(doc_id, data, exists=True):
    snap = Mock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


class TestTimestamps:
    """Tests for readable timestamp fields."""

    def test_adds_datetimes_from_millis(self):
        data = add_readable_timestamps({"created": 1700000000000, "modified": 1700000060000})
        assert data["created_t"] == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert data["modified_t"] == datetime(2023, 11, 14, 22, 14, 20, tzinfo=timezone.utc)

    def test_ignores_missing_and_non_numeric(self):
        data = add_readable_timestamps({"created": "yesterday", "modified": True})
        assert "created_t" not in data
        assert "modified_t" not in data


class TestTransformDocument:
    """Tests for per-category document rewrites."""

    def test_plan_remaps_owner_and_tags(self):
        source = {
            "uid": "old-owner",
            "tags": [legacy_tag("t1"), "plain"],
            "activities": [
                {"name": "Warmup", "tags": [legacy_tag("t2")]},
                {"name": "Scrimmage"},
            ],
            "ref": "teams/team-1/plans/p1",
            "created": 1700000000000,
        }

        data = transform_document(source, DataType.PLANS, UID_MAP, new_tag_ref)

        assert data["uid"] == "new-owner"
        assert data["tags"] == [new_tag_ref("t1"), "plain"]
        assert data["activities"][0]["tags"] == [new_tag_ref("t2")]
        assert data["activities"][1] == {"name": "Scrimmage"}
        assert "ref" not in data
        assert "created_t" in data

    def test_input_not_modified(self):
        source = {"uid": "old-owner", "activities": [{"tags": [legacy_tag("t1")]}]}
        transform_document(source, DataType.PLANS, UID_MAP, new_tag_ref)
        assert source["uid"] == "old-owner"
        assert source["activities"][0]["tags"] == [legacy_tag("t1")]

    def test_unmapped_uid_kept(self):
        data = transform_document({"uid": "stranger"}, DataType.PLANS, UID_MAP, new_tag_ref)
        assert data["uid"] == "stranger"

    def test_template_tags_remapped_but_uid_kept(self):
        data = transform_document(
            {"uid": "old-owner", "tags": [legacy_tag("t3")]},
            DataType.TEMPLATES,
            UID_MAP,
            new_tag_ref,
        )
        assert data["uid"] == "old-owner"
        assert data["tags"] == [new_tag_ref("t3")]

    def test_coach_user_id(self):
        data = transform_document({"userId": "old-assistant"}, DataType.COACHES, UID_MAP, new_tag_ref)
        assert data["userId"] == "new-assistant"

    def test_file_uploader(self):
        data = transform_document(
            {"uploadedBy": "old-owner", "tags": ["drills"]},
            DataType.FILES,
            UID_MAP,
            new_tag_ref,
        )
        assert data["uploadedBy"] == "new-owner"
        assert data["tags"] == ["drills"]

    def test_announcement_author_and_readers(self):
        data = transform_document(
            {"createdBy": "old-owner", "readBy": ["old-assistant", "someone"]},
            DataType.ANNOUNCEMENTS,
            UID_MAP,
            new_tag_ref,
        )
        assert data["createdBy"] == "new-owner"
        assert data["readBy"] == ["new-assistant", "someone"]

    def test_tags_and_periods_only_get_timestamps(self):
        source = {"name": "Defense", "uid": "old-owner", "ref": "x"}
        for data_type in (DataType.TAGS, DataType.PERIODS):
            data = transform_document(source, data_type, UID_MAP, new_tag_ref)
            assert data == {"name": "Defense", "uid": "old-owner"}


class TestTeamIdFromRef:
    def test_path_string(self):
        assert team_id_from_ref("teams/abc") == "abc"
        assert team_id_from_ref("/teams/abc/") == "abc"

    def test_reference(self):
        assert team_id_from_ref(FakeRef("teams/xyz")) == "xyz"

    def test_missing(self):
        assert team_id_from_ref(None) is None
        assert team_id_from_ref("") is None


class TestTeamDataRepository:
    """Tests for the Firestore repository with mocked clients."""

    def make_repo(self):
        return TeamDataRepository(legacy_db=MagicMock(), db=MagicMock(), enabled=True)

    def test_disabled_repository(self):
        repo = TeamDataRepository(legacy_db=MagicMock(), db=MagicMock(), enabled=False)
        with pytest.raises(MigrationDisabledError):
            repo.get_legacy_uid_by_email("coach@example.com")

    def test_legacy_uid_by_email(self):
        repo = self.make_repo()
        query = repo.legacy_db.collection.return_value.where.return_value.limit.return_value
        query.stream.return_value = iter([snapshot("old-owner", {})])

        assert asyncio.run(repo.find_legacy_uid_by_email("coach@example.com")) == "old-owner"

    def test_legacy_uid_by_email_missing(self):
        repo = self.make_repo()
        query = repo.legacy_db.collection.return_value.where.return_value.limit.return_value
        query.stream.return_value = iter([])

        assert repo.get_legacy_uid_by_email("nobody@example.com") is None
        assert repo.get_legacy_uid_by_email("") is None

    def test_legacy_team_id(self):
        repo = self.make_repo()
        users = repo.legacy_db.collection.return_value
        users.document.return_value.get.return_value = snapshot("old-owner", {"teamRef": "teams/team-1"})

        assert repo.get_legacy_team_id("old-owner") == "team-1"

    def test_legacy_user_missing(self):
        repo = self.make_repo()
        users = repo.legacy_db.collection.return_value
        users.document.return_value.get.return_value = snapshot("old-owner", None, exists=False)

        with pytest.raises(LegacyAccountNotFoundError):
            repo.get_legacy_team_id("old-owner")

    def test_legacy_user_without_team(self):
        repo = self.make_repo()
        users = repo.legacy_db.collection.return_value
        users.document.return_value.get.return_value = snapshot("old-owner", {"email": "a@b.co"})

        with pytest.raises(LegacyTeamNotFoundError, match="User has no team reference"):
            repo.get_legacy_team_id("old-owner")

    def test_copy_writes_with_merge(self):
        repo = self.make_repo()
        legacy_docs = [
            snapshot("p1", {"uid": "old-owner", "ref": "x"}),
            snapshot("p2", {"uid": "old-assistant"}),
        ]
        source = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        source.stream.return_value = iter(legacy_docs)
        batch = repo.db.batch.return_value

        with patch.object(repo, "get_legacy_team_id", return_value="team-1"), \
                patch.object(repo, "build_uid_map", return_value=dict(UID_MAP)):
            count = asyncio.run(repo.copy_category("old-owner", "new-owner", DataType.PLANS))

        assert count == 2
        assert batch.set.call_count == 2
        written = [c.args[1] for c in batch.set.call_args_list]
        assert written == [{"uid": "new-owner"}, {"uid": "new-assistant"}]
        assert all(c.kwargs == {"merge": True} for c in batch.set.call_args_list)
        batch.commit.assert_called_once()

    def test_copy_commits_in_batches(self):
        repo = self.make_repo()
        source = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        source.stream.return_value = iter(
            snapshot(f"t{i}", {"name": str(i)}) for i in range(BATCH_SIZE + 1)
        )

        with patch.object(repo, "get_legacy_team_id", return_value="team-1"), \
                patch.object(repo, "build_uid_map", return_value={}):
            count = repo.copy_team_collection("old-owner", "new-owner", DataType.TAGS)

        assert count == BATCH_SIZE + 1
        assert repo.db.batch.return_value.commit.call_count == 2

    def test_copy_failure_wrapped(self):
        repo = self.make_repo()
        source = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        source.stream.side_effect = RuntimeError("permission denied")

        with patch.object(repo, "get_legacy_team_id", return_value="team-1"), \
                patch.object(repo, "build_uid_map", return_value={}):
            with pytest.raises(CategoryCopyError, match="Failed to migrate files: permission denied"):
                repo.copy_team_collection("old-owner", "new-owner", DataType.FILES)

    def test_team_context_resolved_once_per_run(self):
        repo = self.make_repo()
        source = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        source.stream.side_effect = lambda: iter([snapshot("d1", {"uid": "old-owner"})])

        with patch.object(repo, "get_legacy_team_id", return_value="team-1") as team_id, \
                patch.object(repo, "build_uid_map", return_value=dict(UID_MAP)) as uid_map:
            repo.copy_team_collection("old-owner", "new-owner", DataType.COACHES)
            repo.copy_team_collection("old-owner", "new-owner", DataType.PLANS)
            repo.copy_team_collection("old-owner", "new-owner", DataType.TAGS)

        assert team_id.call_count == 1
        assert uid_map.call_count == 1

    def test_lookup_resets_team_context(self):
        repo = self.make_repo()
        source = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        source.stream.side_effect = lambda: iter([])
        query = repo.legacy_db.collection.return_value.where.return_value.limit.return_value
        query.stream.side_effect = lambda: iter([snapshot("old-owner", {})])

        with patch.object(repo, "get_legacy_team_id", return_value="team-1") as team_id, \
                patch.object(repo, "build_uid_map", return_value={}) as uid_map:
            repo.copy_team_collection("old-owner", "new-owner", DataType.PLANS)
            asyncio.run(repo.find_legacy_uid_by_email("coach@example.com"))
            repo.copy_team_collection("old-owner", "new-owner", DataType.PLANS)

        assert team_id.call_count == 2
        assert uid_map.call_count == 2

    def test_uid_map_matches_migrated_coaches(self):
        repo = self.make_repo()
        coaches = repo.legacy_db.collection.return_value.document.return_value.collection.return_value
        coaches.stream.return_value = iter([
            snapshot("c1", {"userId": "old-owner"}),
            snapshot("c2", {"userId": "old-assistant"}),
            snapshot("c3", {}),
        ])
        repo.legacy_db.collection.return_value.document.return_value.get.return_value = snapshot(
            "old-assistant", {"email": "assistant@example.com"}
        )
        current = repo.db.collection.return_value.where.return_value.where.return_value.limit.return_value
        current.stream.return_value = iter([snapshot("new-assistant", {})])

        mapping = repo.build_uid_map("team-1", "old-owner", "new-owner")

        assert mapping == {"old-owner": "new-owner", "old-assistant": "new-assistant"}
