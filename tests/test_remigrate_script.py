"""
Tests for the remigrate_user operator script.

Run with: pytest tests/test_remigrate_script.py -v
"""

import importlib.util
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.migration import DataType, MigrationResult, MigrationState

SCRIPT = Path(__file__).parent.parent / "scripts" / "remigrate_user.py"


def load_script():
    spec = importlib.util.spec_from_file_location("remigrate_user", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def script():
    return load_script()


def succeeded():
    return MigrationResult(
        state=MigrationState.SUCCEEDED,
        target_uid="new-uid",
        legacy_uid="old-uid",
        migrated_count=1,
        categories_copied=[DataType.PLANS],
        documents_copied=4,
    )


class TestStepTimeout:
    """Tests for --timeout handling."""

    def test_zero_waits_indefinitely(self, script):
        assert script.resolve_step_timeout(0) is None
        assert script.resolve_step_timeout(-5) is None
        assert script.resolve_step_timeout(None) is None

    def test_positive_timeout_kept(self, script):
        assert script.resolve_step_timeout(2.5) == 2.5

    @pytest.mark.parametrize("value,expected", [("0", None), ("30", 30.0)])
    def test_cli_passes_timeout_to_tracker(self, script, value, expected):
        tracker = MagicMock()
        tracker.run = AsyncMock(return_value=succeeded())

        with patch.object(script, "MIGRATION_ENABLED", True), \
                patch.object(script, "create_tracker", return_value=tracker) as create:
            code = script.main(["coach@example.com", "new-uid", "--types", "plans", "--timeout", value])

        assert code == 0
        create.assert_called_once_with(step_timeout=expected)
        assert tracker.run.await_args.args[2] == ["plans"]


class TestMain:
    """Tests for exit codes."""

    def test_refuses_when_disabled(self, script):
        with patch.object(script, "MIGRATION_ENABLED", False), \
                patch.object(script, "create_tracker") as create:
            assert script.main(["coach@example.com", "new-uid"]) == 2
        create.assert_not_called()

    def test_failed_run_exits_nonzero(self, script):
        tracker = MagicMock()
        tracker.run = AsyncMock(return_value=MigrationResult(
            state=MigrationState.FAILED,
            target_uid="new-uid",
            error="Failed to migrate plans: quota",
        ))

        with patch.object(script, "MIGRATION_ENABLED", True), \
                patch.object(script, "create_tracker", return_value=tracker):
            assert script.main(["coach@example.com", "new-uid"]) == 1
