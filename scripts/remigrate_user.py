#!/usr/bin/env python3
"""
Re-migration Script: Copy a user's team data from the legacy project

Copies the selected data categories of the legacy team owned by EMAIL into
the current project for TARGET_UID. Safe to re-run: documents are merged by
their legacy ID.

Usage:
    python scripts/remigrate_user.py coach@example.com abc123
    python scripts/remigrate_user.py coach@example.com abc123 --types plans,tags
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import MIGRATION_ENABLED, MIGRATION_STEP_TIMEOUT_SECONDS, logger
from app.core.migration import MigrationProgress, default_selection
from app.core.migration.service import create_tracker


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-migrate one user's team data from the legacy project")
    parser.add_argument("email", help="Email of the legacy account")
    parser.add_argument("target_uid", help="User ID in the current project")
    parser.add_argument(
        "--types",
        default=",".join(dt.value for dt in default_selection()),
        help="Comma-separated data types to copy, in order (default: all)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=MIGRATION_STEP_TIMEOUT_SECONDS,
        help="Seconds to wait for each data type (default: wait indefinitely)",
    )
    return parser.parse_args(argv)


def resolve_step_timeout(value: Optional[float]) -> Optional[float]:
    """Zero or negative waits indefinitely, as MIGRATION_STEP_TIMEOUT_SECONDS does."""
    if value is None or value <= 0:
        return None
    return value


def log_progress(progress: MigrationProgress) -> None:
    logger.info("  [%d/%d] %s copied", progress.current, progress.total, progress.step)


def main(argv=None) -> int:
    """Run a single re-migration."""
    args = parse_args(argv)

    if not MIGRATION_ENABLED:
        logger.error("MIGRATION_ENABLED is not set; refusing to run")
        return 2

    data_types = [t for t in args.types.split(",") if t.strip()]
    logger.info("Re-migrating %s -> %s (%s)", args.email, args.target_uid, ", ".join(data_types) or "nothing")

    tracker = create_tracker(step_timeout=resolve_step_timeout(args.timeout))
    result = asyncio.run(tracker.run(args.email, args.target_uid, data_types, on_progress=log_progress))

    if not result.succeeded:
        logger.error(
            "Re-migration failed after %d categories: %s",
            result.migrated_count,
            result.error,
        )
        return 1

    logger.info(
        "Re-migration completed: %d categories, %d documents",
        result.migrated_count,
        result.documents_copied,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
