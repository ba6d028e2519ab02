"""
Re-migration tracker.

Runs one re-migration at a time: resolves the legacy account for a target
email, then copies each selected data category strictly in sequence,
reporting progress after every completed category. The first failing
category ends the run; categories already copied are left in place, so a
retry simply copies everything again.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from app.core.migration.exceptions import (
    EmptySelectionError,
    LegacyAccountNotFoundError,
    MigrationInProgressError,
    StepTimeoutError,
    UnknownDataTypeError,
)
from app.core.migration.models import (
    DataType,
    MigrationProgress,
    MigrationResult,
    MigrationState,
    parse_selection,
)

logger = logging.getLogger(__name__)

LEGACY_ACCOUNT_NOT_FOUND = "User not found in legacy project"

# Collaborator contracts
LegacyLookup = Callable[[str], Awaitable[Optional[str]]]
CategoryCopier = Callable[[str, str, DataType], Awaitable[Optional[int]]]
ProgressCallback = Callable[[MigrationProgress], Any]


class ReMigrationTracker:
    """
    Sequential, fail-fast re-migration workflow.

    ``copy_category`` must be idempotent per category: it is called again for
    every category when a failed run is retried.
    """

    def __init__(
        self,
        lookup_legacy_uid: LegacyLookup,
        copy_category: CategoryCopier,
        step_timeout: Optional[float] = None,
    ):
        """
        Args:
            lookup_legacy_uid: Resolves a legacy uid from an email, None if absent
            copy_category: Copies one category, returns the documents copied
            step_timeout: Seconds to wait for a single category; None waits forever
        """
        self._lookup_legacy_uid = lookup_legacy_uid
        self._copy_category = copy_category
        self._step_timeout = step_timeout
        self._state = MigrationState.IDLE
        self._progress: Optional[MigrationProgress] = None
        self._result: Optional[MigrationResult] = None
        self._busy = False

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def progress(self) -> Optional[MigrationProgress]:
        return self._progress

    @property
    def result(self) -> Optional[MigrationResult]:
        return self._result

    async def run(
        self,
        email: str,
        target_uid: str,
        data_types: Iterable[Union[DataType, str]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> MigrationResult:
        """
        Re-migrate the selected categories for one account.

        Validation failures (empty selection, unknown account) return a failed
        result without leaving IDLE and without any progress callbacks.

        Args:
            email: Email of the account in both projects
            target_uid: Current-project uid receiving the data
            data_types: Categories to copy, in the order to copy them
            on_progress: Called after each completed category

        Returns:
            MigrationResult for the run

        Raises:
            MigrationInProgressError: If this tracker is already running
        """
        if self._busy:
            raise MigrationInProgressError("A re-migration is already running")

        # Held across the legacy lookup too, which suspends before RUNNING is set
        self._busy = True
        try:
            return await self._run(email, target_uid, data_types, on_progress)
        finally:
            self._busy = False

    async def _run(
        self,
        email: str,
        target_uid: str,
        data_types: Iterable[Union[DataType, str]],
        on_progress: Optional[ProgressCallback],
    ) -> MigrationResult:
        self._state = MigrationState.IDLE
        self._progress = None
        self._result = None

        try:
            selection = parse_selection(
                dt.value if isinstance(dt, DataType) else dt for dt in data_types
            )
        except (EmptySelectionError, UnknownDataTypeError) as e:
            return self._reject(target_uid, str(e))

        try:
            legacy_uid = await self._lookup_legacy_uid(email)
        except LegacyAccountNotFoundError:
            legacy_uid = None
        except Exception as e:
            logger.error("Legacy account lookup failed for %s: %s", email, e, exc_info=True)
            return self._reject(target_uid, str(e) or e.__class__.__name__)
        if not legacy_uid:
            return self._reject(target_uid, LEGACY_ACCOUNT_NOT_FOUND)

        return await self._run_selection(legacy_uid, target_uid, selection, on_progress)

    async def _run_selection(
        self,
        legacy_uid: str,
        target_uid: str,
        selection: List[DataType],
        on_progress: Optional[ProgressCallback],
    ) -> MigrationResult:
        total = len(selection)
        copied: List[DataType] = []
        documents = 0

        self._state = MigrationState.RUNNING
        self._progress = MigrationProgress(step="Starting", current=0, total=total)
        logger.info(
            "Re-migration started: legacy=%s target=%s types=%s",
            legacy_uid,
            target_uid,
            ",".join(dt.value for dt in selection),
        )

        try:
            for index, data_type in enumerate(selection):
                try:
                    count = await self._copy_with_timeout(legacy_uid, target_uid, data_type)
                except Exception as e:
                    logger.error("Re-migration of %s failed: %s", data_type.value, e, exc_info=True)
                    error = str(e) or e.__class__.__name__
                    return self._finish_failed(legacy_uid, target_uid, copied, documents, error)

                copied.append(data_type)
                documents += count or 0
                self._progress = MigrationProgress(
                    step=data_type.label,
                    current=index + 1,
                    total=total,
                    item_name=data_type.value,
                )
                await self._notify(on_progress, self._progress)

            self._state = MigrationState.SUCCEEDED
            self._result = MigrationResult(
                state=MigrationState.SUCCEEDED,
                target_uid=target_uid,
                legacy_uid=legacy_uid,
                migrated_count=len(copied),
                categories_copied=copied,
                documents_copied=documents,
            )
            logger.info(
                "Re-migration succeeded: target=%s categories=%d documents=%d",
                target_uid,
                len(copied),
                documents,
            )
            return self._result
        finally:
            if self._state == MigrationState.RUNNING:
                # Cancelled while awaiting a copy
                self._state = MigrationState.FAILED
                self._result = MigrationResult(
                    state=MigrationState.FAILED,
                    target_uid=target_uid,
                    legacy_uid=legacy_uid,
                    migrated_count=len(copied),
                    categories_copied=copied,
                    documents_copied=documents,
                    error="Re-migration aborted",
                )

    async def _copy_with_timeout(self, legacy_uid: str, target_uid: str, data_type: DataType) -> Optional[int]:
        operation = self._copy_category(legacy_uid, target_uid, data_type)
        if self._step_timeout is None:
            return await operation
        task = asyncio.ensure_future(operation)
        try:
            done, _ = await asyncio.wait({task}, timeout=self._step_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            task.cancel()
            raise StepTimeoutError(
                f"Timed out migrating {data_type.value} after {self._step_timeout:g}s"
            )
        # Errors raised by the copy itself, TimeoutError included, pass through unchanged
        return task.result()

    async def _notify(self, callback: Optional[ProgressCallback], progress: MigrationProgress) -> None:
        if callback is None:
            return
        try:
            outcome = callback(progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("Progress callback failed at %s: %s", progress.step, e, exc_info=True)

    def _reject(self, target_uid: str, error: str) -> MigrationResult:
        """Pre-run validation failure; the tracker stays IDLE."""
        logger.warning("Re-migration rejected for %s: %s", target_uid, error)
        self._state = MigrationState.IDLE
        self._result = MigrationResult(state=MigrationState.FAILED, target_uid=target_uid, error=error)
        return self._result

    def _finish_failed(
        self,
        legacy_uid: str,
        target_uid: str,
        copied: List[DataType],
        documents: int,
        error: str,
    ) -> MigrationResult:
        self._state = MigrationState.FAILED
        self._result = MigrationResult(
            state=MigrationState.FAILED,
            target_uid=target_uid,
            legacy_uid=legacy_uid,
            migrated_count=len(copied),
            categories_copied=copied,
            documents_copied=documents,
            error=error,
        )
        logger.warning("Re-migration failed for %s: %s", target_uid, error)
        return self._result
