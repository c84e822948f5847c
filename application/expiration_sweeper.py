"""
Expiration Sweeper

Periodic removal of files whose own expiry has passed.

Each expired file is handled independently in two phases: the blob is
deleted (absent counts as success), then the record is moved to Deleted.
Both phases are idempotent, so a crashed or aborted run is safely re-run:
files already marked Deleted drop out of the next enumeration, and files
whose blob is already gone are tallied as already absent.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from domain.errors import (
    DomainError,
    ErrorCategory,
    MetadataUnavailableError,
)
from domain.events import FileDeletedEvent, SweepCompletedEvent
from domain.file_sharing import (
    AccessAction,
    DeleteOutcome,
    FileRepository,
    FileStatus,
    IBlobStorageRepository,
    StoredFile,
)

from .access_recorder import AccessRecorder
from .event_publisher import EventPublisher
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class SweepOutcome(Enum):
    DELETED = "deleted"
    ALREADY_ABSENT = "already_absent"
    ERROR = "error"


@dataclass(frozen=True)
class SweepItemResult:
    """Outcome for one expired file."""
    file_id: str
    storage_locator: str
    outcome: SweepOutcome
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "storage_locator": self.storage_locator,
            "outcome": self.outcome.value,
            "error_category": self.error_category.value if self.error_category else None,
            "error_message": self.error_message,
        }


@dataclass
class SweepSummary:
    """
    Run summary.

    Attributes:
        found: Expired files enumerated at the start of the run
        deleted: Files whose blob was deleted by this run
        already_absent: Files whose blob was already gone
        errors: Files that failed
        items: Per-file results in processing order
        cancelled: True when a stop request ended the run early
    """
    run_id: str
    started_at: datetime
    found: int = 0
    deleted: int = 0
    already_absent: int = 0
    errors: int = 0
    items: List[SweepItemResult] = field(default_factory=list)
    finished_at: Optional[datetime] = None
    cancelled: bool = False

    def add(self, item: SweepItemResult) -> None:
        self.items.append(item)
        if item.outcome is SweepOutcome.DELETED:
            self.deleted += 1
        elif item.outcome is SweepOutcome.ALREADY_ABSENT:
            self.already_absent += 1
        else:
            self.errors += 1

    def counts(self) -> Dict[str, int]:
        return {
            "found": self.found,
            "deleted": self.deleted,
            "already_absent": self.already_absent,
            "errors": self.errors,
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "cancelled": self.cancelled,
            "items": [item.to_dict() for item in self.items],
        }
        data.update(self.counts())
        return data


class SweepAbortedError(DomainError):
    """
    Raised when a systemic failure ends a run early.

    Carries the partial summary so the scheduler log shows what was done.
    """

    category = ErrorCategory.INTERNAL_ERROR

    def __init__(self, message: str, summary: SweepSummary,
                 original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.summary = summary


class ExpirationSweeper:
    """Runs one sweep over all currently-expired files."""

    def __init__(
        self,
        file_repository: FileRepository,
        storage_repository: IBlobStorageRepository,
        access_recorder: AccessRecorder,
        event_publisher: EventPublisher,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        batch_limit: Optional[int] = 500,
        abort_after_consecutive_storage_failures: int = 5,
    ):
        """
        Initialize ExpirationSweeper.

        Args:
            file_repository: Metadata store for files
            storage_repository: Blob storage
            access_recorder: Access log writer
            event_publisher: Domain event publisher
            retry_policy: Backoff applied to each blob delete and status update
            clock: Source of the current UTC time
            batch_limit: Max files enumerated per run (None for all)
            abort_after_consecutive_storage_failures: Consecutive items failing
                with StorageUnavailable after which the outage is treated as
                systemic and the run aborts
        """
        self.file_repo = file_repository
        self.storage = storage_repository
        self.access_recorder = access_recorder
        self.event_publisher = event_publisher
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self.batch_limit = batch_limit
        self.abort_threshold = abort_after_consecutive_storage_failures

    def run(self, stop_event: Optional[threading.Event] = None) -> SweepSummary:
        """
        Sweep expired files.

        Args:
            stop_event: When set, the run stops before the next file; a file
                already in progress is finished first

        Returns:
            SweepSummary with counts and per-file results

        Raises:
            MetadataUnavailableError: If the expired files cannot be enumerated
            SweepAbortedError: On a systemic failure part-way through the run
        """
        now = self.clock()
        summary = SweepSummary(run_id=str(uuid.uuid4()), started_at=now)
        logger.info(f"Starting expiration sweep {summary.run_id}")

        expired = self.retry_policy.call(
            self.file_repo.find_expired, now, self.batch_limit,
            description="enumerate expired files",
        )
        summary.found = len(expired)

        consecutive_storage_failures = 0
        for file in expired:
            if stop_event is not None and stop_event.is_set():
                logger.info(f"Sweep {summary.run_id} cancelled after {len(summary.items)} of {summary.found} files")
                summary.cancelled = True
                break

            try:
                item = self._sweep_file(file)
            except MetadataUnavailableError as e:
                self._finish(summary)
                logger.error(f"Sweep {summary.run_id} aborted, metadata store unavailable: {e}")
                raise SweepAbortedError(
                    f"Metadata store unavailable during sweep {summary.run_id}", summary, e
                ) from e

            summary.add(item)

            if item.error_category is ErrorCategory.STORAGE_UNAVAILABLE:
                consecutive_storage_failures += 1
                if consecutive_storage_failures >= self.abort_threshold:
                    self._finish(summary)
                    logger.error(
                        f"Sweep {summary.run_id} aborted after {consecutive_storage_failures} "
                        f"consecutive storage failures"
                    )
                    raise SweepAbortedError(
                        f"Blob storage unavailable during sweep {summary.run_id}", summary
                    )
            else:
                consecutive_storage_failures = 0

        self._finish(summary)
        logger.info(
            f"Sweep {summary.run_id} completed - found: {summary.found}, "
            f"deleted: {summary.deleted}, already absent: {summary.already_absent}, "
            f"errors: {summary.errors}"
        )
        self.event_publisher.publish(SweepCompletedEvent(
            aggregate_id=summary.run_id,
            occurred_at=summary.finished_at,
            found=summary.found,
            deleted=summary.deleted,
            already_absent=summary.already_absent,
            errors=summary.errors,
        ))
        return summary

    def _sweep_file(self, file: StoredFile) -> SweepItemResult:
        """
        Delete one expired file.

        Per-item failures become ERROR results. MetadataUnavailableError
        propagates: with the store unreachable no further item can complete.
        """
        try:
            outcome = self.retry_policy.call(
                self.storage.delete, file.storage_locator,
                description=f"delete blob {file.storage_locator}",
            )
        except DomainError as e:
            return self._item_error(file, e)

        try:
            changed = self.retry_policy.call(
                self.file_repo.compare_and_set_status,
                file.file_id, (FileStatus.ACTIVE, FileStatus.EXPIRED), FileStatus.DELETED,
                description=f"mark file {file.file_id} deleted",
            )
        except MetadataUnavailableError:
            raise
        except DomainError as e:
            return self._item_error(file, e)

        if not changed:
            # Deleted concurrently by an explicit delete or an overlapping run
            logger.info(f"File {file.file_id} was already marked deleted")
        else:
            self.access_recorder.record(file.file_id, AccessAction.FILE_DELETED)
            self.event_publisher.publish(FileDeletedEvent(
                aggregate_id=file.file_id,
                occurred_at=self.clock(),
                blob_outcome=outcome.value,
                reason="expired",
            ))

        if outcome is DeleteOutcome.DELETED:
            return SweepItemResult(file.file_id, file.storage_locator, SweepOutcome.DELETED)
        return SweepItemResult(file.file_id, file.storage_locator, SweepOutcome.ALREADY_ABSENT)

    @staticmethod
    def _item_error(file: StoredFile, error: DomainError) -> SweepItemResult:
        logger.error(f"Failed to sweep file {file.file_id} ({file.storage_locator}): {error}")
        return SweepItemResult(
            file_id=file.file_id,
            storage_locator=file.storage_locator,
            outcome=SweepOutcome.ERROR,
            error_category=error.category,
            error_message=str(error),
        )

    def _finish(self, summary: SweepSummary) -> None:
        summary.finished_at = self.clock()
