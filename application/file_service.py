"""
File Application Service

Uploads, describes and deletes shared files. Every file is stored as a blob
first and recorded in the metadata store second; a failed metadata write
removes the blob again so no orphan remains.
"""

import io
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Callable, FrozenSet, Iterable, Optional, Union

from domain.errors import (
    DomainError,
    FileRecordNotFoundError,
    InvalidUploadError,
)
from domain.events import FileDeletedEvent, FileUploadedEvent
from domain.file_sharing import (
    AccessAction,
    FileRepository,
    FileStatus,
    IBlobStorageRepository,
    StoredFile,
    TimeToLive,
)
from domain.file_sharing.value_objects import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_MAX_TTL_MINUTES,
    DEFAULT_MIN_TTL_MINUTES,
)

from .access_recorder import AccessRecorder
from .event_publisher import EventPublisher
from .operation_result import OperationResult
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadPolicy:
    """
    Upload constraints.

    Attributes:
        allowed_extensions: Lower-case extensions including the dot
        max_size_bytes: Largest accepted upload
    """
    allowed_extensions: FrozenSet[str]
    max_size_bytes: int

    @classmethod
    def create(cls, allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
               max_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB) -> "UploadPolicy":
        normalized = frozenset(
            ext.strip().lower() if ext.strip().startswith(".") else f".{ext.strip().lower()}"
            for ext in allowed_extensions
            if ext.strip()
        )
        return cls(allowed_extensions=normalized, max_size_bytes=max_size_mb * 1024 * 1024)

    def check(self, original_name: str, size_bytes: int) -> str:
        """
        Validate an upload.

        Returns:
            The lower-case extension of the file

        Raises:
            InvalidUploadError: If the upload is empty, too large or of a
                disallowed type
        """
        if not original_name or not original_name.strip():
            raise InvalidUploadError("File name is required")

        if size_bytes <= 0:
            raise InvalidUploadError("File is empty")

        if size_bytes > self.max_size_bytes:
            raise InvalidUploadError(
                f"File exceeds the maximum size of {self.max_size_bytes // (1024 * 1024)} MB"
            )

        extension = os.path.splitext(original_name)[1].lower()
        if extension not in self.allowed_extensions:
            raise InvalidUploadError(f"File type not allowed: {extension or '(none)'}")

        return extension


class FileService:
    """Application service for the file lifecycle outside of sharing."""

    def __init__(
        self,
        file_repository: FileRepository,
        storage_repository: IBlobStorageRepository,
        access_recorder: AccessRecorder,
        event_publisher: EventPublisher,
        upload_policy: Optional[UploadPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        min_ttl_minutes: int = DEFAULT_MIN_TTL_MINUTES,
        max_ttl_minutes: int = DEFAULT_MAX_TTL_MINUTES,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.file_repo = file_repository
        self.storage = storage_repository
        self.access_recorder = access_recorder
        self.event_publisher = event_publisher
        self.upload_policy = upload_policy or UploadPolicy.create()
        self.retry_policy = retry_policy or RetryPolicy()
        self.min_ttl_minutes = min_ttl_minutes
        self.max_ttl_minutes = max_ttl_minutes
        self.clock = clock

    def upload_file(
        self,
        content: Union[bytes, BinaryIO],
        original_name: str,
        content_type: str,
        expires_in_minutes: Optional[int] = None,
        client_ip: Optional[str] = None,
    ) -> OperationResult[StoredFile]:
        """
        Store a new file and create its Active record.

        Args:
            content: File bytes or a seekable binary stream
            original_name: Name the file was uploaded with
            content_type: MIME type
            expires_in_minutes: Optional lifetime of the file itself
            client_ip: Uploader address for the access log

        Returns:
            OperationResult with the StoredFile, or a failure with
            INVALID_UPLOAD, INVALID_TTL, STORAGE_UNAVAILABLE or
            METADATA_UNAVAILABLE
        """
        try:
            if expires_in_minutes is not None:
                TimeToLive(expires_in_minutes, self.min_ttl_minutes, self.max_ttl_minutes)

            size_bytes = _measure(content)
            extension = self.upload_policy.check(original_name, size_bytes)
        except DomainError as e:
            logger.warning(f"Rejected upload of {original_name!r}: {e}")
            return OperationResult.from_error(e)

        file_id = str(uuid.uuid4())
        locator = f"{file_id}{extension}"

        try:
            self._retry(self.storage.put, content, content_type, locator, description="store blob")
        except DomainError as e:
            logger.error(f"Failed to store blob for {original_name!r}: {e}")
            return OperationResult.from_error(e)

        now = self.clock()
        file = StoredFile.create(
            original_name=original_name,
            content_type=content_type or "application/octet-stream",
            size_bytes=size_bytes,
            storage_locator=locator,
            now=now,
            expires_in_minutes=expires_in_minutes,
            file_id=file_id,
        )

        try:
            self._retry(self.file_repo.add, file, description="store file record")
        except DomainError as e:
            logger.error(f"Failed to record file {file_id}, removing blob {locator}: {e}")
            self._discard_blob(locator)
            return OperationResult.from_error(e)

        self.access_recorder.record(file_id, AccessAction.UPLOADED, ip_address=client_ip)
        self.event_publisher.publish(FileUploadedEvent(
            aggregate_id=file_id,
            occurred_at=now,
            original_name=original_name,
            size_bytes=size_bytes,
            storage_locator=locator,
        ))
        return OperationResult.ok(file)

    def get_file(self, file_id: str) -> OperationResult[StoredFile]:
        """Describe a file. Deleted files are reported as not found."""
        try:
            return OperationResult.ok(self._load_live_file(file_id))
        except DomainError as e:
            return OperationResult.from_error(e)

    def delete_file(self, file_id: str, client_ip: Optional[str] = None) -> OperationResult[StoredFile]:
        """
        Delete a file's blob and mark its record Deleted.

        The blob delete is idempotent, so a repeated call after a partial
        failure completes the job.

        Returns:
            OperationResult with the file as it was before deletion, or a
            failure with FILE_NOT_FOUND, STORAGE_UNAVAILABLE or
            METADATA_UNAVAILABLE
        """
        try:
            file = self._load_live_file(file_id)
            outcome = self._retry(self.storage.delete, file.storage_locator, description="delete blob")
            changed = self._retry(
                self.file_repo.compare_and_set_status,
                file_id, (FileStatus.ACTIVE, FileStatus.EXPIRED), FileStatus.DELETED,
                description="mark file deleted",
            )
            if not changed:
                raise FileRecordNotFoundError(f"File already deleted: {file_id}")
        except DomainError as e:
            logger.warning(f"Could not delete file {file_id}: {e}")
            return OperationResult.from_error(e)

        self.access_recorder.record(file_id, AccessAction.FILE_DELETED, ip_address=client_ip)
        self.event_publisher.publish(FileDeletedEvent(
            aggregate_id=file_id,
            occurred_at=self.clock(),
            blob_outcome=outcome.value,
            reason="requested",
        ))
        return OperationResult.ok(file)

    def _load_live_file(self, file_id: str) -> StoredFile:
        file = self._retry(self.file_repo.get, file_id, description="load file")
        if file is None or file.status is FileStatus.DELETED:
            raise FileRecordNotFoundError(f"File not found: {file_id}")
        return file

    def _discard_blob(self, locator: str) -> None:
        try:
            self._retry(self.storage.delete, locator, description="remove orphan blob")
        except DomainError as e:
            logger.critical(f"Orphan blob left in storage after failed upload: {locator}: {e}")

    def _retry(self, operation, *args, description: str = ""):
        return self.retry_policy.call(operation, *args, description=description)


def _measure(content: Union[bytes, BinaryIO]) -> int:
    if isinstance(content, (bytes, bytearray)):
        return len(content)

    # Seekable stream: measure, then rewind for the upload
    content.seek(0, io.SEEK_END)
    size = content.tell()
    content.seek(0)
    return size
