"""
File Sharing Repositories

Repository interfaces for the metadata store.

Every mutating method is a single atomic operation in the backing store.
Status changes are compare-and-set: the write only happens when the stored
status is still one of the expected values, so concurrent writers converge
without application-level locks. Implementations raise
MetadataUnavailableError for transient store failures.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from .entities import AccessLogEntry, ShareLink, StoredFile
from .value_objects import FileStatus, LinkStatus


class FileRepository(ABC):
    """Abstract repository interface for file records."""

    @abstractmethod
    def add(self, file: StoredFile) -> None:
        """
        Insert a new file record.

        Raises:
            DuplicateRecordError: If a record with the same id exists
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, file_id: str) -> Optional[StoredFile]:
        """
        Retrieve a file record by id.

        Returns:
            StoredFile if found, None otherwise
        """
        pass  # pragma: no cover

    @abstractmethod
    def find_expired(self, now: datetime, limit: Optional[int] = None) -> List[StoredFile]:
        """
        Find Active files whose expiry is set and strictly before ``now``.

        Args:
            now: Reference time
            limit: Optional maximum number of records

        Returns:
            Expired Active files, oldest expiry first
        """
        pass  # pragma: no cover

    @abstractmethod
    def compare_and_set_status(self, file_id: str, expected: Iterable[FileStatus],
                               new_status: FileStatus) -> bool:
        """
        Atomically set the status if the current status is in ``expected``.

        Returns:
            True if the write happened, False if the record is missing or
            its status did not match
        """
        pass  # pragma: no cover


class LinkRepository(ABC):
    """Abstract repository interface for share links."""

    @abstractmethod
    def add(self, link: ShareLink) -> None:
        """
        Insert a new link.

        Tokens are unique across every link ever stored, including expired
        and revoked ones.

        Raises:
            DuplicateTokenError: If the token is already taken
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, link_id: str) -> Optional[ShareLink]:
        pass  # pragma: no cover

    @abstractmethod
    def get_by_token(self, token: str) -> Optional[ShareLink]:
        pass  # pragma: no cover

    @abstractmethod
    def list_for_file(self, file_id: str) -> List[ShareLink]:
        pass  # pragma: no cover

    @abstractmethod
    def compare_and_set_status(self, link_id: str, expected: Iterable[LinkStatus],
                               new_status: LinkStatus) -> bool:
        """
        Atomically set the status if the current status is in ``expected``.

        Returns:
            True if the write happened, False otherwise
        """
        pass  # pragma: no cover

    @abstractmethod
    def increment_access_count(self, link_id: str, now: datetime) -> Optional[int]:
        """
        Atomically increment the access counter of a usable link.

        The increment only happens while the link is Active and ``now`` is
        before its expiry.

        Returns:
            The new access count, or None if the link is missing or not usable
        """
        pass  # pragma: no cover


class AccessLogRepository(ABC):
    """Append-only access log."""

    @abstractmethod
    def append(self, entry: AccessLogEntry) -> None:
        pass  # pragma: no cover

    @abstractmethod
    def list_for_file(self, file_id: str) -> List[AccessLogEntry]:
        pass  # pragma: no cover
