"""
Blob Storage Repository Interface

Abstract interface for the blob store that holds file bytes.
Link issuance, resolution and the expiration sweep are written against this
capability set only; the concrete variant (local filesystem or cloud object
store) is chosen once at process start.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Optional, Union


class DeleteOutcome(Enum):
    """Result of an idempotent delete."""

    DELETED = "deleted"
    ABSENT = "absent"


class DownloadTargetKind(Enum):
    DELEGATED_URL = "delegated_url"
    LOCAL_STREAM = "local_stream"


@dataclass(frozen=True)
class DownloadTarget:
    """
    Where a caller fetches the bytes for a resolved link.

    For DELEGATED_URL the caller redirects to ``url`` (time-boxed by
    ``expires_at``). For LOCAL_STREAM the caller streams the object identified
    by ``locator`` through IBlobStorageRepository.get().
    """

    kind: DownloadTargetKind
    locator: str
    filename: str
    content_type: str
    url: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "locator": self.locator,
            "filename": self.filename,
            "content_type": self.content_type,
            "url": self.url,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class IBlobStorageRepository(ABC):
    """
    Unified interface for blob storage operations.

    Contract Guarantees:
    - delete() is idempotent: an absent object is success (ABSENT), not an error
    - get() returns None for absent objects
    - exists() distinguishes "confirmed absent" (False) from "cannot tell"
      (raises StorageUnavailableError)
    - Transient failures surface as StorageUnavailableError; anything else
      propagates unchanged and is not retried

    Thread Safety:
    - Implementations must be safe for concurrent use by request handlers
      and the background sweep
    """

    provider_name: str = "abstract"

    @abstractmethod
    def put(self, content: Union[bytes, BinaryIO], content_type: str,
            locator: str) -> str:
        """
        Store bytes under ``locator``, overwriting any existing object.

        Args:
            content: Raw bytes or a binary stream positioned at the start
            content_type: MIME type recorded with the object where supported
            locator: Storage-relative object name (e.g. '<uuid>.pdf')

        Returns:
            The locator the object was stored under

        Raises:
            ValueError: If locator is empty or escapes the storage root
            StorageUnavailableError: On transient failures
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, locator: str) -> Optional[BinaryIO]:
        """
        Open the object for streaming.

        Returns:
            Binary stream if found, None if absent. Caller closes the stream.
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, locator: str) -> DeleteOutcome:
        """
        Delete the object if it exists.

        Returns:
            DELETED if an object was removed, ABSENT if there was none
        """
        pass  # pragma: no cover

    @abstractmethod
    def exists(self, locator: str) -> bool:
        """
        Check whether the object exists.

        Raises:
            StorageUnavailableError: If existence cannot be confirmed either way
        """
        pass  # pragma: no cover

    @abstractmethod
    def create_download_target(self, locator: str, filename: str, content_type: str,
                               expires_at: datetime) -> DownloadTarget:
        """
        Build the download target handed to the caller for a resolved link.

        Args:
            locator: Object to serve
            filename: Name presented to the downloader
            content_type: MIME type presented to the downloader
            expires_at: Latest moment the target may remain usable

        Returns:
            DownloadTarget for this variant
        """
        pass  # pragma: no cover
