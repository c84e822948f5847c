"""
Domain Events

Immutable records of significant state changes in the domain.
Events decouple side effects (logging, alerting) from core business logic.
"""

from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DomainEvent(ABC):
    """
    Base class for all domain events.

    Attributes:
        aggregate_id: ID of the aggregate that generated the event (file or link id)
        occurred_at: Timestamp when the event occurred
    """
    aggregate_id: str
    occurred_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary for serialization.

        Returns:
            Dictionary representation of the event
        """
        return {
            "event_type": self.__class__.__name__,
            "aggregate_id": self.aggregate_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class FileUploadedEvent(DomainEvent):
    """
    Event emitted when a file and its blob have both been stored.

    Attributes:
        aggregate_id: File ID
        original_name: Name the file was uploaded with
        size_bytes: Stored size
        storage_locator: Locator in blob storage
    """
    original_name: str
    size_bytes: int
    storage_locator: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "original_name": self.original_name,
            "size_bytes": self.size_bytes,
            "storage_locator": self.storage_locator,
        })
        return base_dict


@dataclass(frozen=True)
class LinkIssuedEvent(DomainEvent):
    """
    Event emitted when a share link is created.

    Attributes:
        aggregate_id: Link ID
        file_id: Owning file
        expires_at: When the link expires
    """
    file_id: str
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "file_id": self.file_id,
            "expires_at": self.expires_at.isoformat(),
        })
        return base_dict


@dataclass(frozen=True)
class LinkExpiredEvent(DomainEvent):
    """Event emitted when an Active link is durably flipped to Expired."""
    file_id: str

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict["file_id"] = self.file_id
        return base_dict


@dataclass(frozen=True)
class LinkRevokedEvent(DomainEvent):
    """Event emitted when a link is revoked."""
    file_id: str

    def to_dict(self) -> Dict[str, Any]:
        base_dict = super().to_dict()
        base_dict["file_id"] = self.file_id
        return base_dict


@dataclass(frozen=True)
class DownloadResolvedEvent(DomainEvent):
    """
    Event emitted when a token resolves to a download target.

    Attributes:
        aggregate_id: Link ID
        file_id: File being downloaded
        access_count: Counter value after this resolution
        target_kind: Kind of download target handed out
    """
    file_id: str
    access_count: int
    target_kind: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "file_id": self.file_id,
            "access_count": self.access_count,
            "target_kind": self.target_kind,
        })
        return base_dict


@dataclass(frozen=True)
class FileDeletedEvent(DomainEvent):
    """
    Event emitted when a file is marked Deleted.

    Attributes:
        aggregate_id: File ID
        blob_outcome: 'deleted' or 'absent'
        reason: 'expired' for the sweep, 'requested' for explicit deletion
    """
    blob_outcome: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "blob_outcome": self.blob_outcome,
            "reason": self.reason,
        })
        return base_dict


@dataclass(frozen=True)
class ConsistencyFaultEvent(DomainEvent):
    """
    Event emitted when the metadata store and blob storage disagree.

    Attributes:
        aggregate_id: File ID
        storage_locator: Locator the metadata points at
        detail: What was observed
        link_id: Link being resolved when the fault was found, if any
    """
    storage_locator: str
    detail: str
    link_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "storage_locator": self.storage_locator,
            "detail": self.detail,
            "link_id": self.link_id,
        })
        return base_dict


@dataclass(frozen=True)
class SweepCompletedEvent(DomainEvent):
    """
    Event emitted at the end of an expiration sweep.

    Attributes:
        aggregate_id: Sweep run ID
        found: Expired files enumerated
        deleted: Files whose blob was deleted
        already_absent: Files whose blob was already gone
        errors: Files that failed
    """
    found: int
    deleted: int
    already_absent: int
    errors: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        base_dict = super().to_dict()
        base_dict.update({
            "found": self.found,
            "deleted": self.deleted,
            "already_absent": self.already_absent,
            "errors": self.errors,
        })
        return base_dict
