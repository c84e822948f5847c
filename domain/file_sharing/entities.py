"""
File Sharing Entities

Domain entities for shared files, share links and the access log.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from .value_objects import AccessAction, FileStatus, LinkStatus, ShareToken


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class StoredFile:
    """
    Entity representing an uploaded file and the blob that holds its bytes.

    Records are never physically removed; deletion is a status change so the
    audit trail survives.
    """
    file_id: str
    original_name: str
    content_type: str
    size_bytes: int
    uploaded_at: datetime
    storage_locator: str
    expires_at: Optional[datetime] = None
    status: FileStatus = FileStatus.ACTIVE

    @classmethod
    def create(cls, original_name: str, content_type: str, size_bytes: int,
               storage_locator: str, now: datetime,
               expires_in_minutes: Optional[int] = None,
               file_id: Optional[str] = None) -> 'StoredFile':
        """
        Factory method to create a new Active file record.

        Args:
            original_name: Name the file was uploaded with
            content_type: MIME type
            size_bytes: Size of the blob
            storage_locator: Locator returned by the blob storage
            now: Upload timestamp
            expires_in_minutes: Optional lifetime of the file itself
            file_id: Optional pre-allocated id

        Returns:
            New StoredFile instance
        """
        expires_at = None
        if expires_in_minutes is not None:
            expires_at = now + timedelta(minutes=expires_in_minutes)

        return cls(
            file_id=file_id or str(uuid.uuid4()),
            original_name=original_name,
            content_type=content_type,
            size_bytes=size_bytes,
            uploaded_at=now,
            storage_locator=storage_locator,
            expires_at=expires_at,
            status=FileStatus.ACTIVE,
        )

    def is_expired(self, now: datetime) -> bool:
        """A file without an expiry never expires by time."""
        return self.expires_at is not None and now >= self.expires_at

    def is_shareable(self, now: datetime) -> bool:
        return self.status is FileStatus.ACTIVE and not self.is_expired(now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "file_id": self.file_id,
            "original_name": self.original_name,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "uploaded_at": self.uploaded_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "status": self.status.value,
            "storage_locator": self.storage_locator,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StoredFile':
        """Create StoredFile from dictionary."""
        return cls(
            file_id=data["file_id"],
            original_name=data["original_name"],
            content_type=data["content_type"],
            size_bytes=int(data["size_bytes"]),
            uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
            storage_locator=data["storage_locator"],
            expires_at=_parse_datetime(data.get("expires_at")),
            status=FileStatus(int(data["status"])),
        )


@dataclass
class ShareLink:
    """
    Entity representing a revocable, expiring download link for a file.
    """
    link_id: str
    file_id: str
    token: str
    url: str
    created_at: datetime
    expires_at: datetime
    status: LinkStatus = LinkStatus.ACTIVE
    access_count: int = 0

    @classmethod
    def create(cls, file_id: str, token: ShareToken, url: str, now: datetime,
               ttl_minutes: int) -> 'ShareLink':
        """
        Factory method to create a new Active link with a zero access count.

        Args:
            file_id: Owning file
            token: Freshly generated share token
            url: Resolvable URL embedding the token
            now: Creation timestamp
            ttl_minutes: Lifetime in minutes (already validated)

        Returns:
            New ShareLink instance
        """
        return cls(
            link_id=str(uuid.uuid4()),
            file_id=file_id,
            token=str(token),
            url=url,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes),
            status=LinkStatus.ACTIVE,
            access_count=0,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def get_remaining_seconds(self, now: datetime) -> int:
        """
        Get remaining seconds until expiration.

        Returns:
            Seconds remaining (0 if expired)
        """
        return max(0, int((self.expires_at - now).total_seconds()))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "link_id": self.link_id,
            "file_id": self.file_id,
            "token": self.token,
            "url": self.url,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "status": self.status.value,
            "access_count": self.access_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ShareLink':
        """Create ShareLink from dictionary."""
        return cls(
            link_id=data["link_id"],
            file_id=data["file_id"],
            token=data["token"],
            url=data["url"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            status=LinkStatus(int(data["status"])),
            access_count=int(data.get("access_count", 0)),
        )


@dataclass(frozen=True)
class AccessLogEntry:
    """Append-only audit record. Never mutated or deleted."""
    file_id: str
    action: AccessAction
    timestamp: datetime
    link_id: Optional[str] = None
    ip_address: Optional[str] = None
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "file_id": self.file_id,
            "link_id": self.link_id,
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "ip_address": self.ip_address,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AccessLogEntry':
        return cls(
            entry_id=data["entry_id"],
            file_id=data["file_id"],
            link_id=data.get("link_id"),
            action=AccessAction(int(data["action"])),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            ip_address=data.get("ip_address"),
        )
