"""
File Sharing Value Objects

Immutable value objects for statuses, tokens and link lifetimes.
"""

import secrets
from dataclasses import dataclass
from enum import Enum

from domain.errors import InvalidTTLError, MalformedTokenError

# 24 random bytes -> 32 URL-safe characters (192 bits of entropy)
TOKEN_BYTES = 24
TOKEN_LENGTH = 32

DEFAULT_MIN_TTL_MINUTES = 1
DEFAULT_MAX_TTL_MINUTES = 1440

DEFAULT_ALLOWED_EXTENSIONS = (
    ".pdf", ".png", ".jpg", ".jpeg", ".gif", ".txt", ".docx", ".xlsx", ".zip",
)
DEFAULT_MAX_FILE_SIZE_MB = 100


class FileStatus(Enum):
    """File status. Persisted as 1..3."""

    ACTIVE = 1
    EXPIRED = 2
    DELETED = 3

    def can_transition_to(self, target: "FileStatus") -> bool:
        """Statuses only move forward: Active -> Expired -> Deleted, or Active -> Deleted."""
        return target.value > self.value

    def is_terminal(self) -> bool:
        return self is FileStatus.DELETED


class LinkStatus(Enum):
    """Link status. Persisted as 1..3."""

    ACTIVE = 1
    EXPIRED = 2
    REVOKED = 3

    def is_terminal(self) -> bool:
        """Check if status is terminal (expired or revoked)."""
        return self in (LinkStatus.EXPIRED, LinkStatus.REVOKED)

    def can_transition_to(self, target: "LinkStatus") -> bool:
        """
        Only Active links move, and only to a terminal status.

        Revocation of an expired link is also allowed so that an owner can
        record an explicit revocation after the fact.
        """
        if self is LinkStatus.ACTIVE:
            return target.is_terminal()
        return self is LinkStatus.EXPIRED and target is LinkStatus.REVOKED


class AccessAction(Enum):
    """Access log action kind. Persisted as 1..5."""

    UPLOADED = 1
    DOWNLOADED = 2
    LINK_GENERATED = 3
    LINK_EXPIRED = 4
    FILE_DELETED = 5


@dataclass(frozen=True)
class ShareToken:
    """
    Value object representing a share token.

    Tokens are exactly 32 URL-safe characters (alphanumeric, hyphens,
    underscores) generated from 192 bits of randomness.
    """

    value: str

    def __post_init__(self):
        if not self.is_well_formed(self.value):
            raise MalformedTokenError(
                f"Invalid share token: expected {TOKEN_LENGTH} URL-safe characters"
            )

    @staticmethod
    def is_well_formed(value: object) -> bool:
        if not value or not isinstance(value, str):
            return False

        if len(value) != TOKEN_LENGTH:
            return False

        return all(c.isascii() and (c.isalnum() or c in "-_") for c in value)

    @classmethod
    def generate(cls) -> "ShareToken":
        """
        Generate a new cryptographically secure share token.

        Returns:
            New ShareToken instance with generated value
        """
        return cls(secrets.token_urlsafe(TOKEN_BYTES))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TimeToLive:
    """
    Link lifetime in whole minutes, validated against configured bounds.
    """

    minutes: int
    min_minutes: int = DEFAULT_MIN_TTL_MINUTES
    max_minutes: int = DEFAULT_MAX_TTL_MINUTES

    def __post_init__(self):
        # bool is an int subclass; reject it explicitly
        if isinstance(self.minutes, bool) or not isinstance(self.minutes, int):
            raise InvalidTTLError(f"TTL must be an integer number of minutes, got {self.minutes!r}")
        if not self.min_minutes <= self.minutes <= self.max_minutes:
            raise InvalidTTLError(
                f"TTL must be between {self.min_minutes} and {self.max_minutes} minutes, "
                f"got {self.minutes}"
            )
