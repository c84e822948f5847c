"""
File Sharing Services

Pure domain rules for link usability. The state machine decides; the
application layer performs the resulting compare-and-set writes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from domain.errors import DomainError, LinkExpiredError, LinkRevokedError

from .entities import ShareLink, StoredFile
from .value_objects import LinkStatus


class LinkVerdict(Enum):
    """Outcome of evaluating a link at a point in time."""

    VALID = "valid"
    # Active in the store but past its expiry (or its file is gone); must be flipped
    EXPIRE = "expire"
    EXPIRED = "expired"
    REVOKED = "revoked"

    @property
    def is_valid(self) -> bool:
        return self is LinkVerdict.VALID


class LinkStateMachine:
    """
    Link lifecycle: Active -> Expired (lazy, on evaluation past expiry),
    Active -> Revoked (explicit). Expired and Revoked never return to Active.

    A link whose file is missing, no longer Active, or past its own expiry is
    treated as expired: a link cannot outlive its file.
    """

    @staticmethod
    def evaluate(link: ShareLink, file: Optional[StoredFile], now: datetime) -> LinkVerdict:
        if link.status is LinkStatus.REVOKED:
            return LinkVerdict.REVOKED
        if link.status is LinkStatus.EXPIRED:
            return LinkVerdict.EXPIRED
        if link.is_expired(now):
            return LinkVerdict.EXPIRE
        if file is None or not file.is_shareable(now):
            return LinkVerdict.EXPIRE
        return LinkVerdict.VALID

    @staticmethod
    def verdict_for_status(status: Optional[LinkStatus]) -> LinkVerdict:
        """
        Verdict after losing the Active -> Expired compare-and-set.

        The link already left Active, so only a revocation changes the
        answer. A vanished record (None) reads as expired.
        """
        if status is LinkStatus.REVOKED:
            return LinkVerdict.REVOKED
        return LinkVerdict.EXPIRED

    @staticmethod
    def error_for(verdict: LinkVerdict, token: str) -> DomainError:
        """Domain error describing why a link cannot be used."""
        if verdict is LinkVerdict.REVOKED:
            return LinkRevokedError(f"Link has been revoked: {token}")
        return LinkExpiredError(f"Link has expired: {token}")
