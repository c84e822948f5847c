"""
Error Handling Module

Defines domain exceptions, error categories and the error-kind taxonomy.
Domain exceptions are pure and have no external dependencies.
Translation to transport-level status codes happens outside this package.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Coarse error taxonomy shared by every operation."""

    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    CONSISTENCY_FAULT = "consistency_fault"
    INTERNAL = "internal"

    def is_retryable(self) -> bool:
        """Transient infrastructure failures may succeed if the caller retries."""
        return self in (ErrorKind.STORAGE_UNAVAILABLE, ErrorKind.METADATA_UNAVAILABLE)


class ErrorCategory(Enum):
    """Error category enumeration for structured error handling."""

    INVALID_TTL = "invalid_ttl"
    MALFORMED_TOKEN = "malformed_token"
    INVALID_UPLOAD = "invalid_upload"
    FILE_NOT_FOUND = "file_not_found"
    LINK_NOT_FOUND = "link_not_found"
    TOKEN_NOT_FOUND = "token_not_found"
    FILE_EXPIRED = "file_expired"
    LINK_EXPIRED = "link_expired"
    LINK_REVOKED = "link_revoked"
    OBJECT_MISSING = "object_missing"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    STORAGE_REJECTED = "storage_rejected"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    INTERNAL_ERROR = "internal_error"

    @property
    def kind(self) -> ErrorKind:
        return CATEGORY_KINDS[self]

    def is_retryable(self) -> bool:
        # A refused storage call shares its kind with outages but will not recover
        return self.kind.is_retryable() and self is not ErrorCategory.STORAGE_REJECTED


CATEGORY_KINDS: Dict[ErrorCategory, ErrorKind] = {
    ErrorCategory.INVALID_TTL: ErrorKind.INVALID_INPUT,
    ErrorCategory.MALFORMED_TOKEN: ErrorKind.INVALID_INPUT,
    ErrorCategory.INVALID_UPLOAD: ErrorKind.INVALID_INPUT,
    ErrorCategory.FILE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCategory.LINK_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCategory.TOKEN_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCategory.FILE_EXPIRED: ErrorKind.CONFLICT,
    ErrorCategory.LINK_EXPIRED: ErrorKind.CONFLICT,
    ErrorCategory.LINK_REVOKED: ErrorKind.CONFLICT,
    ErrorCategory.OBJECT_MISSING: ErrorKind.CONSISTENCY_FAULT,
    ErrorCategory.STORAGE_UNAVAILABLE: ErrorKind.STORAGE_UNAVAILABLE,
    ErrorCategory.STORAGE_REJECTED: ErrorKind.STORAGE_UNAVAILABLE,
    ErrorCategory.METADATA_UNAVAILABLE: ErrorKind.METADATA_UNAVAILABLE,
    ErrorCategory.INTERNAL_ERROR: ErrorKind.INTERNAL,
}


# User-friendly error messages with actionable guidance
ERROR_MESSAGES: Dict[ErrorCategory, Dict[str, str]] = {
    ErrorCategory.INVALID_TTL: {
        "title": "Invalid Expiration",
        "message": "The requested link lifetime is outside the allowed range.",
        "action": "Choose an expiration between the minimum and maximum allowed minutes.",
    },
    ErrorCategory.MALFORMED_TOKEN: {
        "title": "Invalid Link",
        "message": "The link you followed is not a valid share link.",
        "action": "Check that the link was copied completely.",
    },
    ErrorCategory.INVALID_UPLOAD: {
        "title": "File Rejected",
        "message": "The uploaded file does not meet the upload requirements.",
        "action": "Check the file type and size, then try again.",
    },
    ErrorCategory.FILE_NOT_FOUND: {
        "title": "File Not Found",
        "message": "The requested file could not be found or has been deleted.",
        "action": "Upload the file again.",
    },
    ErrorCategory.LINK_NOT_FOUND: {
        "title": "Link Not Found",
        "message": "The requested share link does not exist.",
        "action": "Generate a new link for the file.",
    },
    ErrorCategory.TOKEN_NOT_FOUND: {
        "title": "Link Not Found",
        "message": "This share link does not exist.",
        "action": "Ask the owner of the file for a new link.",
    },
    ErrorCategory.FILE_EXPIRED: {
        "title": "File Expired",
        "message": "The file has passed its expiration date and can no longer be shared.",
        "action": "Upload the file again to share it.",
    },
    ErrorCategory.LINK_EXPIRED: {
        "title": "Link Expired",
        "message": "This share link has expired.",
        "action": "Ask the owner of the file for a new link.",
    },
    ErrorCategory.LINK_REVOKED: {
        "title": "Link Revoked",
        "message": "This share link has been revoked by its owner.",
        "action": "Ask the owner of the file for a new link.",
    },
    ErrorCategory.OBJECT_MISSING: {
        "title": "File Unavailable",
        "message": "The file content could not be found in storage.",
        "action": "Please contact support. The problem has been reported.",
    },
    ErrorCategory.STORAGE_UNAVAILABLE: {
        "title": "Storage Unavailable",
        "message": "File storage is temporarily unavailable.",
        "action": "Please try again in a few moments.",
    },
    ErrorCategory.STORAGE_REJECTED: {
        "title": "Storage Error",
        "message": "File storage refused the operation.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
    ErrorCategory.METADATA_UNAVAILABLE: {
        "title": "Service Unavailable",
        "message": "The service is temporarily unavailable.",
        "action": "Please try again in a few moments.",
    },
    ErrorCategory.INTERNAL_ERROR: {
        "title": "System Error",
        "message": "An unexpected error occurred while processing your request.",
        "action": "Please try again later. If the problem persists, contact support.",
    },
}


# ============================================================================
# Domain Exceptions (Pure - No External Dependencies)
# ============================================================================

class DomainError(Exception):
    """
    Base exception for all domain errors.

    Every subclass names the ErrorCategory it represents so that the
    application layer can turn it into a typed result without inspecting
    messages. Subclasses flagged ``transient`` are eligible for retry.
    """

    category: ErrorCategory = ErrorCategory.INTERNAL_ERROR
    transient: bool = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        """
        Initialize domain error.

        Args:
            message: Error message
            original_error: Optional original exception that caused this error
        """
        super().__init__(message)
        self.original_error = original_error

    @property
    def kind(self) -> ErrorKind:
        return self.category.kind


class InvalidTTLError(DomainError):
    """Raised when a requested lifetime is outside the configured bounds."""

    category = ErrorCategory.INVALID_TTL


class MalformedTokenError(DomainError):
    """Raised when a token string cannot possibly identify a link."""

    category = ErrorCategory.MALFORMED_TOKEN


class InvalidUploadError(DomainError):
    """Raised when an upload violates the extension or size policy."""

    category = ErrorCategory.INVALID_UPLOAD


class FileRecordNotFoundError(DomainError):
    category = ErrorCategory.FILE_NOT_FOUND


class LinkNotFoundError(DomainError):
    category = ErrorCategory.LINK_NOT_FOUND


class TokenNotFoundError(DomainError):
    category = ErrorCategory.TOKEN_NOT_FOUND


class FileExpiredError(DomainError):
    category = ErrorCategory.FILE_EXPIRED


class LinkExpiredError(DomainError):
    category = ErrorCategory.LINK_EXPIRED


class LinkRevokedError(DomainError):
    category = ErrorCategory.LINK_REVOKED


class ObjectMissingError(DomainError):
    """
    Raised when metadata says an object is present but storage says it is not.

    This is a consistency fault between the two stores. It is never repaired
    silently; operators must reconcile.
    """

    category = ErrorCategory.OBJECT_MISSING


class StorageUnavailableError(DomainError):
    """Raised when the blob store cannot be reached or answers with a transient failure."""

    category = ErrorCategory.STORAGE_UNAVAILABLE
    transient = True


class StorageOperationError(DomainError):
    """
    Raised when the blob store answers but refuses the operation
    (permissions, credentials, bad request). Retrying will not help.
    """

    category = ErrorCategory.STORAGE_REJECTED


class MetadataUnavailableError(DomainError):
    """Raised when the metadata store cannot be reached or times out."""

    category = ErrorCategory.METADATA_UNAVAILABLE
    transient = True


class DuplicateTokenError(DomainError):
    """Raised by the metadata store when a token is already taken."""

    category = ErrorCategory.INTERNAL_ERROR


class DuplicateRecordError(DomainError):
    """Raised by the metadata store when a record id is already taken."""

    category = ErrorCategory.INTERNAL_ERROR


# ============================================================================
# Application-facing error details
# ============================================================================

def describe_error(category: ErrorCategory) -> Dict[str, Any]:
    """
    Build the user-facing description for an error category.

    Args:
        category: Error category

    Returns:
        Dictionary with error, kind, title, message, action and retryable flag
    """
    error_info = ERROR_MESSAGES.get(category, ERROR_MESSAGES[ErrorCategory.INTERNAL_ERROR])
    return {
        "error": category.value,
        "kind": category.kind.value,
        "title": error_info["title"],
        "message": error_info["message"],
        "action": error_info["action"],
        "retryable": category.is_retryable(),
    }
