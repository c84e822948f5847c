"""
Google Cloud Storage Repository Implementation

Concrete implementation of IBlobStorageRepository for Google Cloud Storage.
Downloads are delegated to the bucket through V4 signed URLs, so bytes never
pass through this service.
"""

import logging
from datetime import datetime, timedelta
from typing import BinaryIO, Callable, Optional, Union

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage
from requests import exceptions as requests_exceptions

from domain.errors import StorageOperationError, StorageUnavailableError
from domain.file_sharing import (
    DeleteOutcome,
    DownloadTarget,
    DownloadTargetKind,
    IBlobStorageRepository,
)

logger = logging.getLogger(__name__)

# Throttling, server-side failures and network trouble; worth retrying
TRANSIENT_GCS_ERRORS = (
    api_exceptions.TooManyRequests,
    api_exceptions.InternalServerError,
    api_exceptions.BadGateway,
    api_exceptions.ServiceUnavailable,
    api_exceptions.GatewayTimeout,
    api_exceptions.RetryError,
    requests_exceptions.ConnectionError,
    requests_exceptions.Timeout,
    auth_exceptions.TransportError,
)

# Any other API answer (403, 401, 400, ...) or credential problem is permanent;
# must be caught after TRANSIENT_GCS_ERRORS
PERMANENT_GCS_ERRORS = (
    api_exceptions.GoogleAPICallError,
    auth_exceptions.GoogleAuthError,
)

MIN_SIGNED_URL_SECONDS = 1


class GCSStorageRepository(IBlobStorageRepository):
    """
    Google Cloud Storage implementation of IBlobStorageRepository.

    Thread Safety:
        This implementation is thread-safe. The GCS client handles concurrent
        operations safely.

    Attributes:
        bucket_name: Name of the GCS bucket for file storage
        client: Google Cloud Storage client instance
        bucket: GCS bucket object
        delegated_url_ttl: Longest lifetime of a signed download URL
    """

    provider_name = "gcs"

    def __init__(self, bucket_name: str, client: Optional[storage.Client] = None,
                 delegated_url_ttl_minutes: int = 15,
                 clock: Callable[[], datetime] = datetime.utcnow):
        """
        Initialize the GCS storage repository.

        Args:
            bucket_name: Name of the GCS bucket to use for storage
            client: Preconfigured client (default: storage.Client())
            delegated_url_ttl_minutes: Signed URL lifetime cap
            clock: Source of the current UTC time

        Raises:
            ValueError: If bucket_name is empty
        """
        if not bucket_name or not bucket_name.strip():
            raise ValueError("bucket_name cannot be empty")

        self.bucket_name = bucket_name
        self.client = client or storage.Client()
        self.bucket = self.client.bucket(bucket_name)
        self.delegated_url_ttl = timedelta(minutes=delegated_url_ttl_minutes)
        self.clock = clock

    def _blob(self, locator: str) -> storage.Blob:
        if not locator or not locator.strip():
            raise ValueError("locator cannot be empty")
        return self.bucket.blob(locator)

    def put(self, content: Union[bytes, BinaryIO], content_type: str, locator: str) -> str:
        blob = self._blob(locator)
        try:
            if isinstance(content, (bytes, bytearray)):
                blob.upload_from_string(bytes(content), content_type=content_type)
            else:
                blob.upload_from_file(content, content_type=content_type, rewind=True)
        except TRANSIENT_GCS_ERRORS as e:
            raise self._unavailable("upload", locator, e) from e
        except PERMANENT_GCS_ERRORS as e:
            raise self._rejected("upload", locator, e) from e

        logger.debug(f"Uploaded gs://{self.bucket_name}/{locator}")
        return locator

    def get(self, locator: str) -> Optional[BinaryIO]:
        """
        Open the blob for streaming reads.

        Returns:
            Binary reader if found, None if the blob does not exist
        """
        blob = self._blob(locator)
        try:
            if not blob.exists():
                return None
            return blob.open("rb")
        except api_exceptions.NotFound:
            return None
        except TRANSIENT_GCS_ERRORS as e:
            raise self._unavailable("open", locator, e) from e
        except PERMANENT_GCS_ERRORS as e:
            raise self._rejected("open", locator, e) from e

    def delete(self, locator: str) -> DeleteOutcome:
        """
        Delete the blob if it exists.

        Idempotent: a missing blob is reported as ABSENT.
        """
        blob = self._blob(locator)
        try:
            blob.delete()
        except api_exceptions.NotFound:
            return DeleteOutcome.ABSENT
        except TRANSIENT_GCS_ERRORS as e:
            raise self._unavailable("delete", locator, e) from e
        except PERMANENT_GCS_ERRORS as e:
            raise self._rejected("delete", locator, e) from e
        return DeleteOutcome.DELETED

    def exists(self, locator: str) -> bool:
        blob = self._blob(locator)
        try:
            return blob.exists()
        except TRANSIENT_GCS_ERRORS as e:
            raise self._unavailable("check", locator, e) from e
        except PERMANENT_GCS_ERRORS as e:
            raise self._rejected("check", locator, e) from e

    def create_download_target(self, locator: str, filename: str, content_type: str,
                               expires_at: datetime) -> DownloadTarget:
        """
        Generate a V4 signed URL for the blob.

        The URL lives no longer than the configured cap and never past
        ``expires_at``.
        """
        now = self.clock()
        lifetime = min(self.delegated_url_ttl, expires_at - now)
        lifetime = max(lifetime, timedelta(seconds=MIN_SIGNED_URL_SECONDS))

        blob = self._blob(locator)
        try:
            url = blob.generate_signed_url(
                version="v4",
                expiration=lifetime,
                method="GET",
                response_disposition=f'attachment; filename="{_quote_filename(filename)}"',
                response_type=content_type,
            )
        except TRANSIENT_GCS_ERRORS as e:
            raise self._unavailable("sign URL for", locator, e) from e
        except PERMANENT_GCS_ERRORS as e:
            raise self._rejected("sign URL for", locator, e) from e
        except AttributeError as e:
            # Raised by google-auth when the credentials cannot sign
            raise self._rejected("sign URL for", locator, e) from e

        return DownloadTarget(
            kind=DownloadTargetKind.DELEGATED_URL,
            locator=locator,
            filename=filename,
            content_type=content_type,
            url=url,
            expires_at=now + lifetime,
        )

    def _unavailable(self, action: str, locator: str, error: Exception) -> StorageUnavailableError:
        logger.warning(f"GCS failed to {action} gs://{self.bucket_name}/{locator}: {error}")
        return StorageUnavailableError(
            f"GCS failed to {action} {locator}: {error}", original_error=error
        )

    def _rejected(self, action: str, locator: str, error: Exception) -> StorageOperationError:
        logger.error(f"GCS refused to {action} gs://{self.bucket_name}/{locator}: {error}")
        return StorageOperationError(
            f"GCS refused to {action} {locator}: {error}", original_error=error
        )


def _quote_filename(filename: str) -> str:
    return filename.replace("\\", "_").replace('"', "_")
