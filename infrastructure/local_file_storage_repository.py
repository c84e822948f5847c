"""
Local File Storage Repository Implementation

Concrete implementation of IBlobStorageRepository for the local filesystem.
Objects are plain files under a base directory; downloads are streamed by
the caller through get().
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Union

from domain.errors import StorageOperationError, StorageUnavailableError
from domain.file_sharing import (
    DeleteOutcome,
    DownloadTarget,
    DownloadTargetKind,
    IBlobStorageRepository,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


class LocalFileStorageRepository(IBlobStorageRepository):
    """
    Local filesystem implementation of IBlobStorageRepository.

    Thread Safety:
        Writes go to a temporary file in the same directory and are moved
        into place with os.replace, so readers never observe a partial object.

    Attributes:
        base_path: Base directory for stored objects
    """

    provider_name = "local"

    def __init__(self, base_path: str = "/tmp/sharelink"):
        """
        Initialize the local file storage repository.

        Args:
            base_path: Base directory for file storage (default: /tmp/sharelink)
        """
        self.base_path = Path(base_path).resolve()
        self._ensure_base_directory()

    def _ensure_base_directory(self) -> None:
        """
        Ensure the base storage directory exists.

        Raises:
            PermissionError: If insufficient permissions to create directory
            OSError: If directory creation fails for other reasons
        """
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise PermissionError(
                f"Insufficient permissions to create storage directory: {self.base_path}"
            ) from e
        except OSError as e:
            raise OSError(
                f"Failed to create storage directory: {self.base_path}"
            ) from e

    def _resolve(self, locator: str) -> Path:
        """
        Map a locator to a path inside base_path.

        Raises:
            ValueError: If the locator is empty or escapes the storage root
        """
        if not locator or not locator.strip():
            raise ValueError("locator cannot be empty")

        full_path = (self.base_path / locator).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            raise ValueError(f"locator escapes storage root: {locator}")
        return full_path

    # IBlobStorageRepository interface methods

    def put(self, content: Union[bytes, BinaryIO], content_type: str, locator: str) -> str:
        full_path = self._resolve(locator)

        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    if isinstance(content, (bytes, bytearray)):
                        f.write(content)
                    else:
                        if hasattr(content, "seek"):
                            content.seek(0)
                        while True:
                            chunk = content.read(CHUNK_SIZE)
                            if not chunk:
                                break
                            f.write(chunk)
                os.replace(tmp_name, full_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except PermissionError as e:
            raise StorageOperationError(f"Permission denied storing object {locator}: {e}", original_error=e) from e
        except OSError as e:
            raise StorageUnavailableError(f"Failed to store object {locator}: {e}", original_error=e) from e

        logger.debug(f"Stored object {locator} ({content_type})")
        return locator

    def get(self, locator: str) -> Optional[BinaryIO]:
        """
        Open the object for streaming.

        Returns:
            Open binary file handle if found, None if absent. Caller closes it.
        """
        full_path = self._resolve(locator)
        try:
            return open(full_path, "rb")
        except (FileNotFoundError, IsADirectoryError):
            return None
        except PermissionError as e:
            raise StorageOperationError(f"Permission denied opening object {locator}: {e}", original_error=e) from e
        except OSError as e:
            raise StorageUnavailableError(f"Failed to open object {locator}: {e}", original_error=e) from e

    def delete(self, locator: str) -> DeleteOutcome:
        """
        Delete the object if it exists.

        Idempotent: deleting a missing object reports ABSENT.
        """
        full_path = self._resolve(locator)
        try:
            full_path.unlink()
        except FileNotFoundError:
            return DeleteOutcome.ABSENT
        except PermissionError as e:
            raise StorageOperationError(f"Permission denied deleting object {locator}: {e}", original_error=e) from e
        except OSError as e:
            raise StorageUnavailableError(f"Failed to delete object {locator}: {e}", original_error=e) from e
        return DeleteOutcome.DELETED

    def exists(self, locator: str) -> bool:
        full_path = self._resolve(locator)
        try:
            return full_path.is_file()
        except OSError as e:
            raise StorageUnavailableError(f"Failed to check object {locator}: {e}", original_error=e) from e

    def create_download_target(self, locator: str, filename: str, content_type: str,
                               expires_at: datetime) -> DownloadTarget:
        """
        Local objects are streamed through this process, so the target is
        the locator itself.
        """
        return DownloadTarget(
            kind=DownloadTargetKind.LOCAL_STREAM,
            locator=locator,
            filename=filename,
            content_type=content_type,
            expires_at=expires_at,
        )
