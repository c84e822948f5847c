"""
Storage Factory

Factory for creating the blob storage implementation selected by configuration.
Selection happens once at process start; the application layer only ever sees
IBlobStorageRepository.
"""

import logging
from typing import Optional

from config.settings import ShareSettings
from domain.file_sharing import IBlobStorageRepository

from .local_file_storage_repository import LocalFileStorageRepository

logger = logging.getLogger(__name__)

PROVIDER_LOCAL = "local"
PROVIDER_GCS = "gcs"


class StorageFactory:
    """
    Factory for creating storage repository implementations.

    Selection Logic:
    - STORAGE_PROVIDER names the variant explicitly ('local' or 'gcs')
    - Without it, GCS is used when GCS_BUCKET_NAME is set, local otherwise

    There is no fallback between variants: metadata that references cloud
    objects must never be served from an empty local directory, so a cloud
    variant that fails to initialize is a startup error.
    """

    @staticmethod
    def create_storage(settings: Optional[ShareSettings] = None) -> IBlobStorageRepository:
        """
        Create storage repository based on configuration.

        Args:
            settings: Settings to use (default: read from environment)

        Returns:
            IBlobStorageRepository implementation

        Raises:
            ValueError: If the provider is unknown or GCS is selected without a bucket
            RuntimeError: If storage initialization fails
        """
        settings = settings or ShareSettings.from_env()
        provider = settings.storage_provider

        if provider == PROVIDER_LOCAL:
            return StorageFactory._create_local_storage(settings.local_storage_path)
        if provider == PROVIDER_GCS:
            return StorageFactory._create_gcs_storage(settings)

        raise ValueError(f"Unknown storage provider: {provider!r} (expected 'local' or 'gcs')")

    @staticmethod
    def _create_local_storage(base_path: str) -> IBlobStorageRepository:
        try:
            storage = LocalFileStorageRepository(base_path)
        except OSError as e:
            raise RuntimeError(f"Failed to initialize local storage: {e}") from e

        logger.info(f"Storage factory: Using local filesystem storage at {base_path}")
        return storage

    @staticmethod
    def _create_gcs_storage(settings: ShareSettings) -> IBlobStorageRepository:
        bucket_name = settings.gcs_bucket_name
        if not bucket_name or not bucket_name.strip():
            raise ValueError("GCS_BUCKET_NAME cannot be empty when STORAGE_PROVIDER is 'gcs'")

        from config.gcs_config import create_gcs_client
        from .gcs_storage_repository import GCSStorageRepository

        try:
            client = create_gcs_client(settings.gcs_credentials_path)
            storage = GCSStorageRepository(
                bucket_name,
                client=client,
                delegated_url_ttl_minutes=settings.delegated_url_ttl_minutes,
            )
        except Exception as e:
            raise RuntimeError(f"Failed to initialize GCS storage: {e}") from e

        logger.info(f"Storage factory: Using GCS storage with bucket {bucket_name}")
        return storage
