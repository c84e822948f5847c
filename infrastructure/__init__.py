"""Infrastructure layer for Redis and blob storage."""

from .redis_repository import RedisRepository, RedisConnectionManager
from .redis_metadata_repository import (
    RedisAccessLogRepository,
    RedisFileRepository,
    RedisLinkRepository,
)
from .local_file_storage_repository import LocalFileStorageRepository
from .storage_factory import StorageFactory

__all__ = [
    'RedisRepository',
    'RedisConnectionManager',
    'RedisAccessLogRepository',
    'RedisFileRepository',
    'RedisLinkRepository',
    'LocalFileStorageRepository',
    'StorageFactory',
]
