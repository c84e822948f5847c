"""
Redis Configuration

Connection settings for the metadata store and the process-wide
connection manager the app factory builds repositories from.
"""

import os
from typing import Optional

import redis

from infrastructure.redis_repository import RedisConnectionManager, RedisRepository


class RedisConfig:
    """
    Redis settings read from REDIS_* variables.

    REDIS_URL (redis://[:password@]host:port/db) wins over the individual
    host, port, db and password variables.
    """

    def __init__(self):
        url = os.getenv("REDIS_URL")
        parsed = redis.connection.parse_url(url) if url else {}

        self.host = parsed.get("host", os.getenv("REDIS_HOST", "localhost"))
        self.port = int(parsed.get("port", os.getenv("REDIS_PORT", 6379)))
        self.db = int(parsed.get("db", os.getenv("REDIS_DB", 0)))
        self.password = parsed.get("password", os.getenv("REDIS_PASSWORD"))

        # Metadata calls must fail fast so the retry policy can take over
        self.socket_timeout = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2.0))
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", 20))
        self.key_prefix = os.getenv("REDIS_KEY_PREFIX", "sharelink")


_redis_manager: Optional[RedisConnectionManager] = None
_key_prefix = ""


def init_redis(config: Optional[RedisConfig] = None) -> RedisConnectionManager:
    """Create the process-wide connection manager. No connection is opened yet."""
    global _redis_manager, _key_prefix

    config = config or RedisConfig()
    _redis_manager = RedisConnectionManager(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
        max_connections=config.max_connections,
        socket_timeout=config.socket_timeout,
    )
    _key_prefix = config.key_prefix
    return _redis_manager


def get_redis_repository(key_prefix: Optional[str] = None) -> RedisRepository:
    """
    Repository over the shared connection pool.

    Args:
        key_prefix: Prefix for every key (default: REDIS_KEY_PREFIX)

    Raises:
        RuntimeError: If init_redis() has not been called
    """
    if _redis_manager is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")

    prefix = _key_prefix if key_prefix is None else key_prefix
    return RedisRepository(_redis_manager.client, prefix)
