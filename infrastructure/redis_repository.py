"""
Redis Repository Base Class

Provides JSON storage and atomic Lua-script execution for the metadata store.
Connection-level failures are translated to MetadataUnavailableError so the
application layer can retry them.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import redis
from redis.exceptions import BusyLoadingError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from domain.errors import MetadataUnavailableError

logger = logging.getLogger(__name__)

# Errors that mean "try again later" rather than "this request is wrong"
TRANSIENT_REDIS_ERRORS = (RedisConnectionError, RedisTimeoutError, BusyLoadingError)


class RedisRepository:
    """Base Redis repository with JSON helpers and atomic script execution."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = ""):
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        """Create a prefixed key for Redis storage."""
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Get JSON data from Redis.

        Args:
            key: Redis key

        Returns:
            Dictionary if found, None otherwise

        Raises:
            MetadataUnavailableError: If Redis cannot be reached
        """
        data = self._call("GET", self.redis.get, self._make_key(key))
        if data is None:
            return None
        return json.loads(_decode(data))

    def get_json_many(self, keys: Sequence[str]) -> List[Optional[Dict[str, Any]]]:
        """Fetch several JSON documents in one round trip."""
        if not keys:
            return []
        values = self._call("MGET", self.redis.mget, [self._make_key(k) for k in keys])
        return [json.loads(_decode(v)) if v is not None else None for v in values]

    def get_string(self, key: str) -> Optional[str]:
        data = self._call("GET", self.redis.get, self._make_key(key))
        return _decode(data) if data is not None else None

    def list_members(self, key: str) -> List[str]:
        """Return all members of a set."""
        members = self._call("SMEMBERS", self.redis.smembers, self._make_key(key))
        return sorted(_decode(m) for m in members)

    def list_range(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        values = self._call("LRANGE", self.redis.lrange, self._make_key(key), start, end)
        return [_decode(v) for v in values]

    def range_by_score(self, key: str, max_score: float,
                       limit: Optional[int] = None) -> List[str]:
        """
        Members of a sorted set with score strictly below ``max_score``,
        lowest score first.
        """
        kwargs = {}
        if limit is not None:
            kwargs = {"start": 0, "num": limit}
        members = self._call(
            "ZRANGEBYSCORE", self.redis.zrangebyscore,
            self._make_key(key), "-inf", f"({max_score}", **kwargs
        )
        return [_decode(m) for m in members]

    def ping(self) -> bool:
        """Check that the server answers."""
        try:
            return bool(self.redis.ping())
        except TRANSIENT_REDIS_ERRORS:
            return False

    def list_push(self, key: str, value: str) -> int:
        return self._call("RPUSH", self.redis.rpush, self._make_key(key), value)

    def remove_from_sorted_set(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return self._call("ZREM", self.redis.zrem, self._make_key(key), *members)

    def run_script(self, script: str, keys: Sequence[str], args: Sequence[Any]) -> Any:
        """
        Atomically run a Lua script.

        Keys are prefixed; arguments are passed through unchanged.

        Raises:
            MetadataUnavailableError: If Redis cannot be reached
        """
        redis_keys = [self._make_key(k) for k in keys]
        return self._call("EVAL", self.redis.eval, script, len(redis_keys), *redis_keys, *args)

    def _call(self, command: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TRANSIENT_REDIS_ERRORS as e:
            logger.warning(f"Redis {command} failed: {e}")
            raise MetadataUnavailableError(f"Redis {command} failed: {e}", original_error=e) from e


class RedisConnectionManager:
    """Manages Redis connection with connection pooling."""

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 password: Optional[str] = None, max_connections: int = 20,
                 socket_timeout: Optional[float] = 5.0, decode_responses: bool = False):
        self.connection_pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            decode_responses=decode_responses,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry_on_timeout=True,
            socket_keepalive=True,
        )
        self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client instance with connection pooling."""
        if self._client is None:
            self._client = redis.Redis(connection_pool=self.connection_pool)
        return self._client


def _decode(value) -> str:
    return value.decode('utf-8') if isinstance(value, bytes) else value
