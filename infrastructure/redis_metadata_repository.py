"""
Redis Metadata Repositories

Redis-backed implementations of the file, link and access-log repositories.

Key layout:
    file:<id>              JSON file record
    files:expiring         sorted set of Active file ids scored by expiry epoch
    link:<id>              JSON link record (plus an ``expires_ts`` epoch field)
    link_token:<token>     link id; never removed, so a token is issued once
    file_links:<file id>   set of link ids for a file
    access_log:<file id>   list of JSON access log entries

Every mutation is a single Lua script and therefore atomic.
"""

import json
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from domain.errors import DuplicateRecordError, DuplicateTokenError
from domain.file_sharing import (
    AccessLogEntry,
    AccessLogRepository,
    FileRepository,
    FileStatus,
    LinkRepository,
    LinkStatus,
    ShareLink,
    StoredFile,
)

from .redis_repository import RedisRepository

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)

EXPIRING_FILES_KEY = "files:expiring"


def to_epoch(moment: datetime) -> float:
    """Seconds since the epoch for a naive UTC datetime."""
    return (moment - EPOCH).total_seconds()


# KEYS: record, expiring zset | ARGV: json, id, expiry score ('' when none)
INSERT_FILE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1])
if ARGV[3] ~= '' then
    redis.call('ZADD', KEYS[2], ARGV[3], ARGV[2])
end
return 1
"""

# KEYS: record, expiring zset (optional) | ARGV: id, new status, expected statuses...
COMPARE_AND_SET_STATUS_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
    return 0
end
local record = cjson.decode(data)
local current = tonumber(record['status'])
local matched = false
for i = 3, #ARGV do
    if current == tonumber(ARGV[i]) then
        matched = true
        break
    end
end
if not matched then
    return 0
end
local new_status = tonumber(ARGV[2])
record['status'] = new_status
redis.call('SET', KEYS[1], cjson.encode(record))
if KEYS[2] and new_status ~= 1 then
    redis.call('ZREM', KEYS[2], ARGV[1])
end
return 1
"""

# KEYS: link record, token index, file link set | ARGV: json, link id
INSERT_LINK_SCRIPT = """
if redis.call('EXISTS', KEYS[2]) == 1 then
    return -1
end
if redis.call('EXISTS', KEYS[1]) == 1 then
    return -2
end
redis.call('SET', KEYS[1], ARGV[1])
redis.call('SET', KEYS[2], ARGV[2])
redis.call('SADD', KEYS[3], ARGV[2])
return 1
"""

# KEYS: link record | ARGV: now epoch
INCREMENT_ACCESS_SCRIPT = """
local data = redis.call('GET', KEYS[1])
if not data then
    return -1
end
local record = cjson.decode(data)
if tonumber(record['status']) ~= 1 then
    return -1
end
if tonumber(ARGV[1]) >= tonumber(record['expires_ts']) then
    return -1
end
local count = tonumber(record['access_count']) + 1
record['access_count'] = count
redis.call('SET', KEYS[1], cjson.encode(record))
return count
"""


class RedisFileRepository(FileRepository):
    """
    Redis-based implementation of FileRepository.

    Records are kept indefinitely; deletion is a status change.
    """

    def __init__(self, redis_repository: RedisRepository):
        """
        Initialize with Redis repository.

        Args:
            redis_repository: RedisRepository instance from infrastructure layer
        """
        self.redis_repo = redis_repository
        self.file_prefix = "file"

    def _key(self, file_id: str) -> str:
        return f"{self.file_prefix}:{file_id}"

    def add(self, file: StoredFile) -> None:
        score = ""
        if file.expires_at is not None and file.status is FileStatus.ACTIVE:
            score = repr(to_epoch(file.expires_at))

        inserted = self.redis_repo.run_script(
            INSERT_FILE_SCRIPT,
            [self._key(file.file_id), EXPIRING_FILES_KEY],
            [json.dumps(file.to_dict()), file.file_id, score],
        )
        if inserted != 1:
            raise DuplicateRecordError(f"File record already exists: {file.file_id}")

    def get(self, file_id: str) -> Optional[StoredFile]:
        data = self.redis_repo.get_json(self._key(file_id))
        return StoredFile.from_dict(data) if data else None

    def find_expired(self, now: datetime, limit: Optional[int] = None) -> List[StoredFile]:
        """
        Find Active files past their expiry using the expiry index.

        Index entries whose record is missing or no longer Active are removed
        from the index so they stop taking batch slots.
        """
        file_ids = self.redis_repo.range_by_score(EXPIRING_FILES_KEY, to_epoch(now), limit)
        records = self.redis_repo.get_json_many([self._key(fid) for fid in file_ids])

        expired = []
        stale = []
        for file_id, data in zip(file_ids, records):
            if data is None:
                logger.warning(f"Expiry index references missing file record: {file_id}")
                stale.append(file_id)
                continue
            file = StoredFile.from_dict(data)
            if file.status is not FileStatus.ACTIVE:
                stale.append(file_id)
            elif file.expires_at is not None and file.expires_at < now:
                expired.append(file)

        # Records never return to Active, so dropping these is safe
        self.redis_repo.remove_from_sorted_set(EXPIRING_FILES_KEY, *stale)
        return expired

    def compare_and_set_status(self, file_id: str, expected: Iterable[FileStatus],
                               new_status: FileStatus) -> bool:
        changed = self.redis_repo.run_script(
            COMPARE_AND_SET_STATUS_SCRIPT,
            [self._key(file_id), EXPIRING_FILES_KEY],
            [file_id, new_status.value, *[status.value for status in expected]],
        )
        return changed == 1


class RedisLinkRepository(LinkRepository):
    """Redis-based implementation of LinkRepository."""

    def __init__(self, redis_repository: RedisRepository):
        self.redis_repo = redis_repository
        self.link_prefix = "link"
        self.token_prefix = "link_token"
        self.file_links_prefix = "file_links"

    def _key(self, link_id: str) -> str:
        return f"{self.link_prefix}:{link_id}"

    def add(self, link: ShareLink) -> None:
        record = link.to_dict()
        record["expires_ts"] = to_epoch(link.expires_at)

        inserted = self.redis_repo.run_script(
            INSERT_LINK_SCRIPT,
            [
                self._key(link.link_id),
                f"{self.token_prefix}:{link.token}",
                f"{self.file_links_prefix}:{link.file_id}",
            ],
            [json.dumps(record), link.link_id],
        )
        if inserted == -1:
            raise DuplicateTokenError("Token already issued for another link")
        if inserted != 1:
            raise DuplicateRecordError(f"Link record already exists: {link.link_id}")

    def get(self, link_id: str) -> Optional[ShareLink]:
        data = self.redis_repo.get_json(self._key(link_id))
        return ShareLink.from_dict(data) if data else None

    def get_by_token(self, token: str) -> Optional[ShareLink]:
        link_id = self.redis_repo.get_string(f"{self.token_prefix}:{token}")
        if link_id is None:
            return None
        return self.get(link_id)

    def list_for_file(self, file_id: str) -> List[ShareLink]:
        link_ids = self.redis_repo.list_members(f"{self.file_links_prefix}:{file_id}")
        records = self.redis_repo.get_json_many([self._key(lid) for lid in link_ids])
        links = [ShareLink.from_dict(data) for data in records if data]
        return sorted(links, key=lambda link: link.created_at)

    def compare_and_set_status(self, link_id: str, expected: Iterable[LinkStatus],
                               new_status: LinkStatus) -> bool:
        changed = self.redis_repo.run_script(
            COMPARE_AND_SET_STATUS_SCRIPT,
            [self._key(link_id)],
            [link_id, new_status.value, *[status.value for status in expected]],
        )
        return changed == 1

    def increment_access_count(self, link_id: str, now: datetime) -> Optional[int]:
        count = self.redis_repo.run_script(
            INCREMENT_ACCESS_SCRIPT,
            [self._key(link_id)],
            [repr(to_epoch(now))],
        )
        return int(count) if count is not None and int(count) >= 0 else None


class RedisAccessLogRepository(AccessLogRepository):
    """Append-only access log kept as one Redis list per file."""

    def __init__(self, redis_repository: RedisRepository):
        self.redis_repo = redis_repository
        self.log_prefix = "access_log"

    def append(self, entry: AccessLogEntry) -> None:
        self.redis_repo.list_push(f"{self.log_prefix}:{entry.file_id}", json.dumps(entry.to_dict()))

    def list_for_file(self, file_id: str) -> List[AccessLogEntry]:
        values = self.redis_repo.list_range(f"{self.log_prefix}:{file_id}")
        return [AccessLogEntry.from_dict(json.loads(value)) for value in values]
