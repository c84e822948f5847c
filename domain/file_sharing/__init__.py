"""
File Sharing Domain

Uploaded files, revocable expiring share links, the access log, and the
contracts for the metadata store and blob storage.
"""

from .entities import AccessLogEntry, ShareLink, StoredFile
from .link_url_builder import LinkUrlBuilder
from .repositories import AccessLogRepository, FileRepository, LinkRepository
from .services import LinkStateMachine, LinkVerdict
from .storage_repository import (
    DeleteOutcome,
    DownloadTarget,
    DownloadTargetKind,
    IBlobStorageRepository,
)
from .value_objects import AccessAction, FileStatus, LinkStatus, ShareToken, TimeToLive

__all__ = [
    "AccessAction",
    "AccessLogEntry",
    "AccessLogRepository",
    "DeleteOutcome",
    "DownloadTarget",
    "DownloadTargetKind",
    "FileRepository",
    "FileStatus",
    "IBlobStorageRepository",
    "LinkRepository",
    "LinkStateMachine",
    "LinkStatus",
    "LinkUrlBuilder",
    "LinkVerdict",
    "ShareLink",
    "ShareToken",
    "StoredFile",
    "TimeToLive",
]
