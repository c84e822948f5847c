"""
Test fixtures package.

Provides factory functions and in-memory implementations for testing.
"""

from .domain_fixtures import BASE_TIME, FakeClock, create_share_link, create_stored_file
from .mock_repositories import (
    FailureInjector,
    MockAccessLogRepository,
    MockBlobStorageRepository,
    MockFileRepository,
    MockLinkRepository,
)

__all__ = [
    "BASE_TIME",
    "FakeClock",
    "create_share_link",
    "create_stored_file",
    "FailureInjector",
    "MockAccessLogRepository",
    "MockBlobStorageRepository",
    "MockFileRepository",
    "MockLinkRepository",
]
