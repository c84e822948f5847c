"""
Shared pytest fixtures and configuration for the sharelink test suite.

This module provides:
- Hypothesis configuration for property-based testing
- In-memory repositories, blob storage and a controllable clock
- Fully wired application services built on those fakes
"""

import logging
import os

import pytest
import redis

from hypothesis import settings, HealthCheck, Phase

from application.access_recorder import AccessRecorder
from application.event_publisher import EventPublisher
from application.expiration_sweeper import ExpirationSweeper
from application.file_service import FileService, UploadPolicy
from application.link_service import LinkService
from application.retry import RetryPolicy
from domain.events import DomainEvent
from domain.file_sharing import LinkUrlBuilder
from tests.fixtures import (
    FakeClock,
    MockAccessLogRepository,
    MockBlobStorageRepository,
    MockFileRepository,
    MockLinkRepository,
)

# Register Hypothesis profiles
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.target, Phase.shrink],
)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
settings.load_profile("default")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo configure_logging() calls made by create_app() during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if getattr(handler, "_sharelink_handler", False):
            root.removeHandler(handler)
    root.setLevel(level)


# =============================================================================
# Infrastructure Fakes
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def file_repository() -> MockFileRepository:
    return MockFileRepository()


@pytest.fixture
def link_repository() -> MockLinkRepository:
    return MockLinkRepository()


@pytest.fixture
def access_log_repository() -> MockAccessLogRepository:
    return MockAccessLogRepository()


@pytest.fixture
def blob_storage() -> MockBlobStorageRepository:
    return MockBlobStorageRepository()


@pytest.fixture
def sleeps():
    """Delays requested by the retry policy, in order."""
    return []


@pytest.fixture
def retry_policy(sleeps) -> RetryPolicy:
    """Three attempts without real sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=4.0, sleep=sleeps.append)


@pytest.fixture
def published_events():
    return []


@pytest.fixture
def event_publisher(published_events) -> EventPublisher:
    publisher = EventPublisher()
    publisher.subscribe(DomainEvent, published_events.append)
    return publisher


@pytest.fixture
def access_recorder(access_log_repository, clock) -> AccessRecorder:
    return AccessRecorder(access_log_repository, clock=clock)


# =============================================================================
# Application Services
# =============================================================================

@pytest.fixture
def link_service(file_repository, link_repository, blob_storage, access_recorder,
                 event_publisher, retry_policy, clock) -> LinkService:
    return LinkService(
        file_repository=file_repository,
        link_repository=link_repository,
        storage_repository=blob_storage,
        access_recorder=access_recorder,
        event_publisher=event_publisher,
        url_builder=LinkUrlBuilder("http://localhost:5000"),
        retry_policy=retry_policy,
        min_ttl_minutes=1,
        max_ttl_minutes=1440,
        clock=clock,
    )


@pytest.fixture
def file_service(file_repository, blob_storage, access_recorder, event_publisher,
                 retry_policy, clock) -> FileService:
    return FileService(
        file_repository=file_repository,
        storage_repository=blob_storage,
        access_recorder=access_recorder,
        event_publisher=event_publisher,
        upload_policy=UploadPolicy.create(max_size_mb=1),
        retry_policy=retry_policy,
        clock=clock,
    )


@pytest.fixture
def sweeper(file_repository, blob_storage, access_recorder, event_publisher,
            retry_policy, clock) -> ExpirationSweeper:
    return ExpirationSweeper(
        file_repository=file_repository,
        storage_repository=blob_storage,
        access_recorder=access_recorder,
        event_publisher=event_publisher,
        retry_policy=retry_policy,
        clock=clock,
        batch_limit=500,
        abort_after_consecutive_storage_failures=3,
    )


# =============================================================================
# Pytest Configuration Hooks
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line(
        "markers", "contract: Contract tests (verify interface compliance)"
    )
    config.addinivalue_line(
        "markers", "property: Property-based tests using Hypothesis"
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their location.

    - tests/unit/* -> @pytest.mark.unit
    - tests/integration/* -> @pytest.mark.integration
    - tests/contracts/* -> @pytest.mark.contract
    - tests/property/* -> @pytest.mark.property
    """
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path or "\\unit\\" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path or "\\integration\\" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/contracts/" in test_path or "\\contracts\\" in test_path:
            item.add_marker(pytest.mark.contract)
        elif "/property/" in test_path or "\\property\\" in test_path:
            item.add_marker(pytest.mark.property)


# =============================================================================
# External Services
# =============================================================================

@pytest.fixture
def redis_client():
    """
    Yields a clean Redis client, or skips when no server is reachable.
    """
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", 6379))
    db = int(os.getenv("REDIS_TEST_DB", 15))

    client = redis.Redis(host=host, port=port, db=db, decode_responses=False,
                         socket_connect_timeout=1)

    try:
        client.ping()
    except (redis.ConnectionError, redis.TimeoutError):
        pytest.skip("Redis service not available. Skipping tests that need it.")

    # Clean before test
    client.flushdb()

    yield client

    # Clean after test
    client.flushdb()
    client.close()
