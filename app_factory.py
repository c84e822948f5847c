"""
Application Factory

Creates and configures the Flask application with all dependencies.
This factory pattern improves testability by allowing dependency injection
and configuration overrides.
"""

import logging
import os
from datetime import datetime
from typing import Callable, Optional

from flask import Flask, jsonify

from application.access_recorder import AccessRecorder
from application.dependency_container import DependencyContainer
from application.event_publisher import EventPublisher
from application.expiration_sweeper import ExpirationSweeper
from application.file_service import FileService, UploadPolicy
from application.link_service import LinkService
from application.retry import RetryPolicy
from config.celery_config import make_celery
from config.logging_config import configure_logging
from config.redis_config import get_redis_repository, init_redis
from config.settings import ShareSettings
from domain.file_sharing import (
    AccessLogRepository,
    FileRepository,
    IBlobStorageRepository,
    LinkRepository,
    LinkUrlBuilder,
)
from infrastructure.redis_metadata_repository import (
    RedisAccessLogRepository,
    RedisFileRepository,
    RedisLinkRepository,
)
from infrastructure.redis_repository import RedisRepository

logger = logging.getLogger(__name__)


class AppConfig:
    """Application configuration."""

    def __init__(self, settings: Optional[ShareSettings] = None):
        self.flask_env = os.getenv("FLASK_ENV", "development")
        self.is_production = self.flask_env == "production"
        self.settings = settings or ShareSettings.from_env()


def create_app(
    config: Optional[AppConfig] = None,
    redis_repository: Optional[RedisRepository] = None,
    storage_repository: Optional[IBlobStorageRepository] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Application configuration, uses default if None
        redis_repository: Preconfigured Redis repository (default: from REDIS_* env)
        storage_repository: Preconfigured blob storage (default: StorageFactory)
        clock: Source of the current UTC time for every service

    Returns:
        Configured Flask application

    Raises:
        ValueError, RuntimeError: If the blob storage cannot be initialized
    """
    configure_logging()

    if config is None:
        config = AppConfig()

    app = Flask(__name__)
    app.share_settings = config.settings

    _initialize_infrastructure(app, redis_repository is None)
    _initialize_services(app, config.settings, redis_repository, storage_repository, clock)
    _register_health_endpoint(app)

    return app


def _initialize_infrastructure(app: Flask, connect_redis: bool) -> None:
    """
    Initialize infrastructure components (Redis, Celery).

    Args:
        app: Flask application
        connect_redis: Whether to set up the global Redis connection
    """
    if connect_redis:
        init_redis()
        logger.info("Redis initialized successfully")

    try:
        app.celery = make_celery(app)
        logger.info("Celery initialized successfully")
    except Exception as e:
        logger.warning(f"Could not initialize Celery: {e}")
        app.celery = None


def _initialize_services(
    app: Flask,
    settings: ShareSettings,
    redis_repository: Optional[RedisRepository],
    storage_repository: Optional[IBlobStorageRepository],
    clock: Callable[[], datetime],
) -> None:
    """
    Initialize application services and attach them to the app through the
    DependencyContainer.

    PATTERN:
    --------
    1. Create DependencyContainer instance
    2. Register infrastructure adapters (metadata repositories, blob storage)
    3. Register application services
    4. Attach container to Flask app context for global access
    """
    container = DependencyContainer()

    redis_repo = redis_repository or get_redis_repository()
    container.register_singleton(RedisRepository, redis_repo)

    file_repository = RedisFileRepository(redis_repo)
    link_repository = RedisLinkRepository(redis_repo)
    access_log_repository = RedisAccessLogRepository(redis_repo)
    container.register_singleton(FileRepository, file_repository)
    container.register_singleton(LinkRepository, link_repository)
    container.register_singleton(AccessLogRepository, access_log_repository)

    # Provider selection happens exactly once, here; failures stop startup
    if storage_repository is not None:
        storage = storage_repository
    else:
        storage = container.get_storage_repository(settings)
    container.register_singleton(IBlobStorageRepository, storage)

    event_publisher = EventPublisher()
    container.setup_event_handlers(event_publisher)
    container.register_singleton(EventPublisher, event_publisher)

    retry_policy = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )
    container.register_singleton(RetryPolicy, retry_policy)

    access_recorder = AccessRecorder(access_log_repository, clock=clock)
    container.register_singleton(AccessRecorder, access_recorder)

    link_service = LinkService(
        file_repository=file_repository,
        link_repository=link_repository,
        storage_repository=storage,
        access_recorder=access_recorder,
        event_publisher=event_publisher,
        url_builder=LinkUrlBuilder(settings.public_base_url),
        retry_policy=retry_policy,
        min_ttl_minutes=settings.min_link_ttl_minutes,
        max_ttl_minutes=settings.max_link_ttl_minutes,
        clock=clock,
    )
    container.register_singleton(LinkService, link_service)

    file_service = FileService(
        file_repository=file_repository,
        storage_repository=storage,
        access_recorder=access_recorder,
        event_publisher=event_publisher,
        upload_policy=UploadPolicy.create(settings.allowed_extensions, settings.max_file_size_mb),
        retry_policy=retry_policy,
        min_ttl_minutes=settings.min_link_ttl_minutes,
        max_ttl_minutes=settings.max_link_ttl_minutes,
        clock=clock,
    )
    container.register_singleton(FileService, file_service)

    # Each sweep run gets a fresh sweeper
    container.register_transient(
        ExpirationSweeper,
        lambda: ExpirationSweeper(
            file_repository=file_repository,
            storage_repository=storage,
            access_recorder=access_recorder,
            event_publisher=event_publisher,
            retry_policy=retry_policy,
            clock=clock,
            batch_limit=settings.sweep_batch_limit,
            abort_after_consecutive_storage_failures=(
                settings.sweep_abort_after_consecutive_storage_failures
            ),
        ),
    )

    app.container = container
    app.link_service = link_service
    app.file_service = file_service

    logger.info(
        f"Application services initialized with {storage.provider_name} storage "
        f"and {container.registered_count()} registered services"
    )


def _get_health_status(app: Flask) -> tuple:
    """
    Get health status of all system components.

    Returns:
        Tuple of (health_status_dict, http_status_code)
    """
    health_status = {
        "status": "ok",
        "redis": "unknown",
        "celery": "unknown",
        "storage": "unknown",
    }

    container = app.container
    if container.resolve(RedisRepository).ping():
        health_status["redis"] = "connected"
    else:
        health_status["redis"] = "disconnected"
        health_status["status"] = "degraded"

    if getattr(app, "celery", None) is not None:
        health_status["celery"] = "available"
    else:
        health_status["celery"] = "unavailable"
        health_status["status"] = "degraded"

    if container.is_registered(IBlobStorageRepository):
        health_status["storage"] = container.resolve(IBlobStorageRepository).provider_name

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


def _register_health_endpoint(app: Flask) -> None:
    """
    Register health check endpoint.

    Args:
        app: Flask application
    """

    @app.route("/health", methods=["GET"])
    def health():
        """Overall health status of the service and its dependencies."""
        health_status, status_code = _get_health_status(app)
        return jsonify(health_status), status_code
