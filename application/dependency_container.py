"""
Dependency Injection Container

Holds the adapters and services wired up by the app factory. Celery tasks
and the health endpoint look services up here instead of building them.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Lookup order: an override hides a singleton, which hides a transient
SCOPES = ('override', 'singleton', 'transient')


class DependencyNotFoundError(Exception):
    """Raised when attempting to resolve an unregistered dependency."""
    pass


class DependencyContainer:
    """
    Registry of shared instances (singletons) and per-resolution factories
    (transients), plus test overrides. Safe to use from several threads.
    """

    def __init__(self):
        self._scopes: Dict[str, Dict[Type, Any]] = {scope: {} for scope in SCOPES}
        self._lock = threading.Lock()

        # Blob storage is selected once per container
        self._storage_repository: Optional[Any] = None

    def _register(self, scope: str, interface: Type, value: Any) -> None:
        with self._lock:
            self._scopes[scope][interface] = value
        logger.debug(f"Registered {scope}: {interface.__name__}")

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        """Share ``implementation`` for every resolution of ``interface``."""
        self._register('singleton', interface, implementation)

    def register_transient(self, interface: Type[T], factory: Callable[[], T]) -> None:
        """
        Call ``factory`` on every resolution of ``interface``.

        Example:
            container.register_transient(ExpirationSweeper, lambda: ExpirationSweeper(...))
        """
        self._register('transient', interface, factory)

    def override(self, interface: Type[T], implementation: T) -> None:
        """Replace whatever is registered for ``interface`` (tests only)."""
        self._register('override', interface, implementation)

    def clear_overrides(self) -> None:
        with self._lock:
            self._scopes['override'].clear()

    def resolve(self, interface: Type[T]) -> T:
        """
        Resolve a registered service.

        Raises:
            DependencyNotFoundError: If the interface is not registered
        """
        with self._lock:
            scope = self._scope_of(interface)
            if scope is None:
                raise DependencyNotFoundError(
                    f"No registration found for type: {interface.__name__}"
                )
            value = self._scopes[scope][interface]

        # Factories run unlocked so they may resolve other services
        return value() if scope == 'transient' else value

    def is_registered(self, interface: Type) -> bool:
        with self._lock:
            return self._scope_of(interface) is not None

    def get_registration_type(self, interface: Type) -> str:
        """Return 'override', 'singleton', 'transient' or 'not_registered'."""
        with self._lock:
            return self._scope_of(interface) or 'not_registered'

    def registered_count(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._scopes.values())

    def _scope_of(self, interface: Type) -> Optional[str]:
        for scope in SCOPES:
            if interface in self._scopes[scope]:
                return scope
        return None

    def get_storage_repository(self, settings=None):
        """
        Get or create the blob storage adapter via StorageFactory.

        The variant is chosen on the first call and never re-checked; later
        calls ignore ``settings``.

        Args:
            settings: Optional ShareSettings (default: read from environment)

        Returns:
            IBlobStorageRepository implementation (local or GCS)

        Raises:
            ValueError, RuntimeError: If the configured storage cannot be built
        """
        if self._storage_repository is None:
            from infrastructure.storage_factory import StorageFactory
            self._storage_repository = StorageFactory.create_storage(settings)

        return self._storage_repository

    def setup_event_handlers(self, event_publisher, event_handler_classes: List[Type] = None) -> None:
        """
        Subscribe infrastructure event handlers to every domain event.

        Args:
            event_publisher: EventPublisher to subscribe to
            event_handler_classes: Handler classes to instantiate
                (default: LoggingEventHandler on the "sharelink.events" logger)
        """
        from domain.events import DomainEvent
        from infrastructure.event_handlers.logging_handler import LoggingEventHandler

        for handler_class in event_handler_classes or [LoggingEventHandler]:
            if handler_class is LoggingEventHandler:
                handler = handler_class(logging.getLogger("sharelink.events"))
            else:
                handler = handler_class()
            event_publisher.subscribe(DomainEvent, handler.handle)
            logger.debug(f"Registered event handler: {handler_class.__name__}")
