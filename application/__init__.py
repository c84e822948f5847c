"""
Application Services Layer

Orchestrates domain services and coordinates use cases.
"""

from .access_recorder import AccessRecorder
from .event_publisher import EventPublisher
from .expiration_sweeper import ExpirationSweeper, SweepAbortedError, SweepSummary
from .file_service import FileService, UploadPolicy
from .link_service import LinkService
from .operation_result import OperationResult
from .retry import RetryPolicy

__all__ = [
    'AccessRecorder',
    'EventPublisher',
    'ExpirationSweeper',
    'FileService',
    'LinkService',
    'OperationResult',
    'RetryPolicy',
    'SweepAbortedError',
    'SweepSummary',
    'UploadPolicy',
]
