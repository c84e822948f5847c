"""
Logging Event Handler

Infrastructure event handler for logging domain events.
Subscribes to domain events and logs them appropriately.
Domain layer remains unaware of logging infrastructure.
"""

import logging

from domain.events import (
    ConsistencyFaultEvent,
    DomainEvent,
    DownloadResolvedEvent,
    FileDeletedEvent,
    FileUploadedEvent,
    LinkExpiredEvent,
    LinkIssuedEvent,
    LinkRevokedEvent,
    SweepCompletedEvent,
)


class LoggingEventHandler:
    """
    Infrastructure event handler for logging domain events.

    Consistency faults are logged at CRITICAL since they mean the metadata
    store and blob storage disagree and need an operator.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize with logger instance.

        Args:
            logger: Python logging.Logger instance
        """
        self.logger = logger

    def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event by logging it.

        Args:
            event: Domain event to log
        """
        try:
            if isinstance(event, FileUploadedEvent):
                self._handle_file_uploaded(event)
            elif isinstance(event, LinkIssuedEvent):
                self._handle_link_issued(event)
            elif isinstance(event, LinkExpiredEvent):
                self._handle_link_expired(event)
            elif isinstance(event, LinkRevokedEvent):
                self._handle_link_revoked(event)
            elif isinstance(event, DownloadResolvedEvent):
                self._handle_download_resolved(event)
            elif isinstance(event, FileDeletedEvent):
                self._handle_file_deleted(event)
            elif isinstance(event, ConsistencyFaultEvent):
                self._handle_consistency_fault(event)
            elif isinstance(event, SweepCompletedEvent):
                self._handle_sweep_completed(event)
            else:
                self.logger.debug(
                    f"Unhandled event: {event.__class__.__name__} "
                    f"(aggregate_id={event.aggregate_id})"
                )
        except Exception as e:
            # Log handler errors but don't fail the operation
            self.logger.error(
                f"Error in logging event handler for {event.__class__.__name__}: {e}",
                exc_info=True,
            )

    def _handle_file_uploaded(self, event: FileUploadedEvent) -> None:
        self.logger.info(
            f"File uploaded: file_id={event.aggregate_id}, name={event.original_name}, "
            f"size={event.size_bytes} bytes, locator={event.storage_locator}"
        )

    def _handle_link_issued(self, event: LinkIssuedEvent) -> None:
        self.logger.info(
            f"Link issued: link_id={event.aggregate_id}, file_id={event.file_id}, "
            f"expires_at={event.expires_at.isoformat()}"
        )

    def _handle_link_expired(self, event: LinkExpiredEvent) -> None:
        self.logger.info(f"Link expired: link_id={event.aggregate_id}, file_id={event.file_id}")

    def _handle_link_revoked(self, event: LinkRevokedEvent) -> None:
        self.logger.info(f"Link revoked: link_id={event.aggregate_id}, file_id={event.file_id}")

    def _handle_download_resolved(self, event: DownloadResolvedEvent) -> None:
        self.logger.info(
            f"Download resolved: link_id={event.aggregate_id}, file_id={event.file_id}, "
            f"access_count={event.access_count}, target={event.target_kind}"
        )

    def _handle_file_deleted(self, event: FileDeletedEvent) -> None:
        self.logger.info(
            f"File deleted: file_id={event.aggregate_id}, reason={event.reason}, "
            f"blob={event.blob_outcome}"
        )

    def _handle_consistency_fault(self, event: ConsistencyFaultEvent) -> None:
        """Log a divergence between the metadata store and blob storage."""
        self.logger.critical(
            f"Consistency fault: file_id={event.aggregate_id}, "
            f"locator={event.storage_locator}, link_id={event.link_id}, detail={event.detail}"
        )

    def _handle_sweep_completed(self, event: SweepCompletedEvent) -> None:
        self.logger.info(
            f"Sweep completed: run_id={event.aggregate_id}, found={event.found}, "
            f"deleted={event.deleted}, already_absent={event.already_absent}, "
            f"errors={event.errors}"
        )
