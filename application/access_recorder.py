"""
Access Recorder

Appends audit entries to the access log. Audit writes are best-effort:
a failed append is logged and never fails the operation being audited.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from domain.errors import DomainError
from domain.file_sharing import AccessAction, AccessLogEntry, AccessLogRepository

logger = logging.getLogger(__name__)


class AccessRecorder:
    """Writes AccessLogEntry records on behalf of the application services."""

    def __init__(self, access_log_repository: AccessLogRepository,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.access_log_repo = access_log_repository
        self.clock = clock

    def record(self, file_id: str, action: AccessAction,
               link_id: Optional[str] = None, ip_address: Optional[str] = None) -> bool:
        """
        Append an access log entry.

        Returns:
            True if the entry was stored, False if the append failed
        """
        entry = AccessLogEntry(
            file_id=file_id,
            action=action,
            timestamp=self.clock(),
            link_id=link_id,
            ip_address=ip_address,
        )
        try:
            self.access_log_repo.append(entry)
            return True
        except DomainError as e:
            logger.error(
                f"Failed to record {action.name} for file {file_id} "
                f"(link={link_id}, ip={ip_address or 'unknown'}): {e}"
            )
            return False
