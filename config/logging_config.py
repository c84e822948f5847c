"""
Logging Configuration

Configures the root logger once per process from LOG_LEVEL. Share tokens
are bearer secrets, so a filter masks them before records are emitted.
"""

import logging
import os
import re
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class SensitiveDataFilter(logging.Filter):
    """Filter to mask share tokens and credentials in log records."""

    PATTERNS = [
        (re.compile(r'(/download/)([A-Za-z0-9_-]{6})[A-Za-z0-9_-]+'), r'\1\2***'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r'\1***MASKED***'),
        (re.compile(r'(X-Goog-Signature=)([0-9a-f]+)', re.IGNORECASE), r'\1***MASKED***'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask sensitive data in the log message."""
        if isinstance(record.msg, str):
            record.msg = self._mask_value(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        return True

    def _mask_value(self, value):
        if isinstance(value, str):
            for pattern, replacement in self.PATTERNS:
                value = pattern.sub(replacement, value)
        return value


def configure_logging(log_level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger.

    Safe to call more than once; the handler is only installed the first time.

    Args:
        log_level: Level name. Defaults to LOG_LEVEL env var or INFO

    Returns:
        The root logger
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if any(getattr(h, '_sharelink_handler', False) for h in root.handlers):
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(SensitiveDataFilter())
    handler._sharelink_handler = True

    root.addHandler(handler)
    return root
