"""
Share Settings

Environment-driven settings for the sharing core, read once at process start.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from domain.file_sharing.value_objects import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_MAX_TTL_MINUTES,
    DEFAULT_MIN_TTL_MINUTES,
)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass(frozen=True)
class ShareSettings:
    """Sharing configuration settings."""

    min_link_ttl_minutes: int = DEFAULT_MIN_TTL_MINUTES
    max_link_ttl_minutes: int = DEFAULT_MAX_TTL_MINUTES

    storage_provider: str = "local"
    local_storage_path: str = "/tmp/sharelink"
    gcs_bucket_name: Optional[str] = None
    gcs_credentials_path: Optional[str] = None
    delegated_url_ttl_minutes: int = 15

    public_base_url: str = "http://localhost:5000"

    allowed_extensions: Tuple[str, ...] = field(default=DEFAULT_ALLOWED_EXTENSIONS)
    max_file_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB

    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 4.0

    sweep_interval_seconds: float = 3600.0
    sweep_batch_limit: int = 500
    sweep_abort_after_consecutive_storage_failures: int = 5

    def __post_init__(self):
        if self.min_link_ttl_minutes < 1:
            raise ValueError("MIN_LINK_TTL_MINUTES must be at least 1")
        if self.max_link_ttl_minutes < self.min_link_ttl_minutes:
            raise ValueError("MAX_LINK_TTL_MINUTES must not be below MIN_LINK_TTL_MINUTES")

    @classmethod
    def from_env(cls) -> "ShareSettings":
        """
        Build settings from environment variables.

        STORAGE_PROVIDER defaults to 'gcs' when GCS_BUCKET_NAME is set and to
        'local' otherwise.

        Raises:
            ValueError: If a numeric variable cannot be parsed or the TTL
                bounds are inconsistent
        """
        bucket = os.getenv("GCS_BUCKET_NAME") or None
        provider = os.getenv("STORAGE_PROVIDER") or ("gcs" if bucket else "local")

        extensions = os.getenv("ALLOWED_EXTENSIONS")
        allowed = (
            tuple(ext.strip() for ext in extensions.split(",") if ext.strip())
            if extensions else DEFAULT_ALLOWED_EXTENSIONS
        )

        return cls(
            min_link_ttl_minutes=_int_env("MIN_LINK_TTL_MINUTES", DEFAULT_MIN_TTL_MINUTES),
            max_link_ttl_minutes=_int_env("MAX_LINK_TTL_MINUTES", DEFAULT_MAX_TTL_MINUTES),
            storage_provider=provider.strip().lower(),
            local_storage_path=os.getenv("LOCAL_STORAGE_PATH", "/tmp/sharelink"),
            gcs_bucket_name=bucket,
            gcs_credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None,
            delegated_url_ttl_minutes=_int_env("DELEGATED_URL_TTL_MINUTES", 15),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:5000"),
            allowed_extensions=allowed,
            max_file_size_mb=_int_env("MAX_FILE_SIZE_MB", DEFAULT_MAX_FILE_SIZE_MB),
            retry_max_attempts=_int_env("RETRY_MAX_ATTEMPTS", 3),
            retry_base_delay_seconds=_float_env("RETRY_BASE_DELAY_SECONDS", 0.5),
            retry_max_delay_seconds=_float_env("RETRY_MAX_DELAY_SECONDS", 4.0),
            sweep_interval_seconds=_float_env("SWEEP_INTERVAL_SECONDS", 3600.0),
            sweep_batch_limit=_int_env("SWEEP_BATCH_LIMIT", 500),
            sweep_abort_after_consecutive_storage_failures=_int_env(
                "SWEEP_ABORT_AFTER_CONSECUTIVE_STORAGE_FAILURES", 5
            ),
        )
