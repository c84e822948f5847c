"""
Retry Policy

Bounded exponential backoff for transient infrastructure failures.
Only DomainError subclasses flagged ``transient`` are retried; everything
else propagates on the first attempt.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from domain.errors import DomainError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Check whether an error is worth retrying."""
    return isinstance(error, DomainError) and error.transient


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for any single delay
        sleep: Sleep function (replaced in tests)
    """
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 4.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", 3)),
            base_delay=float(os.getenv("RETRY_BASE_DELAY_SECONDS", 0.5)),
            max_delay=float(os.getenv("RETRY_MAX_DELAY_SECONDS", 4.0)),
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))

    def call(self, operation: Callable[..., T], *args, description: str = "", **kwargs) -> T:
        """
        Run ``operation`` with retry on transient failures.

        Args:
            operation: Callable to run
            description: Label used in log messages
            *args, **kwargs: Arguments to pass to operation

        Returns:
            Result from the first successful attempt

        Raises:
            The last transient error once attempts are exhausted, or any
            non-transient error immediately
        """
        label = description or getattr(operation, "__name__", "operation")

        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation(*args, **kwargs)
            except DomainError as e:
                if not e.transient or attempt == self.max_attempts:
                    if e.transient:
                        logger.error(
                            f"{label} failed after {attempt} attempt(s): {e}"
                        )
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Transient failure in {label}, retrying in {delay}s "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                self.sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError(f"{label}: retry loop exited without a result")
