"""Bounded retry with exponential backoff for storage-bound steps."""

import logging
import time
from typing import Callable, TypeVar

from adaptive_practice.core.app_exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def calculate_backoff(attempt: int, base_seconds: float) -> float:
    """Delay before retry number ``attempt`` (1-based): base * 2^(attempt-1)."""
    return base_seconds * (2 ** (attempt - 1))


def run_with_retry(
    operation: Callable[[], T],
    attempts: int,
    backoff_seconds: float,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[T, int]:
    """
    Run ``operation``, retrying on ``StorageError``.

    Returns:
        Tuple of (result, attempts_used)

    Raises:
        StorageError: The last failure, once ``attempts`` are exhausted
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation(), attempt
        except StorageError as e:
            if attempt >= attempts:
                raise
            delay = calculate_backoff(attempt, backoff_seconds)
            logger.warning(
                f"Retrying {label} after storage failure ({attempt}/{attempts}): {e.message}",
                extra={"event": "storage_retry", "step": label, "attempt": attempt},
            )
            sleep(delay)
    raise ValueError("attempts must be >= 1")
