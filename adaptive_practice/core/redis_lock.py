"""Cache-based per-key locking for read-modify-write sections."""

import time
import uuid
from contextlib import contextmanager
from typing import Generator

from adaptive_practice.cache.base import KeyValueCache
from adaptive_practice.core.app_exceptions import StorageError
from adaptive_practice.core.logging import get_logger

logger = get_logger(__name__)

# Default lock TTL (5 seconds - enough for a single record step)
DEFAULT_LOCK_TTL = 5
POLL_INTERVAL_SECONDS = 0.02


@contextmanager
def key_lock(
    cache: KeyValueCache,
    lock_key: str,
    ttl_seconds: int = DEFAULT_LOCK_TTL,
    wait_seconds: float = 2.0,
) -> Generator[None, None, None]:
    """
    Hold an exclusive lock on ``lock_key`` for the body of the ``with`` block.

    Usage:
        with key_lock(cache, "lock:mastery:42:7"):
            # read-modify-write
            ...

    The lock auto-expires after ``ttl_seconds`` so a crashed holder cannot
    wedge the key. Waiters poll until ``wait_seconds`` elapse.

    Raises:
        StorageError: If the lock could not be acquired in time
    """
    token = uuid.uuid4().hex
    deadline = time.monotonic() + wait_seconds
    while not cache.set_if_absent(lock_key, token, ttl_seconds):
        if time.monotonic() >= deadline:
            logger.warning("lock_contended", extra={"event": "lock_contended", "key": lock_key})
            raise StorageError("lock not acquired", details={"key": lock_key})
        time.sleep(POLL_INTERVAL_SECONDS)

    logger.debug(f"Acquired lock: {lock_key}")
    try:
        yield
    finally:
        # Release only if we still own it (TTL may have handed it to someone else)
        try:
            if cache.delete_if_equals(lock_key, token):
                logger.debug(f"Released lock: {lock_key}")
        except StorageError as e:
            logger.error(f"Error releasing lock {lock_key}: {e}")
