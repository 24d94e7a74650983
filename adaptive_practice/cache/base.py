"""Key-value cache contract used by the practice engine.

The engine never reaches for a process-wide client: every component that needs
the cache receives a :class:`KeyValueCache` explicitly.

Contract:
- Values are strings; callers serialize.
- ``ttl_seconds`` is an expiry relative to the write; ``None`` means no expiry.
- ``zincrby``, ``set_if_absent`` and ``delete_if_equals`` are atomic per key.
- Operations on disjoint keys are safe to run concurrently.
- Implementations raise :class:`~adaptive_practice.core.app_exceptions.StorageError`
  when the backend is unavailable.
"""

from typing import Protocol


class KeyValueCache(Protocol):
    # Scalars
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    def delete(self, key: str) -> None: ...

    def delete_if_equals(self, key: str, value: str) -> bool: ...

    def expire(self, key: str, ttl_seconds: int) -> None: ...

    # Hashes
    def hget(self, key: str, field: str) -> str | None: ...

    def hset(self, key: str, field: str, value: str) -> None: ...

    def hgetall(self, key: str) -> dict[str, str]: ...

    # Sorted sets
    def zincrby(self, key: str, member: str, amount: float) -> float: ...

    def zscore(self, key: str, member: str) -> float | None: ...

    def zmembers_with_scores(self, key: str) -> list[tuple[str, float]]: ...

    # Lists
    def rpush(self, key: str, *values: str) -> int: ...

    def lpop(self, key: str) -> str | None: ...

    def llen(self, key: str) -> int: ...
