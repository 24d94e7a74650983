"""Redis-backed :class:`KeyValueCache`.

Every Redis failure is re-raised as ``StorageError`` so callers can apply the
bounded-retry policy instead of handling driver exceptions.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, TypeVar

import redis
from redis.exceptions import RedisError

from adaptive_practice.core.app_exceptions import StorageError
from adaptive_practice.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Compare-and-delete: drop KEYS[1] only while it still holds ARGV[1]
DELETE_IF_EQUALS_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _storage_errors(func: Callable[..., T]) -> Callable[..., T]:
    @wraps(func)
    def wrapper(self: "RedisCache", key: str, *args: Any, **kwargs: Any) -> T:
        try:
            return func(self, key, *args, **kwargs)
        except RedisError as e:
            logger.warning(
                "redis_op_failed",
                extra={"event": "redis_op_failed", "op": func.__name__, "key": key, "error": str(e)},
            )
            raise StorageError(f"cache {func.__name__} failed", details={"key": key}) from e

    return wrapper


class RedisCache:
    """KeyValueCache over a ``redis.Redis`` client created with ``decode_responses=True``."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @_storage_errors
    def get(self, key: str) -> str | None:
        return self.client.get(key)

    @_storage_errors
    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if ttl_seconds is None:
            self.client.set(key, value)
        else:
            self.client.setex(key, int(ttl_seconds), value)

    @_storage_errors
    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        # SET NX EX: only set if not exists, expire after TTL
        return bool(self.client.set(key, value, nx=True, ex=int(ttl_seconds)))

    @_storage_errors
    def delete(self, key: str) -> None:
        self.client.delete(key)

    @_storage_errors
    def delete_if_equals(self, key: str, value: str) -> bool:
        return bool(self.client.eval(DELETE_IF_EQUALS_SCRIPT, 1, key, value))

    @_storage_errors
    def expire(self, key: str, ttl_seconds: int) -> None:
        self.client.expire(key, int(ttl_seconds))

    @_storage_errors
    def hget(self, key: str, field: str) -> str | None:
        return self.client.hget(key, field)

    @_storage_errors
    def hset(self, key: str, field: str, value: str) -> None:
        self.client.hset(key, field, value)

    @_storage_errors
    def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.client.hgetall(key))

    @_storage_errors
    def zincrby(self, key: str, member: str, amount: float) -> float:
        return float(self.client.zincrby(key, amount, member))

    @_storage_errors
    def zscore(self, key: str, member: str) -> float | None:
        score = self.client.zscore(key, member)
        return None if score is None else float(score)

    @_storage_errors
    def zmembers_with_scores(self, key: str) -> list[tuple[str, float]]:
        return [(member, float(score)) for member, score in self.client.zrange(key, 0, -1, withscores=True)]

    @_storage_errors
    def rpush(self, key: str, *values: str) -> int:
        if not values:
            return self.client.llen(key)
        return int(self.client.rpush(key, *values))

    @_storage_errors
    def lpop(self, key: str) -> str | None:
        return self.client.lpop(key)

    @_storage_errors
    def llen(self, key: str) -> int:
        return int(self.client.llen(key))
