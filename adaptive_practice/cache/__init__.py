"""Key-value cache contract and Redis implementation."""

from adaptive_practice.cache.base import KeyValueCache
from adaptive_practice.cache.redis import RedisCache

__all__ = ["KeyValueCache", "RedisCache"]
