"""Redis client factory."""

import redis
from redis.exceptions import ConnectionError, RedisError

from adaptive_practice.core.config import Settings, settings
from adaptive_practice.core.logging import get_logger

logger = get_logger(__name__)


def create_redis_client(config: Settings = settings) -> redis.Redis:
    """
    Create a Redis client with fast-fail timeouts.

    Raises:
        ValueError: If Redis is disabled or REDIS_URL is not configured
        ConnectionError: If the server cannot be reached
    """
    if not config.REDIS_ENABLED:
        raise ValueError("Redis is disabled (REDIS_ENABLED=false); the practice engine requires a cache")
    if not config.REDIS_URL:
        raise ValueError("REDIS_URL must be set when REDIS_ENABLED=true")

    client = redis.from_url(
        config.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT_SECONDS,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT_SECONDS,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    try:
        client.ping()
        logger.info("Redis connection established")
    except (ConnectionError, RedisError) as e:
        raise ConnectionError(f"Redis connection failed: {e}") from e
    return client
