"""Async Redis connection factory and store-error translation.

create_redis_client() returns an async redis.Redis client, or None if the
connection fails. OTP components accept that Optional client and use
require_redis() / store_errors() so a missing or failing store always
surfaces as ServiceUnavailableError, never as a policy denial.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from errors import ServiceUnavailableError
from shared.logging import get_logger, mask_email

log = get_logger(__name__)


async def create_redis_client(redis_uri: str) -> Optional[aioredis.Redis]:
    """Connect to Redis and return a client, or None on failure."""
    try:
        client: aioredis.Redis = aioredis.from_url(
            redis_uri, encoding="utf-8", decode_responses=True
        )
        await client.ping()
        log.info("redis_connected", uri=redis_uri.split("@")[-1])  # mask credentials
        return client
    except RedisError as e:
        log.warning(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
        return None


def require_redis(
    client: Optional[aioredis.Redis], operation: str
) -> aioredis.Redis:
    """Return *client* or raise ServiceUnavailableError when not configured."""
    if client is None:
        log.error("redis_not_configured", operation=operation)
        raise ServiceUnavailableError()
    return client


@contextmanager
def store_errors(operation: str, email: Optional[str] = None) -> Iterator[None]:
    """Translate RedisError raised inside the block into ServiceUnavailableError."""
    try:
        yield
    except RedisError as e:
        log.error(
            "redis_operation_failed",
            operation=operation,
            email=mask_email(email),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ServiceUnavailableError() from e
