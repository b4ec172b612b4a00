"""Request throttling and idempotent usage recording for the HTTP surface.

Both concerns live in Redis so they hold across API workers. Neither one is
part of quota accounting: a throttled or duplicate request never reaches the
counter store.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from fastapi import HTTPException, status

from src.core.config import settings
from src.core.exceptions import UsageQuotaError
from src.schemas.usage import UsageAction

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 60

_redis_client: redis.Redis | None = None


async def _get_client() -> redis.Redis:
    """Return a cached Redis client instance."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            str(settings.REDIS_URI), decode_responses=True
        )
    return _redis_client


async def close_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None


def usage_idempotency_key(user_id: str, action: UsageAction, key: str) -> str:
    return f"usage:idemp:{user_id}:{action.value}:{key}"


async def check_rate_limit(user_id: str) -> int:
    """Count a request against the caller's fixed window.

    Returns the requests left in the window. Over the limit, raises 429 with a
    ``Retry-After`` pointing at the start of the next window.
    """

    client = await _get_client()
    now = int(time.time())
    window = now // RATE_WINDOW_SECONDS
    counter_key = f"usage:rl:{user_id}:{window}"

    current = await client.incr(counter_key)
    if current == 1:
        await client.expire(counter_key, RATE_WINDOW_SECONDS)

    allowed = settings.limits.rate_limit_rpm
    if current > allowed:
        retry_after = RATE_WINDOW_SECONDS - now % RATE_WINDOW_SECONDS
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )
    return allowed - current


async def release_idempotency_key(user_id: str, action: UsageAction, key: str) -> None:
    client = await _get_client()
    await client.delete(usage_idempotency_key(user_id, action, key))


@asynccontextmanager
async def idempotent_usage(
    user_id: str, action: UsageAction, key: Optional[str]
) -> AsyncIterator[None]:
    """Claim ``key`` for one recording of ``action``.

    A key already claimed for the same user and action raises 409. If the
    recording fails with a usage error the claim is released, so the caller's
    retry is counted instead of being rejected as a duplicate.
    """

    if not key:
        yield
        return

    client = await _get_client()
    was_set = await client.set(
        usage_idempotency_key(user_id, action, key),
        "1",
        ex=settings.limits.idempotency_ttl_seconds,
        nx=True,
    )
    if not was_set:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Duplicate request (idempotency)",
        )

    try:
        yield
    except UsageQuotaError:
        logger.warning(
            f"Releasing idempotency key {key!r} for {user_id} after failed {action.value}"
        )
        await release_idempotency_key(user_id, action, key)
        raise
