"""Redis locks that keep batch jobs from overlapping across workers."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError

from mlm_ledger.config.settings import settings

LOCK_PREFIX = "mlm_ledger:job:"


def create_redis_client() -> redis.Redis:
    """Redis client from application settings."""
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


@asynccontextmanager
async def single_run(name: str, timeout: int) -> AsyncIterator[bool]:
    """
    Try to take a job lock without waiting.

    Usage:
        async with single_run("daily_roi", timeout=600) as acquired:
            if not acquired:
                return

    Args:
        name: Job name
        timeout: Lock expiry in seconds

    Yields:
        True if this worker owns the lock
    """
    client = create_redis_client()
    lock = client.lock(f"{LOCK_PREFIX}{name}", timeout=timeout)
    acquired = await lock.acquire(blocking=False)
    if not acquired:
        logger.info(f"Job {name} already running elsewhere, skipping")

    try:
        yield acquired
    finally:
        if acquired:
            try:
                await lock.release()
            except LockError:
                logger.warning(f"Lock for job {name} expired before release")
        await client.aclose()
