"""
Per-driver and per-bus mutexes.

Ownership transfers (bus binding, check-in, check-out) run under a Redis lock
so concurrent requests from different workers serialize per resource.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import LockError

from fleet_backend.app.core import redis_client as redis_client_module
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import ConflictError

logger = logging.getLogger("fleet.locks")

LOCK_PREFIX = "lock:fleet:"


@asynccontextmanager
async def resource_lock(kind: str, resource_id: int) -> AsyncIterator[None]:
    """
    Hold the lock for one resource for the duration of the block.

    Raises:
        ConflictError: lock not acquired within the blocking timeout
    """
    name = f"{LOCK_PREFIX}{kind}:{resource_id}"
    lock = redis_client_module.redis_client.lock(
        name,
        timeout=settings.lock_timeout_seconds,
        blocking_timeout=settings.lock_blocking_timeout_seconds,
    )

    if not await lock.acquire():
        raise ConflictError(
            f"{kind.capitalize()} {resource_id} is being updated by another request, retry shortly",
            details={"resource": kind, "id": resource_id}
        )

    try:
        yield
    finally:
        try:
            await lock.release()
        except LockError:
            # Lock expired while held; the next holder already owns it
            logger.warning("Lock %s expired before release", name)


def driver_lock(driver_id: int):
    return resource_lock("driver", driver_id)


def bus_lock(bus_id: int):
    return resource_lock("bus", bus_id)
