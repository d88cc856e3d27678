"""
Per-session serialization.

Two messages for the same session (double-submit, retries from the web layer)
must not interleave their history reads and writes. Turns are serialized by
a lock keyed on the session id, or on (license, customer) when the caller has
no session id yet.

FF_USE_REDIS on  → Redis lock, safe across worker processes.
FF_USE_REDIS off → asyncio.Lock registry, safe within one process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from .config import get_settings
from .errors import TurnInProgressError
from .flags import get_flags
from .redis import get_redis

logger = logging.getLogger(__name__)

_local_locks: dict[str, asyncio.Lock] = {}
_local_waiters: dict[str, int] = {}


def session_lock_key(license_id: str, session_id: Optional[str], customer_identifier: str) -> str:
    if session_id:
        return f"chat-lock:session:{session_id}"
    return f"chat-lock:customer:{license_id}:{customer_identifier}"


@asynccontextmanager
async def _local_lock(key: str) -> AsyncIterator[None]:
    lock = _local_locks.setdefault(key, asyncio.Lock())
    _local_waiters[key] = _local_waiters.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _local_waiters[key] -= 1
        # Drop idle locks so the registry doesn't grow with every session ever seen
        if _local_waiters[key] == 0:
            _local_waiters.pop(key, None)
            _local_locks.pop(key, None)


@asynccontextmanager
async def session_lock(key: str) -> AsyncIterator[None]:
    """Hold the lock for `key` for the duration of one chat turn."""
    if not get_flags().use_redis:
        async with _local_lock(key):
            yield
        return

    settings = get_settings()
    client = await get_redis()
    lock = client.lock(
        key,
        timeout=settings.session_lock_timeout_seconds,
        blocking_timeout=settings.session_lock_timeout_seconds,
    )
    acquired = await lock.acquire()
    if not acquired:
        logger.warning("Timed out waiting for %s", key)
        raise TurnInProgressError()
    try:
        yield
    finally:
        try:
            await lock.release()
        except Exception as e:
            # Lock expired while the turn was running
            logger.warning("Failed to release %s: %s", key, e)
