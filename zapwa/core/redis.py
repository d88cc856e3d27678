"""
Redis client shared by realtime events and session locks.

With FF_USE_REDIS off, events are dropped silently and locks stay in-process
(see core.locks). Event delivery is best effort: a chat turn never fails
because Redis is unreachable.

Channels:
    license:{license_id}                   dashboard feed (new orders, ...)
    session:{license_id}:{session_id}      one conversation
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .config import get_settings
from .flags import get_flags

logger = logging.getLogger(__name__)

_redis_client = None


async def get_redis():
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis

        settings = get_settings()
        if not settings.redis_url:
            raise RuntimeError("FF_USE_REDIS is on but REDIS_URL is not set")
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
    return _redis_client


def license_channel(license_id: str) -> str:
    return f"license:{license_id}"


def session_channel(license_id: str, session_id: str) -> str:
    return f"session:{license_id}:{session_id}"


def _event(event_type: str, license_id: str, session_id: Optional[str], data: Any) -> str:
    return json.dumps({
        "type": event_type,
        "license_id": license_id,
        "session_id": session_id,
        "at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }, default=str)


async def publish(channel: str, payload: str) -> None:
    if not get_flags().use_redis:
        return
    try:
        client = await get_redis()
        await client.publish(channel, payload)
    except Exception as e:
        logger.warning("Redis publish failed (channel=%s): %s", channel, e)


async def notify_license(license_id: str, event_type: str, data: Any = None) -> None:
    await publish(license_channel(license_id), _event(event_type, license_id, None, data))


async def notify_session(license_id: str, session_id: str, event_type: str, data: Any = None) -> None:
    await publish(
        session_channel(license_id, session_id),
        _event(event_type, license_id, session_id, data),
    )


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
