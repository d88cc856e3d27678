"""
Realtime notifications. Thin wrapper around core.redis.
Provides typed event helpers for the chat agent.
"""

from ..core import redis as _redis


# ── Chat events ──────────────────────────────────────────────────────

async def chat_started(license_id: str, session_id: str, data: dict = None):
    await _redis.notify_session(license_id, session_id, "chat.started", data)


async def chat_completed(license_id: str, session_id: str, data: dict = None):
    await _redis.notify_session(license_id, session_id, "chat.completed", data)


# ── Order events ─────────────────────────────────────────────────────

async def order_created(license_id: str, session_id: str, data: dict = None):
    await _redis.notify_session(license_id, session_id, "order.created", data)
    await _redis.notify_license(license_id, "order.created", data)
