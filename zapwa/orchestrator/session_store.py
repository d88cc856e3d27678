"""
Chat session store.

A session is keyed by (license, customer identifier, session id) and owns an
ordered, append-only message log. Supports:
  - Resume-or-create with a bounded window of recent messages
  - Idempotent close (used to rotate sessions after an order)
  - Newest-first history reads for parameter recovery
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.errors import SessionPersistenceError
from ..models.base import utcnow
from ..models.chat import ChatMessage, ChatSession

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant", "tool")


@dataclass
class SessionContext:
    """A session plus its most recent messages, oldest first."""

    session: ChatSession
    messages: list[ChatMessage] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.session.id


async def get_or_create_session(
    db: AsyncSession,
    license_id: str,
    session_id: Optional[str],
    customer_identifier: str,
) -> SessionContext:
    """
    Resume `session_id` if it belongs to `license_id` and is still active.
    Anything else (no id, unknown id, other license, closed) starts a new session.
    """
    if session_id:
        result = await db.execute(
            select(ChatSession).where(
                ChatSession.id == session_id,
                ChatSession.license_id == license_id,
                ChatSession.is_active == True,  # noqa: E712
            )
        )
        session = result.scalar_one_or_none()
        if session is not None:
            window = get_settings().session_history_window
            messages = await get_recent_messages(db, session.id, limit=window)
            return SessionContext(session=session, messages=messages)
        logger.info("Session %s not resumable for license %s, starting a new one", session_id, license_id)

    session = ChatSession(
        license_id=license_id,
        customer_identifier=customer_identifier,
        is_active=True,
    )
    try:
        db.add(session)
        await db.flush()
    except SQLAlchemyError as e:
        logger.error("Failed to create chat session for license %s: %s", license_id, e)
        raise SessionPersistenceError("Failed to create a new chat session in the database.") from e

    logger.info("Created chat session %s (license=%s)", session.id, license_id)
    return SessionContext(session=session, messages=[])


async def close_session(db: AsyncSession, session_id: str) -> None:
    """Mark a session inactive. Closing a closed or unknown session is a no-op."""
    await db.execute(
        update(ChatSession)
        .where(ChatSession.id == session_id, ChatSession.is_active == True)  # noqa: E712
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    logger.info("Closed chat session %s", session_id)


async def add_message(
    db: AsyncSession,
    session: ChatSession,
    role: str,
    content: str,
    tool_calls: Optional[list[dict]] = None,
    tool_call_id: Optional[str] = None,
) -> ChatMessage:
    """Append a message to the session log."""
    if role not in ROLES:
        raise ValueError(f"Unknown message role: {role}")

    last_seq = await db.scalar(
        select(func.max(ChatMessage.sequence_number)).where(ChatMessage.session_id == session.id)
    )
    msg = ChatMessage(
        session_id=session.id,
        license_id=session.license_id,
        role=role,
        content=content or "",
        sequence_number=(last_seq or 0) + 1,
        tool_calls=tool_calls or None,
        tool_call_id=tool_call_id,
    )
    db.add(msg)
    await db.flush()
    return msg


async def get_recent_messages(
    db: AsyncSession,
    session_id: str,
    limit: int = 10,
    roles: Optional[Iterable[str]] = None,
    newest_first: bool = False,
) -> list[ChatMessage]:
    """The last `limit` messages, oldest first unless newest_first."""
    query = select(ChatMessage).where(ChatMessage.session_id == session_id)
    if roles:
        query = query.where(ChatMessage.role.in_(list(roles)))
    result = await db.execute(
        query.order_by(ChatMessage.sequence_number.desc()).limit(limit)
    )
    messages = list(result.scalars().all())
    if not newest_first:
        messages.reverse()
    return messages
