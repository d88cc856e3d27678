"""
Main orchestration loop.

Receive message → resolve session → build prompt → agent turn → persist → respond.

Session rotation: after the agent successfully places an order, the session
is closed and a fresh one opened. The reply is stored in, and the response
points at, the new session, so the next message starts from a clean context.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..agents.sales_chat.handler import AgentResponse, SalesChatAgent, build_history
from ..agents.sales_chat.prompts import build_system_prompt
from ..core.locks import session_lock, session_lock_key
from ..services import realtime
from ..services.agents import get_active_agent
from ..services.catalog import format_products_for_prompt, list_products
from ..tools.registry import ToolContext
from .session_store import add_message, close_session, get_or_create_session

logger = logging.getLogger(__name__)

_agent = SalesChatAgent()


@dataclass
class ChatTurnResult:
    session_id: str
    response: str


async def handle_chat_message(
    db: AsyncSession,
    license_id: str,
    session_id: Optional[str],
    user_message: str,
    customer_identifier: str,
) -> ChatTurnResult:
    """
    Main entry point: one customer message in, one reply out.

    Raises LLMProviderError if the model can't be reached for the first call,
    SessionPersistenceError if a session row can't be created.
    """
    async with session_lock(session_lock_key(license_id, session_id, customer_identifier)):
        return await _handle_turn(db, license_id, session_id, user_message, customer_identifier)


async def _handle_turn(
    db: AsyncSession,
    license_id: str,
    session_id: Optional[str],
    user_message: str,
    customer_identifier: str,
) -> ChatTurnResult:
    start = time.monotonic()

    # 1. Resume or start the session
    ctx_session = await get_or_create_session(db, license_id, session_id, customer_identifier)
    session = ctx_session.session

    # 2. Catalog snapshot + system prompt
    products = await list_products(db, license_id)
    active_agent = await get_active_agent(db, license_id)
    system_prompt = build_system_prompt(
        format_products_for_prompt(products),
        active_agent.behavior if active_agent else "",
    )

    # 3. History: system, stored messages, new message
    history = build_history(system_prompt, ctx_session.messages, user_message)

    # 4. Persist the user message before calling the model; it is kept
    # even if the model call fails and the rest of the turn rolls back
    await add_message(db, session, role="user", content=user_message)
    await db.commit()
    await realtime.chat_started(license_id, session.id, {"message": user_message[:100]})

    # 5-6. Model + at most one tool call + synthesis
    tool_ctx = ToolContext(
        db=db,
        license_id=license_id,
        session=session,
        customer_identifier=customer_identifier,
        catalog=products,
    )
    response: AgentResponse = await _agent.handle(history, tool_ctx)

    # 6d. Rotate the session after a placed order
    reply_session = session
    if response.order_created:
        await close_session(db, session.id)
        rotated = await get_or_create_session(db, license_id, None, customer_identifier)
        reply_session = rotated.session
        order_ids = [t.result.data.get("order_id") for t in response.executed if t.result.is_ok]
        await realtime.order_created(license_id, session.id, {"order_ids": order_ids, "next_session_id": reply_session.id})
        logger.info("Order placed, rotated session %s → %s", session.id, reply_session.id)

    # 7. Persist tool results and the reply under the (possibly new) session
    for step in response.executed:
        await add_message(
            db, reply_session, role="tool",
            content=step.result.to_text(),
            tool_call_id=step.call.id,
        )
    await add_message(
        db, reply_session, role="assistant",
        content=response.content,
        tool_calls=response.tool_calls,
    )
    # Commit while the turn lock is still held so the next turn sees this one
    await db.commit()

    elapsed = time.monotonic() - start
    await realtime.chat_completed(license_id, reply_session.id, {
        "tools": response.metadata.get("tools", []),
        "elapsed_ms": int(elapsed * 1000),
    })
    logger.info(
        "Chat turn done: license=%s session=%s tools=%d %dms",
        license_id, reply_session.id, len(response.executed), int(elapsed * 1000),
    )

    # 8. Respond
    return ChatTurnResult(session_id=reply_session.id, response=response.content)
