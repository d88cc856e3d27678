"""
Sales chat agent — answers product questions and acts on the store's behalf.

One turn:
  model call with tools → (at most MAX_TOOL_CALLS_PER_TURN tool executions,
  each followed by a model call over the tool result) → final text.

The first model call failing is fatal for the turn. A failure in a follow-up
(synthesis) call falls back to a templated reply so a placed order is still
confirmed to the customer.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from ...core.errors import LLMProviderError
from ...models.chat import ChatMessage
from ...services import llm
from ...services.llm import ToolCall
from ...tools.registry import (
    CREATE_ORDER,
    ToolContext,
    execute_tool_call,
    get_tool_handler,
    get_tools_for_llm,
    init_tools,
)
from ...tools.results import ToolResult

logger = logging.getLogger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────────

MAX_TOOL_CALLS_PER_TURN = 1

ACTION_ISSUE_REPLY = "I was about to perform an action, but there was an issue. Please clarify your request."
ORDER_FALLBACK_PREFIX = "I've created your order! "
TOOL_FALLBACK_REPLY = "Sorry, I couldn't complete that just now. Please try again in a moment."


@dataclass
class ExecutedTool:
    call: ToolCall
    result: ToolResult


@dataclass
class AgentResponse:
    """What the agent returns after handling a message."""

    content: str = ""
    # Structured payload of the tool call(s) acted on, persisted with the reply
    tool_calls: Optional[list[dict]] = None
    executed: list[ExecutedTool] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def order_created(self) -> bool:
        return any(t.call.name == CREATE_ORDER and t.result.is_ok for t in self.executed)


def build_history(system_prompt: str, stored: list[ChatMessage], user_message: str) -> list[dict]:
    """
    System prompt, then stored messages oldest first, then the new message.
    Tool results are not replayed: the API only accepts them right after the
    call that produced them, and the assistant reply already carries the outcome.
    """
    messages = [{"role": "system", "content": system_prompt}]
    for msg in stored:
        if msg.role == "user":
            messages.append({"role": "user", "content": msg.content})
        elif msg.role == "assistant" and msg.content:
            messages.append({"role": "assistant", "content": msg.content})
    messages.append({"role": "user", "content": user_message})
    return messages


def fallback_reply(executed: ExecutedTool) -> str:
    """Templated reply when the synthesis call fails."""
    if not executed.result.is_ok:
        return TOOL_FALLBACK_REPLY
    if executed.call.name == CREATE_ORDER:
        return ORDER_FALLBACK_PREFIX + executed.result.to_text()
    return executed.result.to_text()


class SalesChatAgent:
    name = "sales_chat"
    description = "Answers catalog questions, creates orders and looks up order status"

    async def handle(self, messages: list[dict], ctx: ToolContext) -> AgentResponse:
        """Run one turn over `messages` (mutated in place with tool traffic)."""
        init_tools()
        start_time = time.monotonic()
        tools = get_tools_for_llm()
        executed: list[ExecutedTool] = []
        acted_on: list[dict] = []

        # Provider failure here propagates: nothing useful to say without the model
        reply = await llm.chat(messages=messages, tools=tools or None, tool_choice="auto" if tools else None)

        while reply.has_tool_calls and len(executed) < MAX_TOOL_CALLS_PER_TURN:
            call = reply.tool_calls[0]
            if len(reply.tool_calls) > 1:
                logger.warning(
                    "Model requested %d tool calls, executing only %s (session=%s)",
                    len(reply.tool_calls), call.name, ctx.session.id,
                )
            acted_on.append(call.to_payload())

            if not call.id or get_tool_handler(call.name) is None:
                logger.warning("Unusable tool call %r (id=%r), not executing", call.name, call.id)
                return AgentResponse(
                    content=ACTION_ISSUE_REPLY,
                    tool_calls=acted_on,
                    executed=executed,
                    metadata=self._metadata(start_time, executed, issue=True),
                )

            result = await execute_tool_call(call, ctx)
            step = ExecutedTool(call=call, result=result)
            executed.append(step)

            messages.append({
                "role": "assistant",
                "content": reply.content or None,
                "tool_calls": [call.to_openai()],
            })
            messages.append({
                "role": "tool",
                "tool_call_id": call.id,
                "content": result.to_text(),
            })

            remaining = MAX_TOOL_CALLS_PER_TURN - len(executed)
            try:
                logger.info("Invoking LLM again to synthesize the reply (session=%s)", ctx.session.id)
                reply = await llm.chat(
                    messages=messages,
                    tools=tools if remaining > 0 else None,
                )
            except LLMProviderError as e:
                logger.warning("Synthesis call failed, using templated reply: %s", e)
                return AgentResponse(
                    content=fallback_reply(step),
                    tool_calls=acted_on,
                    executed=executed,
                    metadata=self._metadata(start_time, executed, fallback=True),
                )

        content = reply.content
        if reply.has_tool_calls:
            logger.warning("Tool budget spent, ignoring further tool calls (session=%s)", ctx.session.id)
        if not content and executed:
            content = fallback_reply(executed[-1])

        return AgentResponse(
            content=content,
            tool_calls=acted_on or None,
            executed=executed,
            metadata=self._metadata(start_time, executed),
        )

    def _metadata(self, start_time: float, executed: list[ExecutedTool], **extra) -> dict:
        return {
            "tools": [
                {"name": t.call.name, "ok": t.result.is_ok, "kind": t.result.kind.value if t.result.kind else None}
                for t in executed
            ],
            "elapsed_ms": int((time.monotonic() - start_time) * 1000),
            **extra,
        }
