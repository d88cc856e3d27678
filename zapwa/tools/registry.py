"""
Tool registry.

Tools register themselves with @tool at import time; init_tools() imports
them. Every handler has the signature

    async def handler(arguments: dict, ctx: ToolContext) -> ToolResult

and execute_tool_call() guarantees nothing it raises escapes to the turn.
A tool can be registered but switched off by a feature flag; switched-off
tools are neither offered to the model nor executed.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.flags import get_flags
from ..models.chat import ChatSession
from ..models.commerce import Product
from ..services.llm import ToolCall
from .results import ToolErrorKind, ToolResult

logger = logging.getLogger(__name__)

CREATE_ORDER = "create_order"
ORDER_STATUS = "order_status"


class ToolRisk(str, Enum):
    """Logged with every call."""
    READ = "read"
    WRITE = "write"


@dataclass
class ToolContext:
    """Everything a tool may touch during one turn."""

    db: AsyncSession
    license_id: str
    session: ChatSession
    customer_identifier: str
    # Catalog snapshot taken once per turn; tools validate against this, not the DB
    catalog: list[Product] = field(default_factory=list)


Handler = Callable[[dict, ToolContext], Awaitable[ToolResult]]


@dataclass
class RegisteredTool:
    name: str
    description: str
    parameters: dict
    handler: Handler
    risk: ToolRisk = ToolRisk.READ
    enabled: Callable[[], bool] = lambda: True

    def to_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
                "strict": False,
            },
        }


_tools: dict[str, RegisteredTool] = {}
_initialized = False


def tool(
    name: str,
    description: str,
    parameters: dict,
    risk: ToolRisk = ToolRisk.READ,
    enabled: Optional[Callable[[], bool]] = None,
):
    """
    Register an async function as a model-callable tool.

    Args:
        name:        Tool name the model calls.
        description: What it does, when to use it, what it returns.
        parameters:  JSON Schema for the arguments.
        risk:        READ or WRITE, for the call log.
        enabled:     Checked on every turn; defaults to always on.
    """

    def decorator(func: Handler) -> Handler:
        schema = {"type": "object", **parameters}
        schema.setdefault("additionalProperties", False)
        if name in _tools:
            logger.debug("Tool %s registered again, replacing", name)
        _tools[name] = RegisteredTool(
            name=name,
            description=description,
            parameters=schema,
            handler=func,
            risk=risk,
            enabled=enabled or (lambda: True),
        )
        return func

    return decorator


def _active_tool(name: str) -> Optional[RegisteredTool]:
    registered = _tools.get(name)
    if registered is None or not registered.enabled():
        return None
    return registered


def get_tools_for_llm() -> list[dict]:
    """Enabled tools in OpenAI function-calling format."""
    return [t.to_openai() for t in _tools.values() if t.enabled()]


def get_tool_handler(name: str) -> Optional[Handler]:
    registered = _active_tool(name)
    return registered.handler if registered else None


def get_tool_names() -> list[str]:
    return [t.name for t in _tools.values() if t.enabled()]


async def execute_tool_call(call: ToolCall, ctx: ToolContext) -> ToolResult:
    """Run one tool call. Never raises."""
    registered = _active_tool(call.name)
    if registered is None:
        logger.warning("Unknown or disabled tool called: %s", call.name)
        return ToolResult.error(
            ToolErrorKind.UNKNOWN_TOOL,
            f"Error: Unknown tool '{call.name}'. Available tools: {', '.join(get_tool_names())}.",
        )

    logger.info(
        "Tool call: %s(%s) [%s] session=%s",
        call.name, json.dumps(call.arguments)[:200], registered.risk.value, ctx.session.id,
    )
    start = time.monotonic()
    try:
        result = await registered.handler(call.arguments, ctx)
    except Exception:
        logger.exception("Tool '%s' failed after %dms", call.name, int((time.monotonic() - start) * 1000))
        return ToolResult.error(
            ToolErrorKind.COLLABORATOR_FAILURE,
            f"The {call.name} tool failed unexpectedly. Tell the customer to try again shortly.",
        )

    logger.info(
        "Tool %s completed in %dms (%s)",
        call.name, int((time.monotonic() - start) * 1000),
        "ok" if result.is_ok else result.kind.value,
    )
    return result


def init_tools() -> None:
    """Import tool modules so they register. Safe to call more than once."""
    global _initialized
    if _initialized:
        return

    from . import create_order, order_status  # noqa: F401

    _initialized = True
    flags = get_flags()
    logger.info(
        "Tools ready: [%s] (order_status %s)",
        ", ".join(_tools), "on" if flags.enable_order_status else "off",
    )
