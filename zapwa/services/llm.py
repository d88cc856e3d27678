"""
LLM client for OpenAI-compatible chat completions.

Features:
  - Bounded timeout per call (a timeout is a provider failure)
  - Optional retry with exponential backoff + jitter (LLM_MAX_RETRIES, default off)
  - Reusable client (connection pooling)
  - Tool-call parsing into typed ToolCall objects
  - Structured logging
"""

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..core.config import get_settings
from ..core.errors import LLMProviderError
from ..core.flags import get_flags

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A single tool call requested by the model."""

    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    raw_arguments: str = ""

    def to_payload(self) -> dict:
        """Structured form persisted on the assistant message."""
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    def to_openai(self) -> dict:
        """Wire form for replaying the call in the message history."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.raw_arguments or json.dumps(self.arguments),
            },
        }


@dataclass
class LLMReply:
    """Either plain text or one or more tool calls (or both)."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: dict = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# ── Reusable client (connection pool) ────────────────────────────────

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        settings = get_settings()
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=settings.llm_timeout_seconds, write=30, pool=10),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        )
    return _client


async def close_client():
    """Close the shared HTTP client. Call on app shutdown."""
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


# ── Provider config ──────────────────────────────────────────────────

def _get_provider_config() -> tuple[str, str, str]:
    """Returns (base_url, api_key, default_model) for the configured provider."""
    settings = get_settings()
    p = get_flags().llm_provider.lower()

    if p == "gemini":
        return (
            "https://generativelanguage.googleapis.com/v1beta/openai",
            settings.gemini_api_key,
            settings.default_llm_model,
        )
    return settings.openai_base_url, settings.openai_api_key, settings.default_llm_model


# ── Retry logic ──────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
BASE_DELAY = 1.0
MAX_DELAY = 16.0


async def _retry_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int,
    **kwargs,
) -> httpx.Response:
    """Execute request, retrying transient failures up to max_retries times."""
    last_exc: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            resp = await client.request(method, url, **kwargs)

            if resp.status_code not in RETRYABLE_STATUS:
                if resp.status_code >= 400:
                    logger.error("LLM API error %d: %s", resp.status_code, resp.text[:500])
                resp.raise_for_status()
                return resp

            last_exc = httpx.HTTPStatusError(
                f"{resp.status_code}", request=resp.request, response=resp
            )
            if attempt == max_retries:
                break

            retry_after = resp.headers.get("retry-after")
            delay = float(retry_after) if retry_after else min(
                MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1)
            )
            logger.warning(
                "LLM %d (attempt %d/%d) — retrying in %.1fs",
                resp.status_code, attempt + 1, max_retries + 1, delay,
            )
            await asyncio.sleep(delay)

        except httpx.TimeoutException as e:
            last_exc = e
            if attempt == max_retries:
                break
            delay = min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))
            logger.warning(
                "LLM timeout (attempt %d/%d) — retrying in %.1fs",
                attempt + 1, max_retries + 1, delay,
            )
            await asyncio.sleep(delay)

    raise last_exc or RuntimeError("LLM request failed")


# ── Response parsing ─────────────────────────────────────────────────

def parse_reply(data: dict) -> LLMReply:
    """Turn a raw chat-completions response into an LLMReply."""
    choices = data.get("choices") or []
    if not choices:
        raise LLMProviderError("LLM response contained no choices")

    message = choices[0].get("message") or {}
    tool_calls = []
    for tc in message.get("tool_calls") or []:
        func = tc.get("function") or {}
        raw_args = func.get("arguments") or ""
        try:
            args = json.loads(raw_args) if raw_args else {}
        except json.JSONDecodeError:
            logger.warning("Unparseable tool arguments for %s: %s", func.get("name"), raw_args[:200])
            args = {}
        if not isinstance(args, dict):
            args = {}
        tool_calls.append(ToolCall(
            id=tc.get("id") or "",
            name=func.get("name") or "",
            arguments=args,
            raw_arguments=raw_args,
        ))

    return LLMReply(
        content=message.get("content") or "",
        tool_calls=tool_calls,
        usage=data.get("usage") or {},
    )


# ── Main chat function ───────────────────────────────────────────────

async def chat(
    messages: list[dict],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    tools: Optional[list[dict]] = None,
    tool_choice: Optional[str] = None,
) -> LLMReply:
    """
    Chat completion. Raises LLMProviderError on any provider failure,
    including timeouts. Retries only if LLM_MAX_RETRIES > 0.
    """
    settings = get_settings()
    provider = get_flags().llm_provider.lower()
    base_url, api_key, default_model = _get_provider_config()

    if not api_key:
        raise LLMProviderError(
            f"No API key for LLM provider '{provider}'. Set OPENAI_API_KEY or GEMINI_API_KEY."
        )

    payload: dict[str, Any] = {
        "model": model or default_model,
        "messages": messages,
        "temperature": temperature if temperature is not None else settings.default_llm_temperature,
        "max_tokens": max_tokens or settings.default_llm_max_tokens,
    }
    if tools:
        payload["tools"] = tools
        # One action per turn; don't invite the model to batch calls
        if provider != "gemini":
            payload["parallel_tool_calls"] = False
    if tool_choice:
        payload["tool_choice"] = tool_choice

    url = f"{base_url.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    start = time.monotonic()
    client = _get_client()

    try:
        resp = await asyncio.wait_for(
            _retry_request(
                client, "POST", url, settings.llm_max_retries,
                json=payload, headers=headers,
            ),
            timeout=settings.llm_timeout_seconds * (settings.llm_max_retries + 1),
        )
        reply = parse_reply(resp.json())
    except LLMProviderError:
        raise
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        elapsed = time.monotonic() - start
        logger.error("LLM timed out after %.1fs", elapsed)
        raise LLMProviderError(f"LLM request timed out after {elapsed:.1f}s") from e
    except Exception as e:
        elapsed = time.monotonic() - start
        logger.error("LLM failed after %.1fs: %s", elapsed, e)
        raise LLMProviderError(f"LLM request failed: {e}") from e

    elapsed = time.monotonic() - start
    logger.info(
        "LLM %s: %dms | in=%d out=%d tokens | model=%s",
        "tool_call" if reply.has_tool_calls else "chat",
        int(elapsed * 1000),
        reply.usage.get("prompt_tokens", 0),
        reply.usage.get("completion_tokens", 0),
        payload["model"],
    )
    return reply
