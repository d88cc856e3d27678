"""
Parameter recovery for order_status.

Customers rarely repeat their order id or phone number. When the model calls
order_status without one of them, we look for it in the session history,
newest first, in this order:

  1. arguments of earlier order_status calls (structured tool_calls payload)
  2. "Order ID: XXXX" references in tool results (order confirmations)
  3. the session's customer identifier, when it is a phone number (phone only)
  4. loose order-id / phone patterns in the customer's own messages

A step only fills values that are still missing. Nothing is guessed: if a
value can't be found it stays None and the tool asks for it.
"""

import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..models.chat import ChatMessage
from ..services.orders import normalize_phone

ORDER_STATUS_TOOL = "order_status"

ORDER_REFERENCE_RE = re.compile(r"Order ID\s*:\s*#?([A-Za-z0-9]{4,})", re.IGNORECASE)
_ORDER_MARKER_RE = re.compile(
    r"(?:order|pesanan)\s*(?:id|no\.?|number)?\s*[:#]?\s*#?([A-Za-z0-9]{6,})",
    re.IGNORECASE,
)
_HASH_REF_RE = re.compile(r"#([A-Za-z0-9]{6,})")
# 8+ alphanumerics mixing letters and digits, e.g. "1A2B3C4D"
_BARE_REF_RE = re.compile(r"\b(?=[A-Za-z0-9]*\d)(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{8,}\b")
_PHONE_RE = re.compile(r"\+?\d[\d\s\-]{6,18}\d")


@dataclass(frozen=True)
class OrderStatusParams:
    order_id: Optional[str] = None
    phone: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.order_id and self.phone)

    def missing(self) -> list[str]:
        names = []
        if not self.order_id:
            names.append("order ID")
        if not self.phone:
            names.append("phone number")
        return names

    def merge(self, other: "OrderStatusParams") -> "OrderStatusParams":
        """Fill only the fields that are still empty."""
        return replace(
            self,
            order_id=self.order_id or other.order_id,
            phone=self.phone or other.phone,
        )


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_phone(text: Optional[str]) -> Optional[str]:
    """Return the text as a phone number if it looks like one (8-15 digits)."""
    if not text:
        return None
    candidate = normalize_phone(text)
    digits = candidate.lstrip("+")
    if digits.isdigit() and 8 <= len(digits) <= 15:
        return candidate
    return None


# ── Step 1 ───────────────────────────────────────────────────────────

def from_prior_tool_calls(history: Iterable[ChatMessage]) -> OrderStatusParams:
    """Arguments of earlier order_status calls, newest call wins."""
    found = OrderStatusParams()
    for msg in history:
        if msg.role != "assistant" or not msg.tool_calls:
            continue
        for call in msg.tool_calls:
            if not isinstance(call, dict) or call.get("name") != ORDER_STATUS_TOOL:
                continue
            args = call.get("arguments") or {}
            if not isinstance(args, dict):
                continue
            found = found.merge(OrderStatusParams(
                order_id=_clean(args.get("orderId")),
                phone=_clean(args.get("phone")),
            ))
            if found.complete:
                return found
    return found


# ── Step 2 ───────────────────────────────────────────────────────────

def from_order_confirmations(history: Iterable[ChatMessage]) -> OrderStatusParams:
    """Order reference from the most recent order confirmation."""
    for msg in history:
        if msg.role != "tool" or not msg.content:
            continue
        match = ORDER_REFERENCE_RE.search(msg.content)
        if match:
            return OrderStatusParams(order_id=match.group(1))
    return OrderStatusParams()


# ── Step 3 ───────────────────────────────────────────────────────────

def from_customer_identifier(customer_identifier: Optional[str]) -> OrderStatusParams:
    """The session is usually keyed by the customer's phone number."""
    return OrderStatusParams(phone=as_phone(customer_identifier))


# ── Step 4 ───────────────────────────────────────────────────────────

def _order_id_in(text: str) -> Optional[str]:
    for match in _ORDER_MARKER_RE.finditer(text):
        token = match.group(1)
        # "order 0812..." is the customer's phone, not a reference
        if any(c.isdigit() for c in token) and not (token.isdigit() and as_phone(token)):
            return token
    match = _HASH_REF_RE.search(text)
    if match:
        return match.group(1)
    match = _BARE_REF_RE.search(text)
    if match:
        return match.group(0)
    return None


def _phone_in(text: str) -> Optional[str]:
    for match in _PHONE_RE.finditer(text):
        phone = as_phone(match.group(0))
        if phone:
            return phone
    return None


def from_user_messages(history: Iterable[ChatMessage]) -> OrderStatusParams:
    """Loose patterns over what the customer typed, newest message first."""
    found = OrderStatusParams()
    for msg in history:
        if msg.role != "user" or not msg.content:
            continue
        found = found.merge(OrderStatusParams(
            order_id=_order_id_in(msg.content),
            phone=_phone_in(msg.content),
        ))
        if found.complete:
            break
    return found


# ── Combined ─────────────────────────────────────────────────────────

def recover_order_status_params(
    history: list[ChatMessage],
    partial: OrderStatusParams,
    customer_identifier: Optional[str] = None,
) -> OrderStatusParams:
    """
    Fill missing order_status parameters from `history` (newest first).
    Values already in `partial` are never overwritten.
    """
    params = partial
    if params.complete:
        return params

    params = params.merge(from_prior_tool_calls(history))
    if not params.order_id:
        params = params.merge(from_order_confirmations(history))
    if not params.phone:
        params = params.merge(from_customer_identifier(customer_identifier))
    if not params.complete:
        params = params.merge(from_user_messages(history))
    return params
