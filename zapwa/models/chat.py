"""
Chat sessions and messages. Used by the sales agent and the chat log API.

A session is the unit of conversational memory for one customer. It is closed
after an order is placed and a fresh one takes over, so every order sits in
its own bounded context window. Messages are append-only.
"""

from sqlalchemy import String, Text, Integer, Boolean, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import LicenseBase


class ChatSession(LicenseBase):
    __tablename__ = "chat_sessions"

    customer_identifier: Mapped[str] = mapped_column(String, nullable=False, index=True)  # e.g. phone number
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ChatMessage.sequence_number",
    )


class ChatMessage(LicenseBase):
    __tablename__ = "chat_messages"

    session_id: Mapped[str] = mapped_column(
        String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String, nullable=False)  # user, assistant, tool
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Assistant messages that requested a tool keep the parsed call here:
    # [{"id": "call_abc", "name": "order_status", "arguments": {"orderId": "..."}}]
    tool_calls: Mapped[list] = mapped_column(JSON, nullable=True)
    # Tool messages point back at the call they answer
    tool_call_id: Mapped[str] = mapped_column(String, nullable=True)

    session: Mapped["ChatSession"] = relationship(back_populates="messages")
