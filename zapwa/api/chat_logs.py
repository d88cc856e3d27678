"""
Chat logs API.

GET /v1/chat-messages — Every message exchanged with the agent, newest first.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import require_license, get_db
from ..services.chat_log import list_chat_messages

chat_logs_router = APIRouter(prefix="/chat-messages", tags=["chat-logs"])


class ChatLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    role: str
    content: str
    sequence_number: int
    tool_calls: Optional[list[dict[str, Any]]] = None
    tool_call_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ChatLogPage(BaseModel):
    success: bool = True
    message: str = "Chat logs retrieved successfully"
    data: dict


@chat_logs_router.get("", response_model=ChatLogPage)
async def list_chat_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    role: Optional[str] = Query(default=None, pattern="^(all|user|assistant|tool)$"),
    search: Optional[str] = None,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    result = await list_chat_messages(
        db, license_id,
        page=page, limit=limit,
        session_id=session_id, role=role, search=search,
    )
    return ChatLogPage(data={
        "items": [ChatLogOut.model_validate(m).model_dump(mode="json") for m in result["items"]],
        "pagination": result["pagination"],
    })
