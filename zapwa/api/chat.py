"""
Chat API.

POST /v1/ai/chat — one customer message in, the agent's reply out.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import require_license, get_db
from ..orchestrator.orchestrator import handle_chat_message

logger = logging.getLogger(__name__)

chat_router = APIRouter(prefix="/ai", tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: str = Field(min_length=1)
    customer_identifier: str = Field(min_length=1, alias="customerIdentifier")


class ChatReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    response: str


class ChatResponse(BaseModel):
    success: bool = True
    message: str = "Reply generated successfully"
    data: ChatReply


@chat_router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    """Send a customer message to the store's sales agent."""
    result = await handle_chat_message(
        db=db,
        license_id=license_id,
        session_id=request.session_id,
        user_message=request.message,
        customer_identifier=request.customer_identifier,
    )
    return ChatResponse(data=ChatReply(session_id=result.session_id, response=result.response))
