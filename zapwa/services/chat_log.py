"""
Chat log — paginated view over every message a license's customers exchanged
with the agent. Read only.
"""

import math
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.chat import ChatMessage


async def list_chat_messages(
    db: AsyncSession,
    license_id: str,
    page: int = 1,
    limit: int = 20,
    session_id: Optional[str] = None,
    role: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    """Messages newest first, filtered by session, role ("all" = any) and content."""
    page = max(page, 1)
    limit = max(limit, 1)

    filters = [ChatMessage.license_id == license_id]
    if session_id:
        filters.append(ChatMessage.session_id == session_id)
    if role and role != "all":
        filters.append(ChatMessage.role == role)
    if search:
        filters.append(ChatMessage.content.ilike(f"%{search}%"))

    total = await db.scalar(
        select(func.count()).select_from(ChatMessage).where(*filters)
    ) or 0
    total_pages = math.ceil(total / limit)

    result = await db.execute(
        select(ChatMessage)
        .where(*filters)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.sequence_number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return {
        "items": list(result.scalars().all()),
        "pagination": {
            "total_items": total,
            "total_pages": total_pages,
            "current_page": page,
            "page_size": limit,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }
