"""
FastAPI dependencies. Injected into route handlers.
"""

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db as _get_db


async def get_db() -> AsyncSession:
    """Yields an async DB session per request."""
    async for session in _get_db():
        yield session


async def require_license(
    x_license_id: str = Header(default=""),
) -> str:
    """
    License (tenant) of the caller. Authentication happens upstream;
    the gateway forwards the resolved license in X-License-Id.
    """
    license_id = x_license_id.strip()
    if not license_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No license associated with this request",
        )
    return license_id
