"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Depends

from ..core.dependencies import require_license

router = APIRouter()


# ── Health (no license) ──────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "ok", "service": "zapwa-agent"}


# ── V1 routes (license required) ─────────────────────────────────────

from .agents import agents_router
from .chat import chat_router
from .chat_logs import chat_logs_router

router.include_router(chat_router, prefix="/v1", dependencies=[Depends(require_license)])
router.include_router(agents_router, prefix="/v1", dependencies=[Depends(require_license)])
router.include_router(chat_logs_router, prefix="/v1", dependencies=[Depends(require_license)])
