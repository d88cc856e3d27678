"""
AI agent configuration API.

GET    /v1/ai/agents                 — List agents (paginated)
POST   /v1/ai/agents                 — Create an agent
PUT    /v1/ai/agents/{id}            — Update name/behavior
DELETE /v1/ai/agents/{id}            — Delete (not the active one)
PUT    /v1/ai/agents/{id}/activate   — Make it the active agent
"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import require_license, get_db
from ..services import agents as agent_service

logger = logging.getLogger(__name__)

agents_router = APIRouter(prefix="/ai/agents", tags=["agents"])


class AgentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    behavior: str = Field(min_length=1)


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    behavior: Optional[str] = Field(default=None, min_length=1)


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    behavior: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Envelope(BaseModel):
    success: bool = True
    message: str
    data: Any = None


@agents_router.get("", response_model=Envelope)
async def list_agents(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    result = await agent_service.list_agents(db, license_id, page=page, limit=limit)
    return Envelope(
        message="AI Agents retrieved successfully",
        data={
            "items": [AgentOut.model_validate(a) for a in result["items"]],
            "pagination": result["pagination"],
        },
    )


@agents_router.post("", response_model=Envelope, status_code=201)
async def create_agent(
    body: AgentCreate,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    agent = await agent_service.create_agent(db, license_id, body.name, body.behavior)
    return Envelope(message="AI Agent created successfully", data=AgentOut.model_validate(agent))


@agents_router.put("/{agent_id}", response_model=Envelope)
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    agent = await agent_service.update_agent(
        db, license_id, agent_id, name=body.name, behavior=body.behavior,
    )
    return Envelope(message="AI Agent updated successfully", data=AgentOut.model_validate(agent))


@agents_router.delete("/{agent_id}", response_model=Envelope)
async def delete_agent(
    agent_id: str,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    deleted_id = await agent_service.delete_agent(db, license_id, agent_id)
    return Envelope(message="AI Agent deleted successfully", data={"id": deleted_id})


@agents_router.put("/{agent_id}/activate", response_model=Envelope)
async def activate_agent(
    agent_id: str,
    license_id: str = Depends(require_license),
    db: AsyncSession = Depends(get_db),
):
    agent = await agent_service.set_active_agent(db, license_id, agent_id)
    return Envelope(message="AI Agent activated successfully", data=AgentOut.model_validate(agent))
