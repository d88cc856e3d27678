"""
AI agent configurations — per-license behaviors for the sales chat agent.

Invariants:
  - The first agent created for a license is active.
  - Exactly one agent per license is active once any exists.
  - The active agent cannot be deleted.
  - Activation is one transaction: deactivate the others, activate one.
"""

import logging
import math
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, NotFoundError
from ..models.agent import AgentConfiguration
from ..models.base import utcnow

logger = logging.getLogger(__name__)


async def get_active_agent(db: AsyncSession, license_id: str) -> Optional[AgentConfiguration]:
    result = await db.execute(
        select(AgentConfiguration)
        .where(
            AgentConfiguration.license_id == license_id,
            AgentConfiguration.is_active == True,  # noqa: E712
        )
        .order_by(AgentConfiguration.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_agent(db: AsyncSession, license_id: str, agent_id: str) -> AgentConfiguration:
    result = await db.execute(
        select(AgentConfiguration).where(
            AgentConfiguration.id == agent_id,
            AgentConfiguration.license_id == license_id,
        )
    )
    agent = result.scalar_one_or_none()
    if agent is None:
        raise NotFoundError("AI Agent not found.")
    return agent


async def create_agent(db: AsyncSession, license_id: str, name: str, behavior: str) -> AgentConfiguration:
    """Create an agent. The first one for a license becomes active."""
    existing = await db.scalar(
        select(func.count())
        .select_from(AgentConfiguration)
        .where(AgentConfiguration.license_id == license_id)
    )
    is_first = (existing or 0) == 0

    agent = AgentConfiguration(
        license_id=license_id,
        name=name,
        behavior=behavior,
        is_active=is_first,
    )
    db.add(agent)
    await db.flush()
    logger.info("Created agent %s for license %s (active=%s)", agent.id, license_id, is_first)
    return agent


async def list_agents(db: AsyncSession, license_id: str, page: int = 1, limit: int = 10) -> dict:
    """Paginated agents for a license, newest first."""
    page = max(page, 1)
    limit = max(limit, 1)
    where = AgentConfiguration.license_id == license_id

    total = await db.scalar(
        select(func.count()).select_from(AgentConfiguration).where(where)
    ) or 0
    total_pages = math.ceil(total / limit)

    result = await db.execute(
        select(AgentConfiguration)
        .where(where)
        .order_by(AgentConfiguration.created_at.desc(), AgentConfiguration.id.desc())
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


async def update_agent(
    db: AsyncSession,
    license_id: str,
    agent_id: str,
    name: Optional[str] = None,
    behavior: Optional[str] = None,
) -> AgentConfiguration:
    agent = await get_agent(db, license_id, agent_id)
    if name is not None:
        agent.name = name
    if behavior is not None:
        agent.behavior = behavior
    await db.flush()
    return agent


async def delete_agent(db: AsyncSession, license_id: str, agent_id: str) -> str:
    agent = await get_agent(db, license_id, agent_id)
    if agent.is_active:
        raise ConflictError("Cannot delete the active agent. Please activate another agent first.")
    await db.delete(agent)
    await db.flush()
    logger.info("Deleted agent %s for license %s", agent_id, license_id)
    return agent_id


async def set_active_agent(db: AsyncSession, license_id: str, agent_id: str) -> AgentConfiguration:
    """Make one agent the active one for its license."""
    agent = await get_agent(db, license_id, agent_id)

    # Both statements share the request's transaction: committed together
    # by get_db() or rolled back together on error.
    await db.execute(
        update(AgentConfiguration)
        .where(
            AgentConfiguration.license_id == license_id,
            AgentConfiguration.id != agent_id,
        )
        .values(is_active=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    agent.is_active = True
    agent.updated_at = utcnow()
    await db.flush()

    logger.info("Activated agent %s for license %s", agent_id, license_id)
    return agent
