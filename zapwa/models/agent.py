"""
AI agent configurations. Each license can keep several named behaviors;
exactly one of them is active and feeds the system prompt.
"""

from sqlalchemy import String, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from .base import LicenseBase


class AgentConfiguration(LicenseBase):
    __tablename__ = "ai_agents"

    name: Mapped[str] = mapped_column(String, nullable=False)
    behavior: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
