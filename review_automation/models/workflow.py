"""Automation workflow model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TenantMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from .execution import AutomationExecution


class AutomationWorkflow(UUIDMixin, TimestampMixin, TenantMixin, Base):
    """A tenant-defined trigger -> conditions -> actions rule."""

    __tablename__ = "automation_workflow"

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id", ondelete="SET NULL"), default=None
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    trigger_type: Mapped[str] = mapped_column(String(50), index=True)
    trigger_config: Mapped[dict | None] = mapped_column(JSON, default=None)
    conditions: Mapped[list | None] = mapped_column(JSON, default=None)
    actions: Mapped[list] = mapped_column(JSON, default=list)
    ai_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_config: Mapped[dict | None] = mapped_column(JSON, default=None)

    execution_count: Mapped[int] = mapped_column(Integer, default=0)
    last_executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_successful_execution_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    executions: Mapped[list[AutomationExecution]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe snapshot handed to actions as ``context["workflow"]``."""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "created_by": str(self.created_by) if self.created_by else None,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "priority": self.priority,
            "trigger_type": self.trigger_type,
            "trigger_config": self.trigger_config or {},
            "conditions": self.conditions or [],
            "actions": self.actions or [],
            "ai_enabled": self.ai_enabled,
            "ai_config": self.ai_config or {},
            "execution_count": self.execution_count,
        }

    def __repr__(self) -> str:
        return f"<AutomationWorkflow {self.name!r} ({self.trigger_type}, p={self.priority})>"
