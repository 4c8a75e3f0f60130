"""Append-only audit log for automation workflows."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, utcnow


class AutomationLog(Base, UUIDMixin):
    """Audit trail entry for a workflow or one of its executions."""

    __tablename__ = "automation_log"

    workflow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("automation_workflow.id", ondelete="SET NULL"), default=None, index=True
    )
    execution_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("automation_execution.id", ondelete="SET NULL"), default=None, index=True
    )
    level: Mapped[str] = mapped_column(String(10), default="info")  # debug/info/warning/error
    event: Mapped[str] = mapped_column(String(100))
    message: Mapped[str | None] = mapped_column(Text, default=None)
    context: Mapped[dict | None] = mapped_column(JSON, default=None)
    action_type: Mapped[str | None] = mapped_column(String(50), default=None)
    action_index: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<AutomationLog [{self.level}] {self.event}>"
