"""Execution tracking model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..engine.errors import InvalidTransitionError
from .base import Base, TimestampMixin, UUIDMixin
from .workflow import AutomationWorkflow

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})

_ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_RUNNING},
    STATUS_RUNNING: {STATUS_COMPLETED, STATUS_FAILED},
}


class AutomationExecution(UUIDMixin, TimestampMixin, Base):
    """A single run of a workflow against one event."""

    __tablename__ = "automation_execution"

    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("automation_workflow.id", ondelete="CASCADE"), index=True
    )
    trigger_data: Mapped[dict | None] = mapped_column(JSON, default=None)
    trigger_source: Mapped[str | None] = mapped_column(String(200), default=None)
    status: Mapped[str] = mapped_column(
        String(20), default=STATUS_PENDING, index=True
    )  # pending/running/completed/failed
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    results: Mapped[list | None] = mapped_column(JSON, default=None)
    actions_completed: Mapped[int] = mapped_column(Integer, default=0)
    actions_failed: Mapped[int] = mapped_column(Integer, default=0)
    ai_involved: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_decisions: Mapped[list | None] = mapped_column(JSON, default=None)

    workflow: Mapped[AutomationWorkflow] = relationship(back_populates="executions")

    @property
    def duration(self) -> float | None:
        """Wall-clock seconds between start and completion."""
        if not self.started_at or not self.completed_at:
            return None
        started, completed = self.started_at, self.completed_at
        # SQLite hands back naive datetimes
        if started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        if completed.tzinfo is None:
            completed = completed.replace(tzinfo=timezone.utc)
        return round((completed - started).total_seconds(), 3)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, new_status: str) -> None:
        if new_status not in _ALLOWED_TRANSITIONS.get(self.status, set()):
            raise InvalidTransitionError(
                f"Execution cannot move from {self.status!r} to {new_status!r}"
            )
        self.status = new_status

    def mark_running(self) -> None:
        self._transition(STATUS_RUNNING)
        self.started_at = datetime.now(timezone.utc)

    def mark_completed(self, results: list[dict]) -> None:
        self._transition(STATUS_COMPLETED)
        self.completed_at = datetime.now(timezone.utc)
        self.results = results

    def mark_failed(self, error_message: str, results: list[dict] | None = None) -> None:
        self._transition(STATUS_FAILED)
        self.completed_at = datetime.now(timezone.utc)
        self.error_message = error_message
        if results is not None:
            self.results = results

    def __repr__(self) -> str:
        return (
            f"<AutomationExecution {self.status} "
            f"ok={self.actions_completed} failed={self.actions_failed}>"
        )
