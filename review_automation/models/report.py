"""Report request model."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TenantMixin, TimestampMixin, UUIDMixin


class Report(UUIDMixin, TimestampMixin, TenantMixin, Base):
    """A report requested from the report generator."""

    __tablename__ = "report"

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id", ondelete="SET NULL"), default=None
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("location.id", ondelete="SET NULL"), default=None
    )
    report_type: Mapped[str] = mapped_column(String(50), default="reviews")
    format: Mapped[str] = mapped_column(String(10), default="pdf")
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending/completed/failed
    date_from: Mapped[str] = mapped_column(String(10))
    date_to: Mapped[str] = mapped_column(String(10))
    email_recipients: Mapped[list | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<Report {self.report_type}.{self.format} ({self.status})>"
