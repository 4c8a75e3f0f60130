"""Location (business listing) model."""

from __future__ import annotations

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TenantMixin, TimestampMixin, UUIDMixin


# Listing fields an automation may overwrite.
WRITABLE_FIELDS = frozenset(
    {"name", "address", "phone", "website", "description", "business_hours"}
)


class Location(UUIDMixin, TimestampMixin, TenantMixin, Base):
    __tablename__ = "location"

    name: Mapped[str] = mapped_column(String(200))
    address: Mapped[str | None] = mapped_column(String(500), default=None)
    phone: Mapped[str | None] = mapped_column(String(50), default=None)
    website: Mapped[str | None] = mapped_column(String(500), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    business_hours: Mapped[dict | None] = mapped_column(JSON, default=None)

    tenant: Mapped["Tenant"] = relationship(back_populates="locations")  # noqa: F821
    reviews: Mapped[list["Review"]] = relationship(  # noqa: F821
        back_populates="location", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Location {self.name!r}>"
