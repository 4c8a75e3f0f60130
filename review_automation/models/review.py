"""Review, sentiment and response models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TenantMixin, TimestampMixin, UUIDMixin


class Review(UUIDMixin, TimestampMixin, Base):
    """A customer review collected from a platform for one location."""

    __tablename__ = "review"

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("location.id", ondelete="CASCADE"), index=True
    )
    platform: Mapped[str] = mapped_column(String(50), default="google")
    external_id: Mapped[str | None] = mapped_column(String(200), default=None)
    author_name: Mapped[str | None] = mapped_column(String(200), default=None)
    rating: Mapped[int | None] = mapped_column(Integer, default=None)
    content: Mapped[str | None] = mapped_column(Text, default=None)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, default=None)

    location: Mapped["Location"] = relationship(back_populates="reviews")  # noqa: F821
    sentiment: Mapped[ReviewSentiment | None] = relationship(
        back_populates="review", cascade="all, delete-orphan", uselist=False
    )

    @property
    def tags(self) -> list[str]:
        return list((self.meta or {}).get("tags", []))

    def __repr__(self) -> str:
        return f"<Review {self.platform} rating={self.rating}>"


class ReviewSentiment(UUIDMixin, TimestampMixin, Base):
    """Output of the (external) sentiment model for a review."""

    __tablename__ = "review_sentiment"

    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("review.id", ondelete="CASCADE"), unique=True, index=True
    )
    sentiment: Mapped[str] = mapped_column(String(20))  # positive/neutral/negative
    sentiment_score: Mapped[float] = mapped_column(Float, default=0.5)
    emotions: Mapped[dict | None] = mapped_column(JSON, default=None)
    topics: Mapped[list | None] = mapped_column(JSON, default=None)
    keywords: Mapped[list | None] = mapped_column(JSON, default=None)

    review: Mapped[Review] = relationship(back_populates="sentiment")

    def top_emotions(self, limit: int = 3) -> list[str]:
        ranked = sorted((self.emotions or {}).items(), key=lambda item: item[1], reverse=True)
        return [name for name, _ in ranked[:limit]]


class ReviewResponse(UUIDMixin, TimestampMixin, Base):
    """The reply to a review. At most one per review."""

    __tablename__ = "review_response"

    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("review.id", ondelete="CASCADE"), unique=True, index=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id", ondelete="SET NULL"), default=None
    )
    content: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(
        String(20), default="draft"
    )  # draft/approved/published/rejected
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    tone: Mapped[str | None] = mapped_column(String(20), default=None)
    language: Mapped[str] = mapped_column(String(10), default="en")
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    brand_voice_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("brand_voice.id", ondelete="SET NULL"), default=None
    )

    def __repr__(self) -> str:
        return f"<ReviewResponse {self.status} ai={self.ai_generated}>"


class BrandVoice(UUIDMixin, TimestampMixin, TenantMixin, Base):
    """Tenant writing guidelines fed to the response drafter."""

    __tablename__ = "brand_voice"

    name: Mapped[str] = mapped_column(String(200))
    guidelines: Mapped[str] = mapped_column(Text, default="")
    example_responses: Mapped[list | None] = mapped_column(JSON, default=None)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
