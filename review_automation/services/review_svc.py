"""Lookups for tenants, locations, reviews and users."""

from __future__ import annotations

import uuid
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.location import Location
from ..models.review import Review, ReviewSentiment
from ..models.tenant import Tenant, TenantMember, User

T = TypeVar("T")


def as_uuid(value: Any) -> uuid.UUID | None:
    """Coerce an id from event data (str or UUID) to a UUID, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def _get(db: AsyncSession, model: type[T], entity_id: Any) -> T | None:
    key = as_uuid(entity_id)
    if key is None:
        return None
    return await db.get(model, key)


async def get_tenant(db: AsyncSession, tenant_id: Any) -> Tenant | None:
    return await _get(db, Tenant, tenant_id)


async def get_location(db: AsyncSession, location_id: Any) -> Location | None:
    return await _get(db, Location, location_id)


async def get_review(db: AsyncSession, review_id: Any) -> Review | None:
    return await _get(db, Review, review_id)


async def get_user(db: AsyncSession, user_id: Any) -> User | None:
    return await _get(db, User, user_id)


async def get_sentiment(db: AsyncSession, review_id: uuid.UUID) -> ReviewSentiment | None:
    stmt = select(ReviewSentiment).where(ReviewSentiment.review_id == review_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def tenant_for_location(db: AsyncSession, location_id: Any) -> Tenant | None:
    location = await get_location(db, location_id)
    if not location:
        return None
    return await db.get(Tenant, location.tenant_id)


async def tenant_for_review(db: AsyncSession, review_id: Any) -> Tenant | None:
    review = await get_review(db, review_id)
    if not review:
        return None
    return await tenant_for_location(db, review.location_id)


async def list_tenant_admins(db: AsyncSession, tenant_id: uuid.UUID) -> list[User]:
    """Users holding the owner or admin role in a tenant."""
    stmt = (
        select(User)
        .join(TenantMember, TenantMember.user_id == User.id)
        .where(TenantMember.tenant_id == tenant_id)
        .where(TenantMember.role.in_(("owner", "admin")))
        .order_by(User.email)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
