"""Entry points that turn domain events into automation triggers."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.errors import WorkflowNotExecutable
from ..engine.registry import ActionRegistry
from ..models.base import utcnow
from ..models.execution import AutomationExecution
from ..models.review import Review, ReviewSentiment
from ..models.tenant import Tenant
from ..models.workflow import AutomationWorkflow
from ..schemas.workflow import TriggerType
from . import automation_svc, review_svc

logger = logging.getLogger(__name__)

NEGATIVE_RATING_MAX = 3
POSITIVE_RATING_MIN = 4
NEGATIVE_SENTIMENT_SCORE = 0.3


async def _review_event_data(db: AsyncSession, review: Review) -> dict[str, Any]:
    location = await review_svc.get_location(db, review.location_id)
    return {
        "review_id": str(review.id),
        "location_id": str(review.location_id),
        "tenant_id": str(location.tenant_id) if location else None,
    }


async def handle_review_received(
    db: AsyncSession, review: Review, registry: ActionRegistry | None = None
) -> list[AutomationExecution]:
    """Fire review_received, then negative_review or positive_review by rating."""
    data = await _review_event_data(db, review)
    data.update(
        platform=review.platform,
        rating=review.rating,
        content=review.content,
        author_name=review.author_name,
    )
    source = f"review:{review.id}"
    rating = data["rating"]

    executions = await automation_svc.trigger(
        db, TriggerType.REVIEW_RECEIVED.value, data, source, registry
    )
    if rating is not None and rating <= NEGATIVE_RATING_MAX:
        executions += await automation_svc.trigger(
            db, TriggerType.NEGATIVE_REVIEW.value, data, source, registry
        )
    elif rating is not None and rating >= POSITIVE_RATING_MIN:
        executions += await automation_svc.trigger(
            db, TriggerType.POSITIVE_REVIEW.value, data, source, registry
        )
    logger.info(
        "Review triggers processed for %s (rating=%s, %d execution(s))",
        data["review_id"], rating, len(executions),
    )
    return executions


async def handle_sentiment_analyzed(
    db: AsyncSession, sentiment: ReviewSentiment, registry: ActionRegistry | None = None
) -> list[AutomationExecution]:
    review = await review_svc.get_review(db, sentiment.review_id)
    if not review:
        logger.warning("Sentiment %s refers to a missing review", sentiment.id)
        return []

    if sentiment.sentiment != "negative" and sentiment.sentiment_score > NEGATIVE_SENTIMENT_SCORE:
        return []

    data = await _review_event_data(db, review)
    data.update(
        sentiment=sentiment.sentiment,
        sentiment_score=sentiment.sentiment_score,
        emotions=sentiment.emotions,
        topics=sentiment.topics,
        keywords=sentiment.keywords,
    )
    return await automation_svc.trigger(
        db, TriggerType.SENTIMENT_NEGATIVE.value, data, f"sentiment:{sentiment.id}", registry
    )


async def handle_listing_discrepancy(
    db: AsyncSession, discrepancy: dict[str, Any], registry: ActionRegistry | None = None
) -> list[AutomationExecution]:
    data = {**discrepancy, "trigger_type": TriggerType.LISTING_DISCREPANCY.value}
    location_id = discrepancy.get("location_id")
    executions = await automation_svc.trigger(
        db,
        TriggerType.LISTING_DISCREPANCY.value,
        data,
        f"listing_discrepancy:{location_id}",
        registry,
    )
    logger.info(
        "Listing discrepancy processed for location %s (%d discrepancies)",
        location_id, len(discrepancy.get("discrepancies") or []),
    )
    return executions


async def handle_scheduled_trigger(
    db: AsyncSession,
    schedule: str,
    context: dict[str, Any] | None = None,
    registry: ActionRegistry | None = None,
) -> list[AutomationExecution]:
    """Fire scheduled workflows.

    Without a tenant reference in ``context`` the trigger is fired once per
    tenant, which is how the periodic run reaches everyone.
    """
    data = {**(context or {}), "schedule": schedule, "triggered_at": utcnow().isoformat()}
    source = f"scheduled:{schedule}"

    if any(data.get(key) for key in ("tenant_id", "review_id", "location_id")):
        return await automation_svc.trigger(
            db, TriggerType.SCHEDULED.value, data, source, registry
        )

    tenant_ids = list((await db.execute(select(Tenant.id))).scalars().all())
    executions: list[AutomationExecution] = []
    for tenant_id in tenant_ids:
        executions += await automation_svc.trigger(
            db, TriggerType.SCHEDULED.value, {**data, "tenant_id": str(tenant_id)}, source, registry
        )
    return executions


async def handle_manual_trigger(
    db: AsyncSession,
    workflow_id,
    context: dict[str, Any] | None,
    user_id,
    registry: ActionRegistry | None = None,
) -> AutomationExecution:
    """Run one workflow directly. Raises WorkflowNotExecutable if missing or inactive."""
    key = review_svc.as_uuid(workflow_id)
    workflow = await db.get(AutomationWorkflow, key) if key else None
    if not workflow or not workflow.is_active:
        raise WorkflowNotExecutable(f"Workflow {workflow_id} cannot be executed")

    data = {
        **(context or {}),
        "triggered_by_user_id": str(user_id),
        "triggered_at": utcnow().isoformat(),
        "tenant_id": str(workflow.tenant_id),
    }
    execution = await automation_svc.execute_workflow(
        db, workflow, data, f"manual:{user_id}", registry
    )
    logger.info("Manual trigger of workflow %s by %s: %s", workflow.id, user_id, execution.status)
    return execution
