"""Tests for the domain event entry points."""

from __future__ import annotations

import uuid

import pytest

from review_automation.engine.errors import WorkflowNotExecutable
from review_automation.models import AutomationWorkflow, Location, ReviewSentiment, Tenant
from review_automation.services import event_svc


async def _sentiment(db, review, label, score):
    sentiment = ReviewSentiment(
        review_id=review.id,
        sentiment=label,
        sentiment_score=score,
        emotions={"anger": 0.8},
        topics=["service"],
        keywords=["slow"],
    )
    db.add(sentiment)
    await db.commit()
    return sentiment


@pytest.mark.asyncio
async def test_review_received_fires_only_matching_rating_trigger(db, registry, make_review, make_workflow):
    negative = await make_workflow(name="Negative", trigger_type="negative_review")
    await make_workflow(name="Positive", trigger_type="positive_review")

    executions = await event_svc.handle_review_received(db, await make_review(rating=3), registry)

    assert [e.workflow_id for e in executions] == [negative.id]


@pytest.mark.asyncio
async def test_review_received_passes_review_fields(db, registry, make_review, make_workflow):
    await make_workflow()
    review = await make_review(rating=4, platform="yelp")

    [execution] = await event_svc.handle_review_received(db, review, registry)

    assert execution.trigger_data["platform"] == "yelp"
    assert execution.trigger_data["rating"] == 4
    assert execution.trigger_data["review_id"] == str(review.id)


@pytest.mark.asyncio
async def test_negative_sentiment_fires(db, registry, make_review, make_workflow):
    workflow = await make_workflow(trigger_type="sentiment_negative")
    review = await make_review(rating=3)
    sentiment = await _sentiment(db, review, "negative", 0.1)

    [execution] = await event_svc.handle_sentiment_analyzed(db, sentiment, registry)

    assert execution.workflow_id == workflow.id
    assert execution.trigger_source == f"sentiment:{sentiment.id}"
    assert execution.trigger_data["keywords"] == ["slow"]


@pytest.mark.asyncio
async def test_positive_sentiment_is_ignored(db, registry, make_review, make_workflow):
    await make_workflow(trigger_type="sentiment_negative")
    sentiment = await _sentiment(db, await make_review(), "positive", 0.9)
    assert await event_svc.handle_sentiment_analyzed(db, sentiment, registry) == []


@pytest.mark.asyncio
async def test_listing_discrepancy_updates_listing(db, registry, location, make_workflow):
    await make_workflow(
        trigger_type="listing_discrepancy",
        actions=[{"type": "update_listing", "config": {"updates": {"phone": "555-0100", "rating": 5}}}],
    )
    location_id = location.id

    [execution] = await event_svc.handle_listing_discrepancy(
        db, {"location_id": str(location_id), "discrepancies": [{"field": "phone"}]}, registry
    )

    assert execution.status == "completed"
    assert execution.results[0]["result"]["updated_fields"] == ["phone"]
    stored = await db.get(Location, location_id)
    await db.refresh(stored)
    assert stored.phone == "555-0100"


@pytest.mark.asyncio
async def test_scheduled_trigger_reaches_every_tenant(db, registry, owner, make_workflow):
    await make_workflow(trigger_type="scheduled", trigger_config={"schedule": "daily"})
    other = Tenant(name="Other Co", slug="other-co")
    db.add(other)
    await db.flush()
    db.add(
        AutomationWorkflow(
            tenant_id=other.id,
            name="Other daily",
            trigger_type="scheduled",
            actions=[{"type": "add_tag", "config": {"tags": ["x"]}}],
            execution_count=0,
        )
    )
    await db.commit()

    executions = await event_svc.handle_scheduled_trigger(db, "daily", registry=registry)

    assert len(executions) == 2
    assert {e.trigger_source for e in executions} == {"scheduled:daily"}


@pytest.mark.asyncio
async def test_scheduled_trigger_for_one_tenant(db, registry, tenant, make_workflow):
    workflow = await make_workflow(trigger_type="scheduled")
    [execution] = await event_svc.handle_scheduled_trigger(
        db, "weekly", {"tenant_id": str(tenant.id)}, registry
    )
    assert execution.workflow_id == workflow.id
    assert execution.trigger_data["schedule"] == "weekly"


@pytest.mark.asyncio
async def test_manual_trigger_runs_workflow(db, registry, staff, make_review, make_workflow):
    review = await make_review()
    workflow = await make_workflow(trigger_type="manual")

    execution = await event_svc.handle_manual_trigger(
        db, workflow.id, {"review_id": str(review.id)}, staff.id, registry
    )

    assert execution.status == "completed"
    assert execution.trigger_source == f"manual:{staff.id}"
    assert execution.trigger_data["triggered_by_user_id"] == str(staff.id)


@pytest.mark.asyncio
async def test_manual_trigger_rejects_inactive_workflow(db, registry, staff, make_workflow):
    workflow = await make_workflow(is_active=False)
    with pytest.raises(WorkflowNotExecutable):
        await event_svc.handle_manual_trigger(db, workflow.id, {}, staff.id, registry)


@pytest.mark.asyncio
async def test_manual_trigger_rejects_unknown_workflow(db, registry, staff):
    with pytest.raises(WorkflowNotExecutable):
        await event_svc.handle_manual_trigger(db, uuid.uuid4(), {}, staff.id, registry)
