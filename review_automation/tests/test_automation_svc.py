"""Tests for routing events to workflows, including the end-to-end review flows."""

from __future__ import annotations

import json

import pytest
from sqlalchemy import select

from review_automation.models import (
    AutomationExecution,
    AutomationLog,
    AutomationWorkflow,
    Review,
    ReviewResponse,
    Tenant,
)
from review_automation.services import automation_svc, event_svc
from review_automation.services.ai_svc import AIAutomationService

from .conftest import FakeChatClient

CONFIDENT_DECISION = json.dumps(
    {
        "should_respond": True,
        "confidence": 0.95,
        "reason": "Clear complaint",
        "suggested_tone": "apologetic",
        "urgency": "high",
        "complexity": "simple",
        "risk_factors": [],
    }
)


async def _response_for(db, review_id):
    result = await db.execute(select(ReviewResponse).where(ReviewResponse.review_id == review_id))
    return result.scalar_one_or_none()


# ── Matching ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_matching_orders_by_priority(db, tenant, make_workflow):
    low = await make_workflow(name="Low", priority=1)
    high = await make_workflow(name="High", priority=50)
    matched = await automation_svc.get_matching_workflows(db, tenant.id, "review_received", {})
    assert [wf.id for wf in matched] == [high.id, low.id]


@pytest.mark.asyncio
async def test_matching_skips_inactive_and_other_triggers(db, tenant, make_workflow):
    await make_workflow(name="Off", is_active=False)
    await make_workflow(name="Positive", trigger_type="positive_review")
    on = await make_workflow(name="On")
    matched = await automation_svc.get_matching_workflows(db, tenant.id, "review_received", {"rating": 2})
    assert [wf.id for wf in matched] == [on.id]


@pytest.mark.asyncio
async def test_matching_applies_threshold_and_conditions(db, tenant, make_workflow):
    await make_workflow(name="Strict", trigger_type="negative_review", trigger_config={"rating_threshold": 1})
    google = await make_workflow(
        name="Google only",
        trigger_type="negative_review",
        conditions=[{"field": "platform", "operator": "equals", "value": "google"}],
    )
    await make_workflow(
        name="Yelp only",
        trigger_type="negative_review",
        conditions=[{"field": "platform", "operator": "equals", "value": "yelp"}],
    )
    matched = await automation_svc.get_matching_workflows(
        db, tenant.id, "negative_review", {"rating": 2, "platform": "google"}
    )
    assert [wf.id for wf in matched] == [google.id]


@pytest.mark.asyncio
async def test_resolve_tenant_from_review_or_location(db, tenant, location, make_review):
    review = await make_review()
    assert (await automation_svc.resolve_tenant(db, {"review_id": str(review.id)})).id == tenant.id
    assert (await automation_svc.resolve_tenant(db, {"location_id": str(location.id)})).id == tenant.id
    assert await automation_svc.resolve_tenant(db, {"review_id": "not-a-uuid"}) is None


# ── Trigger ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_trigger_without_tenant_does_nothing(db, registry, make_workflow):
    await make_workflow()
    assert await automation_svc.trigger(db, "review_received", {"rating": 5}, registry=registry) == []
    assert (await db.execute(select(AutomationExecution))).first() is None


@pytest.mark.asyncio
async def test_trigger_records_source_and_tenant(db, registry, tenant, make_review, make_workflow):
    review = await make_review()
    await make_workflow()
    [execution] = await automation_svc.trigger(
        db, "review_received", {"review_id": str(review.id)}, "review:abc", registry
    )
    assert execution.trigger_source == "review:abc"
    assert execution.trigger_data["tenant_id"] == str(tenant.id)


@pytest.fixture
def broken_workflows(db, monkeypatch):
    """Workflows named "Broken" write a row, then blow up outside the runner."""
    original = automation_svc.execute_workflow

    async def flaky(session, workflow, *args, **kwargs):
        if workflow.name == "Broken":
            session.add(AutomationLog(workflow_id=workflow.id, event="half-written", message="partial"))
            await session.flush()
            raise RuntimeError("database went away")
        return await original(session, workflow, *args, **kwargs)

    monkeypatch.setattr(automation_svc, "execute_workflow", flaky)


@pytest.mark.asyncio
async def test_workflow_failure_does_not_stop_the_others(
    db, registry, broken_workflows, make_review, make_workflow
):
    review = await make_review()
    await make_workflow(name="Broken", priority=10)
    healthy = await make_workflow(name="Healthy", priority=1)

    executions = await automation_svc.trigger(
        db, "review_received", {"review_id": str(review.id)}, registry=registry
    )

    assert len(executions) == 1
    assert executions[0].workflow_id == healthy.id
    assert executions[0].status == "completed"
    leftovers = await db.execute(select(AutomationLog).where(AutomationLog.event == "half-written"))
    assert leftovers.first() is None


@pytest.mark.asyncio
async def test_failure_does_not_break_the_rating_trigger(
    db, registry, broken_workflows, make_review, make_workflow
):
    await make_workflow(name="Broken", trigger_type="review_received")
    complaints = await make_workflow(
        name="Complaints",
        trigger_type="negative_review",
        actions=[{"type": "add_tag", "config": {"tags": ["complaint"]}}],
    )
    review = await make_review(rating=2, content="Slow and rude")

    executions = await event_svc.handle_review_received(db, review, registry)

    assert [e.workflow_id for e in executions] == [complaints.id]
    assert executions[0].status == "completed"
    assert review.rating == 2
    assert review.tags == ["complaint"]


@pytest.mark.asyncio
async def test_scheduled_failure_in_one_tenant_spares_the_rest(
    db, registry, broken_workflows, make_workflow
):
    await make_workflow(name="Broken", trigger_type="scheduled", priority=10)
    local = await make_workflow(name="Local daily", trigger_type="scheduled")
    other = Tenant(name="Other Co", slug="other-co")
    db.add(other)
    await db.flush()
    remote = AutomationWorkflow(
        tenant_id=other.id,
        name="Remote daily",
        trigger_type="scheduled",
        actions=[{"type": "add_tag", "config": {"tags": ["x"]}}],
        execution_count=0,
    )
    db.add(remote)
    await db.commit()

    executions = await event_svc.handle_scheduled_trigger(db, "daily", registry=registry)

    assert sorted(str(e.workflow_id) for e in executions) == sorted([str(local.id), str(remote.id)])
    assert [e.status for e in executions] == ["completed", "completed"]
    assert other.name == "Other Co"


# ── End-to-end review flows ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_negative_review_low_confidence_leaves_draft(db, registry, services, make_review, make_workflow):
    services.ai = AIAutomationService(
        FakeChatClient(json.dumps({"should_respond": True, "confidence": 0.6, "complexity": "simple"}))
    )
    workflow = await make_workflow(
        trigger_type="negative_review",
        trigger_config={"rating_threshold": 3},
        actions=[{"type": "ai_response", "config": {"skip_existing": True}}],
        ai_enabled=True,
        ai_config={"safety_level": "high", "require_approval": True},
    )
    review = await make_review(rating=1, content="terrible, will sue")
    review_id = review.id

    executions = await event_svc.handle_review_received(db, review, registry)

    [execution] = [e for e in executions if e.workflow_id == workflow.id]
    assert execution.status == "completed"
    assert execution.trigger_source == f"review:{review_id}"
    response = await _response_for(db, review_id)
    assert response.status == "draft"
    assert response.ai_generated is False
    assert response.rejection_reason == "AI generation failed: Low confidence - safety override"


@pytest.mark.asyncio
async def test_negative_review_risky_content_held_for_review(
    db, registry, services, make_review, make_workflow
):
    services.ai = AIAutomationService(
        FakeChatClient(
            CONFIDENT_DECISION,
            "We're truly sorry about your visit. Please reach out so we can make this right.",
        )
    )
    await make_workflow(
        trigger_type="negative_review",
        trigger_config={"rating_threshold": 3},
        actions=[{"type": "ai_response", "config": {"skip_existing": True}}],
        ai_enabled=True,
        ai_config={"safety_level": "high", "require_approval": True, "auto_approval": True},
    )
    review = await make_review(rating=1, content="terrible, will sue")
    review_id = review.id

    [execution] = await event_svc.handle_review_received(db, review, registry)

    assert execution.status == "completed"
    assert execution.ai_involved is True
    response = await _response_for(db, review_id)
    assert response.status == "draft"
    assert response.ai_generated is True
    assert response.rejection_reason == "AI Safety: Contains sensitive keyword: sue"


@pytest.mark.asyncio
async def test_positive_review_gets_tagged(db, registry, make_review, make_workflow):
    await make_workflow(
        trigger_type="positive_review",
        trigger_config={"rating_threshold": 4},
        actions=[{"type": "add_tag", "config": {"tags": ["vip"]}}],
    )
    review = await make_review(rating=5)
    review_id = review.id

    [execution] = await event_svc.handle_review_received(db, review, registry)

    assert execution.status == "completed"
    assert execution.actions_completed == 1
    assert execution.actions_failed == 0
    stored = await db.get(Review, review_id)
    await db.refresh(stored)
    assert "vip" in stored.tags


@pytest.mark.asyncio
async def test_review_fires_received_and_negative_workflows(db, registry, make_review, make_workflow):
    received = await make_workflow(name="Everything", trigger_type="review_received")
    negative = await make_workflow(
        name="Complaints",
        trigger_type="negative_review",
        trigger_config={"rating_threshold": 3},
        actions=[{"type": "add_tag", "config": {"tags": ["complaint"]}}],
    )
    review = await make_review(rating=2, content="Slow and rude")

    executions = await event_svc.handle_review_received(db, review, registry)

    assert sorted(e.workflow_id for e in executions) == sorted([received.id, negative.id])
    assert {e.status for e in executions} == {"completed"}
    assert len({e.id for e in executions}) == 2
