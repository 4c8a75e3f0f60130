"""Tests for the built-in actions."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from review_automation.engine.context import ExecutionContext
from review_automation.engine.errors import ActionConfigError, EntityNotFoundError, UnknownActionError
from review_automation.models import Report, ReviewResponse, TenantMember, User

from .conftest import FakeChatClient


def ctx_for(workflow, **data):
    return ExecutionContext({k: str(v) for k, v in data.items()}, workflow.to_dict(), uuid.uuid4())


class TestRegistry:
    def test_default_types(self, registry):
        assert set(registry.types()) == {
            "ai_response", "notification", "assign_user", "add_tag", "update_listing", "generate_report",
        }

    def test_unknown_type(self, registry):
        with pytest.raises(UnknownActionError):
            registry.resolve("send_fax")

    def test_describe(self, registry):
        described = registry.describe_all()["add_tag"]
        assert described["name"] == "Add Tag"
        assert "tags" in described["config_schema"]["properties"]

    def test_validate_reports_errors(self, registry):
        assert registry.resolve("add_tag").validate({}) != []
        assert registry.resolve("add_tag").validate({"tags": ["vip"]}) == []
        assert registry.resolve("notification").validate({"channel": "fax", "recipients": ["a@b.c"], "message": "hi"}) != []


@pytest.mark.asyncio
class TestAddTag:
    async def test_merges_tags_in_order(self, db, registry, make_review, make_workflow):
        review = await make_review(meta={"tags": ["seen", "vip"]})
        workflow = await make_workflow()
        result = await registry.resolve("add_tag").execute(
            db, {"tags": ["vip", "urgent", "urgent"]}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["tags_added"] == ["urgent"]
        assert result["all_tags"] == ["seen", "vip", "urgent"]
        assert review.tags == ["seen", "vip", "urgent"]

    async def test_requires_tags(self, db, registry, make_review, make_workflow):
        review = await make_review()
        workflow = await make_workflow()
        with pytest.raises(ActionConfigError):
            await registry.resolve("add_tag").execute(db, {"tags": []}, ctx_for(workflow, review_id=review.id), workflow)

    async def test_missing_review(self, db, registry, make_workflow):
        workflow = await make_workflow()
        with pytest.raises(EntityNotFoundError):
            await registry.resolve("add_tag").execute(
                db, {"tags": ["x"]}, ctx_for(workflow, review_id=uuid.uuid4()), workflow
            )


@pytest.mark.asyncio
class TestAssignUser:
    async def test_creates_draft_and_assigns(self, db, registry, make_review, make_workflow, staff):
        review = await make_review()
        workflow = await make_workflow()
        result = await registry.resolve("assign_user").execute(
            db, {"user_id": str(staff.id)}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["assigned_user_name"] == "Sam Staff"
        responses = (await db.execute(select(ReviewResponse))).scalars().all()
        assert len(responses) == 1
        assert responses[0].status == "draft"
        assert responses[0].user_id == staff.id

    async def test_reuses_existing_response(self, db, registry, make_review, make_workflow, staff, owner):
        review = await make_review()
        db.add(ReviewResponse(review_id=review.id, user_id=owner.id, content="Hello", status="approved"))
        await db.commit()
        workflow = await make_workflow()
        await registry.resolve("assign_user").execute(
            db, {"user_id": str(staff.id)}, ctx_for(workflow, review_id=review.id), workflow
        )
        responses = (await db.execute(select(ReviewResponse))).scalars().all()
        assert len(responses) == 1
        assert responses[0].user_id == staff.id
        assert responses[0].status == "approved"

    async def test_unknown_user(self, db, registry, make_review, make_workflow):
        review = await make_review()
        workflow = await make_workflow()
        with pytest.raises(EntityNotFoundError):
            await registry.resolve("assign_user").execute(
                db, {"user_id": str(uuid.uuid4())}, ctx_for(workflow, review_id=review.id), workflow
            )


@pytest.mark.asyncio
class TestNotification:
    async def test_email_with_roles_and_templates(
        self, db, registry, email_sender, make_review, make_workflow, tenant, staff
    ):
        admin = User(name="Ada Admin", email="admin@acme.test")
        db.add(admin)
        await db.flush()
        db.add(TenantMember(tenant_id=tenant.id, user_id=admin.id, role="admin"))
        await db.commit()
        review = await make_review(rating=2, content="Cold food")
        workflow = await make_workflow(name="Alert team")
        config = {
            "channel": "email",
            "recipients": [
                "ops@acme.test",
                str(staff.id),
                {"type": "workflow_creator"},
                {"type": "tenant_admins"},
                {"type": "email", "address": "ops@acme.test"},
            ],
            "subject": "{{review.rating}}-star review at {{location.name}}",
            "message": "{{review.author}} wrote: {{review.content}} ({{workflow.name}})",
            "priority": "high",
        }

        result = await registry.resolve("notification").execute(
            db, config, ctx_for(workflow, review_id=review.id), workflow
        )

        recipients = [sent["recipient"] for sent in email_sender.sent]
        assert recipients == ["ops@acme.test", "staff@acme.test", "owner@acme.test", "admin@acme.test"]
        assert result["recipients_count"] == 4
        assert result["sent_count"] == 4
        assert result["failed_count"] == 0
        first = email_sender.sent[0]
        assert first["subject"] == "2-star review at Acme Downtown"
        assert first["message"] == "Pat Customer wrote: Cold food (Alert team)"
        assert first["priority"] == "high"

    async def test_per_recipient_failures_are_counted(self, db, registry, email_sender, make_workflow):
        email_sender.fail_for = {"bad@acme.test"}
        workflow = await make_workflow()
        result = await registry.resolve("notification").execute(
            db,
            {"recipients": ["good@acme.test", "bad@acme.test"], "message": "Daily digest {{date}}"},
            ctx_for(workflow),
            workflow,
        )
        assert result["sent_count"] == 1
        assert result["failed_count"] == 1
        assert result["results"][1]["error"] == "rejected"
        assert "{{date}}" not in email_sender.sent[0]["message"]

    async def test_no_resolvable_recipients_fails(self, db, registry, make_workflow):
        workflow = await make_workflow()
        with pytest.raises(ActionConfigError):
            await registry.resolve("notification").execute(
                db, {"recipients": [str(uuid.uuid4())], "message": "hi"}, ctx_for(workflow), workflow
            )

    async def test_unsupported_channel_fails(self, db, registry, make_workflow):
        workflow = await make_workflow()
        with pytest.raises(ActionConfigError):
            await registry.resolve("notification").execute(
                db, {"channel": "fax", "recipients": ["a@acme.test"], "message": "hi"}, ctx_for(workflow), workflow
            )

    async def test_slack_channel(self, db, registry, slack_sender, make_workflow):
        workflow = await make_workflow()
        result = await registry.resolve("notification").execute(
            db, {"channel": "slack", "recipients": ["#reviews"], "message": "New review"}, ctx_for(workflow), workflow
        )
        assert slack_sender.sent[0]["recipient"] == "#reviews"
        assert result["type"] == "slack"

    async def test_webhook_posts_once(self, db, registry, webhook_sender, make_review, make_workflow):
        review = await make_review()
        workflow = await make_workflow()
        result = await registry.resolve("notification").execute(
            db,
            {
                "channel": "webhook",
                "webhook_url": "https://hooks.acme.test/reviews",
                "recipients": ["ops@acme.test", "cx@acme.test"],
                "message": "Review {{review.rating}}",
            },
            ctx_for(workflow, review_id=review.id),
            workflow,
        )
        assert len(webhook_sender.sent) == 1
        payload = webhook_sender.sent[0]["payload"]
        assert payload["message"] == "Review 5"
        assert payload["context"]["review_id"] == str(review.id)
        assert result["sent_count"] == 1

    async def test_webhook_requires_url(self, registry):
        errors = registry.resolve("notification").validate(
            {"channel": "webhook", "recipients": ["a@acme.test"], "message": "x"}
        )
        assert any("webhook_url" in err for err in errors)


@pytest.mark.asyncio
class TestUpdateListing:
    async def test_only_writable_fields_change(self, db, registry, location, make_workflow):
        workflow = await make_workflow()
        result = await registry.resolve("update_listing").execute(
            db,
            {"updates": {"phone": "555-0100", "tenant_id": str(uuid.uuid4()), "rating": 5}},
            ctx_for(workflow, location_id=location.id),
            workflow,
        )
        assert result["updated_fields"] == ["phone"]
        assert result["sync_triggered"] is False
        assert location.phone == "555-0100"


@pytest.mark.asyncio
class TestGenerateReport:
    async def test_defaults_and_creator(self, db, registry, location, make_workflow, owner):
        workflow = await make_workflow()
        result = await registry.resolve("generate_report").execute(
            db, {"email_recipients": ["boss@acme.test"]}, ctx_for(workflow, location_id=location.id), workflow
        )
        report = await db.get(Report, uuid.UUID(result["report_id"]))
        assert report.user_id == owner.id
        assert report.report_type == "reviews"
        assert report.format == "pdf"
        assert report.status == "pending"
        assert report.location_id == location.id
        assert result["email_sent"] is True

    async def test_invalid_format(self, registry):
        assert registry.resolve("generate_report").validate({"format": "docx"}) != []


@pytest.mark.asyncio
class TestAIResponseAction:
    async def test_skips_existing_response(self, db, registry, make_review, make_workflow, owner):
        review = await make_review()
        db.add(ReviewResponse(review_id=review.id, user_id=owner.id, content="Thanks"))
        await db.commit()
        workflow = await make_workflow()
        result = await registry.resolve("ai_response").execute(
            db, {}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["skipped"] is True
        assert result["reason"] == "Response already exists"

    async def test_unconfigured_ai_leaves_draft(self, db, registry, make_review, make_workflow):
        review = await make_review(rating=1, content="Awful")
        workflow = await make_workflow(ai_enabled=True)
        result = await registry.resolve("ai_response").execute(
            db, {}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["ai_failed"] is True
        response = (await db.execute(select(ReviewResponse))).scalar_one()
        assert response.status == "draft"
        assert response.rejection_reason
        assert response.user_id == workflow.created_by

    async def test_declined_decision_leaves_draft(self, db, services, registry, make_review, make_workflow):
        services.ai.chat = FakeChatClient('{"should_respond": false, "reason": "Escalate"}')
        review = await make_review(rating=2)
        workflow = await make_workflow()
        result = await registry.resolve("ai_response").execute(
            db, {}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["ai_failed"] is True
        assert result["ai_decision"]["should_respond"] is False
        response = (await db.execute(select(ReviewResponse))).scalar_one()
        assert response.rejection_reason == "AI generation failed: Escalate"

    async def test_service_exception_leaves_draft(self, db, services, registry, make_review, make_workflow):
        async def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        services.ai.generate_intelligent_response = boom
        review = await make_review()
        workflow = await make_workflow()
        result = await registry.resolve("ai_response").execute(
            db, {}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["error"] == "kaboom"
        response = (await db.execute(select(ReviewResponse))).scalar_one()
        assert response.rejection_reason == "AI action failed: kaboom"

    async def test_auto_publish(self, db, services, registry, make_review, make_workflow):
        reply = "Thank you so much for the lovely words, we look forward to seeing you again!"
        services.ai.chat = FakeChatClient(
            '{"should_respond": true, "confidence": 0.95, "complexity": "simple"}', reply
        )
        services.ai.drafter.chat = services.ai.chat
        review = await make_review(rating=3, content="Decent visit overall")
        workflow = await make_workflow(ai_config={"auto_approval": True, "require_approval": False})
        result = await registry.resolve("ai_response").execute(
            db, {"auto_publish": True}, ctx_for(workflow, review_id=review.id), workflow
        )
        assert result["auto_approved"] is True
        assert result["status"] == "published"
