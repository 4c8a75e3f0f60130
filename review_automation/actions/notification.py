"""Send notifications by email, Slack or webhook."""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import Field, model_validator

from ..engine.context import render_template
from ..engine.errors import ActionConfigError
from ..models.base import utcnow
from ..services import review_svc
from ..services.notify_svc import SendResult
from .base import Action, ActionConfig

log = logging.getLogger(__name__)


class NotificationConfig(ActionConfig):
    channel: Literal["email", "slack", "webhook"] = "email"
    recipients: list[str | dict[str, Any]] = Field(min_length=1)
    subject: str = "Automation Notification"
    message: str = Field(min_length=1)
    priority: Literal["low", "normal", "high"] = "normal"
    webhook_url: str | None = None

    @model_validator(mode="after")
    def _webhook_needs_url(self) -> NotificationConfig:
        if self.channel == "webhook" and not self.webhook_url:
            raise ValueError("webhook_url is required for webhook notifications")
        return self


class NotificationAction(Action):
    type = "notification"
    name = "Notification"
    description = "Send notifications via email, Slack, or webhook"
    config_model = NotificationConfig

    async def run(self, db, config: NotificationConfig, ctx, workflow):
        recipients = await self.resolve_recipients(db, config, workflow)
        if not recipients:
            raise ActionConfigError("No recipients found for notification")

        variables = await self.template_variables(db, ctx)
        subject = render_template(config.subject, variables)
        message = render_template(config.message, variables)
        log.info(
            "Sending %s notification to %d recipient(s) for workflow %s",
            config.channel, len(recipients), workflow.id,
        )

        if config.channel == "webhook":
            payload = {
                "message": message,
                "subject": subject,
                "priority": config.priority,
                "context": json.loads(json.dumps(ctx.to_dict(), default=str)),
                "timestamp": utcnow().isoformat(),
            }
            results = [await self.services.webhook.send_payload(config.webhook_url, payload)]
        else:
            sender = self.services.email if config.channel == "email" else self.services.slack
            results: list[SendResult] = []
            for recipient in recipients:
                results.append(await sender.send(recipient, subject, message, config.priority))

        sent = sum(1 for r in results if r.ok)
        return {
            "type": config.channel,
            "recipients_count": len(recipients),
            "sent_count": sent,
            "failed_count": len(results) - sent,
            "results": [dict(r.to_dict(), type=config.channel) for r in results],
        }

    async def resolve_recipients(self, db, config: NotificationConfig, workflow) -> list[str]:
        """Expand emails, user ids and role entries into a de-duplicated address list."""
        addresses: list[str] = []

        def add(address: str | None) -> None:
            if address and address not in addresses:
                addresses.append(address)

        for entry in config.recipients:
            if isinstance(entry, str):
                entry = entry.strip()
                if "@" in entry:
                    add(entry)
                    continue
                user_id = review_svc.as_uuid(entry)
                if user_id:
                    user = await review_svc.get_user(db, user_id)
                    add(user.email if user else None)
                elif config.channel != "email":
                    # Slack channel names and webhook URLs pass through as-is
                    add(entry)
                continue

            kind = entry.get("type", "email")
            if kind == "workflow_creator":
                creator = await review_svc.get_user(db, workflow.created_by) if workflow.created_by else None
                add(creator.email if creator else None)
            elif kind == "tenant_admins":
                for admin in await review_svc.list_tenant_admins(db, workflow.tenant_id):
                    add(admin.email)
            elif kind == "email":
                add(entry.get("address"))
        return addresses

    async def template_variables(self, db, ctx) -> dict[str, Any]:
        variables: dict[str, Any] = {}
        review_id = ctx.get_uuid("review_id")
        review = await review_svc.get_review(db, review_id) if review_id else None
        if review:
            location = await review_svc.get_location(db, review.location_id)
            variables.update({
                "review.content": review.content or "",
                "review.rating": review.rating if review.rating is not None else "N/A",
                "review.author": review.author_name or "Anonymous",
                "review.platform": review.platform or "",
                "location.name": location.name if location else "",
            })
        workflow_data = ctx.get("workflow")
        if isinstance(workflow_data, dict):
            variables["workflow.name"] = workflow_data.get("name", "")
        now = utcnow()
        variables["date"] = now.strftime("%Y-%m-%d")
        variables["datetime"] = now.strftime("%Y-%m-%d %H:%M:%S")
        return variables

