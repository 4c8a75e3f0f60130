"""Request a report from the report generator."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Literal

from pydantic import Field

from ..config import settings
from ..engine.errors import ActionConfigError, EntityNotFoundError
from ..services import review_svc
from ..services.report_svc import ReportRequest
from .base import Action, ActionConfig


class GenerateReportConfig(ActionConfig):
    report_type: Literal["reviews", "sentiment", "summary", "trends", "location_comparison"] = "reviews"
    format: Literal["pdf", "excel", "csv"] = "pdf"
    date_from: date | None = None
    date_to: date | None = None
    user_id: Any = None
    email_recipients: list[str] = Field(default_factory=list)


class GenerateReportAction(Action):
    type = "generate_report"
    name = "Generate Report"
    description = "Generate and optionally email a report"
    config_model = GenerateReportConfig

    async def run(self, db, config: GenerateReportConfig, ctx, workflow):
        user_ref = config.user_id or workflow.created_by
        user_id = review_svc.as_uuid(user_ref)
        if user_id is None:
            raise ActionConfigError("No user_id configured and the workflow has no creator")
        user = await review_svc.get_user(db, user_id)
        if not user:
            raise EntityNotFoundError("User", user_id)

        location_id = ctx.get_uuid("location_id")
        if location_id and not await review_svc.get_location(db, location_id):
            raise EntityNotFoundError("Location", location_id)

        today = date.today()
        request = ReportRequest(
            report_type=config.report_type,
            format=config.format,
            date_from=(config.date_from or today - timedelta(days=settings.default_report_days)).isoformat(),
            date_to=(config.date_to or today).isoformat(),
            location_id=location_id,
            email_recipients=config.email_recipients,
        )
        report = await self.services.reports.generate(db, workflow.tenant_id, user.id, request)
        return {
            "report_id": str(report.id),
            "report_type": report.report_type,
            "format": report.format,
            "status": report.status,
            "location_id": str(location_id) if location_id else None,
            "email_sent": bool(config.email_recipients),
        }
