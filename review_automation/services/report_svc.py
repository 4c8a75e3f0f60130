"""Report requests."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.report import Report

log = logging.getLogger(__name__)

REPORT_TYPES = ("reviews", "sentiment", "summary", "trends", "location_comparison")
REPORT_FORMATS = ("pdf", "excel", "csv")


@dataclass
class ReportRequest:
    report_type: str
    format: str
    date_from: str
    date_to: str
    location_id: uuid.UUID | None = None
    email_recipients: list[str] = field(default_factory=list)


class ReportGenerator:
    """Queues a report by recording a pending ``Report`` row.

    Rendering the file is someone else's job; the row is the hand-off.
    """

    async def generate(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID | None,
        request: ReportRequest,
    ) -> Report:
        report = Report(
            tenant_id=tenant_id,
            user_id=user_id,
            location_id=request.location_id,
            report_type=request.report_type,
            format=request.format,
            status="pending",
            date_from=request.date_from,
            date_to=request.date_to,
            email_recipients=request.email_recipients or None,
        )
        db.add(report)
        await db.flush()
        log.info("Queued %s report %s (%s)", request.report_type, report.id, request.format)
        return report
