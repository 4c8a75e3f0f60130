"""Execution history, audit log and statistics queries."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.execution import STATUS_COMPLETED, STATUS_FAILED, AutomationExecution
from ..models.log import AutomationLog
from ..models.workflow import AutomationWorkflow


@dataclass
class ExecutionPage:
    items: list[AutomationExecution]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.per_page))


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _date_filters(stmt, column, date_from: date | None, date_to: date | None):
    # Inclusive on whole days
    if date_from:
        stmt = stmt.where(column >= _day_start(date_from))
    if date_to:
        stmt = stmt.where(column < _day_start(date_to + timedelta(days=1)))
    return stmt


async def get_execution(db: AsyncSession, execution_id: uuid.UUID) -> AutomationExecution | None:
    return await db.get(AutomationExecution, execution_id)


async def list_executions(
    db: AsyncSession,
    workflow_id: uuid.UUID | None = None,
    tenant_id: uuid.UUID | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    per_page: int = 15,
) -> ExecutionPage:
    """Execution history, newest first."""
    stmt = select(AutomationExecution)
    if workflow_id:
        stmt = stmt.where(AutomationExecution.workflow_id == workflow_id)
    if tenant_id:
        stmt = stmt.join(
            AutomationWorkflow, AutomationWorkflow.id == AutomationExecution.workflow_id
        ).where(AutomationWorkflow.tenant_id == tenant_id)
    if status:
        stmt = stmt.where(AutomationExecution.status == status)
    stmt = _date_filters(stmt, AutomationExecution.created_at, date_from, date_to)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    page = max(page, 1)
    stmt = (
        stmt.order_by(AutomationExecution.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(stmt)
    return ExecutionPage(list(result.scalars().all()), total, page, per_page)


async def list_logs(
    db: AsyncSession,
    workflow_id: uuid.UUID | None = None,
    execution_id: uuid.UUID | None = None,
    level: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 100,
) -> list[AutomationLog]:
    """Audit log entries in the order they were written, whole days inclusive."""
    stmt = select(AutomationLog)
    if workflow_id:
        stmt = stmt.where(AutomationLog.workflow_id == workflow_id)
    if execution_id:
        stmt = stmt.where(AutomationLog.execution_id == execution_id)
    if level:
        stmt = stmt.where(AutomationLog.level == level)
    stmt = _date_filters(stmt, AutomationLog.created_at, date_from, date_to)
    stmt = stmt.order_by(AutomationLog.created_at.asc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def record_log(
    db: AsyncSession,
    workflow_id: uuid.UUID | None,
    event: str,
    message: str,
    level: str = "info",
    context: dict | None = None,
    execution_id: uuid.UUID | None = None,
) -> AutomationLog:
    """Add an audit entry to the session; the caller commits."""
    entry = AutomationLog(
        workflow_id=workflow_id,
        execution_id=execution_id,
        level=level,
        event=event,
        message=message,
        context=context,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


async def get_stats(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict[str, Any]:
    """Workflow and execution totals for a tenant."""
    wf_filter = AutomationWorkflow.tenant_id == tenant_id

    async def count_workflows(*criteria) -> int:
        stmt = select(func.count(AutomationWorkflow.id)).where(wf_filter, *criteria)
        return (await db.execute(stmt)).scalar_one()

    total_workflows = await count_workflows()
    active = await count_workflows(AutomationWorkflow.is_active.is_(True))
    ai_enabled = await count_workflows(AutomationWorkflow.ai_enabled.is_(True))

    status_stmt = (
        select(AutomationExecution.status, func.count(AutomationExecution.id))
        .join(AutomationWorkflow, AutomationWorkflow.id == AutomationExecution.workflow_id)
        .where(wf_filter)
        .group_by(AutomationExecution.status)
    )
    status_stmt = _date_filters(status_stmt, AutomationExecution.created_at, date_from, date_to)
    by_status = {status: count for status, count in (await db.execute(status_stmt)).all()}
    total_executions = sum(by_status.values())
    successful = by_status.get(STATUS_COMPLETED, 0)

    trigger_count = func.count(AutomationWorkflow.id).label("count")
    trigger_stmt = (
        select(AutomationWorkflow.trigger_type, trigger_count)
        .where(wf_filter)
        .group_by(AutomationWorkflow.trigger_type)
        .order_by(trigger_count.desc())
        .limit(5)
    )
    top_triggers = {ttype: count for ttype, count in (await db.execute(trigger_stmt)).all()}

    return {
        "workflows": {
            "total": total_workflows,
            "active": active,
            "inactive": total_workflows - active,
            "ai_enabled": ai_enabled,
        },
        "executions": {
            "total": total_executions,
            "successful": successful,
            "failed": by_status.get(STATUS_FAILED, 0),
            "success_rate": round(successful / total_executions * 100, 1) if total_executions else 0,
            "by_status": by_status,
        },
        "top_triggers": top_triggers,
    }
