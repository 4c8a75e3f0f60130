"""Automation service: routes events to matching workflows and runs them."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.evaluator import matches_conditions
from ..engine.registry import ActionRegistry
from ..engine.runner import WorkflowRunner
from ..engine.triggers import matches_trigger
from ..models.execution import AutomationExecution
from ..models.tenant import Tenant
from ..models.workflow import AutomationWorkflow
from . import review_svc

logger = logging.getLogger(__name__)


async def resolve_tenant(db: AsyncSession, event_data: dict) -> Tenant | None:
    """Find the tenant owning an event: explicit id, then review, then location."""
    if event_data.get("tenant_id"):
        tenant = await review_svc.get_tenant(db, event_data["tenant_id"])
        if tenant:
            return tenant
    if event_data.get("review_id"):
        tenant = await review_svc.tenant_for_review(db, event_data["review_id"])
        if tenant:
            return tenant
    if event_data.get("location_id"):
        return await review_svc.tenant_for_location(db, event_data["location_id"])
    return None


async def get_matching_workflows(
    db: AsyncSession,
    tenant_id,
    trigger_type: str,
    event_data: dict,
) -> list[AutomationWorkflow]:
    """Active workflows for the trigger whose thresholds and conditions match.

    Ordered by priority (highest first), then newest first.
    """
    stmt = (
        select(AutomationWorkflow)
        .where(AutomationWorkflow.tenant_id == tenant_id)
        .where(AutomationWorkflow.trigger_type == trigger_type)
        .where(AutomationWorkflow.is_active.is_(True))
        .order_by(AutomationWorkflow.priority.desc(), AutomationWorkflow.created_at.desc())
    )
    result = await db.execute(stmt)
    return [
        wf
        for wf in result.scalars().all()
        if matches_trigger(trigger_type, wf.trigger_config, event_data)
        and matches_conditions(wf.conditions, event_data)
    ]


async def execute_workflow(
    db: AsyncSession,
    workflow: AutomationWorkflow,
    event_data: dict,
    trigger_source: str | None = None,
    registry: ActionRegistry | None = None,
) -> AutomationExecution:
    runner = WorkflowRunner(db, registry)
    return await runner.run(workflow, event_data, trigger_source)


async def recover_session(db: AsyncSession) -> None:
    """Roll back a failed unit of work and reload what the session still holds.

    Rollback expires every instance, including the caller's review and any
    executions already returned; all of them are reloaded so plain attribute
    reads keep working. Rows that vanished are dropped from the session.
    """
    await db.rollback()
    for instance in list(db.identity_map.values()):
        try:
            await db.refresh(instance)
        except InvalidRequestError:
            db.expunge(instance)


async def trigger(
    db: AsyncSession,
    trigger_type: str,
    event_data: dict[str, Any],
    trigger_source: str | None = None,
    registry: ActionRegistry | None = None,
) -> list[AutomationExecution]:
    """Run every workflow matching an event.

    Never raises for a workflow failure: each workflow is isolated, and the
    executions that did get recorded are returned.
    """
    tenant = await resolve_tenant(db, event_data)
    if not tenant:
        logger.warning(
            "No tenant resolved for %s event (source=%s); dropping it", trigger_type, trigger_source
        )
        return []

    event_data = {**event_data, "tenant_id": str(tenant.id)}
    workflows = await get_matching_workflows(db, tenant.id, trigger_type, event_data)
    if not workflows:
        logger.debug("No %s workflows matched for tenant %s", trigger_type, tenant.id)
        return []

    executions: list[AutomationExecution] = []
    for workflow in workflows:
        workflow_id = workflow.id
        try:
            executions.append(
                await execute_workflow(db, workflow, event_data, trigger_source, registry)
            )
        except Exception:
            logger.exception("Workflow %s failed on %s event", workflow_id, trigger_type)
            await recover_session(db)
    return executions
