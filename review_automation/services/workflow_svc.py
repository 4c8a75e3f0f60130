"""Workflow CRUD service."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.errors import WorkflowValidationError
from ..engine.registry import ActionRegistry, build_default_registry
from ..models.execution import AutomationExecution
from ..models.workflow import AutomationWorkflow
from ..schemas.workflow import WorkflowCreate, WorkflowUpdate, format_validation_errors
from .execution_svc import record_log

logger = logging.getLogger(__name__)


def _parse(model, data):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise WorkflowValidationError(format_validation_errors(exc)) from None


def validate_actions(definition: WorkflowCreate, registry: ActionRegistry) -> list[str]:
    """Check every action type is registered and its config is valid."""
    errors = []
    for index, spec in enumerate(definition.actions):
        if spec.type not in registry:
            errors.append(f"actions.{index}.type: unknown action type {spec.type!r}")
            continue
        errors += [
            f"actions.{index}.config: {err}" for err in registry.resolve(spec.type).validate(spec.config)
        ]
    return errors


def _validated(data: Any, registry: ActionRegistry | None) -> WorkflowCreate:
    definition = _parse(WorkflowCreate, data)
    errors = validate_actions(definition, registry or build_default_registry())
    if errors:
        raise WorkflowValidationError(errors)
    return definition


def _columns(definition: WorkflowCreate) -> dict[str, Any]:
    data = definition.model_dump(mode="json")
    data["created_by"] = definition.created_by
    return data


# ── Workflow CRUD ─────────────────────────────────────────────────────────

async def list_workflows(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    trigger_type: str | None = None,
    is_active: bool | None = None,
    ai_enabled: bool | None = None,
) -> list[AutomationWorkflow]:
    stmt = select(AutomationWorkflow).where(AutomationWorkflow.tenant_id == tenant_id)
    if trigger_type:
        stmt = stmt.where(AutomationWorkflow.trigger_type == trigger_type)
    if is_active is not None:
        stmt = stmt.where(AutomationWorkflow.is_active.is_(is_active))
    if ai_enabled is not None:
        stmt = stmt.where(AutomationWorkflow.ai_enabled.is_(ai_enabled))
    stmt = stmt.order_by(AutomationWorkflow.priority.desc(), AutomationWorkflow.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> AutomationWorkflow | None:
    return await db.get(AutomationWorkflow, workflow_id)


async def create_workflow(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    data: WorkflowCreate | dict,
    registry: ActionRegistry | None = None,
) -> AutomationWorkflow:
    """Validate and store a new workflow. Raises WorkflowValidationError."""
    definition = _validated(data, registry)
    workflow = AutomationWorkflow(tenant_id=tenant_id, execution_count=0, **_columns(definition))
    db.add(workflow)
    await db.flush()
    record_log(
        db, workflow.id, "workflow.created", f"Workflow {workflow.name!r} created",
        context={"trigger_type": workflow.trigger_type, "actions": len(workflow.actions)},
    )
    await db.commit()
    await db.refresh(workflow)
    logger.info("Created workflow %s (%s)", workflow.id, workflow.trigger_type)
    return workflow


async def update_workflow(
    db: AsyncSession,
    workflow_id: uuid.UUID,
    data: WorkflowUpdate | dict,
    registry: ActionRegistry | None = None,
) -> AutomationWorkflow | None:
    """Apply a partial update; the merged definition is validated as a whole."""
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None

    changes = _parse(WorkflowUpdate, data).model_dump(mode="json", exclude_unset=True)
    current = {
        "name": workflow.name,
        "description": workflow.description,
        "created_by": workflow.created_by,
        "is_active": workflow.is_active,
        "priority": workflow.priority,
        "trigger_type": workflow.trigger_type,
        "trigger_config": workflow.trigger_config or {},
        "conditions": workflow.conditions or [],
        "actions": workflow.actions or [],
        "ai_enabled": workflow.ai_enabled,
        "ai_config": workflow.ai_config or {},
    }
    definition = _validated({**current, **changes}, registry)

    for key, value in _columns(definition).items():
        setattr(workflow, key, value)
    record_log(
        db, workflow.id, "workflow.updated", f"Workflow {workflow.name!r} updated",
        context={"fields": sorted(changes)},
    )
    await db.commit()
    await db.refresh(workflow)
    return workflow


async def set_active(db: AsyncSession, workflow_id: uuid.UUID, active: bool) -> AutomationWorkflow | None:
    return await update_workflow(db, workflow_id, {"is_active": active})


async def delete_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> bool:
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return False
    record_log(
        db, None, "workflow.deleted", f"Workflow {workflow.name!r} deleted",
        context={"workflow_id": str(workflow.id), "tenant_id": str(workflow.tenant_id)},
    )
    await db.execute(delete(AutomationExecution).where(AutomationExecution.workflow_id == workflow.id))
    await db.delete(workflow)
    await db.commit()
    return True
