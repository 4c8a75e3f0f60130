"""Workflow execution runner."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.execution import STATUS_PENDING, AutomationExecution
from ..models.log import AutomationLog
from ..models.workflow import AutomationWorkflow
from ..schemas.workflow import ActionSpec, ActionType, format_validation_errors
from .context import ExecutionContext
from .errors import ActionConfigError, CriticalActionError
from .registry import ActionRegistry, build_default_registry

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _parse_spec(raw: Any) -> ActionSpec:
    try:
        return ActionSpec.model_validate(raw)
    except ValidationError as exc:
        raise ActionConfigError(
            "Invalid action definition: " + "; ".join(format_validation_errors(exc))
        ) from None


class WorkflowRunner:
    """Runs a workflow's actions in order against one event.

    Each action runs inside a savepoint: a failing action leaves no partial
    writes behind, and the execution record is unaffected by the rollback.
    """

    def __init__(self, db: AsyncSession, registry: ActionRegistry | None = None):
        self.db = db
        self.registry = registry or build_default_registry()

    async def run(
        self,
        workflow: AutomationWorkflow,
        trigger_data: dict | None = None,
        trigger_source: str | None = None,
    ) -> AutomationExecution:
        """Execute ``workflow`` and return its finished execution record."""
        trigger_data = _json_safe(trigger_data or {})
        execution = AutomationExecution(
            workflow_id=workflow.id,
            trigger_data=trigger_data,
            trigger_source=trigger_source,
            status=STATUS_PENDING,
            actions_completed=0,
            actions_failed=0,
            ai_involved=False,
        )
        self.db.add(execution)
        await self.db.flush()

        execution.mark_running()
        workflow.execution_count = (workflow.execution_count or 0) + 1
        workflow.last_executed_at = execution.started_at
        await self.db.commit()

        await self._log(
            workflow.id, execution.id, "info", "execution.started",
            f"Workflow execution started ({trigger_source or 'direct'})",
        )
        logger.info("Running workflow %s (execution %s)", workflow.id, execution.id)

        ctx = ExecutionContext(trigger_data, workflow.to_dict(), execution.id)
        results: list[dict] = []
        ai_decisions: list[dict] = []

        try:
            for index, raw_spec in enumerate(workflow.actions or []):
                result, error = await self._run_action(workflow, execution, index, raw_spec, ctx)
                results.append(result)
                if result["success"]:
                    execution.actions_completed += 1
                else:
                    execution.actions_failed += 1
                if result["action_type"] == ActionType.AI_RESPONSE.value:
                    execution.ai_involved = True
                    decision = (result.get("result") or {}).get("ai_decision")
                    if decision:
                        ai_decisions.append({"action_index": index, **decision})
                if error is not None and result.get("critical"):
                    raise CriticalActionError(index, result["action_type"] or "unknown", error)
        except CriticalActionError as exc:
            execution.ai_decisions = ai_decisions or None
            execution.mark_failed(str(exc), results)
            await self.db.commit()
            await self._log(
                workflow.id, execution.id, "error", "execution.failed",
                f"Critical action {exc.action_index} ({exc.action_type}) failed: {exc}",
                action_type=exc.action_type, action_index=exc.action_index,
            )
            logger.error(
                "Workflow %s execution %s failed at critical action %d: %s",
                workflow.id, execution.id, exc.action_index, exc,
            )
            return execution

        execution.ai_decisions = ai_decisions or None
        execution.mark_completed(results)
        workflow.last_successful_execution_at = execution.completed_at
        await self.db.commit()
        await self._log(
            workflow.id, execution.id, "info", "execution.completed",
            f"Completed {execution.actions_completed} action(s), {execution.actions_failed} failed",
            context={"duration": execution.duration},
        )
        return execution

    async def _run_action(
        self,
        workflow: AutomationWorkflow,
        execution: AutomationExecution,
        index: int,
        raw_spec: Any,
        ctx: ExecutionContext,
    ) -> tuple[dict, Exception | None]:
        """Run one action. Returns its result record and the error, if any."""
        action_type = raw_spec.get("type") if isinstance(raw_spec, dict) else None
        critical = bool(raw_spec.get("critical", False)) if isinstance(raw_spec, dict) else False
        record: dict[str, Any] = {"action_index": index, "action_type": action_type}

        try:
            spec = _parse_spec(raw_spec)
            await self._log(
                workflow.id, execution.id, "info", "action.started",
                f"Executing action {index}: {spec.type}",
                context={"config": spec.config}, action_type=spec.type, action_index=index,
            )
            action = self.registry.resolve(spec.type)
            async with self.db.begin_nested():
                output = await action.execute(self.db, spec.config, ctx, workflow)
        except Exception as exc:
            logger.warning(
                "Action %d (%s) of workflow %s failed: %s", index, action_type, workflow.id, exc
            )
            await self._log(
                workflow.id, execution.id, "error", "action.failed",
                f"Action {index} ({action_type}) failed: {exc}",
                context={"error_type": exc.__class__.__name__, "critical": critical},
                action_type=action_type, action_index=index,
            )
            record.update(success=False, error=str(exc) or exc.__class__.__name__)
            if critical:
                record["critical"] = True
            return record, exc

        await self._log(
            workflow.id, execution.id, "info", "action.completed",
            f"Action {index} ({action_type}) completed",
            action_type=action_type, action_index=index,
        )
        record.update(success=True, result=_json_safe(output))
        return record, None

    async def _log(
        self,
        workflow_id: uuid.UUID,
        execution_id: uuid.UUID | None,
        level: str,
        event: str,
        message: str,
        context: dict | None = None,
        action_type: str | None = None,
        action_index: int | None = None,
    ) -> None:
        entry = AutomationLog(
            workflow_id=workflow_id,
            execution_id=execution_id,
            level=level,
            event=event,
            message=message,
            context=_json_safe(context) if context else None,
            action_type=action_type,
            action_index=action_index,
            created_at=utcnow(),
        )
        self.db.add(entry)
        await self.db.commit()
