"""Exception hierarchy for the automation engine."""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for automation engine errors."""


class ActionConfigError(AutomationError):
    """An action is missing a required parameter or has an invalid one."""


class UnknownActionError(ActionConfigError):
    """No implementation is registered for an action type."""

    def __init__(self, action_type: str | None):
        self.action_type = action_type
        super().__init__(f"Unknown action type: {action_type}")


class EntityNotFoundError(AutomationError):
    """A review, user or location referenced by an action does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class CriticalActionError(AutomationError):
    """A ``critical`` action failed; the rest of the execution is abandoned."""

    def __init__(self, action_index: int, action_type: str, cause: BaseException):
        self.action_index = action_index
        self.action_type = action_type
        self.cause = cause
        super().__init__(str(cause))


class InvalidTransitionError(AutomationError):
    """Execution status may only move pending -> running -> completed/failed."""


class WorkflowValidationError(AutomationError):
    """A workflow definition failed schema validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors) or "Invalid workflow")


class WorkflowNotExecutable(AutomationError):
    """A manual trigger named a workflow that is missing or inactive."""
