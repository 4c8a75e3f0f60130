"""Action contract shared by every registered action type."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.context import ExecutionContext
from ..engine.errors import ActionConfigError, EntityNotFoundError
from ..models.workflow import AutomationWorkflow
from ..schemas.workflow import format_validation_errors
from ..services import review_svc
from ..services.ai_svc import AIAutomationService
from ..services.notify_svc import EmailSender, Sender, SlackSender, WebhookSender
from ..services.report_svc import ReportGenerator


@dataclass
class ActionServices:
    """External collaborators the actions call out to."""

    ai: AIAutomationService = field(default_factory=AIAutomationService)
    email: Sender = field(default_factory=EmailSender)
    slack: Sender = field(default_factory=SlackSender)
    webhook: WebhookSender = field(default_factory=WebhookSender)
    reports: ReportGenerator = field(default_factory=ReportGenerator)


class ActionConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Action(ABC):
    type: ClassVar[str]
    name: ClassVar[str]
    description: ClassVar[str]
    config_model: ClassVar[type[BaseModel]] = ActionConfig

    def __init__(self, services: ActionServices | None = None):
        self.services = services or ActionServices()

    def parse_config(self, config: dict | None) -> Any:
        try:
            return self.config_model.model_validate(config or {})
        except ValidationError as exc:
            raise ActionConfigError(
                f"Invalid {self.type} config: " + "; ".join(format_validation_errors(exc))
            ) from None

    def validate(self, config: dict | None) -> list[str]:
        """Return human-readable problems with ``config``; empty when valid."""
        try:
            self.config_model.model_validate(config or {})
        except ValidationError as exc:
            return format_validation_errors(exc)
        return []

    def describe(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "config_schema": self.config_model.model_json_schema(),
        }

    async def execute(
        self,
        db: AsyncSession,
        config: dict | None,
        ctx: ExecutionContext,
        workflow: AutomationWorkflow,
    ) -> dict[str, Any]:
        """Run the action. Raises on failure; the runner records the error."""
        return await self.run(db, self.parse_config(config), ctx, workflow)

    @abstractmethod
    async def run(
        self,
        db: AsyncSession,
        config: Any,
        ctx: ExecutionContext,
        workflow: AutomationWorkflow,
    ) -> dict[str, Any]: ...


def require_id(ctx: ExecutionContext, key: str, explicit: Any = None) -> uuid.UUID:
    """Pull an entity id from the action config or the context."""
    value = review_svc.as_uuid(explicit) if explicit else ctx.get_uuid(key)
    if value is None:
        raise ActionConfigError(f"No {key} in action config or trigger data")
    return value


async def load_review(db: AsyncSession, ctx: ExecutionContext, explicit: Any = None):
    review_id = require_id(ctx, "review_id", explicit)
    review = await review_svc.get_review(db, review_id)
    if not review:
        raise EntityNotFoundError("Review", review_id)
    return review
