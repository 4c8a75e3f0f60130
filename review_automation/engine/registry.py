"""Action registry: maps action type strings to implementations."""

from __future__ import annotations

from typing import Any

from ..actions.add_tag import AddTagAction
from ..actions.ai_response import AIResponseAction
from ..actions.assign_user import AssignUserAction
from ..actions.base import Action, ActionServices
from ..actions.generate_report import GenerateReportAction
from ..actions.notification import NotificationAction
from ..actions.update_listing import UpdateListingAction
from .errors import UnknownActionError

DEFAULT_ACTIONS: tuple[type[Action], ...] = (
    AIResponseAction,
    NotificationAction,
    AssignUserAction,
    AddTagAction,
    UpdateListingAction,
    GenerateReportAction,
)


class ActionRegistry:
    """Built once at startup and passed to the runner."""

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}

    def register(self, action: Action) -> None:
        self._actions[action.type] = action

    def resolve(self, action_type: str | None) -> Action:
        action = self._actions.get(action_type or "")
        if action is None:
            raise UnknownActionError(action_type)
        return action

    def __contains__(self, action_type: str) -> bool:
        return action_type in self._actions

    def types(self) -> list[str]:
        return list(self._actions)

    def describe_all(self) -> dict[str, dict[str, Any]]:
        return {action_type: action.describe() for action_type, action in self._actions.items()}


def build_default_registry(services: ActionServices | None = None) -> ActionRegistry:
    services = services or ActionServices()
    registry = ActionRegistry()
    for action_cls in DEFAULT_ACTIONS:
        registry.register(action_cls(services))
    return registry
