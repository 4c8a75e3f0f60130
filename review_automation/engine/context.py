"""Execution context handed to actions."""

from __future__ import annotations

import re
import uuid
from typing import Any

from .evaluator import get_field

_PLACEHOLDER = re.compile(r"\{\{\s*(.+?)\s*\}\}")


def render_template(text: str, variables: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left untouched."""

    def replacer(match: re.Match) -> str:
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return _PLACEHOLDER.sub(replacer, text)


class ExecutionContext:
    """Event data merged with the serialized workflow and the execution id.

    Actions read review/location/user references from here.
    """

    def __init__(
        self,
        trigger_data: dict | None = None,
        workflow: dict | None = None,
        execution_id: uuid.UUID | str | None = None,
    ):
        self._data: dict[str, Any] = dict(trigger_data or {})
        if workflow is not None:
            self._data["workflow"] = workflow
        if execution_id is not None:
            self._data["execution_id"] = str(execution_id)

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dotted key path (e.g. 'workflow.name')."""
        value = get_field(self._data, key, None)
        return default if value is None else value

    def get_uuid(self, key: str) -> uuid.UUID | None:
        value = self.get(key)
        if value is None or value == "":
            return None
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value))
        except ValueError:
            return None

    def to_dict(self) -> dict:
        return dict(self._data)
