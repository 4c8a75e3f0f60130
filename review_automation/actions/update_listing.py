"""Apply field changes to a location's listing."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ..engine.errors import EntityNotFoundError
from ..models.location import WRITABLE_FIELDS
from ..services import review_svc
from .base import Action, ActionConfig, require_id


class UpdateListingConfig(ActionConfig):
    location_id: Any = None
    updates: dict[str, Any] = Field(min_length=1)


class UpdateListingAction(Action):
    type = "update_listing"
    name = "Update Listing"
    description = "Update business listing information"
    config_model = UpdateListingConfig

    async def run(self, db, config: UpdateListingConfig, ctx, workflow):
        location_id = require_id(ctx, "location_id", config.location_id)
        location = await review_svc.get_location(db, location_id)
        if not location:
            raise EntityNotFoundError("Location", location_id)

        updated = []
        for field_name, value in config.updates.items():
            if field_name not in WRITABLE_FIELDS:
                continue
            setattr(location, field_name, value)
            updated.append(field_name)
        await db.flush()
        return {
            "location_id": str(location.id),
            "updated_fields": updated,
            "sync_triggered": False,
        }
