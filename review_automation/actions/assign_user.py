"""Assign a review's response to a user."""

from __future__ import annotations

from typing import Any

from ..engine.errors import EntityNotFoundError
from ..services import review_svc
from ..services.response_svc import get_or_create_response
from .base import Action, ActionConfig, load_review, require_id


class AssignUserConfig(ActionConfig):
    user_id: Any


class AssignUserAction(Action):
    type = "assign_user"
    name = "Assign User"
    description = "Assign the review's response to a specific user"
    config_model = AssignUserConfig

    async def run(self, db, config: AssignUserConfig, ctx, workflow):
        review = await load_review(db, ctx)
        user_id = require_id(ctx, "user_id", config.user_id)
        user = await review_svc.get_user(db, user_id)
        if not user:
            raise EntityNotFoundError("User", user_id)

        response, _ = await get_or_create_response(
            db,
            review.id,
            {"user_id": user.id, "content": "", "status": "draft", "ai_generated": False},
        )
        response.user_id = user.id
        await db.flush()
        return {
            "assigned_user_id": str(user.id),
            "assigned_user_name": user.name,
            "response_id": str(response.id),
        }
