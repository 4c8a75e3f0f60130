"""Draft an AI reply to a review."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import StrictBool

from ..engine.errors import EntityNotFoundError
from ..services import review_svc
from ..services.response_svc import create_fallback_draft, get_response
from .base import Action, ActionConfig, load_review, require_id

log = logging.getLogger(__name__)


class AIResponseConfig(ActionConfig):
    user_id: Any = None
    skip_existing: StrictBool = True
    auto_publish: StrictBool = False


class AIResponseAction(Action):
    """Runs the decide/draft/vet pipeline for the triggering review.

    AI problems never fail this action: whatever goes wrong, the review ends
    up with a draft carrying a rejection reason for a human to pick up.
    """

    type = "ai_response"
    name = "AI Response"
    description = "Generate an AI response for the review, with safety checks and optional auto-approval"
    config_model = AIResponseConfig

    async def run(self, db, config: AIResponseConfig, ctx, workflow):
        review = await load_review(db, ctx)
        user_id = require_id(ctx, "user_id", config.user_id or ctx.get("user_id") or workflow.created_by)
        user = await review_svc.get_user(db, user_id)
        if not user:
            raise EntityNotFoundError("User", user_id)

        if config.skip_existing and await get_response(db, review.id):
            return {"skipped": True, "reason": "Response already exists", "review_id": str(review.id)}

        log.info("Running AI response for review %s (workflow %s)", review.id, workflow.id)
        review_id = review.id
        try:
            async with db.begin_nested():
                result = await self.services.ai.generate_intelligent_response(db, review, user, workflow)
                decision = result.get("decision")
                decision_data = decision.model_dump() if decision is not None else {}

                if not result["success"]:
                    response = await create_fallback_draft(
                        db, review_id, user_id, f"AI generation failed: {result['reason']}"
                    )
                    return {
                        "response_id": str(response.id),
                        "ai_failed": True,
                        "reason": result["reason"],
                        "status": response.status,
                        "requires_manual_review": True,
                        "ai_decision": decision_data,
                    }

                response = result["response"]
                auto_approved = result.get("auto_approved", False)
                if auto_approved and config.auto_publish:
                    response.status = "published"
                    await db.flush()
                return {
                    "response_id": str(response.id),
                    "content": response.content,
                    "status": response.status,
                    "auto_approved": auto_approved,
                    "ai_failed": result.get("ai_failed", False),
                    "ai_decision": decision_data,
                    "safety_check": result.get("safety_check", {}),
                    "tone": response.tone,
                    "language": response.language,
                }
        except Exception as exc:
            log.exception("AI response action failed for review %s", review_id)
            response = await create_fallback_draft(db, review_id, user_id, f"AI action failed: {exc}")
            return {
                "response_id": str(response.id),
                "ai_failed": True,
                "error": str(exc),
                "status": response.status,
                "requires_manual_review": True,
            }
