"""AI decision, drafting and safety pipeline for review responses.

The model is consulted twice: once to decide whether a review should get an
automated reply, and once (through the drafter) to write it. Every failure of
the external service degrades to an explicit fallback. A review never ends up
without either a drafted reply or an empty draft telling a human why.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..engine.errors import ActionConfigError
from ..models.base import utcnow
from ..models.execution import STATUS_COMPLETED, STATUS_FAILED, AutomationExecution
from ..models.review import Review, ReviewResponse
from ..models.tenant import User
from ..models.workflow import AutomationWorkflow
from ..schemas.workflow import AIConfig, AIDecision, format_validation_errors
from . import review_svc
from .llm_client import FAILURE_SERVICE_ERROR, FAILURE_UNAVAILABLE, AnthropicChatClient, ChatClient
from .response_svc import ResponseDrafter, create_fallback_draft

logger = logging.getLogger(__name__)

DECISION_SYSTEM_PROMPT = (
    "You are an AI assistant that helps decide whether to automatically respond "
    "to customer reviews. Always respond with valid JSON."
)
ANALYSIS_SYSTEM_PROMPT = (
    "You are an AI automation expert that analyzes workflow performance and "
    "suggests optimizations. Always respond with valid JSON."
)

RISK_KEYWORDS = (
    "lawsuit", "legal", "lawyer", "sue", "court",
    "discrimination", "harassment", "abuse",
    "medical", "health", "injury", "accident",
    "refund", "money back", "compensation",
)
MIN_RESPONSE_LENGTH = 30
HIGH_SAFETY_MIN_CONFIDENCE = 0.8

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

_FALLBACK_REASONS = {
    FAILURE_UNAVAILABLE: "AI service unavailable - creating draft response",
    FAILURE_SERVICE_ERROR: "AI service error - creating draft response",
}


def load_ai_config(workflow: AutomationWorkflow) -> AIConfig:
    try:
        return AIConfig.model_validate(workflow.ai_config or {})
    except ValidationError as exc:
        raise ActionConfigError(
            "Invalid ai_config: " + "; ".join(format_validation_errors(exc))
        ) from None


# ── Decision ─────────────────────────────────────────────────────────────


def fallback_decision(failure: str, configured: bool = True) -> AIDecision:
    """Fail open: respond, but via a draft a human has to look at."""
    reason = _FALLBACK_REASONS.get(failure, _FALLBACK_REASONS[FAILURE_UNAVAILABLE])
    if not configured:
        reason = "AI service not configured - creating draft response"
    return AIDecision(
        should_respond=True,
        confidence=0.5,
        reason=reason,
        suggested_tone="professional",
        urgency="medium",
        complexity="moderate",
        risk_factors=[failure],
    )


def parse_failure_decision() -> AIDecision:
    return AIDecision(
        should_respond=False,
        confidence=0.0,
        reason="Failed to parse AI decision",
        complexity="complex",
        risk_factors=["parsing_error"],
    )


def _extract_json_object(text: str) -> dict | None:
    text = (text or "").strip()
    if "```" in text:
        match = _FENCED_JSON.search(text)
        if match:
            text = match.group(1)
    try:
        data = json.loads(text)
    except ValueError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start : end + 1])
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


def parse_decision_response(text: str) -> AIDecision:
    data = _extract_json_object(text)
    if data is None:
        return parse_failure_decision()
    try:
        return AIDecision.model_validate({k: v for k, v in data.items() if v is not None})
    except ValidationError:
        return parse_failure_decision()


def sentiment_summary(sentiment) -> str:
    if sentiment is None:
        return ""
    summary = f"Sentiment: {sentiment.sentiment} (score: {sentiment.sentiment_score})"
    emotions = sentiment.top_emotions(3)
    if emotions:
        summary += f"\nEmotions: {', '.join(emotions)}"
    return summary


def build_decision_prompt(
    content: str,
    rating: int | None,
    platform: str,
    location_name: str,
    sentiment_context: str,
    safety_level: str,
) -> str:
    return f"""Analyze this customer review and decide whether it should receive an automated response.

Review Details:
- Business: {location_name}
- Platform: {platform}
- Rating: {rating}/5 stars
- Content: "{content}"
- {sentiment_context}

Safety Level: {safety_level}

Consider these factors:
1. Review sentiment and tone
2. Complexity of issues raised
3. Potential for controversy or escalation
4. Whether a generic response would be appropriate
5. Risk of automated response causing harm

Respond with JSON:
{{
    "should_respond": boolean,
    "confidence": float (0-1),
    "reason": "explanation",
    "suggested_tone": "professional|friendly|apologetic|empathetic",
    "urgency": "low|medium|high",
    "complexity": "simple|moderate|complex",
    "risk_factors": ["factor1", "factor2"]
}}"""


def apply_safety_overrides(decision: AIDecision, ai_config: AIConfig) -> AIDecision:
    if ai_config.safety_level == "high" and decision.confidence < HIGH_SAFETY_MIN_CONFIDENCE:
        decision.should_respond = False
        decision.reason = "Low confidence - safety override"
        decision.requires_approval = True
    if ai_config.require_approval and decision.should_respond:
        decision.requires_approval = True
    return decision


# ── Parameters, safety, approval ─────────────────────────────────────────


def determine_response_parameters(review: Review, ai_config: AIConfig) -> dict[str, Any]:
    params: dict[str, Any] = {
        "use_sentiment_context": True,
        "include_location_context": True,
        "auto_detect_language": True,
    }
    rating = review.rating or 0
    if rating <= 2:
        params["tone"] = "apologetic"
    elif rating >= 4:
        params["tone"] = "friendly"
    else:
        params["tone"] = "professional"

    if ai_config.default_tone:
        params["tone"] = ai_config.default_tone
    if ai_config.max_length:
        params["max_length"] = ai_config.max_length
    if ai_config.brand_voice_id:
        params["brand_voice_id"] = ai_config.brand_voice_id
    return params


@dataclass
class SafetyCheck:
    is_safe: bool
    reason: str
    risk_level: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def perform_safety_check(response_content: str, review: Review) -> SafetyCheck:
    content = (response_content or "").lower()
    review_content = (review.content or "").lower()

    for word in RISK_KEYWORDS:
        if word in content or word in review_content:
            return SafetyCheck(False, f"Contains sensitive keyword: {word}", "high")

    if len(response_content or "") < MIN_RESPONSE_LENGTH:
        return SafetyCheck(False, "Response too short/generic", "medium")

    if (review.rating or 0) <= 2 and "sorry" not in content and "apologize" not in content:
        return SafetyCheck(False, "Missing apology for negative review", "medium")

    return SafetyCheck(True, "Passed all safety checks", "low")


def should_auto_approve(review: Review, ai_config: AIConfig, decision: AIDecision) -> bool:
    if not ai_config.auto_approval:
        return False
    return (
        decision.confidence >= ai_config.auto_approval_confidence
        and review.rating is not None
        and review.rating <= ai_config.auto_approval_max_rating
        and decision.complexity == "simple"
    )


def _parse_optimization(text: str) -> dict[str, Any]:
    data = _extract_json_object(text)
    if data is None:
        return {"suggestions": [], "reason": "Failed to parse optimization suggestions"}
    return {
        "overall_health": data.get("overall_health") or "unknown",
        "priority_issues": data.get("priority_issues") or [],
        "suggestions": data.get("suggestions") or [],
        "metrics_to_track": data.get("metrics_to_track") or [],
    }


# ── Service ──────────────────────────────────────────────────────────────


class AIAutomationService:
    """Decides on, drafts and vets AI replies to reviews."""

    def __init__(self, chat_client: ChatClient | None = None, drafter: ResponseDrafter | None = None):
        self.chat = chat_client or AnthropicChatClient()
        self.drafter = drafter or ResponseDrafter(self.chat)

    async def should_auto_respond(
        self, db: AsyncSession, review: Review, workflow: AutomationWorkflow
    ) -> AIDecision:
        if not self.chat.configured:
            return fallback_decision(FAILURE_UNAVAILABLE, configured=False)

        ai_config = load_ai_config(workflow)
        location = await review_svc.get_location(db, review.location_id)
        sentiment = await review_svc.get_sentiment(db, review.id)
        prompt = build_decision_prompt(
            review.content or "",
            review.rating,
            review.platform,
            location.name if location else "Unknown",
            sentiment_summary(sentiment),
            ai_config.safety_level,
        )

        completion = await self.chat.complete(
            system=DECISION_SYSTEM_PROMPT,
            prompt=prompt,
            temperature=0.3,
            max_tokens=300,
            timeout=settings.ai_decision_timeout_seconds,
        )
        if completion.failure:
            logger.error(
                "AI decision failed for review %s (%s, status=%s): %s",
                review.id,
                completion.failure,
                completion.status_code,
                completion.error,
            )
            return fallback_decision(completion.failure)

        decision = parse_decision_response(completion.text or "")
        return apply_safety_overrides(decision, ai_config)

    async def generate_intelligent_response(
        self,
        db: AsyncSession,
        review: Review,
        user: User,
        workflow: AutomationWorkflow,
    ) -> dict[str, Any]:
        """Decide, draft, vet and possibly approve a reply to ``review``.

        Returns ``success=False`` only when the decision step declined; in every
        other outcome a response row exists for the review.
        """
        ai_config = load_ai_config(workflow)
        decision = await self.should_auto_respond(db, review, workflow)
        if not decision.should_respond:
            return {"success": False, "reason": decision.reason, "decision": decision}

        params = determine_response_parameters(review, ai_config)
        review_id, user_id, tone = review.id, user.id, params["tone"]
        try:
            async with db.begin_nested():
                result = await self.drafter.generate_response(db, review, user, params)
                if not result:
                    response = await create_fallback_draft(
                        db, review_id, user_id,
                        "AI generation failed - requires manual response", tone,
                    )
                    return {
                        "success": True,
                        "response": response,
                        "decision": decision,
                        "ai_failed": True,
                        "auto_approved": False,
                        "requires_manual_review": True,
                    }

                response: ReviewResponse = result["response"]
                safety = perform_safety_check(response.content, review)
                if not safety.is_safe:
                    response.status = "draft"
                    response.rejection_reason = f"AI Safety: {safety.reason}"
                    await db.flush()
                    return {
                        "success": True,
                        "response": response,
                        "decision": decision,
                        "safety_check": safety.to_dict(),
                        "auto_approved": False,
                        "requires_review": True,
                    }

                auto_approved = should_auto_approve(review, ai_config, decision)
                if auto_approved:
                    response.status = "approved"
                    await db.flush()
                return {
                    "success": True,
                    "response": response,
                    "decision": decision,
                    "safety_check": safety.to_dict(),
                    "auto_approved": auto_approved,
                    "parameters": params,
                }
        except Exception as exc:
            logger.exception("Intelligent response generation failed for review %s", review_id)
            response = await create_fallback_draft(
                db, review_id, user_id, f"AI generation error: {exc}", tone
            )
            return {
                "success": True,
                "response": response,
                "decision": decision,
                "ai_failed": True,
                "auto_approved": False,
                "requires_manual_review": True,
            }

    async def analyze_and_optimize(
        self, db: AsyncSession, workflow: AutomationWorkflow
    ) -> dict[str, Any]:
        """Ask the model how ``workflow`` could perform better."""
        if not self.chat.configured:
            return {"suggestions": [], "reason": "AI service not configured"}

        since = utcnow() - timedelta(days=30)
        stmt = (
            select(AutomationExecution)
            .where(AutomationExecution.workflow_id == workflow.id)
            .where(AutomationExecution.created_at >= since)
            .order_by(AutomationExecution.created_at.desc())
            .limit(50)
        )
        executions = list((await db.execute(stmt)).scalars().all())
        if not executions:
            return {"suggestions": [], "reason": "Insufficient execution data"}

        prompt = build_optimization_prompt(prepare_analysis_data(workflow, executions))
        completion = await self.chat.complete(
            system=ANALYSIS_SYSTEM_PROMPT,
            prompt=prompt,
            temperature=0.4,
            max_tokens=800,
            timeout=settings.ai_analysis_timeout_seconds,
        )
        if completion.failure == FAILURE_SERVICE_ERROR:
            return {"suggestions": [], "reason": "AI analysis service error"}
        if completion.failure:
            logger.error("Workflow optimization analysis failed for %s: %s", workflow.id, completion.error)
            return {"suggestions": [], "reason": "Analysis failed"}
        return _parse_optimization(completion.text or "")


def prepare_analysis_data(
    workflow: AutomationWorkflow, executions: list[AutomationExecution]
) -> dict[str, Any]:
    total = len(executions)
    completed = sum(1 for e in executions if e.status == STATUS_COMPLETED)
    durations = [e.duration for e in executions if e.duration is not None]
    errors: dict[str, int] = {}
    for execution in executions:
        if execution.status == STATUS_FAILED and execution.error_message:
            errors[execution.error_message] = errors.get(execution.error_message, 0) + 1
    common_errors = dict(sorted(errors.items(), key=lambda item: item[1], reverse=True)[:5])

    return {
        "workflow": {
            "name": workflow.name,
            "trigger_type": workflow.trigger_type,
            "actions_count": len(workflow.actions or []),
            "ai_enabled": workflow.ai_enabled,
        },
        "performance": {
            "total_executions": total,
            "success_rate": round(completed / max(total, 1) * 100, 1),
            "avg_duration": round(sum(durations) / len(durations), 2) if durations else 0,
            "common_errors": common_errors,
        },
    }


def build_optimization_prompt(analysis: dict[str, Any]) -> str:
    return f"""Analyze this automation workflow performance data and suggest optimizations:

{json.dumps(analysis, indent=4)}

Provide suggestions to improve:
1. Success rate
2. Execution speed
3. Error reduction
4. User experience
5. AI effectiveness (if applicable)

Respond with JSON:
{{
    "overall_health": "excellent|good|fair|poor",
    "priority_issues": ["issue1", "issue2"],
    "suggestions": [
        {{
            "category": "performance|reliability|user_experience|ai_optimization",
            "title": "suggestion title",
            "description": "detailed description",
            "impact": "high|medium|low",
            "effort": "low|medium|high"
        }}
    ],
    "metrics_to_track": ["metric1", "metric2"]
}}"""
