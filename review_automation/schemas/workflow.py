"""Pydantic models for workflow definitions and AI decisions."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class TriggerType(str, Enum):
    REVIEW_RECEIVED = "review_received"
    NEGATIVE_REVIEW = "negative_review"
    POSITIVE_REVIEW = "positive_review"
    SENTIMENT_NEGATIVE = "sentiment_negative"
    LISTING_DISCREPANCY = "listing_discrepancy"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class ActionType(str, Enum):
    AI_RESPONSE = "ai_response"
    NOTIFICATION = "notification"
    ASSIGN_USER = "assign_user"
    ADD_TAG = "add_tag"
    UPDATE_LISTING = "update_listing"
    GENERATE_REPORT = "generate_report"


Tone = Literal["professional", "friendly", "apologetic", "empathetic"]
SafetyLevel = Literal["low", "medium", "high"]
ConditionOperator = Literal[
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "greater_than",
    "less_than",
    "in",
    "not_in",
]


def format_validation_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``"loc: message"`` strings."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        errors.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return errors


# ── Trigger configuration ────────────────────────────────────────────────


class TriggerConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    platforms: list[str] | None = None


class RatingTriggerConfig(TriggerConfig):
    rating_threshold: int | None = Field(default=None, ge=1, le=5)


class SentimentTriggerConfig(TriggerConfig):
    sentiment_threshold: float | None = Field(default=None, ge=0, le=1)


class ScheduledTriggerConfig(TriggerConfig):
    schedule: str | None = None


TRIGGER_CONFIG_MODELS: dict[TriggerType, type[TriggerConfig]] = {
    TriggerType.NEGATIVE_REVIEW: RatingTriggerConfig,
    TriggerType.POSITIVE_REVIEW: RatingTriggerConfig,
    TriggerType.SENTIMENT_NEGATIVE: SentimentTriggerConfig,
    TriggerType.SCHEDULED: ScheduledTriggerConfig,
}


def parse_trigger_config(trigger_type: TriggerType | str, config: dict | None) -> TriggerConfig:
    """Validate a raw trigger config against the model for its trigger type."""
    model = TRIGGER_CONFIG_MODELS.get(TriggerType(trigger_type), TriggerConfig)
    return model.model_validate(config or {})


# ── Conditions and actions ───────────────────────────────────────────────


class Condition(BaseModel):
    field: str = Field(min_length=1)
    operator: ConditionOperator = "equals"
    value: Any = None

    @model_validator(mode="after")
    def _membership_needs_list(self) -> Condition:
        if self.operator in ("in", "not_in") and not isinstance(self.value, list):
            raise ValueError(f"operator {self.operator!r} requires a list value")
        return self


class ActionSpec(BaseModel):
    """One entry of a workflow's ordered action list."""

    type: str = Field(min_length=1)
    config: dict[str, Any] = Field(default_factory=dict)
    critical: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_shape(cls, data: Any) -> Any:
        # {"type": "add_tag", "tags": [...]} is accepted as well as the nested form.
        if isinstance(data, dict) and "config" not in data:
            flat = {k: v for k, v in data.items() if k not in ("type", "critical")}
            data = {k: v for k, v in data.items() if k in ("type", "critical")}
            data["config"] = flat
        return data


class AIConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    safety_level: SafetyLevel = "medium"
    require_approval: bool = True
    auto_approval: bool = False
    auto_approval_confidence: float = Field(default=0.8, ge=0, le=1)
    auto_approval_max_rating: int = Field(default=3, ge=1, le=5)
    default_tone: Tone | None = None
    max_length: int | None = Field(default=None, ge=50, le=1000)
    brand_voice_id: uuid.UUID | None = None


# ── Workflow create / update ─────────────────────────────────────────────


def _check_trigger_config(trigger_type, trigger_config) -> dict:
    try:
        parsed = parse_trigger_config(trigger_type, trigger_config)
    except ValidationError as exc:
        raise ValueError("trigger_config: " + "; ".join(format_validation_errors(exc))) from None
    return parsed.model_dump(exclude_none=True)


class WorkflowCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    created_by: uuid.UUID | None = None
    is_active: bool = True
    priority: int = Field(default=0, ge=0, le=100)
    trigger_type: TriggerType
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[ActionSpec] = Field(min_length=1)
    ai_enabled: bool = False
    ai_config: AIConfig = Field(default_factory=AIConfig)

    @model_validator(mode="after")
    def _validate_trigger_config(self) -> WorkflowCreate:
        self.trigger_config = _check_trigger_config(self.trigger_type, self.trigger_config)
        return self


class WorkflowUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    is_active: bool | None = None
    priority: int | None = Field(default=None, ge=0, le=100)
    trigger_type: TriggerType | None = None
    trigger_config: dict[str, Any] | None = None
    conditions: list[Condition] | None = None
    actions: list[ActionSpec] | None = Field(default=None, min_length=1)
    ai_enabled: bool | None = None
    ai_config: AIConfig | None = None


# ── AI decision ──────────────────────────────────────────────────────────


class AIDecision(BaseModel):
    """Structured verdict on whether and how to answer a review."""

    model_config = ConfigDict(extra="ignore")

    should_respond: bool = False
    confidence: float = 0.5
    reason: str = "No reason provided"
    suggested_tone: str = "professional"
    urgency: str = "medium"
    complexity: str = "moderate"
    risk_factors: list[str] = Field(default_factory=list)
    requires_approval: bool = False

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)
