"""Trigger matching: does a workflow's trigger accept an incoming event?"""

from __future__ import annotations

from typing import Any

from ..schemas.workflow import TriggerType

DEFAULT_NEGATIVE_RATING_THRESHOLD = 3
DEFAULT_POSITIVE_RATING_THRESHOLD = 4
DEFAULT_SENTIMENT_THRESHOLD = 0.3


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _threshold(config: dict, key: str, default: float) -> float:
    value = _number(config.get(key))
    return default if value is None else value


def matches_trigger(
    trigger_type: str,
    trigger_config: dict | None,
    event_data: dict,
) -> bool:
    """Return True when ``event_data`` satisfies the trigger's thresholds.

    negative_review:    rating <= rating_threshold (default 3)
    positive_review:    rating >= rating_threshold (default 4)
    sentiment_negative: sentiment_score <= sentiment_threshold (default 0.3)

    review_received, listing_discrepancy, scheduled and manual have no
    field-level test; selecting them by trigger type is the whole match.
    Unknown trigger types never match. Pure function.
    """
    try:
        kind = TriggerType(trigger_type)
    except ValueError:
        return False

    config = trigger_config or {}

    if kind is TriggerType.NEGATIVE_REVIEW:
        rating = _number(event_data.get("rating"))
        threshold = _threshold(config, "rating_threshold", DEFAULT_NEGATIVE_RATING_THRESHOLD)
        return rating is not None and rating <= threshold

    if kind is TriggerType.POSITIVE_REVIEW:
        rating = _number(event_data.get("rating"))
        threshold = _threshold(config, "rating_threshold", DEFAULT_POSITIVE_RATING_THRESHOLD)
        return rating is not None and rating >= threshold

    if kind is TriggerType.SENTIMENT_NEGATIVE:
        score = _number(event_data.get("sentiment_score"))
        threshold = _threshold(config, "sentiment_threshold", DEFAULT_SENTIMENT_THRESHOLD)
        return score is not None and score <= threshold

    return True
