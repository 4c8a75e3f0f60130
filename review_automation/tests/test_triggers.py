"""Tests for trigger matching."""

from __future__ import annotations

import pytest

from review_automation.engine.triggers import matches_trigger


@pytest.mark.parametrize("rating,expected", [(1, True), (3, True), (4, False), (5, False)])
def test_negative_review_default_threshold(rating, expected):
    assert matches_trigger("negative_review", {}, {"rating": rating}) is expected


@pytest.mark.parametrize("rating,expected", [(1, False), (2, True), (3, False)])
def test_negative_review_configured_threshold_includes_boundary(rating, expected):
    assert matches_trigger("negative_review", {"rating_threshold": 2}, {"rating": rating}) is expected


@pytest.mark.parametrize("rating,expected", [(3, False), (4, True), (5, True)])
def test_positive_review_threshold(rating, expected):
    assert matches_trigger("positive_review", {"rating_threshold": 4}, {"rating": rating}) is expected


def test_sentiment_negative_threshold():
    assert matches_trigger("sentiment_negative", {}, {"sentiment_score": 0.3}) is True
    assert matches_trigger("sentiment_negative", {}, {"sentiment_score": 0.31}) is False
    assert matches_trigger("sentiment_negative", {"sentiment_threshold": 0.5}, {"sentiment_score": 0.45}) is True


def test_missing_rating_never_matches():
    assert matches_trigger("negative_review", {}, {}) is False
    assert matches_trigger("positive_review", {}, {"rating": None}) is False


def test_untested_trigger_types_match():
    for trigger_type in ("review_received", "listing_discrepancy", "scheduled", "manual"):
        assert matches_trigger(trigger_type, None, {}) is True


def test_unknown_trigger_type_never_matches():
    assert matches_trigger("review_deleted", {}, {"rating": 1}) is False
