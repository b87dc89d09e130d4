"""Tests for the scout policy value type."""

import json
import math

import pytest

from arbscout.config import settings
from arbscout.exceptions import ScoutValidationError
from arbscout.scout.policy import ScoutPolicy, resolve_interval_ms


def test_merged_fills_defaults():
    policy = ScoutPolicy.merged(None, {"keywords": ["lego"]})

    assert policy.keywords == ["lego"]
    assert policy.interval_ms == 900_000
    assert policy.min_margin_pct == 20.0
    assert policy.min_source_price == 5.0
    assert policy.max_source_price == 100.0
    assert policy.max_results == 50
    assert policy.auto_list is False
    assert policy.target_platform == "ebay"
    assert policy.version == 1


def test_merged_keeps_base_for_omitted_fields():
    base = ScoutPolicy.merged(None, {"min_margin_pct": 35, "platforms": ["target"]})
    policy = ScoutPolicy.merged(base, {"max_results": 10})

    assert policy.min_margin_pct == 35
    assert policy.platforms == ["target"]
    assert policy.max_results == 10


def test_merged_ignores_none_values():
    base = ScoutPolicy.merged(None, {"min_margin_pct": 35})
    policy = ScoutPolicy.merged(base, {"min_margin_pct": None})

    assert policy.min_margin_pct == 35


@pytest.mark.parametrize(
    "overrides",
    [
        {"interval_ms": 5_000},
        {"min_source_price": -1},
        {"max_source_price": 0},
        {"min_source_price": 50, "max_source_price": 10},
        {"max_results": 0},
        {"min_margin_pct": float("nan")},
        {"target_platform": "   "},
    ],
)
def test_merged_rejects_invalid_values(overrides):
    with pytest.raises(ScoutValidationError):
        ScoutPolicy.merged(None, overrides)


def test_merged_rejects_unknown_and_counter_fields():
    with pytest.raises(ScoutValidationError, match="total_runs"):
        ScoutPolicy.merged(None, {"total_runs": 5})

    with pytest.raises(ScoutValidationError, match="categories"):
        ScoutPolicy.merged(None, {"categories": ["toys"]})


def test_blank_terms_are_dropped():
    policy = ScoutPolicy.merged(None, {"keywords": ["  lego ", "", "   "]})
    assert policy.keywords == ["lego"]


def test_stored_round_trip_keeps_every_field():
    policy = ScoutPolicy.merged(
        None,
        {"platforms": ["walmart"], "exclude_brands": ["Acme"], "auto_list": True},
    )
    assert ScoutPolicy.from_stored(policy.to_stored()) == policy


@pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]", "42"])
def test_from_stored_falls_back_to_defaults(raw):
    assert ScoutPolicy.from_stored(raw) == ScoutPolicy()


def test_from_stored_drops_only_invalid_fields():
    raw = json.dumps(
        {
            "interval_ms": 1,
            "keywords": ["lego"],
            "min_margin_pct": "lots",
            "legacy_field": True,
        }
    )
    policy = ScoutPolicy.from_stored(raw)

    assert policy.keywords == ["lego"]
    assert policy.interval_ms == 900_000
    assert policy.min_margin_pct == 20.0


def test_from_stored_resets_inverted_price_band():
    raw = json.dumps({"min_source_price": 80, "max_source_price": 20, "max_results": 5})
    policy = ScoutPolicy.from_stored(raw)

    assert policy.min_source_price == 5.0
    assert policy.max_source_price == 100.0
    assert policy.max_results == 5


def test_effective_platforms_and_keywords_use_defaults_when_empty():
    policy = ScoutPolicy()

    assert policy.effective_platforms() == ["amazon", "walmart", "target"]
    assert policy.effective_keywords() == ["clearance"]


def test_exclusions_are_lowercased():
    policy = ScoutPolicy.merged(
        None, {"exclude_brands": ["Acme"], "exclude_categories": ["Gift Cards"]}
    )

    assert policy.excluded_brands() == {"acme"}
    assert policy.excluded_categories() == {"gift cards"}


@pytest.mark.parametrize(
    "value,expected",
    [
        (60_000, 60_000),
        (10_000, 10_000),
        (9_999, 900_000),
        (0, 900_000),
        (-5, 900_000),
        (math.inf, 900_000),
        (float("nan"), 900_000),
        ("abc", 900_000),
        (None, 900_000),
    ],
)
def test_resolve_interval_ms(value, expected):
    assert resolve_interval_ms(value) == expected


def test_interval_floor_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "scout_min_interval_ms", 60_000)

    with pytest.raises(ScoutValidationError):
        ScoutPolicy.merged(None, {"interval_ms": 30_000})

    assert ScoutPolicy.merged(None, {"interval_ms": 60_000}).interval_ms == 60_000
