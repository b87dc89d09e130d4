"""Tests for the filter and scoring pipeline."""

import pytest

from arbscout.scout.policy import ScoutPolicy
from arbscout.scout.scoring import (
    ProductFilter,
    SkipReason,
    coerce_price,
    estimate_opportunity,
)


def test_estimate_matches_reference_scenario():
    estimate = estimate_opportunity(20.0, 20.0, fee_rate=0.15)

    assert estimate.target_price == pytest.approx(28.2353, abs=1e-4)
    assert estimate.estimated_profit == pytest.approx(4.0, abs=1e-9)
    assert estimate.estimated_margin_pct == pytest.approx(20.0, abs=1e-9)


@pytest.mark.parametrize("margin", [0, 12.5, 20, 47.3, 150])
@pytest.mark.parametrize("price", [5, 19.99, 20, 73.1, 100])
def test_estimated_margin_never_falls_below_threshold(price, margin):
    policy = ScoutPolicy.merged(None, {"min_margin_pct": margin})
    reason, estimate = ProductFilter(policy, fee_rate=0.15).evaluate(price)

    assert reason is None
    assert estimate.estimated_margin_pct == pytest.approx(margin, abs=1e-6)


@pytest.mark.parametrize(
    "value,expected",
    [
        (20, 20.0),
        (19.99, 19.99),
        ("19.99", None),
        (0, None),
        (-3, None),
        ("abc", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
    ],
)
def test_coerce_price(value, expected):
    assert coerce_price(value) == expected


def test_filters_apply_in_order():
    policy = ScoutPolicy.merged(
        None,
        {
            "min_source_price": 10,
            "max_source_price": 50,
            "exclude_brands": ["Acme"],
            "exclude_categories": ["Gift Cards"],
        },
    )
    product_filter = ProductFilter(policy, fee_rate=0.15)

    # Price is checked before brand and category
    assert product_filter.evaluate(3, brand="Acme")[0] is SkipReason.PRICE
    assert product_filter.evaluate(60)[0] is SkipReason.PRICE
    assert product_filter.evaluate(20, brand=" ACME ", category="gift cards")[0] is SkipReason.BRAND
    assert product_filter.evaluate(20, brand="Other", category="GIFT CARDS")[0] is SkipReason.CATEGORY
    assert product_filter.evaluate(20, brand="Other", category="Toys")[0] is None


def test_price_band_is_inclusive():
    policy = ScoutPolicy.merged(None, {"min_source_price": 10, "max_source_price": 50})
    product_filter = ProductFilter(policy, fee_rate=0.15)

    assert product_filter.evaluate(10)[0] is None
    assert product_filter.evaluate(50)[0] is None
