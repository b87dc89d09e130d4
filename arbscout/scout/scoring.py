"""Filter and scoring pipeline for scanned products."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from arbscout.config import settings
from arbscout.scout.policy import ScoutPolicy

# Absorbs float error from solving the target price for the exact margin
MARGIN_EPSILON = 1e-6


class SkipReason(str, Enum):
    """Why a scanned product did not make it into the queue."""

    MALFORMED = "malformed"
    PRICE = "price"
    BRAND = "brand"
    CATEGORY = "category"
    MARGIN = "margin"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class OpportunityEstimate:
    """Estimated resale economics for one source price."""

    source_price: float
    target_price: float
    estimated_profit: float
    estimated_margin_pct: float


def coerce_price(value: Any) -> Optional[float]:
    """Return the price as a finite positive float, or None.

    Only real numbers count; numeric strings from a scanner are invalid.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        price = float(value)
    except OverflowError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def estimate_opportunity(
    source_price: float,
    min_margin_pct: float,
    fee_rate: Optional[float] = None,
) -> OpportunityEstimate:
    """
    Estimate the resale price that yields ``min_margin_pct`` after fees.

    target = source * (1 + margin/100) / (1 - fee)
    profit = target * (1 - fee) - source
    """
    if fee_rate is None:
        fee_rate = settings.scout_sell_fee_rate
    target_price = source_price * (1 + min_margin_pct / 100) / (1 - fee_rate)
    estimated_profit = target_price * (1 - fee_rate) - source_price
    estimated_margin_pct = estimated_profit / source_price * 100
    return OpportunityEstimate(
        source_price=source_price,
        target_price=target_price,
        estimated_profit=estimated_profit,
        estimated_margin_pct=estimated_margin_pct,
    )


class ProductFilter:
    """
    Applies a policy's filters in fixed order: price band, brand, category, margin.

    Exclusion sets are lowered once per cycle rather than per product.
    """

    def __init__(self, policy: ScoutPolicy, fee_rate: Optional[float] = None):
        self.policy = policy
        self.fee_rate = settings.scout_sell_fee_rate if fee_rate is None else fee_rate
        self._excluded_brands = policy.excluded_brands()
        self._excluded_categories = policy.excluded_categories()

    def evaluate(
        self,
        price: Any,
        brand: Optional[str] = None,
        category: Optional[str] = None,
    ) -> tuple[Optional[SkipReason], Optional[OpportunityEstimate]]:
        """
        Run the filter pipeline for one product.

        Returns:
            (skip_reason, None) for the first failing filter, or
            (None, estimate) when the product qualifies
        """
        source_price = coerce_price(price)
        if source_price is None:
            return SkipReason.PRICE, None
        if not self.policy.min_source_price <= source_price <= self.policy.max_source_price:
            return SkipReason.PRICE, None

        if brand and brand.strip().lower() in self._excluded_brands:
            return SkipReason.BRAND, None

        if category and category.strip().lower() in self._excluded_categories:
            return SkipReason.CATEGORY, None

        estimate = estimate_opportunity(
            source_price, self.policy.min_margin_pct, self.fee_rate
        )
        if estimate.estimated_margin_pct + MARGIN_EPSILON < self.policy.min_margin_pct:
            return SkipReason.MARGIN, None

        return None, estimate
