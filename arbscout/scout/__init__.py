"""Scout pipeline: policies, stores, the scan-cycle engine and stats."""

from arbscout.scout.config_store import ScoutConfigStore, ScoutConfiguration
from arbscout.scout.engine import ProductScanner, ScanCycleEngine, ScannedProduct, ScanSummary
from arbscout.scout.policy import ScoutPolicy, resolve_interval_ms
from arbscout.scout.queue_store import ScoutQueueStore
from arbscout.scout.scoring import OpportunityEstimate, ProductFilter, SkipReason, estimate_opportunity
from arbscout.scout.stats import DailyActivity, ScoutStats, ScoutStatsAggregator

__all__ = [
    "ScoutConfigStore",
    "ScoutConfiguration",
    "ProductScanner",
    "ScanCycleEngine",
    "ScannedProduct",
    "ScanSummary",
    "ScoutPolicy",
    "resolve_interval_ms",
    "ScoutQueueStore",
    "OpportunityEstimate",
    "ProductFilter",
    "SkipReason",
    "estimate_opportunity",
    "DailyActivity",
    "ScoutStats",
    "ScoutStatsAggregator",
]
