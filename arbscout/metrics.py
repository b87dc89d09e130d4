"""Prometheus metrics for the scout daemon."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("arbscout", "Arbitrage scout application info")
app_info.info({"version": "0.1.0", "name": "arbscout"})

# Cycle metrics
scout_cycles_total = Counter(
    "scout_cycles_total",
    "Total number of scout scan cycles",
    ["status"],
)

scout_cycle_duration_seconds = Histogram(
    "scout_cycle_duration_seconds",
    "Time spent running one scout scan cycle",
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 900.0],
)

scout_last_cycle_timestamp = Gauge(
    "scout_last_cycle_timestamp",
    "Timestamp of the last completed cycle per scout config",
    ["config_id"],
)

# Product metrics
scout_products_scanned_total = Counter(
    "scout_products_scanned_total",
    "Total number of products returned by scanners",
    ["platform"],
)

scout_products_queued_total = Counter(
    "scout_products_queued_total",
    "Total number of products inserted into the scout queue",
    ["platform"],
)

scout_products_skipped_total = Counter(
    "scout_products_skipped_total",
    "Total number of products skipped by the filter pipeline",
    ["reason"],
)

scout_scanner_errors_total = Counter(
    "scout_scanner_errors_total",
    "Total number of failed scanner calls",
    ["platform"],
)

# Queue metrics
scout_queue_transitions_total = Counter(
    "scout_queue_transitions_total",
    "Total number of queue item status transitions",
    ["status"],
)


def record_cycle(config_id: str, success: bool, duration: float):
    """Record a finished scan cycle."""
    status = "success" if success else "error"
    scout_cycles_total.labels(status=status).inc()
    scout_cycle_duration_seconds.observe(duration)
    if success:
        scout_last_cycle_timestamp.labels(config_id=config_id).set(time.time())


def record_cycle_skipped(reason: str):
    """Record a tick that did not run a cycle (disabled, overlapping, daemon not running)."""
    scout_cycles_total.labels(status=f"skipped_{reason}").inc()


def record_scanned(platform: str, count: int = 1):
    """Record products returned by a scanner."""
    if count:
        scout_products_scanned_total.labels(platform=platform).inc(count)


def record_queued(platform: str):
    """Record a product inserted into the queue."""
    scout_products_queued_total.labels(platform=platform).inc()


def record_skipped(reason: str):
    """Record a product rejected by the filter pipeline."""
    scout_products_skipped_total.labels(reason=reason).inc()


def record_scanner_error(platform: str):
    """Record a scanner call that raised."""
    scout_scanner_errors_total.labels(platform=platform).inc()


def record_queue_transition(status: str, count: int = 1):
    """Record queue items moving into a new status."""
    if count:
        scout_queue_transitions_total.labels(status=status).inc(count)
