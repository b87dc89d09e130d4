"""Scan-cycle engine: scan -> filter/score -> dedupe -> queue."""

from __future__ import annotations

import inspect
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Iterable, Mapping, Optional, Protocol, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError

from arbscout import metrics
from arbscout.db.models import ScoutQueueItem
from arbscout.exceptions import CycleInProgressError
from arbscout.logging_config import ScoutLogAdapter, get_logger
from arbscout.scout.config_store import ScoutConfigStore, ScoutConfiguration
from arbscout.scout.queue_store import ScoutQueueStore
from arbscout.scout.scoring import OpportunityEstimate, ProductFilter, SkipReason


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class ScannedProduct:
    """A single product returned by a platform scanner."""

    name: str
    price: Any
    platform: str
    product_id: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], platform: str) -> "ScannedProduct":
        """
        Build a product from a scanner payload.

        Accepts snake_case and camelCase keys. The price is kept as given;
        the filter pipeline decides whether it is usable.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a mapping, got {type(data).__name__}")
        return cls(
            name=str(data.get("name") or data.get("title") or ""),
            price=data.get("price"),
            platform=str(data.get("platform") or platform),
            product_id=_optional_str(data.get("product_id", data.get("productId"))),
            url=_optional_str(data.get("url")),
            image_url=_optional_str(data.get("image_url", data.get("imageUrl"))),
            category=_optional_str(data.get("category")),
            brand=_optional_str(data.get("brand")),
        )


ScanResult = Sequence[Union[ScannedProduct, Mapping[str, Any]]]


class ProductScanner(Protocol):
    """
    Scanning capability supplied by the host.

    Any callable ``(platform, keyword, max_results)`` returning (or resolving
    to) a sequence of products satisfies it; plain async functions do.
    """

    def __call__(
        self, platform: str, keyword: str, max_results: int
    ) -> Union[Awaitable[ScanResult], ScanResult]:
        ...


@dataclass
class ScanSummary:
    """Summary of a single scan cycle."""

    scanned: int = 0
    qualified: int = 0
    queued: int = 0
    skipped: int = 0
    scanner_errors: int = 0
    skip_reasons: dict[str, int] = field(default_factory=dict)

    def skip(self, reason: SkipReason) -> None:
        self.skipped += 1
        self.skip_reasons[reason.value] = self.skip_reasons.get(reason.value, 0) + 1
        metrics.record_skipped(reason.value)

    def as_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "qualified": self.qualified,
            "queued": self.queued,
            "skipped": self.skipped,
        }


class ScanCycleEngine:
    """
    Runs one full scan pass for a scout config.

    Scanner failures and malformed products are absorbed and counted; only a
    failure to insert a qualifying item propagates, since a cycle that cannot
    persist its findings has done useless work. Cycles for the same config
    never overlap: a second concurrent request raises CycleInProgressError.
    """

    def __init__(
        self,
        config_store: ScoutConfigStore,
        queue_store: ScoutQueueStore,
        fee_rate: Optional[float] = None,
    ):
        self.config_store = config_store
        self.queue_store = queue_store
        self.fee_rate = fee_rate
        self._in_flight: set[str] = set()

    def is_running(self, config_id: str) -> bool:
        return config_id in self._in_flight

    @contextmanager
    def _cycle_guard(self, config_id: str):
        if config_id in self._in_flight:
            raise CycleInProgressError(config_id)
        self._in_flight.add(config_id)
        try:
            yield
        finally:
            self._in_flight.discard(config_id)

    async def run_cycle(
        self,
        config: ScoutConfiguration,
        scan_fn: ProductScanner,
    ) -> ScanSummary:
        """
        Scan every platform x keyword pair of ``config`` and queue qualifying products.

        Args:
            config: Resolved scout config
            scan_fn: Scanner callable

        Returns:
            ScanSummary with scanned/qualified/queued/skipped counts

        Raises:
            CycleInProgressError: If a cycle for this config is already running
        """
        with self._cycle_guard(config.id):
            started = time.monotonic()
            try:
                summary = await self._run(config, scan_fn)
            except Exception:
                metrics.record_cycle(config.id, False, time.monotonic() - started)
                raise
            metrics.record_cycle(config.id, True, time.monotonic() - started)
            return summary

    async def _run(
        self,
        config: ScoutConfiguration,
        scan_fn: ProductScanner,
    ) -> ScanSummary:
        log = get_logger(__name__, config_id=config.id, config_name=config.name)
        policy = config.policy
        product_filter = ProductFilter(policy, self.fee_rate)
        summary = ScanSummary()

        for platform in policy.effective_platforms():
            for keyword in policy.effective_keywords():
                products = await self._scan_pair(
                    scan_fn,
                    platform,
                    keyword,
                    policy.max_results,
                    summary,
                    log.bind(platform=platform, keyword=keyword),
                )
                metrics.record_scanned(platform, len(products))

                for raw in products:
                    summary.scanned += 1
                    await self._process_product(
                        config, platform, raw, product_filter, summary, log
                    )

        await self._record_run(config, summary.queued, log)

        log.info(
            "Scout scan cycle complete for %s: scanned=%d qualified=%d queued=%d skipped=%d",
            config.name,
            summary.scanned,
            summary.qualified,
            summary.queued,
            summary.skipped,
        )
        return summary

    async def _scan_pair(
        self,
        scan_fn: ProductScanner,
        platform: str,
        keyword: str,
        max_results: int,
        summary: ScanSummary,
        log: ScoutLogAdapter,
    ) -> list:
        try:
            result = scan_fn(platform, keyword, max_results)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            summary.scanner_errors += 1
            metrics.record_scanner_error(platform)
            log.warning(
                "Scan function failed for %s/%s: %s", platform, keyword, exc
            )
            return []

        if result is None:
            return []
        if isinstance(result, (str, bytes, Mapping)) or not isinstance(result, Iterable):
            summary.scanner_errors += 1
            metrics.record_scanner_error(platform)
            log.warning(
                "Scan function for %s/%s returned %s, expected a sequence of products",
                platform,
                keyword,
                type(result).__name__,
            )
            return []
        return list(result)

    async def _process_product(
        self,
        config: ScoutConfiguration,
        platform: str,
        raw: Any,
        product_filter: ProductFilter,
        summary: ScanSummary,
        log: ScoutLogAdapter,
    ) -> None:
        if isinstance(raw, ScannedProduct):
            product = raw
        else:
            try:
                product = ScannedProduct.from_mapping(raw, platform)
            except TypeError:
                log.debug("Skipping malformed product from %s: %r", platform, raw)
                summary.skip(SkipReason.MALFORMED)
                return

        reason, estimate = product_filter.evaluate(
            product.price, product.brand, product.category
        )
        if reason is not None:
            summary.skip(reason)
            return

        summary.qualified += 1

        if product.url and await self._is_duplicate(product.url, platform, config.id, log):
            summary.skip(SkipReason.DUPLICATE)
            return

        await self.queue_store.insert(
            self._build_item(config, platform, product, estimate)
        )
        summary.queued += 1
        metrics.record_queued(platform)

    async def _is_duplicate(
        self,
        url: str,
        platform: str,
        config_id: str,
        log: ScoutLogAdapter,
    ) -> bool:
        try:
            return await self.queue_store.exists_pending_duplicate(url, platform, config_id)
        except SQLAlchemyError as exc:
            log.warning("Duplicate check failed for %s, treating as new: %s", url, exc)
            return False

    async def _record_run(
        self,
        config: ScoutConfiguration,
        queued: int,
        log: ScoutLogAdapter,
    ) -> None:
        try:
            await self.config_store.record_run(config.id, queued)
        except SQLAlchemyError as exc:
            log.warning("Failed to update counters for scout config %s: %s", config.id, exc)

    @staticmethod
    def _build_item(
        config: ScoutConfiguration,
        platform: str,
        product: ScannedProduct,
        estimate: OpportunityEstimate,
    ) -> ScoutQueueItem:
        policy = config.policy
        return ScoutQueueItem(
            scout_config_id=config.id,
            product_id=product.product_id,
            source_platform=platform,
            target_platform=policy.target_platform,
            source_price=estimate.source_price,
            target_price=round(estimate.target_price, 2),
            estimated_margin_pct=round(estimate.estimated_margin_pct, 2),
            estimated_profit=round(estimate.estimated_profit, 2),
            product_name=product.name or None,
            product_url=product.url,
            image_url=product.image_url,
            category=product.category,
            status="approved" if policy.auto_list else "pending",
            created_at=datetime.utcnow(),
        )
