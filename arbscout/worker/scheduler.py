"""APScheduler-driven scout daemon: one interval job per enabled scout config."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from arbscout import metrics
from arbscout.config import settings
from arbscout.exceptions import (
    CycleInProgressError,
    DaemonAlreadyRunningError,
    DaemonStoppedError,
)
from arbscout.scout.config_store import ScoutConfigStore
from arbscout.scout.engine import ProductScanner, ScanCycleEngine, ScanSummary
from arbscout.scout.policy import resolve_interval_ms
from arbscout.scout.queue_store import ScoutQueueStore

logger = logging.getLogger(__name__)

EXPIRY_JOB_ID = "scout:expire_stale"


class DaemonState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class DaemonOptions:
    """
    Options for starting a scout daemon.

    Attributes:
        interval_override_ms: Replaces every config's own interval when set
        expire_after_days: Age at which pending items expire in the daily
            sweep (defaults to settings.scout_queue_max_age_days; 0 disables)
    """

    interval_override_ms: Optional[float] = None
    expire_after_days: Optional[float] = None


@dataclass
class ScoutDaemonHandle:
    """Returned by ScoutDaemon.start(); stop() is idempotent."""

    daemon: "ScoutDaemon"
    config_ids: tuple[str, ...] = field(default_factory=tuple)

    def stop(self) -> None:
        self.daemon.stop()


class ScoutDaemon:
    """
    Runs every enabled scout config on its own interval.

    Lifecycle: not_started -> running -> stopped. A stopped daemon cannot be
    restarted; build a new one. Each tick re-reads its config, so edits and
    disables take effect without a restart. Timer cancellation belongs to
    stop() only; ticks never remove their own job.
    """

    def __init__(
        self,
        config_store: ScoutConfigStore,
        engine: ScanCycleEngine,
        queue_store: Optional[ScoutQueueStore] = None,
    ):
        self.config_store = config_store
        self.engine = engine
        self.queue_store = queue_store
        self._scan_fn: Optional[ProductScanner] = None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._state = DaemonState.NOT_STARTED
        self._state_lock = threading.Lock()
        self._job_ids: dict[str, str] = {}
        self._intervals: dict[str, int] = {}
        self._tick_tasks: set[asyncio.Future] = set()

    @property
    def state(self) -> DaemonState:
        return self._state

    @property
    def scheduled_config_ids(self) -> list[str]:
        return list(self._job_ids)

    async def start(
        self,
        scan_fn: ProductScanner,
        options: Optional[DaemonOptions] = None,
    ) -> ScoutDaemonHandle:
        """
        Load enabled configs and start one timer per config.

        The first cycle of every config fires immediately. With no enabled
        configs the daemon is running but idle.

        Raises:
            DaemonStoppedError: If this daemon was already stopped
            DaemonAlreadyRunningError: If this daemon is already running
        """
        options = options or DaemonOptions()
        with self._state_lock:
            if self._state is DaemonState.STOPPED:
                raise DaemonStoppedError("Scout daemon was stopped; create a new one")
            if self._state is DaemonState.RUNNING:
                raise DaemonAlreadyRunningError("Scout daemon is already running")
            self._state = DaemonState.RUNNING
            self._scan_fn = scan_fn

        configs = await self.config_store.list(enabled_only=True)
        if not configs:
            logger.warning("No enabled scout configs found, daemon started but idle")
            return ScoutDaemonHandle(daemon=self)

        scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            timezone=timezone.utc,
        )
        now = datetime.now(timezone.utc)

        for config in configs:
            interval_ms = resolve_interval_ms(
                options.interval_override_ms
                if options.interval_override_ms is not None
                else config.policy.interval_ms
            )
            job_id = f"scout:{config.id}"
            scheduler.add_job(
                self.run_tick,
                IntervalTrigger(seconds=interval_ms / 1000),
                args=[config.id],
                id=job_id,
                name=f"Scout cycle: {config.name}",
                next_run_time=now,  # First cycle fires on registration
                max_instances=1,  # Prevent overlapping runs
                coalesce=True,
                misfire_grace_time=settings.scout_misfire_grace_seconds,
                replace_existing=True,
            )
            self._job_ids[config.id] = job_id
            self._intervals[config.id] = interval_ms
            logger.info(
                "Scout timer started: %s (%s) every %d ms",
                config.name,
                config.id,
                interval_ms,
            )

        expire_after_days = (
            options.expire_after_days
            if options.expire_after_days is not None
            else settings.scout_queue_max_age_days
        )
        if self.queue_store is not None and expire_after_days and expire_after_days > 0:
            scheduler.add_job(
                self.expire_stale_items,
                CronTrigger(hour=settings.scout_expiry_hour, minute=0, timezone=timezone.utc),
                args=[expire_after_days],
                id=EXPIRY_JOB_ID,
                name="Expire stale scout queue items",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

        with self._state_lock:
            # stop() may have raced the config load
            if self._state is not DaemonState.RUNNING:
                self._job_ids.clear()
                self._intervals.clear()
                return ScoutDaemonHandle(daemon=self)
            self._scheduler = scheduler
            scheduler.start()

        logger.info("Scout daemon started with %d configs", len(configs))
        return ScoutDaemonHandle(daemon=self, config_ids=tuple(self._job_ids))

    async def run_tick(self, config_id: str) -> Optional[ScanSummary]:
        """
        Run one scheduled tick for a config.

        The cycle runs in its own task so that a scheduler shutdown does not
        cancel a cycle that is already writing results. Ticks on a daemon
        that is not running do nothing.
        """
        if self._state is not DaemonState.RUNNING or self._scan_fn is None:
            logger.info("Scout daemon is %s, skipping tick for %s", self._state.value, config_id)
            metrics.record_cycle_skipped(self._state.value)
            return None
        task = asyncio.ensure_future(self._tick(config_id))
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)
        return await asyncio.shield(task)

    async def _tick(self, config_id: str) -> Optional[ScanSummary]:
        try:
            fresh = await self.config_store.get(config_id)
            if fresh is None or not fresh.enabled:
                logger.info("Scout config %s missing or disabled, skipping cycle", config_id)
                metrics.record_cycle_skipped("disabled")
                return None
            return await self.engine.run_cycle(fresh, self._scan_fn)
        except CycleInProgressError:
            logger.info("Previous cycle for scout config %s still running, skipping tick", config_id)
            metrics.record_cycle_skipped("overlap")
            return None
        except Exception as exc:
            logger.error("Scout scan cycle failed for %s: %s", config_id, exc, exc_info=True)
            return None

    async def expire_stale_items(self, max_age_days: float) -> int:
        """Daily housekeeping: expire pending items older than ``max_age_days``."""
        if self.queue_store is None:
            return 0
        try:
            return await self.queue_store.expire_older_than(max_age_days)
        except Exception as exc:
            logger.error("Scout queue expiry failed: %s", exc, exc_info=True)
            return 0

    async def wait_for_idle(self) -> None:
        """Wait for cycles that are already in flight to finish."""
        if self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)

    def stop(self) -> None:
        """
        Cancel every timer exactly once and release the scheduler.

        Safe to call repeatedly, before start() and from concurrent callers.
        In-flight cycles are allowed to finish.
        """
        with self._state_lock:
            if self._state is DaemonState.STOPPED:
                return
            self._state = DaemonState.STOPPED
            scheduler = self._scheduler
            self._scheduler = None
            job_ids = list(self._job_ids.values())
            self._job_ids.clear()
            self._intervals.clear()

        if scheduler is not None:
            for job_id in job_ids:
                try:
                    scheduler.remove_job(job_id)
                except JobLookupError:
                    logger.debug("Scout job %s already removed", job_id)
            if scheduler.running:
                scheduler.shutdown(wait=False)

        logger.info("Scout daemon stopped")

    def status(self) -> dict:
        """Describe the daemon state and its timers."""
        configs = []
        scheduler = self._scheduler
        for config_id, job_id in list(self._job_ids.items()):
            job = scheduler.get_job(job_id) if scheduler is not None else None
            configs.append(
                {
                    "config_id": config_id,
                    "interval_ms": self._intervals.get(config_id),
                    "next_run_time": job.next_run_time if job is not None else None,
                    "in_flight": self.engine.is_running(config_id),
                }
            )
        return {"state": self._state.value, "configs": configs}


class ScoutDaemonManager:
    """
    Process-level owner of at most one scout daemon.

    Starting again stops the current daemon and builds a fresh one.
    """

    def __init__(
        self,
        config_store: ScoutConfigStore,
        engine: ScanCycleEngine,
        queue_store: Optional[ScoutQueueStore] = None,
    ):
        self.config_store = config_store
        self.engine = engine
        self.queue_store = queue_store
        self._daemon: Optional[ScoutDaemon] = None
        self._handle: Optional[ScoutDaemonHandle] = None

    @property
    def daemon(self) -> Optional[ScoutDaemon]:
        return self._daemon

    @property
    def is_running(self) -> bool:
        return self._daemon is not None and self._daemon.state is DaemonState.RUNNING

    async def start(
        self,
        scan_fn: ProductScanner,
        options: Optional[DaemonOptions] = None,
    ) -> ScoutDaemonHandle:
        if self._handle is not None:
            logger.info("Replacing running scout daemon")
            self.stop()

        daemon = ScoutDaemon(self.config_store, self.engine, self.queue_store)
        handle = await daemon.start(scan_fn, options)
        self._daemon = daemon
        self._handle = handle
        return handle

    def stop(self) -> bool:
        """Stop the current daemon. Returns False if none was running."""
        handle = self._handle
        self._handle = None
        if handle is None:
            return False
        was_running = handle.daemon.state is DaemonState.RUNNING
        handle.stop()
        return was_running

    def status(self) -> dict:
        if self._daemon is None:
            return {"state": DaemonState.NOT_STARTED.value, "configs": []}
        return self._daemon.status()
