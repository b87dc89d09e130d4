"""Wiring of the scout stores, engine, stats and daemon around one session factory."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbscout.scout.config_store import ScoutConfigStore
from arbscout.scout.engine import ProductScanner, ScanCycleEngine
from arbscout.scout.queue_store import ScoutQueueStore
from arbscout.scout.stats import ScoutStatsAggregator
from arbscout.worker.scheduler import ScoutDaemonManager


@dataclass
class ScoutServices:
    """Everything the control surface needs, sharing one engine (and its in-flight guard)."""

    config_store: ScoutConfigStore
    queue_store: ScoutQueueStore
    engine: ScanCycleEngine
    stats: ScoutStatsAggregator
    daemon_manager: ScoutDaemonManager
    scanner: Optional[ProductScanner] = None

    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        scanner: Optional[ProductScanner] = None,
        fee_rate: Optional[float] = None,
    ) -> "ScoutServices":
        config_store = ScoutConfigStore(session_factory)
        queue_store = ScoutQueueStore(session_factory)
        engine = ScanCycleEngine(config_store, queue_store, fee_rate=fee_rate)
        return cls(
            config_store=config_store,
            queue_store=queue_store,
            engine=engine,
            stats=ScoutStatsAggregator(session_factory),
            daemon_manager=ScoutDaemonManager(config_store, engine, queue_store),
            scanner=scanner,
        )
