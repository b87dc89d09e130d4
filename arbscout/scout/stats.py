"""Read-only rollups over the scout queue and config counters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbscout.db.models import ScoutConfig, ScoutQueueItem

BY_DAY_WINDOW_DAYS = 30

# Statuses that count as "queued for review" on the day an item was created
_QUEUED_STATUSES = {"pending", "approved", "rejected", "expired"}


@dataclass
class DailyActivity:
    day: str
    queued: int = 0
    approved: int = 0
    listed: int = 0


@dataclass
class ScoutStats:
    total_scanned: int = 0
    total_queued: int = 0
    total_approved: int = 0
    total_listed: int = 0
    total_rejected: int = 0
    total_expired: int = 0
    by_day: list[DailyActivity] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


class ScoutStatsAggregator:
    """Aggregates queue status counts and config counters for reporting."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_stats(
        self,
        config_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ScoutStats:
        """
        Get aggregate statistics, optionally scoped to one scout config.

        ``total_scanned`` comes from the configs' ``total_opportunities_found``
        counters; everything else is counted from the queue.
        """
        now = now or datetime.utcnow()
        window_start = now - timedelta(days=BY_DAY_WINDOW_DAYS)

        count_query = select(ScoutQueueItem.status, func.count(ScoutQueueItem.id)).group_by(
            ScoutQueueItem.status
        )
        scanned_query = select(
            func.coalesce(func.sum(ScoutConfig.total_opportunities_found), 0)
        )
        day_column = func.date(ScoutQueueItem.created_at)
        day_query = (
            select(day_column, ScoutQueueItem.status, func.count(ScoutQueueItem.id))
            .where(ScoutQueueItem.created_at >= window_start)
            .group_by(day_column, ScoutQueueItem.status)
        )
        if config_id is not None:
            count_query = count_query.where(ScoutQueueItem.scout_config_id == config_id)
            scanned_query = scanned_query.where(ScoutConfig.id == config_id)
            day_query = day_query.where(ScoutQueueItem.scout_config_id == config_id)

        async with self._session_factory() as db:
            counts = {status: count for status, count in (await db.execute(count_query)).all()}
            total_scanned = (await db.execute(scanned_query)).scalar() or 0
            day_rows = (await db.execute(day_query)).all()

        return ScoutStats(
            total_scanned=int(total_scanned),
            total_queued=sum(counts.values()),
            total_approved=counts.get("approved", 0),
            total_listed=counts.get("listed", 0),
            total_rejected=counts.get("rejected", 0),
            total_expired=counts.get("expired", 0),
            by_day=self._build_by_day(day_rows),
        )

    @staticmethod
    def _build_by_day(rows) -> list[DailyActivity]:
        days: dict[str, DailyActivity] = {}
        for day, status, count in rows:
            key = str(day)
            entry = days.setdefault(key, DailyActivity(day=key))
            if status in _QUEUED_STATUSES:
                entry.queued += count
            if status == "approved":
                entry.approved += count
            if status == "listed":
                entry.listed += count

        ordered = sorted(days.values(), key=lambda d: d.day, reverse=True)
        return ordered[:BY_DAY_WINDOW_DAYS]
