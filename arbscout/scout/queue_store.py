"""Scout queue persistence: candidate opportunities and their review lifecycle."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from arbscout import metrics
from arbscout.config import settings
from arbscout.db.models import QUEUE_STATUSES, ScoutQueueItem
from arbscout.exceptions import (
    QueueItemNotFoundError,
    QueueItemNotReviewableError,
    ScoutValidationError,
)

logger = logging.getLogger(__name__)


class ScoutQueueStore:
    """
    Manages scout queue items.

    Status transitions are single conditional UPDATE statements so that two
    reviewers racing on the same item cannot both succeed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, item: ScoutQueueItem) -> ScoutQueueItem:
        """Persist a new queue item. Errors propagate to the caller."""
        if item.created_at is None:
            item.created_at = datetime.utcnow()
        async with self._session_factory() as db:
            db.add(item)
            await db.commit()
            await db.refresh(item)
        return item

    async def get(self, item_id: str) -> Optional[ScoutQueueItem]:
        async with self._session_factory() as db:
            return await db.get(ScoutQueueItem, item_id)

    async def list(
        self,
        status: Optional[str] = None,
        config_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ScoutQueueItem]:
        """
        List queue items, most recent first.

        Args:
            status: Only items in this status
            config_id: Only items discovered by this scout config
            limit: Page size (defaults to settings.scout_queue_page_size)
            offset: Rows to skip

        Raises:
            ScoutValidationError: On an unknown status or negative paging values
        """
        if status is not None and status not in QUEUE_STATUSES:
            raise ScoutValidationError(
                f"Unknown queue status '{status}' (expected one of {', '.join(QUEUE_STATUSES)})"
            )
        if limit is None:
            limit = settings.scout_queue_page_size
        if limit < 1 or offset < 0:
            raise ScoutValidationError("limit must be positive and offset non-negative")

        query = select(ScoutQueueItem)
        if status is not None:
            query = query.where(ScoutQueueItem.status == status)
        if config_id is not None:
            query = query.where(ScoutQueueItem.scout_config_id == config_id)
        query = (
            query.order_by(ScoutQueueItem.created_at.desc(), ScoutQueueItem.id.desc())
            .limit(limit)
            .offset(offset)
        )

        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def approve(self, item_id: str) -> bool:
        """Approve a pending item. Returns False if it is not pending."""
        return await self._review(item_id, "approved")

    async def reject(self, item_id: str) -> bool:
        """Reject a pending item. Returns False if it is not pending."""
        return await self._review(item_id, "rejected")

    async def _review(self, item_id: str, new_status: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScoutQueueItem)
                .where(
                    ScoutQueueItem.id == item_id,
                    ScoutQueueItem.status == "pending",
                )
                .values(status=new_status, reviewed_at=datetime.utcnow())
            )
            await db.commit()

        if result.rowcount == 0:
            return False
        metrics.record_queue_transition(new_status)
        logger.info("Scout queue item %s: %s", new_status, item_id)
        return True

    async def mark_listed(self, item_id: str, listing_id: str) -> bool:
        """
        Record that an approved item went live as a marketplace listing.

        Returns:
            False if the item is not currently approved
        """
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScoutQueueItem)
                .where(
                    ScoutQueueItem.id == item_id,
                    ScoutQueueItem.status == "approved",
                )
                .values(
                    status="listed",
                    listed_at=datetime.utcnow(),
                    listing_id=listing_id,
                )
            )
            await db.commit()

        if result.rowcount == 0:
            return False
        metrics.record_queue_transition("listed")
        logger.info("Scout queue item listed: %s -> %s", item_id, listing_id)
        return True

    async def expire_older_than(
        self,
        max_age_days: float,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Mark pending items created before the cutoff as expired.

        Re-running with the same cutoff expires nothing more.

        Returns:
            Number of items expired
        """
        try:
            max_age_days = float(max_age_days)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(max_age_days) or max_age_days <= 0:
            return 0

        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=max_age_days)
        async with self._session_factory() as db:
            result = await db.execute(
                update(ScoutQueueItem)
                .where(
                    ScoutQueueItem.status == "pending",
                    ScoutQueueItem.created_at < cutoff,
                )
                .values(status="expired", reviewed_at=now)
            )
            await db.commit()

        count = result.rowcount or 0
        if count:
            metrics.record_queue_transition("expired", count)
            logger.info(
                "Expired %d stale scout queue items (older than %s days)",
                count,
                max_age_days,
            )
        return count

    async def exists_pending_duplicate(
        self,
        url: str,
        source_platform: str,
        config_id: str,
    ) -> bool:
        """Check for a pending item with the same URL and platform for a config."""
        query = (
            select(ScoutQueueItem.id)
            .where(
                ScoutQueueItem.scout_config_id == config_id,
                ScoutQueueItem.source_platform == source_platform,
                ScoutQueueItem.product_url == url,
                ScoutQueueItem.status == "pending",
            )
            .limit(1)
        )
        async with self._session_factory() as db:
            result = await db.execute(query)
            return result.scalar_one_or_none() is not None

    async def raise_for_failed_transition(self, item_id: str, required: str) -> None:
        """
        Explain why a transition from ``required`` did not apply.

        Raises:
            QueueItemNotFoundError: If the item does not exist
            QueueItemNotReviewableError: If the item is in another status
        """
        item = await self.get(item_id)
        if item is None:
            raise QueueItemNotFoundError(item_id)
        raise QueueItemNotReviewableError(item_id, item.status, required)
