"""Tests for the scout queue lifecycle."""

from datetime import datetime, timedelta

import pytest

from arbscout.db.models import ScoutQueueItem
from arbscout.exceptions import (
    QueueItemNotFoundError,
    QueueItemNotReviewableError,
    ScoutValidationError,
)


def make_item(config_id, url="https://amazon.example/p/1", created_at=None, **overrides):
    values = dict(
        scout_config_id=config_id,
        source_platform="amazon",
        target_platform="ebay",
        source_price=20.0,
        target_price=28.24,
        estimated_margin_pct=20.0,
        estimated_profit=4.0,
        product_name="LEGO Castle",
        product_url=url,
        status="pending",
        created_at=created_at,
    )
    values.update(overrides)
    return ScoutQueueItem(**values)


@pytest.fixture
async def config(config_store):
    return await config_store.create("Toys")


@pytest.mark.asyncio
async def test_insert_and_get(queue_store, config):
    item = await queue_store.insert(make_item(config.id))

    fetched = await queue_store.get(item.id)
    assert fetched.status == "pending"
    assert fetched.created_at is not None
    assert fetched.reviewed_at is None
    assert await queue_store.get("missing") is None


@pytest.mark.asyncio
async def test_list_is_newest_first_and_filtered(queue_store, config, config_store):
    other = await config_store.create("Other")
    now = datetime.utcnow()
    old = await queue_store.insert(make_item(config.id, "u1", now - timedelta(hours=2)))
    new = await queue_store.insert(make_item(config.id, "u2", now - timedelta(hours=1)))
    await queue_store.insert(make_item(other.id, "u3", now, status="approved"))

    items = await queue_store.list(config_id=config.id)
    assert [i.id for i in items] == [new.id, old.id]

    approved = await queue_store.list(status="approved")
    assert [i.scout_config_id for i in approved] == [other.id]

    page = await queue_store.list(limit=1, offset=1)
    assert [i.id for i in page] == [new.id]


@pytest.mark.asyncio
async def test_list_rejects_bad_arguments(queue_store):
    with pytest.raises(ScoutValidationError):
        await queue_store.list(status="archived")

    with pytest.raises(ScoutValidationError):
        await queue_store.list(limit=0)

    with pytest.raises(ScoutValidationError):
        await queue_store.list(offset=-1)


@pytest.mark.asyncio
async def test_approve_and_reject_are_single_use(queue_store, config):
    first = await queue_store.insert(make_item(config.id, "u1"))
    second = await queue_store.insert(make_item(config.id, "u2"))

    assert await queue_store.approve(first.id) is True
    assert await queue_store.approve(first.id) is False
    assert await queue_store.reject(first.id) is False

    assert await queue_store.reject(second.id) is True
    assert await queue_store.approve(second.id) is False

    approved = await queue_store.get(first.id)
    rejected = await queue_store.get(second.id)
    assert approved.status == "approved"
    assert approved.reviewed_at is not None
    assert rejected.status == "rejected"


@pytest.mark.asyncio
async def test_review_of_unknown_item_is_a_noop(queue_store):
    assert await queue_store.approve("missing") is False
    assert await queue_store.reject("missing") is False


@pytest.mark.asyncio
async def test_mark_listed_requires_approval(queue_store, config):
    item = await queue_store.insert(make_item(config.id))

    assert await queue_store.mark_listed(item.id, "ebay-123") is False

    await queue_store.approve(item.id)
    assert await queue_store.mark_listed(item.id, "ebay-123") is True
    assert await queue_store.mark_listed(item.id, "ebay-456") is False

    listed = await queue_store.get(item.id)
    assert listed.status == "listed"
    assert listed.listing_id == "ebay-123"
    assert listed.listed_at is not None


@pytest.mark.asyncio
async def test_expiry_is_idempotent(queue_store, config):
    now = datetime(2026, 3, 15, 12, 0)
    stale = await queue_store.insert(make_item(config.id, "u1", now - timedelta(days=10)))
    fresh = await queue_store.insert(make_item(config.id, "u2", now - timedelta(days=1)))
    reviewed = await queue_store.insert(
        make_item(config.id, "u3", now - timedelta(days=10), status="approved")
    )

    assert await queue_store.expire_older_than(7, now=now) == 1
    assert await queue_store.expire_older_than(7, now=now) == 0

    assert (await queue_store.get(stale.id)).status == "expired"
    assert (await queue_store.get(fresh.id)).status == "pending"
    assert (await queue_store.get(reviewed.id)).status == "approved"

    # An expired item can no longer be reviewed
    assert await queue_store.approve(stale.id) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("age", [0, -1, float("nan"), float("inf"), "soon"])
async def test_expiry_ignores_invalid_ages(queue_store, config, age):
    await queue_store.insert(
        make_item(config.id, created_at=datetime.utcnow() - timedelta(days=365))
    )
    assert await queue_store.expire_older_than(age) == 0


@pytest.mark.asyncio
async def test_pending_duplicate_detection(queue_store, config, config_store):
    other = await config_store.create("Other")
    item = await queue_store.insert(make_item(config.id, "https://amazon.example/p/1"))

    assert await queue_store.exists_pending_duplicate(
        "https://amazon.example/p/1", "amazon", config.id
    )
    assert not await queue_store.exists_pending_duplicate(
        "https://amazon.example/p/1", "walmart", config.id
    )
    assert not await queue_store.exists_pending_duplicate(
        "https://amazon.example/p/1", "amazon", other.id
    )

    await queue_store.reject(item.id)
    assert not await queue_store.exists_pending_duplicate(
        "https://amazon.example/p/1", "amazon", config.id
    )


@pytest.mark.asyncio
async def test_raise_for_failed_transition(queue_store, config):
    item = await queue_store.insert(make_item(config.id))
    await queue_store.reject(item.id)

    with pytest.raises(QueueItemNotReviewableError) as exc_info:
        await queue_store.raise_for_failed_transition(item.id, "pending")
    assert exc_info.value.status == "rejected"

    with pytest.raises(QueueItemNotFoundError):
        await queue_store.raise_for_failed_transition("missing", "pending")
