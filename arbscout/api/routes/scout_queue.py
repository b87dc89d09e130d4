"""Scout queue review and stats routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from arbscout.api.deps import get_scout_services
from arbscout.exceptions import (
    QueueItemNotFoundError,
    QueueItemNotReviewableError,
    ScoutValidationError,
)
from arbscout.services import ScoutServices

router = APIRouter(prefix="/api/scout", tags=["scout"])


class QueueItemResponse(BaseModel):
    id: str
    scout_config_id: str
    product_id: Optional[str]
    source_platform: str
    target_platform: str
    source_price: float
    target_price: Optional[float]
    estimated_margin_pct: Optional[float]
    estimated_profit: Optional[float]
    product_name: Optional[str]
    product_url: Optional[str]
    image_url: Optional[str]
    category: Optional[str]
    status: str
    reviewed_at: Optional[datetime]
    listed_at: Optional[datetime]
    listing_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class QueueListResponse(BaseModel):
    items: List[QueueItemResponse]
    count: int


class ExpireRequest(BaseModel):
    max_age_days: float = Field(..., gt=0)


class MarkListedRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)


class DailyActivityResponse(BaseModel):
    day: str
    queued: int
    approved: int
    listed: int


class ScoutStatsResponse(BaseModel):
    total_scanned: int
    total_queued: int
    total_approved: int
    total_listed: int
    total_rejected: int
    total_expired: int
    by_day: List[DailyActivityResponse]


@router.get("/queue", response_model=QueueListResponse)
async def list_queue(
    status: Optional[str] = None,
    config_id: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: ScoutServices = Depends(get_scout_services),
):
    """List queued opportunities, most recent first."""
    try:
        items = await services.queue_store.list(
            status=status, config_id=config_id, limit=limit, offset=offset
        )
    except ScoutValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"items": items, "count": len(items)}


async def _transition_failed(services: ScoutServices, item_id: str, required: str):
    try:
        await services.queue_store.raise_for_failed_transition(item_id, required)
    except QueueItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except QueueItemNotReviewableError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/queue/{item_id}/approve")
async def approve_item(
    item_id: str,
    services: ScoutServices = Depends(get_scout_services),
):
    """Approve a pending queue item."""
    if not await services.queue_store.approve(item_id):
        await _transition_failed(services, item_id, "pending")
    return {"item_id": item_id, "status": "approved"}


@router.post("/queue/{item_id}/reject")
async def reject_item(
    item_id: str,
    services: ScoutServices = Depends(get_scout_services),
):
    """Reject a pending queue item."""
    if not await services.queue_store.reject(item_id):
        await _transition_failed(services, item_id, "pending")
    return {"item_id": item_id, "status": "rejected"}


@router.post("/queue/{item_id}/listed")
async def mark_item_listed(
    item_id: str,
    request: MarkListedRequest,
    services: ScoutServices = Depends(get_scout_services),
):
    """Record the marketplace listing created for an approved item."""
    if not await services.queue_store.mark_listed(item_id, request.listing_id):
        await _transition_failed(services, item_id, "approved")
    return {"item_id": item_id, "status": "listed", "listing_id": request.listing_id}


@router.post("/queue/expire")
async def expire_queue(
    request: ExpireRequest,
    services: ScoutServices = Depends(get_scout_services),
):
    """Expire pending items older than ``max_age_days``."""
    expired = await services.queue_store.expire_older_than(request.max_age_days)
    return {"expired": expired}


@router.get("/stats", response_model=ScoutStatsResponse)
async def get_stats(
    config_id: Optional[str] = None,
    services: ScoutServices = Depends(get_scout_services),
):
    """Get scout statistics, optionally for one config."""
    stats = await services.stats.get_stats(config_id)
    return stats.as_dict()
