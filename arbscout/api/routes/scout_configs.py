"""Scout config management routes."""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from arbscout.api.deps import get_scout_services
from arbscout.exceptions import (
    CycleInProgressError,
    ScoutConfigNotFoundError,
    ScoutValidationError,
)
from arbscout.scout.config_store import ScoutConfiguration
from arbscout.services import ScoutServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scout/configs", tags=["scout"])


class ScoutPolicyFields(BaseModel):
    enabled: Optional[bool] = None
    interval_minutes: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    platforms: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    min_margin_pct: Optional[float] = None
    min_source_price: Optional[float] = None
    max_source_price: Optional[float] = None
    max_results: Optional[int] = None
    auto_list: Optional[bool] = None
    target_platform: Optional[str] = None
    exclude_brands: Optional[List[str]] = None
    exclude_categories: Optional[List[str]] = None

    def to_fields(self) -> dict[str, Any]:
        fields = self.model_dump(exclude_unset=True, exclude={"interval_minutes"})
        if self.interval_minutes is not None:
            fields["interval_ms"] = int(self.interval_minutes * 60_000)
        return fields


class ScoutConfigCreate(ScoutPolicyFields):
    name: str


class ScoutConfigUpdate(ScoutPolicyFields):
    name: Optional[str] = None


class ScoutConfigResponse(BaseModel):
    id: str
    name: str
    enabled: bool
    policy: dict[str, Any]
    last_run_at: Optional[datetime]
    total_runs: int
    total_opportunities_found: int
    created_at: datetime

    @classmethod
    def from_config(cls, config: ScoutConfiguration) -> "ScoutConfigResponse":
        return cls(
            id=config.id,
            name=config.name,
            enabled=config.enabled,
            policy=config.policy.model_dump(),
            last_run_at=config.last_run_at,
            total_runs=config.total_runs,
            total_opportunities_found=config.total_opportunities_found,
            created_at=config.created_at,
        )


class ScanSummaryResponse(BaseModel):
    scanned: int
    qualified: int
    queued: int
    skipped: int


@router.get("", response_model=List[ScoutConfigResponse])
async def list_configs(
    enabled_only: bool = False,
    services: ScoutServices = Depends(get_scout_services),
):
    """List scout configs."""
    configs = await services.config_store.list(enabled_only=enabled_only)
    return [ScoutConfigResponse.from_config(c) for c in configs]


@router.post("", response_model=ScoutConfigResponse, status_code=201)
async def create_config(
    config_data: ScoutConfigCreate,
    services: ScoutServices = Depends(get_scout_services),
):
    """Create a new scout config."""
    try:
        config = await services.config_store.create(
            config_data.name, config_data.to_fields()
        )
    except ScoutValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return ScoutConfigResponse.from_config(config)


@router.get("/{config_id}", response_model=ScoutConfigResponse)
async def get_config(
    config_id: str,
    services: ScoutServices = Depends(get_scout_services),
):
    """Get a scout config by ID."""
    config = await services.config_store.get(config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Scout config not found")
    return ScoutConfigResponse.from_config(config)


@router.patch("/{config_id}", response_model=ScoutConfigResponse)
async def update_config(
    config_id: str,
    config_data: ScoutConfigUpdate,
    services: ScoutServices = Depends(get_scout_services),
):
    """Update a scout config; omitted fields keep their values."""
    fields = config_data.to_fields()
    try:
        config = await services.config_store.update(config_id, fields)
    except ScoutValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if not config:
        raise HTTPException(status_code=404, detail="Scout config not found")
    return ScoutConfigResponse.from_config(config)


@router.delete("/{config_id}")
async def delete_config(
    config_id: str,
    services: ScoutServices = Depends(get_scout_services),
):
    """Disable (soft-delete) a scout config."""
    if not await services.config_store.soft_delete(config_id):
        raise HTTPException(status_code=404, detail="Scout config not found")
    return {"id": config_id, "disabled": True}


@router.post("/{config_id}/run", response_model=ScanSummaryResponse)
async def run_config(
    config_id: str,
    services: ScoutServices = Depends(get_scout_services),
):
    """Run a single scan cycle for a scout config now."""
    if services.scanner is None:
        raise HTTPException(
            status_code=503, detail="No scanner configured. Cannot run scan."
        )

    try:
        config = await services.config_store.require(config_id)
    except ScoutConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    try:
        summary = await services.engine.run_cycle(config, services.scanner)
    except CycleInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    logger.info("Manual scout run for %s: %s", config_id, summary.as_dict())
    return summary.as_dict()
