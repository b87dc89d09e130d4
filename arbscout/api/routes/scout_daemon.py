"""Scout daemon control routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from arbscout.api.deps import get_scout_services, require_admin_api_key
from arbscout.services import ScoutServices
from arbscout.worker.scheduler import DaemonOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scout/daemon", tags=["scout"])


class StartDaemonRequest(BaseModel):
    interval_override_minutes: Optional[float] = Field(None, gt=0)


@router.get("")
async def daemon_status(services: ScoutServices = Depends(get_scout_services)):
    """Get the daemon state and its per-config timers."""
    return services.daemon_manager.status()


@router.post("/start", dependencies=[Depends(require_admin_api_key)])
async def start_daemon(
    request: Optional[StartDaemonRequest] = None,
    services: ScoutServices = Depends(get_scout_services),
):
    """Start (or restart) the scout daemon for all enabled configs."""
    if services.scanner is None:
        raise HTTPException(
            status_code=503, detail="No scanner configured. Cannot start daemon."
        )

    options = DaemonOptions()
    if request is not None and request.interval_override_minutes is not None:
        options.interval_override_ms = request.interval_override_minutes * 60_000

    handle = await services.daemon_manager.start(services.scanner, options)
    logger.info("Scout daemon started via API (%d configs)", len(handle.config_ids))
    return {"message": "Scout daemon started", "config_ids": list(handle.config_ids)}


@router.post("/stop", dependencies=[Depends(require_admin_api_key)])
async def stop_daemon(services: ScoutServices = Depends(get_scout_services)):
    """Stop the running scout daemon."""
    if not services.daemon_manager.stop():
        raise HTTPException(status_code=409, detail="Scout daemon is not running")
    return {"message": "Scout daemon stopped"}
