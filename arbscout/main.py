"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from arbscout.api.routes import scout_configs, scout_daemon, scout_queue
from arbscout.config import settings
from arbscout.db.models import Base
from arbscout.db.session import AsyncSessionLocal, engine
from arbscout.ingest.http_scanner import HttpJsonScanner
from arbscout.services import ScoutServices

# Configure structured logging
from arbscout.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def build_scanner():
    """Build the HTTP scanner when a scanner endpoint is configured."""
    if not settings.scanner_base_url:
        logger.warning("SCANNER_BASE_URL not set; scout runs are disabled")
        return None
    return HttpJsonScanner(
        base_url=settings.scanner_base_url,
        api_key=settings.scanner_api_key,
        timeout=settings.scanner_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Arbitrage Scout...")

    # Initialize database
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scanner = build_scanner()
    services = ScoutServices.build(
        AsyncSessionLocal,
        scanner=scanner,
        fee_rate=settings.scout_sell_fee_rate,
    )
    app.state.scout = services

    if settings.scout_autostart and scanner is not None:
        handle = await services.daemon_manager.start(scanner)
        logger.info("Scout daemon autostarted with %d configs", len(handle.config_ids))

    yield

    # Shutdown
    logger.info("Shutting down...")

    daemon = services.daemon_manager.daemon
    services.daemon_manager.stop()
    if daemon is not None:
        await daemon.wait_for_idle()

    if scanner is not None:
        try:
            await scanner.close()
        except Exception:
            logger.exception("Error closing scanner HTTP client")

    await engine.dispose()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Arbitrage Scout",
    description="Scan retail platforms for resale opportunities and queue them for review",
    version="0.1.0",
    lifespan=lifespan,
)

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

# Include API routes
app.include_router(scout_configs.router)
app.include_router(scout_queue.router)
app.include_router(scout_daemon.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "arbscout.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
