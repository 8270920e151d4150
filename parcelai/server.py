"""
HTTP API for the ParcelAI tracker.

Endpoints:
1. POST /api/track - Track a shipment through the fallback chain
2. POST /api/parse - Pull tracking numbers and order details out of text
3. GET /api/carriers - Supported carriers
4. GET /health - Liveness and cache size
"""

from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from parcelai import __version__
from parcelai.config import TrackerConfig, get_config
from parcelai.tracking.carriers import CARRIERS
from parcelai.tracking.extractor import parse_shipment_text
from parcelai.tracking.tracking_manager import TrackingManager


# ===== Models =====

class TrackRequest(BaseModel):
    """Body of POST /api/track."""
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    force_refresh: bool = False
    use_fallback: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ParseRequest(BaseModel):
    """Body of POST /api/parse."""
    content: Optional[str] = None


# ===== App =====

def create_app(
    config: Optional[TrackerConfig] = None,
    manager: Optional[TrackingManager] = None,
) -> FastAPI:
    """
    Build the API application.

    The manager is validated and the cache sweep scheduled when the app
    starts; both are torn down on shutdown.
    """
    config = config or get_config()
    manager = manager or TrackingManager(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager.start()

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            manager.cache.clean_expired,
            "interval",
            minutes=config.cache_sweep_minutes,
            id="cache_sweep",
        )
        scheduler.start()
        logger.info(f"Cache sweep scheduled every {config.cache_sweep_minutes} minutes")

        try:
            yield
        finally:
            scheduler.shutdown(wait=False)
            await manager.close()
            logger.info("Tracker API stopped")

    app = FastAPI(title="ParcelAI Tracker API", version=__version__, lifespan=lifespan)
    app.state.manager = manager

    @app.post("/api/track")
    async def track(request: TrackRequest):
        """
        Track a shipment.

        Domain failures (unknown carrier, blocked, not found) are a 200
        with success=false; only a missing number or an unexpected error
        changes the status code.
        """
        if not request.tracking_number or not request.tracking_number.strip():
            raise HTTPException(status_code=400, detail="Tracking number is required")

        try:
            response = await manager.track(
                request.tracking_number,
                carrier=request.carrier,
                force_refresh=request.force_refresh,
                use_fallback=request.use_fallback,
            )
        except Exception:
            logger.exception(f"Tracking API error for {request.tracking_number}")
            raise HTTPException(status_code=500, detail="Failed to fetch tracking information")

        return response.model_dump(by_alias=True, mode="json")

    @app.post("/api/parse")
    async def parse(request: ParseRequest):
        """Extract tracking numbers, merchant, order number and item from text."""
        if not request.content:
            raise HTTPException(status_code=400, detail="Content is required")

        return parse_shipment_text(request.content).model_dump(by_alias=True, mode="json")

    @app.get("/api/carriers")
    async def carriers():
        return [
            {
                "id": carrier.id,
                "name": carrier.name,
                "trackingUrlTemplate": carrier.tracking_url_template,
                "aggregatorCode": carrier.aggregator_code or carrier.id,
            }
            for carrier in CARRIERS
        ]

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "aggregatorConfigured": manager.aggregator_available,
            "cacheSize": len(manager.cache),
        }

    return app


def run_server(config: TrackerConfig):
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
