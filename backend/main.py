"""
FastAPI application entry point for the Storefleet location backend.

Identity is established by the upstream gateway (X-User-Id, X-User-Role).
The entitlement table and the side-effect queue are process-wide and live
on app.state.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefleet.api.routes import locations
from storefleet.config.engine import load_engine_config
from storefleet.entitlements.features import TierFeatureModel
from storefleet.integrations.directory import DirectoryClient
from storefleet.lifecycle.side_effects import SideEffectQueue

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Storefleet API")

    # Broken tier configuration is fatal
    config = load_engine_config()
    TierFeatureModel(config.table).validate()
    app.state.engine_config = config
    logger.info(
        "Entitlement table loaded",
        extra={
            "tiers": config.table.keys(),
            "baseline_tier": config.table.baseline.key,
            "trial_days": config.trial_duration_days,
        },
    )

    queue = SideEffectQueue(
        max_queue_size=config.side_effect_queue_size,
        timeout_seconds=config.side_effect_timeout_seconds,
    )
    queue.start()
    app.state.side_effect_queue = queue

    app.state.directory_client = None
    if config.directory_sync_enabled:
        app.state.directory_client = DirectoryClient(
            base_url=config.directory_service_url,
            token=config.directory_service_token,
        )
        logger.info("Directory sync enabled", extra={"url": config.directory_service_url})
    else:
        logger.warning("DIRECTORY_SERVICE_URL not set. Directory sync will be skipped.")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL is not set. Database-backed endpoints will return 503.")
    else:
        # Mask credentials for safe logging
        masked = database_url.split("@")[-1] if "@" in database_url else "(local)"
        logger.info("DATABASE_URL configured", extra={"host_db": masked})

    yield

    # Shutdown
    logger.info("Shutting down Storefleet API")
    queue.stop()
    if app.state.directory_client is not None:
        app.state.directory_client.close()


# Create FastAPI app
app = FastAPI(
    title="Storefleet API",
    description="Entitlements and lifecycle for multi-tenant retail locations",
    version="1.0.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    """Liveness probe (no identity required)."""
    return {"status": "ok"}


# Include location routes (requires gateway identity)
app.include_router(locations.router)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
