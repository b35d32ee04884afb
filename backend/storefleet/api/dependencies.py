"""
FastAPI dependencies wiring the engine into request handlers.

The EngineConfig, SideEffectQueue and directory client are created once in
the application lifespan and stored on app.state.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefleet.config.engine import EngineConfig
from storefleet.database.session import get_db_session, get_session_factory
from storefleet.lifecycle.history import DatabaseHistorySink
from storefleet.lifecycle.side_effects import SideEffectQueue
from storefleet.services.location_service import LocationLifecycleService

logger = logging.getLogger(__name__)


def get_engine_config(request: Request) -> EngineConfig:
    config = getattr(request.app.state, "engine_config", None)
    if config is None:
        logger.error("Engine config not loaded", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Entitlement configuration not loaded"
        )
    return config


def get_side_effect_queue(request: Request) -> SideEffectQueue:
    queue = getattr(request.app.state, "side_effect_queue", None)
    if queue is None:
        queue = SideEffectQueue()
        request.app.state.side_effect_queue = queue
    return queue


def get_history_sink(request: Request):
    sink = getattr(request.app.state, "history_sink", None)
    if sink is None:
        sink = DatabaseHistorySink(get_session_factory())
        request.app.state.history_sink = sink
    return sink


def get_location_service(
    request: Request,
    db: Session = Depends(get_db_session),
    config: EngineConfig = Depends(get_engine_config),
    queue: SideEffectQueue = Depends(get_side_effect_queue),
) -> LocationLifecycleService:
    return LocationLifecycleService(
        db,
        config,
        queue,
        history_sink=get_history_sink(request),
        directory_client=getattr(request.app.state, "directory_client", None),
    )
