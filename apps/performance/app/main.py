import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.db import SessionLocal
from app.performance_api import performance_router
from app.services.performance import build_scheduler
from app.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = app.state.live_metrics_scheduler
    if settings.LIVE_METRICS_ENABLED:
        scheduler.start()
    else:
        logger.info("Live metrics scheduler disabled (LIVE_METRICS_ENABLED=false)")
    try:
        yield
    finally:
        if scheduler.is_running:
            scheduler.stop()


app = FastAPI(title="Live Performance Engine", version="0.1.0", lifespan=lifespan)
app.state.live_metrics_scheduler = build_scheduler(SessionLocal)
app.include_router(performance_router)
