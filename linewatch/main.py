"""LineWatch FastAPI application.

Sports betting line movement and player prop analytics.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from linewatch import __version__
from linewatch.api.routes import (
    admin,
    archetypes,
    calibration,
    config,
    health,
    market_signals,
    median_matchup,
    odds,
    sharp_engine,
    stats,
)
from linewatch.config import get_settings
from linewatch.config.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level, json_logs=not settings.debug)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("starting_linewatch", version=__version__)
    yield
    logger.info("shutting_down_linewatch")


app = FastAPI(
    title="LineWatch",
    description="Line movement, sharp money and player prop analytics",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(health.router)
app.include_router(sharp_engine.router)
app.include_router(market_signals.router)
app.include_router(median_matchup.router)
app.include_router(archetypes.router)
app.include_router(odds.router)
app.include_router(stats.router)
app.include_router(calibration.router)
app.include_router(config.router)
app.include_router(admin.router)
