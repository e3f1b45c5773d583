"""Liveness, readiness and upstream health endpoints."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch import __version__
from linewatch.api.dependencies import get_db, get_odds_client, get_redis
from linewatch.config import get_settings
from linewatch.models.domain import JobRun
from linewatch.services.odds_api import OddsAPIClient

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class ReadyCheck(BaseModel):
    status: str
    message: str | None = None


class ReadyResponse(BaseModel):
    ready: bool
    checks: dict[str, ReadyCheck]


class JobStatus(BaseModel):
    """Most recent run of one handler."""

    job_name: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    records_processed: int = 0
    error_message: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness: healthy whenever the process is serving requests."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Readiness of the datastore and broker.

    The Odds API key is reported as a warning only; the stat and scoring
    handlers work without it.
    """
    checks: dict[str, ReadyCheck] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["db"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))

    try:
        await redis_client.ping()
        checks["redis"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["redis"] = ReadyCheck(status="error", message=str(e))

    checks["odds_api"] = (
        ReadyCheck(status="ok", message="API key configured")
        if get_settings().odds_api_configured
        else ReadyCheck(status="warning", message="API key not configured")
    )

    return ReadyResponse(
        ready=all(c.status != "error" for c in checks.values()),
        checks=checks,
    )


@router.get("/health/jobs", response_model=list[JobStatus])
async def job_health(db: AsyncSession = Depends(get_db)):
    """Latest job_runs row per handler, most recent first."""
    latest = (
        select(JobRun.job_name, func.max(JobRun.id).label("id"))
        .group_by(JobRun.job_name)
        .subquery()
    )
    result = await db.execute(
        select(JobRun)
        .join(latest, JobRun.id == latest.c.id)
        .order_by(JobRun.started_at.desc())
    )
    return [
        JobStatus(
            job_name=job.job_name,
            status=job.status,
            started_at=job.started_at,
            completed_at=job.completed_at,
            records_processed=job.records_processed or 0,
            error_message=job.error_message,
        )
        for job in result.scalars().all()
    ]


@router.get("/health/odds-api")
async def odds_api_health(client: OddsAPIClient = Depends(get_odds_client)):
    """Check the Odds API key against the quota-free sports listing."""
    if not get_settings().odds_api_configured:
        return {"status": "unconfigured", "timestamp": datetime.now(timezone.utc)}
    is_healthy = await client.health_check()
    return {
        "status": "healthy" if is_healthy else "unhealthy",
        "requests_remaining": client.requests_remaining,
        "timestamp": datetime.now(timezone.utc),
    }
