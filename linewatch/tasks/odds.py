"""Odds tasks.

Polls The Odds API for line movements and player props.
"""

from datetime import datetime, timezone

import redis.asyncio as redis
import structlog

from linewatch.config import get_settings
from linewatch.models.base import get_task_session
from linewatch.services.ingestion import OddsMovementService, PlayerPropsService
from linewatch.services.jobs import finish_job, jsonable, start_job
from linewatch.services.odds_api import OddsAPIClient
from linewatch.tasks import celery_app

logger = structlog.get_logger(__name__)


@celery_app.task(bind=True, max_retries=3, soft_time_limit=300, time_limit=360)
def track_odds_movements(self, sports: list[str] | None = None):
    """
    Scheduled: Every 10 minutes
    Timeout: 5 minutes

    Process:
    1. Fetch featured markets for each tracked sport
    2. Compare against stored snapshots, detect significant moves
    3. Score authenticity across books, keep the primary movement per side
    4. Fetch NBA player props for events starting within the prop window
    5. Delete snapshots past the retention window
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_track_odds_async(self, sports))
    finally:
        loop.close()


async def _track_odds_async(task, sports: list[str] | None = None):
    """Async implementation of odds tracking."""
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    job_status = "running"
    error_message = None
    stats = {}

    async with get_task_session() as session:
        job_id = await start_job(session, "odds_tracker")

        try:
            if not settings.odds_api_configured:
                raise RuntimeError("ODDS_API_KEY is not configured")

            redis_client = redis.from_url(settings.redis_url)
            try:
                async with OddsAPIClient(redis_client=redis_client) as client:
                    stats = await OddsMovementService(client, session).track(sports)
            finally:
                await redis_client.aclose()

            job_status = "success"
            logger.info(
                "odds_task_complete",
                stats=stats,
                duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
            )

        except Exception as e:
            await session.rollback()
            job_status = "failed"
            error_message = str(e)
            logger.error(
                "odds_task_failed",
                error=str(e),
                task_id=task.request.id,
            )

            if task.request.retries < task.max_retries:
                raise task.retry(exc=e, countdown=60 * (task.request.retries + 1))

        finally:
            await finish_job(
                session,
                job_id,
                job_status,
                stats=jsonable(stats),
                records_processed=stats.get("movements_saved", 0),
                error_message=error_message,
            )

    return stats


@celery_app.task(bind=True, max_retries=2, soft_time_limit=240, time_limit=300)
def refresh_player_props(self, sport: str = "NBA", sport_key: str = "basketball_nba"):
    """
    Scheduled: Every 30 minutes
    Timeout: 4 minutes

    Upserts today's Over/Under prop lines and deactivates props whose
    games have started.
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_refresh_props_async(self, sport, sport_key))
    finally:
        loop.close()


async def _refresh_props_async(task, sport: str, sport_key: str):
    """Async implementation of the player prop refresh."""
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    job_status = "running"
    error_message = None
    stats = {}

    async with get_task_session() as session:
        job_id = await start_job(session, "player_props_refresh")

        try:
            if not settings.odds_api_configured:
                raise RuntimeError("ODDS_API_KEY is not configured")

            redis_client = redis.from_url(settings.redis_url)
            try:
                async with OddsAPIClient(redis_client=redis_client) as client:
                    stats = await PlayerPropsService(client, session).refresh(sport, sport_key)
            finally:
                await redis_client.aclose()

            job_status = "success"
            logger.info("props_task_complete", stats=stats)

        except Exception as e:
            await session.rollback()
            job_status = "failed"
            error_message = str(e)
            logger.error("props_task_failed", error=str(e), task_id=task.request.id)

            if task.request.retries < task.max_retries:
                raise task.retry(exc=e, countdown=60 * (task.request.retries + 1))

        finally:
            await finish_job(
                session,
                job_id,
                job_status,
                stats=jsonable(stats),
                records_processed=stats.get("props_upserted", 0),
                error_message=error_message,
            )

    return stats
