"""NBA stats tasks.

Game logs come from ESPN box scores; season averages are derived from them.
"""

from datetime import datetime, timezone

import structlog

from linewatch.models.base import get_task_session
from linewatch.services.espn import ESPNClient
from linewatch.services.ingestion import GameLogService
from linewatch.services.jobs import finish_job, jsonable, run_tracked, start_job
from linewatch.services.profiling import SeasonStatsService
from linewatch.tasks import celery_app

logger = structlog.get_logger(__name__)


@celery_app.task(bind=True, max_retries=3, soft_time_limit=480, time_limit=540)
def fetch_nba_game_logs(self, days_back: int = 3):
    """
    Scheduled: Daily at 09:00 UTC
    Timeout: 9 minutes

    Walks the scoreboard back ``days_back`` days and upserts one game log
    per player per date from completed box scores.
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_fetch_game_logs_async(self, days_back))
    finally:
        loop.close()


async def _fetch_game_logs_async(task, days_back: int):
    """Async implementation of game log ingestion."""
    started_at = datetime.now(timezone.utc)
    job_status = "running"
    error_message = None
    stats = {}

    async with get_task_session() as session:
        job_id = await start_job(session, "nba_game_logs")

        try:
            async with ESPNClient() as client:
                stats = await GameLogService(client, session).sync(days_back=days_back)

            job_status = "success"
            logger.info(
                "game_logs_task_complete",
                games=stats.get("games_processed"),
                records=stats.get("stats_inserted"),
                duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
            )

        except Exception as e:
            await session.rollback()
            job_status = "failed"
            error_message = str(e)
            logger.error("game_logs_task_failed", error=str(e), task_id=task.request.id)

            if task.request.retries < task.max_retries:
                raise task.retry(exc=e, countdown=60 * (task.request.retries + 1))

        finally:
            await finish_job(
                session,
                job_id,
                job_status,
                stats=jsonable(stats),
                records_processed=stats.get("stats_inserted", 0),
                error_message=error_message,
            )

    return stats


@celery_app.task(bind=True, soft_time_limit=240, time_limit=300)
def compute_season_stats(self, season: str | None = None):
    """
    Scheduled: Daily at 09:30 UTC
    Timeout: 5 minutes
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_compute_season_stats_async(season))
    finally:
        loop.close()


async def _compute_season_stats_async(season: str | None):
    async with get_task_session() as session:
        service = SeasonStatsService(session)
        return await run_tracked(
            session,
            "season_stats",
            lambda: service.compute(season),
            records_key="updated",
        )
