"""Analysis tasks.

Archetype classification, median matchup picks, sharp re-scoring and
signal calibration. All of these work from stored data only.
"""

import structlog

from linewatch.models.base import get_task_session
from linewatch.services.analysis import (
    ArchetypeSyncService,
    CalibrationService,
    InsufficientDataError,
    MedianPickService,
    SharpAnalysisService,
)
from linewatch.services.jobs import run_tracked
from linewatch.tasks import celery_app

logger = structlog.get_logger(__name__)


def _run(coro):
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(bind=True, soft_time_limit=240, time_limit=300)
def classify_archetypes(self, season: str | None = None):
    """
    Scheduled: Daily at 10:00 UTC
    Timeout: 5 minutes

    Reclassifies players from season averages; manual overrides are kept.
    """
    return _run(_classify_archetypes_async(season))


async def _classify_archetypes_async(season: str | None):
    async with get_task_session() as session:
        service = ArchetypeSyncService(session)
        return await run_tracked(
            session,
            "archetype_classification",
            lambda: service.sync(season),
            records_key="classified",
        )


@celery_app.task(bind=True, soft_time_limit=240, time_limit=300)
def analyze_median_matchups(self):
    """
    Scheduled: Every hour at :15
    Timeout: 5 minutes

    Evaluates active NBA props against rolling medians and opponent defence.
    """
    return _run(_analyze_median_async())


async def _analyze_median_async():
    async with get_task_session() as session:
        service = MedianPickService(session)
        return await run_tracked(
            session,
            "median_matchup",
            service.analyze_auto,
            records_key="actionable_picks",
        )


@celery_app.task(bind=True, soft_time_limit=150, time_limit=180)
def reanalyze_sharp_movements(self, limit: int = 100, sport: str | None = None):
    """
    Scheduled: Every 30 minutes
    Timeout: 3 minutes

    Re-scores the latest movements with the current per-sport config.
    """
    return _run(_reanalyze_sharp_async(limit, sport))


async def _reanalyze_sharp_async(limit: int, sport: str | None):
    async with get_task_session() as session:
        service = SharpAnalysisService(session)
        stats = await run_tracked(
            session,
            "sharp_reanalysis",
            lambda: service.batch_reanalyze(limit=limit, sport=sport),
            records_key="processed",
        )
    # Per-movement results stay in job metadata; the task result is the summary
    return {k: v for k, v in stats.items() if k != "results"}


@celery_app.task(bind=True, soft_time_limit=240, time_limit=300)
def calibrate_sharp_signals(self):
    """
    Scheduled: Weekly, Monday 06:00 UTC
    Timeout: 5 minutes

    Skipped (not retried) when there are too few verified outcomes.
    """
    return _run(_calibrate_async(self))


async def _calibrate_async(task):
    async with get_task_session() as session:
        service = CalibrationService(session)
        try:
            report = await run_tracked(
                session,
                "sharp_signal_calibration",
                service.run,
                records_key="movements_analyzed",
            )
        except InsufficientDataError as e:
            logger.warning(
                "calibration_skipped",
                count=e.count,
                required=e.required,
                task_id=task.request.id,
            )
            return {"skipped": True, "count": e.count, "required": e.required}
    return report
