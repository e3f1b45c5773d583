"""Job history records shared by Celery tasks and HTTP handlers."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import JobRun

logger = structlog.get_logger(__name__)


async def start_job(session: AsyncSession, job_name: str) -> int:
    """Insert a running job_runs row and return its id."""
    job_run = JobRun(
        job_name=job_name,
        started_at=datetime.now(timezone.utc),
        status="running",
    )
    session.add(job_run)
    await session.commit()
    return job_run.id


async def finish_job(
    session: AsyncSession,
    job_id: int,
    status: str,
    stats: dict[str, Any] | None = None,
    records_processed: int = 0,
    error_message: str | None = None,
) -> None:
    """Close a job_runs row. Works after a rollback of the same session."""
    await session.execute(
        update(JobRun)
        .where(JobRun.id == job_id)
        .values(
            {
                JobRun.completed_at: datetime.now(timezone.utc),
                JobRun.status: status,
                JobRun.records_processed: records_processed,
                JobRun.error_message: error_message,
                JobRun.job_metadata: stats or None,
            }
        )
    )
    await session.commit()


async def run_tracked(
    session: AsyncSession,
    job_name: str,
    operation: Callable[[], Awaitable[dict[str, Any]]],
    records_key: str | None = None,
) -> dict[str, Any]:
    """
    Run ``operation`` inside a job_runs record.

    The row is marked success with the returned stats, or failed with the
    error message before the exception propagates.
    """
    job_id = await start_job(session, job_name)
    try:
        stats = await operation()
    except Exception as e:
        await session.rollback()
        await finish_job(session, job_id, "failed", error_message=str(e))
        logger.error("job_failed", job_name=job_name, error=str(e))
        raise

    records = stats.get(records_key, 0) if records_key else 0
    await finish_job(
        session,
        job_id,
        "success",
        stats=jsonable(stats),
        records_processed=records if isinstance(records, int) else 0,
    )
    return stats


def jsonable(stats: dict[str, Any]) -> dict[str, Any]:
    """Keep the JSON-native values of a stats dict."""
    return {
        k: v
        for k, v in stats.items()
        if isinstance(v, (str, int, float, bool, list, dict, type(None)))
    }
