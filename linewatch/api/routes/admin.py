"""Manual triggers for the scheduled handlers."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = structlog.get_logger(__name__)

# Beat schedule names -> Celery task names
TASK_MAP = {
    "track-odds": "linewatch.tasks.odds.track_odds_movements",
    "refresh-props": "linewatch.tasks.odds.refresh_player_props",
    "fetch-game-logs": "linewatch.tasks.stats.fetch_nba_game_logs",
    "compute-season-stats": "linewatch.tasks.stats.compute_season_stats",
    "classify-archetypes": "linewatch.tasks.analysis.classify_archetypes",
    "analyze-median-matchups": "linewatch.tasks.analysis.analyze_median_matchups",
    "reanalyze-sharp": "linewatch.tasks.analysis.reanalyze_sharp_movements",
    "calibrate-sharp-signals": "linewatch.tasks.analysis.calibrate_sharp_signals",
}


class TaskTriggerResponse(BaseModel):
    task_name: str
    task_id: str
    status: str
    kwargs: dict[str, Any]


@router.get("/tasks", response_model=dict[str, str])
async def list_tasks() -> dict[str, str]:
    return TASK_MAP


@router.post("/trigger-task/{task_name}", response_model=TaskTriggerResponse)
async def trigger_task(
    task_name: str,
    kwargs: dict[str, Any] | None = Body(default=None),
) -> TaskTriggerResponse:
    """
    Queue a handler now.

    The optional JSON body is passed as task keyword arguments, e.g.
    ``{"days_back": 14}`` for fetch-game-logs.
    """
    celery_task_name = TASK_MAP.get(task_name)
    if celery_task_name is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown task: {task_name}. Available: {sorted(TASK_MAP)}",
        )

    from linewatch.tasks import celery_app

    kwargs = kwargs or {}
    try:
        result = celery_app.send_task(celery_task_name, kwargs=kwargs)
    except Exception as e:
        logger.error("task_trigger_failed", task_name=task_name, error=str(e))
        raise HTTPException(status_code=503, detail=f"Broker unavailable: {e}")

    logger.info(
        "task_triggered_manually",
        task_name=task_name,
        celery_task=celery_task_name,
        task_id=result.id,
        kwargs=kwargs,
    )
    return TaskTriggerResponse(
        task_name=task_name,
        task_id=result.id,
        status="submitted",
        kwargs=kwargs,
    )
