"""Player stats endpoints: ESPN game logs and season aggregates."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db, get_espn_client
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.services.espn import ESPNClient
from linewatch.services.ingestion import GameLogService
from linewatch.services.jobs import run_tracked
from linewatch.services.profiling import SeasonStatsService

router = APIRouter(prefix="/api/stats", tags=["stats"])
logger = structlog.get_logger(__name__)


class GameLogRequest(CamelModel):
    days_back: int = Field(default=7, ge=1, le=60)


class SeasonStatsRequest(CamelModel):
    season: str | None = None


@router.post("/game-logs")
async def sync_game_logs(
    request: GameLogRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: ESPNClient = Depends(get_espn_client),
):
    """Fetch recent ESPN box scores into nba_player_game_logs."""
    request = request or GameLogRequest()
    try:
        service = GameLogService(client, db)
        stats = await run_tracked(
            db,
            "nba_game_logs",
            lambda: service.sync(request.days_back),
            records_key="stats_inserted",
        )
        return success(**stats)
    except Exception as e:
        logger.error("game_log_sync_failed", error=str(e))
        return error_response(str(e))


@router.post("/season")
async def compute_season_stats(
    request: SeasonStatsRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Recompute player_season_stats from game logs."""
    request = request or SeasonStatsRequest()
    try:
        service = SeasonStatsService(db)
        stats = await run_tracked(
            db,
            "season_stats",
            lambda: service.compute(request.season),
            records_key="updated",
        )
        return success(**stats)
    except Exception as e:
        logger.error("season_stats_failed", error=str(e))
        return error_response(str(e))
