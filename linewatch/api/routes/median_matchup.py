"""NBA median matchup endpoint."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.services.analysis import MedianPickService
from linewatch.services.analysis.median_picks import engine_info

router = APIRouter(prefix="/api/median-matchup", tags=["median-matchup"])
logger = structlog.get_logger(__name__)


class MedianMatchupRequest(CamelModel):
    action: str = "analyze_auto"


@router.post("")
async def median_matchup(
    request: MedianMatchupRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """analyze_auto (default), get_picks, anything else returns engine info."""
    action = request.action if request else "analyze_auto"
    try:
        if action == "analyze_auto":
            return success(**await MedianPickService(db).analyze_auto())
        if action == "get_picks":
            return success(picks=await MedianPickService(db).get_picks())
        return success(**engine_info())
    except Exception as e:
        logger.error("median_matchup_failed", action=action, error=str(e))
        return error_response(str(e))
