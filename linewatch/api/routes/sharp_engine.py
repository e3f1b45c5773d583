"""Sharp engine endpoint: analyze, batch_reanalyze, get_config."""

from typing import Literal

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.services.analysis import SharpAnalysisService
from linewatch.services.scoring.sharp import MovementInput

router = APIRouter(prefix="/api/sharp-engine", tags=["sharp-engine"])
logger = structlog.get_logger(__name__)


class MovementPayload(CamelModel):
    """Movement fields; anything missing takes the engine's neutral default."""

    price_change: float | None = None
    line_change: float | None = None
    hours_to_game: float | None = None
    books_count: int | None = None
    total_books: int | None = None
    current_price: float | None = None
    opening_price: float | None = None
    opposite_side_moved: bool | None = None
    is_steam_move: bool | None = None
    multi_market_aligned: bool | None = None
    is_player_prop: bool | None = None
    sport: str | None = None

    def to_input(self) -> MovementInput:
        return MovementInput(**self.model_dump())


class SharpEngineRequest(CamelModel):
    action: Literal["analyze", "batch_reanalyze", "get_config"] = "analyze"
    movement_data: MovementPayload | None = None
    movement_id: int | None = None
    sport: str | None = None
    limit: int = 100
    sport_filter: str | None = None


@router.post("")
async def sharp_engine(
    request: SharpEngineRequest,
    db: AsyncSession = Depends(get_db),
):
    """Run one sharp engine action."""
    service = SharpAnalysisService(db)
    try:
        if request.action == "analyze":
            if request.movement_data is None:
                return error_response(
                    "movementData required for analyze action", status_code=400
                )
            result = await service.analyze(
                request.movement_data.to_input(),
                sport=request.sport,
                movement_id=request.movement_id,
            )
            return success(**result)

        if request.action == "batch_reanalyze":
            result = await service.batch_reanalyze(
                limit=request.limit,
                sport=request.sport_filter or request.sport,
            )
            return success(**result)

        return success(**await service.get_config(request.sport))

    except Exception as e:
        logger.error("sharp_engine_failed", action=request.action, error=str(e))
        return error_response(str(e))
