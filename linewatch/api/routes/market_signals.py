"""Market signal endpoint: scan stored signals or score new inputs."""

from typing import Literal

import structlog
from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.services.analysis import MarketSignalService
from linewatch.services.scoring.market_signal import MarketSignalInput

router = APIRouter(prefix="/api/market-signals", tags=["market-signals"])
logger = structlog.get_logger(__name__)


class MarketSignalPayload(CamelModel):
    """Either ``{"action": "scan"}`` or one outcome to score."""

    action: Literal["scan"] | None = None
    event_id: str | None = None
    outcome_name: str | None = None
    player_name: str | None = None
    market_type: str | None = None
    sport: str | None = None
    opening_price: float | None = None
    opening_point: float | None = None
    current_price: float | None = None
    current_point: float | None = None
    hours_to_game: float | None = None
    confirming_books: int | None = None
    public_side: str | None = None
    line_direction: str | None = None

    def to_input(self) -> MarketSignalInput:
        return MarketSignalInput(**self.model_dump(exclude={"action"}))


@router.post("")
async def market_signals(
    payload: MarketSignalPayload | list[MarketSignalPayload] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Score one or more outcomes, or scan the latest stored signals.

    A single input returns ``signals`` as an object, a list returns a list.
    """
    service = MarketSignalService(db)
    try:
        if isinstance(payload, MarketSignalPayload) and payload.action == "scan":
            return success(**await service.scan())

        items = payload if isinstance(payload, list) else [payload]
        if not items:
            return error_response("At least one signal input is required", status_code=400)
        missing = [i for i, p in enumerate(items) if not p.event_id or not p.outcome_name]
        if missing:
            return error_response(
                "event_id and outcome_name are required", status_code=400, invalid=missing
            )

        results = await service.score([p.to_input() for p in items])
        signals = [r.to_dict() for r in results]
        return success(
            signals=signals[0] if isinstance(payload, MarketSignalPayload) else signals,
            count=len(signals),
        )

    except Exception as e:
        logger.error("market_signal_failed", error=str(e))
        return error_response(str(e))
