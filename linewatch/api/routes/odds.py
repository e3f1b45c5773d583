"""Odds tracking endpoints."""

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db, get_odds_client
from linewatch.api.responses import CamelModel, error_response, success
from linewatch.config import get_settings
from linewatch.models.domain import LineMovement
from linewatch.services.ingestion import (
    OddsMovementService,
    PlayerPropsService,
    get_recent_movements,
)
from linewatch.services.jobs import run_tracked
from linewatch.services.odds_api import OddsAPIClient

router = APIRouter(prefix="/api/odds", tags=["odds"])
logger = structlog.get_logger(__name__)


class TrackRequest(CamelModel):
    action: Literal["fetch", "get_movements", "get_sharp_alerts"] = "fetch"
    sports: list[str] | None = None
    include_player_props: bool = True


class PropsRefreshRequest(CamelModel):
    sport: str = "NBA"
    sport_key: str = "basketball_nba"
    force_clear: bool = False


def serialize_movement(m: LineMovement) -> dict[str, Any]:
    return {
        "id": m.id,
        "event_id": m.event_id,
        "sport": m.sport,
        "event_name": m.event_name,
        "commence_time": m.commence_time,
        "bookmaker": m.bookmaker,
        "market_type": m.market_type,
        "outcome_name": m.outcome_name,
        "player_name": m.player_name,
        "is_player_prop": m.is_player_prop,
        "old_price": m.old_price,
        "new_price": m.new_price,
        "price_change": m.price_change,
        "old_point": m.old_point,
        "new_point": m.new_point,
        "point_change": m.point_change,
        "hours_to_game": m.hours_to_game,
        "is_sharp_action": m.is_sharp_action,
        "sharp_indicator": m.sharp_indicator,
        "movement_authenticity": m.movement_authenticity,
        "authenticity_confidence": m.authenticity_confidence,
        "recommendation": m.recommendation,
        "recommendation_reason": m.recommendation_reason,
        "final_pick": m.final_pick,
        "books_consensus": m.books_consensus,
        "sharp_edge_score": m.sharp_edge_score,
        "sharp_label": m.sharp_label,
        "detected_at": m.detected_at,
    }


@router.post("/track")
async def track_odds(
    request: TrackRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: OddsAPIClient = Depends(get_odds_client),
):
    """
    Odds movement tracker.

    Actions:
    - fetch (default): poll odds, detect and store movements
    - get_movements: latest 50 movements
    - get_sharp_alerts: latest 30 sharp movements
    """
    request = request or TrackRequest()
    try:
        if request.action == "get_movements":
            movements = await get_recent_movements(db, limit=50)
            return success(movements=[serialize_movement(m) for m in movements])

        if request.action == "get_sharp_alerts":
            alerts = await get_recent_movements(db, limit=30, sharp_only=True)
            return success(alerts=[serialize_movement(m) for m in alerts])

        if not get_settings().odds_api_configured:
            return error_response("ODDS_API_KEY is not configured")

        service = OddsMovementService(client, db)
        stats = await run_tracked(
            db,
            "odds_tracker",
            lambda: service.track(request.sports, request.include_player_props),
            records_key="movements_saved",
        )
        return success(**stats)

    except Exception as e:
        logger.error("odds_track_failed", action=request.action, error=str(e))
        return error_response(str(e))


@router.post("/props/refresh")
async def refresh_props(
    request: PropsRefreshRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: OddsAPIClient = Depends(get_odds_client),
):
    """Refresh today's player prop lines into unified_props."""
    request = request or PropsRefreshRequest()
    try:
        if not get_settings().odds_api_configured:
            return error_response("ODDS_API_KEY is not configured")

        service = PlayerPropsService(client, db)
        stats = await run_tracked(
            db,
            "player_props_refresh",
            lambda: service.refresh(request.sport, request.sport_key, request.force_clear),
            records_key="props_upserted",
        )
        return success(**stats)

    except Exception as e:
        logger.error("props_refresh_failed", error=str(e))
        return error_response(str(e))
