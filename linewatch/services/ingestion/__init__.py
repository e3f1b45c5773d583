"""Ingestion module for LineWatch."""

from linewatch.services.ingestion.game_logs import GameLogService
from linewatch.services.ingestion.odds_movement import OddsMovementService, get_recent_movements
from linewatch.services.ingestion.player_props import PlayerPropsService

__all__ = [
    "GameLogService",
    "OddsMovementService",
    "PlayerPropsService",
    "get_recent_movements",
]
