"""Database models for LineWatch."""

from linewatch.models.base import Base, async_session_factory, engine
from linewatch.models.domain import (
    JobRun,
    LineMovement,
    MarketSignal,
    MarketSignalWeight,
    MedianEdgePick,
    NbaDefenseCode,
    NbaPlayerGameLog,
    OddsSnapshot,
    PlayerArchetype,
    PlayerSeasonStats,
    SharpEngineSetting,
    SharpEngineSportSetting,
    SharpSignalAccuracy,
    UnifiedProp,
)
from linewatch.models.upsert import upsert_rows

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    "upsert_rows",
    # Domain models
    "OddsSnapshot",
    "LineMovement",
    "SharpEngineSetting",
    "SharpEngineSportSetting",
    "MarketSignalWeight",
    "MarketSignal",
    "UnifiedProp",
    "NbaPlayerGameLog",
    "NbaDefenseCode",
    "PlayerSeasonStats",
    "PlayerArchetype",
    "MedianEdgePick",
    "SharpSignalAccuracy",
    "JobRun",
]
