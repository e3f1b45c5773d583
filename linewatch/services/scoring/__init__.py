"""Scoring engines for LineWatch."""

from linewatch.services.scoring.market_signal import (
    MarketSignalEngine,
    MarketSignalInput,
    MarketSignalWeights,
)
from linewatch.services.scoring.median_matchup import MedianMatchupEngine, MedianPick
from linewatch.services.scoring.sharp import (
    MovementInput,
    SharpEngine,
    SharpEngineConfig,
    SharpResult,
    analyze_movement,
)

__all__ = [
    "SharpEngine",
    "SharpEngineConfig",
    "SharpResult",
    "MovementInput",
    "analyze_movement",
    "MarketSignalEngine",
    "MarketSignalInput",
    "MarketSignalWeights",
    "MedianMatchupEngine",
    "MedianPick",
]
