"""Analysis services: scoring engines wired to the database."""

from linewatch.services.analysis.archetype_sync import ArchetypeSyncService
from linewatch.services.analysis.calibration import CalibrationService, InsufficientDataError
from linewatch.services.analysis.market_signals import MarketSignalService
from linewatch.services.analysis.median_picks import MedianPickService
from linewatch.services.analysis.sharp_analysis import SharpAnalysisService, load_sharp_config

__all__ = [
    "ArchetypeSyncService",
    "CalibrationService",
    "InsufficientDataError",
    "MarketSignalService",
    "MedianPickService",
    "SharpAnalysisService",
    "load_sharp_config",
]
