"""Configuration API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.api.dependencies import get_db
from linewatch.services.analysis import load_sharp_config
from linewatch.services.analysis.market_signals import load_market_weights
from linewatch.services.scoring.sharp import ENGINE_VERSION

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("/sharp-engine")
async def get_sharp_engine_config(
    sport: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Effective sharp engine config (defaults, global rows, then sport rows)."""
    config = await load_sharp_config(db, sport)
    return {"engine_version": ENGINE_VERSION, "sport": sport, "config": config.to_dict()}


@router.get("/market-signal")
async def get_market_signal_config(db: AsyncSession = Depends(get_db)):
    """Effective market signal weights and label cutoffs."""
    weights = await load_market_weights(db)
    return weights.to_dict()
