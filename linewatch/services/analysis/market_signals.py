"""Market signal scoring with persisted weights and results."""

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import MarketSignal, MarketSignalWeight
from linewatch.models.upsert import upsert_rows
from linewatch.services.scoring.market_signal import (
    MarketSignalEngine,
    MarketSignalInput,
    MarketSignalResult,
    MarketSignalWeights,
    load_default_weights,
)

logger = structlog.get_logger(__name__)

SCAN_LIMIT = 20


async def load_market_weights(session: AsyncSession) -> MarketSignalWeights:
    """defaults.yaml weights overlaid with market_signal_weights rows."""
    result = await session.execute(
        select(MarketSignalWeight.weight_key, MarketSignalWeight.weight_value)
    )
    return load_default_weights().with_overrides({key: value for key, value in result.all()})


def signal_row(data: MarketSignalInput, result: MarketSignalResult) -> dict[str, Any]:
    """market_signals row for one scored input."""
    inputs = {
        k: v
        for k, v in asdict(data).items()
        if k not in ("event_id", "outcome_name", "player_name") and v is not None
    }
    return {
        "event_id": data.event_id,
        "outcome_name": data.outcome_name,
        "player_name": data.player_name or "",
        "sport": data.sport,
        "market_type": data.market_type,
        "market_score": result.market_score,
        "signal_label": result.signal_label,
        "line_move_score": result.line_move_score,
        "juice_move_score": result.juice_move_score,
        "timing_score": result.timing_sharpness_score,
        "consensus_score": result.multi_book_consensus_score,
        "public_fade_score": result.public_fade_score,
        "rationale": result.rationale,
        "inputs": inputs,
        "scored_at": datetime.now(timezone.utc),
    }


def serialize_signal(signal: MarketSignal) -> dict[str, Any]:
    return {
        "id": signal.id,
        "event_id": signal.event_id,
        "sport": signal.sport,
        "market_type": signal.market_type,
        "outcome_name": signal.outcome_name,
        "player_name": signal.player_name or None,
        "market_score": signal.market_score,
        "signal_label": signal.signal_label,
        "line_move_score": signal.line_move_score,
        "juice_move_score": signal.juice_move_score,
        "timing_sharpness_score": signal.timing_score,
        "multi_book_consensus_score": signal.consensus_score,
        "public_fade_score": signal.public_fade_score,
        "rationale": signal.rationale,
        "scored_at": signal.scored_at.isoformat() if signal.scored_at else None,
    }


class MarketSignalService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def score(self, inputs: list[MarketSignalInput]) -> list[MarketSignalResult]:
        """
        Score inputs with the current weights and upsert the results.

        A failed write is logged; the scores are still returned.
        """
        engine = MarketSignalEngine(await load_market_weights(self.session))
        results = [engine.score(data) for data in inputs]

        rows = [signal_row(data, result) for data, result in zip(inputs, results)]
        try:
            await upsert_rows(
                self.session,
                MarketSignal,
                rows,
                conflict_keys=["event_id", "outcome_name", "player_name"],
            )
            await self.session.commit()
            logger.info("market_signals_stored", count=len(rows))
        except Exception as e:
            await self.session.rollback()
            logger.error("market_signal_upsert_failed", error=str(e), rows=len(rows))

        return results

    async def scan(self, limit: int = SCAN_LIMIT) -> dict[str, Any]:
        """Latest stored signals with a market health summary."""
        result = await self.session.execute(
            select(MarketSignal)
            .order_by(MarketSignal.scored_at.desc(), MarketSignal.id.desc())
            .limit(limit)
        )
        signals = [serialize_signal(s) for s in result.scalars().all()]
        return {
            "action": "scan",
            "signals": signals,
            "summary": (
                f"Found {len(signals)} active market signals"
                if signals
                else "No active market signals - markets are stable"
            ),
            "market_health": "active" if signals else "quiet",
        }
