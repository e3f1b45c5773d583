"""Sharp signal calibration over verified line movements."""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.config import get_settings
from linewatch.models.domain import LineMovement, SharpSignalAccuracy
from linewatch.models.upsert import upsert_rows
from linewatch.services.analysis.sharp_analysis import load_sharp_config
from linewatch.services.scoring.calibration import CalibrationReport, GradedMovement, calibrate
from linewatch.services.scoring.sharp import SIGNAL_CONFIG_FIELDS

logger = structlog.get_logger(__name__)


class InsufficientDataError(Exception):
    """Too few verified movements to calibrate."""

    def __init__(self, count: int, required: int):
        super().__init__("Insufficient verified data for calibration")
        self.count = count
        self.required = required


def graded_from_row(movement: LineMovement) -> GradedMovement:
    return GradedMovement(
        sport=movement.sport,
        recommendation=movement.recommendation,
        ses=movement.sharp_edge_score,
        correct=bool(movement.outcome_correct),
        sharp_signals=list(movement.sharp_signals or []),
        trap_signals=list(movement.trap_signals or []),
    )


def accuracy_rows(
    report: CalibrationReport,
    weights: dict[str, float],
    min_sport_samples: int,
    now: datetime,
) -> list[dict[str, Any]]:
    """sharp_signal_accuracy rows: one overall ('ALL') row per signal plus per-sport rows."""
    rows = []
    for stats in report.signal_stats:
        suggestion = report.suggestion_for(stats.signal)
        field_name = SIGNAL_CONFIG_FIELDS.get(stats.signal)
        current = weights.get(field_name.upper()) if field_name else None
        rows.append(
            {
                "signal_name": stats.signal,
                "sport": "ALL",
                "signal_type": stats.signal_type,
                "total": stats.tally.total,
                "correct": stats.tally.correct,
                "accuracy": round(stats.tally.accuracy, 2),
                "avg_ses": round(stats.avg_ses, 2),
                "current_weight": current,
                "suggested_weight": suggestion.suggested_weight if suggestion else None,
                "calibrated_at": now,
            }
        )
        for sport, tally in stats.sports.items():
            if tally.total < min_sport_samples:
                continue
            rows.append(
                {
                    "signal_name": stats.signal,
                    "sport": sport,
                    "signal_type": stats.signal_type,
                    "total": tally.total,
                    "correct": tally.correct,
                    "accuracy": round(tally.accuracy, 2),
                    "avg_ses": None,
                    "current_weight": current,
                    "suggested_weight": None,
                    "calibrated_at": now,
                }
            )
    return rows


class CalibrationService:
    def __init__(self, session: AsyncSession, config: dict[str, Any] | None = None):
        self.session = session
        if config is None:
            config = get_settings().load_defaults_config().get("calibration", {})
        self.lookback_days = config.get("lookback_days", 30)
        self.min_samples = config.get("min_samples", 20)
        self.min_signal_samples = config.get("min_signal_samples", 10)
        self.min_sport_samples = config.get("min_sport_samples", 5)
        self.default_signal_weight = config.get("default_signal_weight", 20)

    async def run(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Calibrate signal weights from the lookback window.

        Raises:
            InsufficientDataError: Fewer verified movements than min_samples
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.lookback_days)
        result = await self.session.execute(
            select(LineMovement).where(
                LineMovement.outcome_verified.is_(True),
                LineMovement.outcome_correct.is_not(None),
                LineMovement.detected_at >= cutoff,
            )
        )
        movements = result.scalars().all()
        if len(movements) < self.min_samples:
            raise InsufficientDataError(len(movements), self.min_samples)

        config = await load_sharp_config(self.session)
        report = calibrate(
            (graded_from_row(m) for m in movements),
            config,
            min_signal_samples=self.min_signal_samples,
            default_weight=self.default_signal_weight,
        )

        rows = accuracy_rows(report, config.to_dict(), self.min_sport_samples, now)
        if rows:
            await upsert_rows(
                self.session,
                SharpSignalAccuracy,
                rows,
                conflict_keys=["signal_name", "sport"],
            )
            await self.session.commit()

        logger.info(
            "sharp_signals_calibrated",
            movements=report.movements_analyzed,
            signals=len(report.signal_stats),
            suggestions=len(report.suggestions),
            rows_written=len(rows),
        )
        return report.to_dict()
