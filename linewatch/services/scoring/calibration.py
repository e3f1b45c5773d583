"""Sharp signal calibration.

Measures how often graded movements were correct when each sharp/trap signal
fired, and suggests weight changes:

- sharp signals: accuracy < 40% halves the weight (min 5), > 60% scales it
  by 1.3 (max 40);
- trap signals are inverted: a trap that fires on winners is ineffective.

A change is only suggested when the signal has at least 10 samples and the
weight would move by 3 points or more.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from linewatch.services.scoring.sharp import (
    SIGNAL_CONFIG_FIELDS,
    SharpEngineConfig,
    round_half_up,
)

SES_RANGES: tuple[tuple[str, float, float], ...] = (
    ("very_low", -100, -50),
    ("low", -50, -20),
    ("slightly_low", -20, 0),
    ("slightly_high", 0, 20),
    ("high", 20, 50),
    ("very_high", 50, 100),
)

RECOMMENDATIONS = ("pick", "fade", "caution")


@dataclass
class GradedMovement:
    """A line movement whose outcome has been verified."""

    sport: str | None
    recommendation: str | None
    ses: float | None
    correct: bool
    sharp_signals: list[str] = field(default_factory=list)
    trap_signals: list[str] = field(default_factory=list)


@dataclass
class Tally:
    total: int = 0
    correct: int = 0

    def add(self, correct: bool) -> None:
        self.total += 1
        if correct:
            self.correct += 1

    @property
    def accuracy(self) -> float:
        return (self.correct / self.total) * 100 if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "correct": self.correct, "accuracy": round(self.accuracy, 2)}


@dataclass
class SignalStats:
    signal: str
    signal_type: str
    tally: Tally = field(default_factory=Tally)
    ses_sum: float = 0.0
    sports: dict[str, Tally] = field(default_factory=dict)

    @property
    def avg_ses(self) -> float:
        return self.ses_sum / self.tally.total if self.tally.total else 0.0


@dataclass
class WeightSuggestion:
    signal: str
    config_key: str
    current_weight: float
    suggested_weight: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CalibrationReport:
    movements_analyzed: int
    signal_stats: list[SignalStats]
    sport_accuracy: dict[str, Tally]
    recommendation_accuracy: dict[str, Tally]
    ses_range_accuracy: dict[str, Tally]
    suggestions: list[WeightSuggestion]

    def suggestion_for(self, signal: str) -> WeightSuggestion | None:
        return next((s for s in self.suggestions if s.signal == signal), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "movements_analyzed": self.movements_analyzed,
            "signal_stats": [
                {
                    "signal": s.signal,
                    "type": s.signal_type,
                    **s.tally.to_dict(),
                    "avg_ses": round(s.avg_ses, 2),
                }
                for s in self.signal_stats
            ],
            "sport_accuracy": {k: v.to_dict() for k, v in self.sport_accuracy.items()},
            "recommendation_accuracy": {
                k: v.to_dict() for k, v in self.recommendation_accuracy.items()
            },
            "ses_range_accuracy": [
                {"range": k, **v.to_dict()} for k, v in self.ses_range_accuracy.items()
            ],
            "suggested_weight_changes": [s.to_dict() for s in self.suggestions],
        }


def ses_range(ses: float) -> str | None:
    for label, low, high in SES_RANGES:
        if low <= ses < high:
            return label
    return None


def suggest_weight(
    signal_type: str,
    accuracy: float,
    current_weight: float,
) -> tuple[float, str]:
    """Return (suggested weight, reason); unchanged weight with empty reason if none."""
    if signal_type == "sharp":
        if accuracy < 40:
            return max(5, current_weight * 0.5), (
                f"Accuracy {accuracy:.1f}% is below 40% - reduce weight"
            )
        if accuracy > 60:
            return min(40, current_weight * 1.3), (
                f"Accuracy {accuracy:.1f}% is above 60% - increase weight"
            )
    else:
        if accuracy > 60:
            return max(5, current_weight * 0.5), (
                f"Trap signal has {accuracy:.1f}% win rate - ineffective trap detection"
            )
        if accuracy < 40:
            return min(40, current_weight * 1.3), (
                f"Trap signal has {accuracy:.1f}% win rate - effective trap detection"
            )
    return current_weight, ""


def calibrate(
    movements: Iterable[GradedMovement],
    config: SharpEngineConfig | None = None,
    min_signal_samples: int = 10,
    default_weight: float = 20,
) -> CalibrationReport:
    """
    Aggregate accuracy over graded movements.

    Args:
        movements: Verified movements
        config: Effective sharp engine config (for current weights)
        min_signal_samples: Minimum occurrences before suggesting a change
        default_weight: Weight assumed for signals without a config field

    Returns:
        CalibrationReport
    """
    config = config or SharpEngineConfig()
    signals: dict[tuple[str, str], SignalStats] = {}
    sports: dict[str, Tally] = {}
    recommendations = {r: Tally() for r in RECOMMENDATIONS}
    ranges = {label: Tally() for label, _, _ in SES_RANGES}
    count = 0

    for m in movements:
        count += 1
        sport = m.sport or "unknown"
        ses = m.ses or 0.0

        sports.setdefault(sport, Tally()).add(m.correct)
        if m.recommendation in recommendations:
            recommendations[m.recommendation].add(m.correct)
        bucket = ses_range(ses)
        if bucket:
            ranges[bucket].add(m.correct)

        tagged = [("sharp", s) for s in m.sharp_signals] + [("trap", s) for s in m.trap_signals]
        for signal_type, name in tagged:
            stats = signals.setdefault(
                (signal_type, name), SignalStats(signal=name, signal_type=signal_type)
            )
            stats.tally.add(m.correct)
            stats.ses_sum += ses
            stats.sports.setdefault(sport, Tally()).add(m.correct)

    ordered = sorted(signals.values(), key=lambda s: s.tally.accuracy, reverse=True)

    suggestions: list[WeightSuggestion] = []
    for stats in ordered:
        if stats.tally.total < min_signal_samples:
            continue
        field_name = SIGNAL_CONFIG_FIELDS.get(stats.signal)
        current = getattr(config, field_name) if field_name else default_weight
        suggested, reason = suggest_weight(stats.signal_type, stats.tally.accuracy, current)
        if abs(suggested - current) >= 3:
            suggestions.append(
                WeightSuggestion(
                    signal=stats.signal,
                    config_key=(field_name or stats.signal).upper(),
                    current_weight=current,
                    suggested_weight=round_half_up(suggested),
                    reason=reason,
                )
            )

    return CalibrationReport(
        movements_analyzed=count,
        signal_stats=ordered,
        sport_accuracy=sports,
        recommendation_accuracy=recommendations,
        ses_range_accuracy=ranges,
        suggestions=suggestions,
    )
