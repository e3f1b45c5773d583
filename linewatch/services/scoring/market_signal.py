"""Market signal composite scorer.

Five component scores, each on a 0-100 scale with a neutral default for
missing data, combined into a weighted market score:

    market_score = round(0.35 x line_move + 0.20 x juice_move
                         + 0.15 x timing + 0.15 x consensus + 0.15 x public_fade)

Labels: >= 70 sharp_aligned, >= 40 neutral, otherwise trap_risk.
"""

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

import structlog

from linewatch.config import get_settings
from linewatch.services.scoring.sharp import round_half_up

logger = structlog.get_logger(__name__)

# Neutral component values used when inputs are missing
NEUTRAL_LINE_MOVE = 50
NEUTRAL_JUICE_MOVE = 50
NEUTRAL_TIMING = 50
NEUTRAL_CONSENSUS = 40
NEUTRAL_PUBLIC_FADE = 50


@dataclass(frozen=True)
class MarketSignalWeights:
    """Component weights (should sum to 1.0)."""

    line_move: float = 0.35
    juice_move: float = 0.20
    timing_sharpness: float = 0.15
    multi_book_consensus: float = 0.15
    public_fade: float = 0.15

    sharp_aligned_min: float = 70
    neutral_min: float = 40

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "MarketSignalWeights":
        """Return a copy with known keys replaced."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            if key not in known or value is None:
                continue
            try:
                changes[key] = float(value)
            except (TypeError, ValueError):
                logger.warning("market_weight_value_invalid", key=key, value=value)
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def load_default_weights() -> "MarketSignalWeights":
    """Build weights from defaults.yaml."""
    section = get_settings().load_defaults_config().get("market_signal", {})
    weights = MarketSignalWeights().with_overrides(section.get("weights"))
    labels = section.get("labels", {})
    return weights.with_overrides(
        {
            "sharp_aligned_min": labels.get("sharp_aligned"),
            "neutral_min": labels.get("neutral"),
        }
    )


@dataclass
class MarketSignalInput:
    """One outcome to score. Only event_id and outcome_name are required."""

    event_id: str
    outcome_name: str
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


@dataclass
class MarketSignalResult:
    """Component scores, composite score, label and rationale."""

    line_move_score: float
    juice_move_score: float
    timing_sharpness_score: float
    multi_book_consensus_score: float
    public_fade_score: float
    market_score: int
    signal_label: str
    rationale: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _present(value: Any) -> bool:
    """Zero, None and NaN all count as missing."""
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def line_move_score(opening_point: float | None, current_point: float | None) -> float:
    """Scale magnitude of the point move into 0-100."""
    if not _present(opening_point) or not _present(current_point):
        return NEUTRAL_LINE_MOVE

    change = abs(current_point - opening_point)
    if change >= 2.0:
        return 100
    if change >= 1.5:
        return 85
    if change >= 1.0:
        return 70
    if change >= 0.5:
        return 55
    if change >= 0.25:
        return 40
    return 25


def juice_move_score(
    opening_price: float | None,
    current_price: float | None,
    line_changed: bool,
) -> float:
    """
    Score the price (juice) move.

    Price moving without the line is treated as public pressure; price and
    line moving together is sharp confirmation.
    """
    if not _present(opening_price) or not _present(current_price):
        return NEUTRAL_JUICE_MOVE

    diff = abs(current_price - opening_price)
    if not line_changed:
        if diff >= 20:
            return 25
        if diff >= 15:
            return 35
        if diff >= 10:
            return 45
    else:
        if diff >= 15:
            return 90
        if diff >= 10:
            return 80
        if diff >= 5:
            return 70
    return 55


def timing_score(hours_to_game: float | None) -> float:
    """Moves 12-24h out score highest; last-hour moves lowest."""
    if not _present(hours_to_game) or hours_to_game <= 0:
        return NEUTRAL_TIMING

    if 12 <= hours_to_game <= 24:
        return 100
    if 8 <= hours_to_game < 12:
        return 85
    if 4 <= hours_to_game < 8:
        return 75
    if 1 <= hours_to_game < 4:
        return 65
    if hours_to_game < 1:
        return 45
    if 24 < hours_to_game <= 48:
        return 70
    return 50


def consensus_score(confirming_books: int | None) -> float:
    """Zero confirming books is a real count and scores lowest; only None or NaN is neutral."""
    if confirming_books is None or (
        isinstance(confirming_books, float) and math.isnan(confirming_books)
    ):
        return NEUTRAL_CONSENSUS

    if confirming_books >= 5:
        return 100
    if confirming_books >= 4:
        return 85
    if confirming_books >= 3:
        return 70
    if confirming_books >= 2:
        return 55
    return 30


def public_fade_score(public_side: str | None, line_direction: str | None) -> float:
    if not public_side or not line_direction:
        return NEUTRAL_PUBLIC_FADE
    if line_direction != public_side:
        return 95
    return 25


def _line_changed(data: MarketSignalInput) -> bool:
    return data.opening_point != data.current_point


def build_rationale(result: MarketSignalResult, data: MarketSignalInput) -> str:
    """One-sentence explanation of the score."""
    reasons: list[str] = []

    if _present(data.opening_point) and _present(data.current_point):
        change = abs(data.current_point - data.opening_point)
        direction = "up" if data.current_point > data.opening_point else "down"
        if change >= 0.5:
            reasons.append(f"Line moved {change:.1f} pts {direction}")

    if _present(data.confirming_books) and data.confirming_books >= 3:
        reasons.append(f"across {data.confirming_books} books")

    if result.timing_sharpness_score >= 80 and _present(data.hours_to_game):
        reasons.append(f"early in cycle ({round_half_up(data.hours_to_game)}h out)")

    if _present(data.opening_price) and _present(data.current_price):
        price_change = abs(data.current_price - data.opening_price)
        if price_change >= 10:
            if _line_changed(data):
                reasons.append("juice drift confirms sharp buying")
            else:
                reasons.append(
                    f"price drift of {price_change:g}c without line adjustment "
                    "suggests public pressure"
                )

    if result.public_fade_score >= 80:
        reasons.append("line moving against public")
    elif result.public_fade_score <= 30:
        reasons.append("line moving with public (trap risk)")

    if not reasons:
        if result.market_score >= 70:
            return "Strong market signals indicate sharp action"
        if result.market_score < 40:
            return "Market signals suggest potential trap - proceed with caution"
        return "Neutral market activity with no clear directional signal"

    return "; ".join(reasons) + "."


class MarketSignalEngine:
    """Score outcomes with a fixed set of weights."""

    def __init__(self, weights: MarketSignalWeights | None = None):
        self.weights = weights or MarketSignalWeights()

    def label(self, market_score: int) -> str:
        if market_score >= self.weights.sharp_aligned_min:
            return "sharp_aligned"
        if market_score >= self.weights.neutral_min:
            return "neutral"
        return "trap_risk"

    def score(self, data: MarketSignalInput) -> MarketSignalResult:
        """
        Score one outcome.

        Args:
            data: Opening/current price and point plus context

        Returns:
            MarketSignalResult with component breakdown
        """
        w = self.weights
        line = line_move_score(data.opening_point, data.current_point)
        juice = juice_move_score(data.opening_price, data.current_price, _line_changed(data))
        timing = timing_score(data.hours_to_game)
        consensus = consensus_score(data.confirming_books)
        fade = public_fade_score(data.public_side, data.line_direction)

        market_score = round_half_up(
            line * w.line_move
            + juice * w.juice_move
            + timing * w.timing_sharpness
            + consensus * w.multi_book_consensus
            + fade * w.public_fade
        )
        market_score = max(0, min(100, market_score))

        result = MarketSignalResult(
            line_move_score=line,
            juice_move_score=juice,
            timing_sharpness_score=timing,
            multi_book_consensus_score=consensus,
            public_fade_score=fade,
            market_score=market_score,
            signal_label=self.label(market_score),
        )
        result.rationale = build_rationale(result, data)
        return result
