"""Sharp pressure / trap pressure movement classifier.

Scores a single line movement by building two opposing pressures:

    SP  = MW(bucket) x TW(hours) x BASE_MOVE_SHARP + sum(sharp signal bonuses)
    TP  = NW(bucket) x (0.5 + 0.5 x early) x BASE_NOISE + sum(trap penalties)
    SES = SP - TP
    sharp_pct = round(100 / (1 + exp(-SES / LOGISTIC_K)))

The label is SHARP/pick when SES >= PICK_SES_THRESHOLD and
sharp_pct >= PICK_SHARP_PCT, TRAP/fade when SES <= FADE_SES_THRESHOLD and
sharp_pct <= FADE_SHARP_PCT, otherwise CAUTION/caution. Both cutoffs are
inclusive.

Missing or NaN inputs never raise: they are replaced with neutral defaults
(see MovementInput.normalized).
"""

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

import structlog

from linewatch.config import get_settings

logger = structlog.get_logger(__name__)

ENGINE_VERSION = "sharp-engine-v2"

# Neutral defaults for missing movement fields
DEFAULT_HOURS_TO_GAME = 12.0
DEFAULT_BOOKS_COUNT = 1
DEFAULT_TOTAL_BOOKS = 5
DEFAULT_PRICE = -110

# Signal name -> config field carrying its points
SIGNAL_CONFIG_FIELDS: dict[str, str] = {
    "LINE_AND_JUICE_MOVED": "signal_line_and_juice",
    "STEAM_MOVE_DETECTED": "signal_steam_move",
    "LATE_MONEY_WINDOW": "signal_late_money",
    "REVERSE_LINE_MOVEMENT": "signal_rlm",
    "MARKET_CONSENSUS_HIGH": "signal_consensus_high",
    "CLV_POSITIVE": "signal_clv_positive",
    "MULTI_MARKET_ALIGNMENT": "signal_multi_market",
    "SINGLE_SIDE_MOVEMENT": "signal_single_side",
    "PRICE_ONLY_MOVE": "trap_price_only",
    "EARLY_MORNING_ACTION": "trap_early_morning",
    "BOTH_SIDES_MOVED": "trap_both_sides",
    "INSIGNIFICANT_MOVEMENT": "trap_insignificant",
    "FAVORITE_SHORTENING": "trap_favorite_short",
    "EXTREME_JUICE_WARNING": "trap_extreme_juice",
    "ISOLATED_SIGNAL": "trap_isolated",
    "CLV_NEGATIVE": "trap_clv_negative",
}


@dataclass(frozen=True)
class SharpEngineConfig:
    """
    Sharp engine weights.

    Immutable; use with_overrides() to layer database or per-sport values.
    Keys are exposed upper-case (BASE_MOVE_SHARP, TW_LATE, ...) to match the
    override tables.
    """

    base_move_sharp: float = 40
    base_noise: float = 25
    logistic_k: float = 25
    pick_ses_threshold: float = 30
    fade_ses_threshold: float = -30
    pick_sharp_pct: float = 65
    fade_sharp_pct: float = 35

    mw_extreme: float = 0.4
    mw_large: float = 1.0
    mw_moderate: float = 0.7
    mw_small: float = 0.3
    mw_minimal: float = 0.1

    nw_extreme: float = 0.5
    nw_large: float = 0.4
    nw_moderate: float = 0.6
    nw_small: float = 0.8
    nw_minimal: float = 1.0

    tw_late: float = 1.25
    tw_mid: float = 1.0
    tw_early: float = 0.6

    signal_line_and_juice: float = 25
    signal_steam_move: float = 20
    signal_late_money: float = 15
    signal_rlm: float = 25
    signal_consensus_high: float = 20
    signal_clv_positive: float = 10
    signal_multi_market: float = 15
    signal_single_side: float = 10

    trap_price_only: float = 25
    trap_early_morning: float = 15
    trap_both_sides: float = 30
    trap_insignificant: float = 20
    trap_favorite_short: float = 20
    trap_extreme_juice: float = 15
    trap_isolated: float = 20
    trap_clv_negative: float = 10

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "SharpEngineConfig":
        """Return a copy with known keys replaced; unknown or non-numeric keys are ignored."""
        if not overrides:
            return self

        known = {f.name for f in fields(self)}
        changes: dict[str, float] = {}
        for key, value in overrides.items():
            name = str(key).lower()
            if name not in known:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                logger.warning("sharp_config_value_invalid", key=key, value=value)
                continue
            if math.isnan(number):
                continue
            changes[name] = number
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, float]:
        """Config as an upper-case keyed dictionary."""
        return {key.upper(): value for key, value in asdict(self).items()}


def load_default_config() -> SharpEngineConfig:
    """Build the config from defaults.yaml, falling back to the dataclass defaults."""
    defaults = get_settings().load_defaults_config()
    weights = defaults.get("sharp_engine", {}).get("weights", {})
    return SharpEngineConfig().with_overrides(weights)


def _number(value: Any, default: float) -> float:
    """Coerce to float, replacing None/NaN/garbage with the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def round_half_up(value: float) -> int:
    """Round .5 upwards (towards +inf) for both signs."""
    return int(math.floor(value + 0.5))


@dataclass
class MovementInput:
    """A single line movement observation. Every field is optional."""

    price_change: float | None = None
    line_change: float | None = None
    hours_to_game: float | None = None
    books_count: int | None = None
    total_books: int | None = None
    current_price: float | None = None
    opening_price: float | None = None
    opposite_side_moved: bool | None = None
    is_steam_move: bool | None = None
    multi_market_aligned: bool | None = None
    is_player_prop: bool | None = None
    sport: str | None = None

    def normalized(self) -> "MovementInput":
        """Return a copy with all neutral defaults applied."""
        return MovementInput(
            price_change=_number(self.price_change, 0.0),
            line_change=_number(self.line_change, 0.0),
            hours_to_game=max(0.0, _number(self.hours_to_game, DEFAULT_HOURS_TO_GAME)),
            books_count=int(_number(self.books_count, DEFAULT_BOOKS_COUNT)),
            total_books=int(_number(self.total_books, DEFAULT_TOTAL_BOOKS)),
            current_price=_number(self.current_price, DEFAULT_PRICE),
            opening_price=_number(self.opening_price, DEFAULT_PRICE),
            opposite_side_moved=bool(self.opposite_side_moved),
            is_steam_move=bool(self.is_steam_move),
            multi_market_aligned=bool(self.multi_market_aligned),
            is_player_prop=bool(self.is_player_prop),
            sport=self.sport,
        )


@dataclass
class SharpResult:
    """Sharp engine output with full component breakdown."""

    sharp_pressure: float
    sp_move: float
    sp_signals: float
    trap_pressure: float
    tp_noise: float
    tp_trap: float
    ses: float
    sharp_pct: int
    movement_weight: float
    time_weight: float
    label: str
    recommendation: str
    sharp_signals: list[str] = field(default_factory=list)
    trap_signals: list[str] = field(default_factory=list)
    signal_points: dict[str, float] = field(default_factory=dict)
    consensus_ratio: float = 0.0
    movement_bucket: str = "minimal"
    price_direction: str = "neutral"
    opening_side: str = "unknown"

    @property
    def authenticity(self) -> str:
        """Map the label onto the line_movements authenticity vocabulary."""
        return {"SHARP": "real", "TRAP": "fake"}.get(self.label, "uncertain")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for API responses.

        Pressure terms keep their formula names (SP, TP, SES, MW, TW);
        every other key is camelCase, matching the request payloads.
        """
        return {
            "SP": self.sharp_pressure,
            "SP_move": self.sp_move,
            "SP_signals": self.sp_signals,
            "TP": self.trap_pressure,
            "TP_noise": self.tp_noise,
            "TP_trap": self.tp_trap,
            "SES": self.ses,
            "sharpPct": self.sharp_pct,
            "MW": self.movement_weight,
            "TW": self.time_weight,
            "label": self.label,
            "recommendation": self.recommendation,
            "sharpSignals": self.sharp_signals,
            "trapSignals": self.trap_signals,
            "allSignals": self.sharp_signals + self.trap_signals,
            "signalPoints": self.signal_points,
            "consensusRatio": self.consensus_ratio,
            "movementBucket": self.movement_bucket,
            "priceDirection": self.price_direction,
            "openingSide": self.opening_side,
            "engineVersion": ENGINE_VERSION,
        }


class SharpEngine:
    """Compute sharp/trap pressure for line movements."""

    def __init__(self, config: SharpEngineConfig | None = None):
        """
        Initialize the engine.

        Args:
            config: Weights to score with. Defaults to the built-in weights.
        """
        self.config = config or SharpEngineConfig()

    @staticmethod
    def movement_bucket(price_change: float) -> str:
        """Bucket absolute price change in cents."""
        size = abs(price_change)
        if size >= 50:
            return "extreme"
        if size >= 30:
            return "large"
        if size >= 15:
            return "moderate"
        if size >= 10:
            return "small"
        return "minimal"

    def movement_weight(self, bucket: str) -> float:
        return getattr(self.config, f"mw_{bucket}")

    def noise_weight(self, bucket: str) -> float:
        return getattr(self.config, f"nw_{bucket}")

    def time_weight(self, hours_to_game: float) -> float:
        """Late window (1-3h) weighted highest, 3-6h neutral, everything else early."""
        if 1 <= hours_to_game <= 3:
            return self.config.tw_late
        if 3 < hours_to_game <= 6:
            return self.config.tw_mid
        return self.config.tw_early

    @staticmethod
    def consensus_ratio(books_count: int, total_books: int) -> float:
        if total_books <= 0:
            return 0.0
        return books_count / total_books

    @staticmethod
    def price_direction(current_price: float, opening_price: float) -> str:
        """Direction of the move relative to the favourite, with a 10 cent dead zone."""
        if not current_price or not opening_price:
            return "neutral"
        diff = current_price - opening_price
        if diff < -10:
            return "toward_favorite"
        if diff > 10:
            return "toward_underdog"
        return "neutral"

    @staticmethod
    def opening_side(opening_price: float) -> str:
        if not opening_price:
            return "unknown"
        if opening_price <= -150:
            return "heavy_favorite"
        if opening_price < -110:
            return "slight_favorite"
        if opening_price >= 150:
            return "heavy_underdog"
        if opening_price > 110:
            return "slight_underdog"
        return "pick_em"

    def sharp_signals(self, m: MovementInput) -> list[tuple[str, float]]:
        """Sharp signals that fired, with their bonus points."""
        c = self.config
        price = abs(m.price_change)
        line = abs(m.line_change)
        hours = m.hours_to_game
        signals: list[tuple[str, float]] = []

        if line >= 0.5 and price >= 10:
            signals.append(("LINE_AND_JUICE_MOVED", c.signal_line_and_juice))
        if m.is_steam_move or (price >= 15 and hours <= 2):
            signals.append(("STEAM_MOVE_DETECTED", c.signal_steam_move))
        if 1 <= hours <= 3:
            signals.append(("LATE_MONEY_WINDOW", c.signal_late_money))
        if (m.price_change < -10 and m.line_change > 0) or (
            m.price_change > 10 and m.line_change < 0
        ):
            signals.append(("REVERSE_LINE_MOVEMENT", c.signal_rlm))
        if self.consensus_ratio(m.books_count, m.total_books) >= 0.6:
            signals.append(("MARKET_CONSENSUS_HIGH", c.signal_consensus_high))
        if m.current_price < m.opening_price:
            signals.append(("CLV_POSITIVE", c.signal_clv_positive))
        if m.multi_market_aligned:
            signals.append(("MULTI_MARKET_ALIGNMENT", c.signal_multi_market))
        if not m.opposite_side_moved and 10 <= price < 30:
            signals.append(("SINGLE_SIDE_MOVEMENT", c.signal_single_side))
        return signals

    def trap_signals(self, m: MovementInput) -> list[tuple[str, float]]:
        """Trap signals that fired, with their penalty points."""
        c = self.config
        price = abs(m.price_change)
        line = abs(m.line_change)
        ratio = self.consensus_ratio(m.books_count, m.total_books)
        direction = self.price_direction(m.current_price, m.opening_price)
        signals: list[tuple[str, float]] = []

        if line < 0.5 and price >= 8:
            signals.append(("PRICE_ONLY_MOVE", c.trap_price_only))
        if m.hours_to_game > 6:
            signals.append(("EARLY_MORNING_ACTION", c.trap_early_morning))
        if m.opposite_side_moved:
            signals.append(("BOTH_SIDES_MOVED", c.trap_both_sides))
        if price < 8:
            signals.append(("INSIGNIFICANT_MOVEMENT", c.trap_insignificant))

        favorite_shortening = direction == "toward_favorite" and m.current_price <= -130
        if favorite_shortening:
            signals.append(("FAVORITE_SHORTENING", c.trap_favorite_short))
        elif m.current_price <= -150:
            signals.append(("EXTREME_JUICE_WARNING", c.trap_extreme_juice))

        if ratio < 0.4:
            signals.append(("ISOLATED_SIGNAL", c.trap_isolated))
        if m.current_price > m.opening_price:
            signals.append(("CLV_NEGATIVE", c.trap_clv_negative))
        return signals

    def logistic_pct(self, ses: float) -> int:
        """Map SES onto a 0-100 sharp probability."""
        k = self.config.logistic_k or 1
        exponent = -ses / k
        # exp overflows for very negative SES; the limit is 0
        if exponent > 700:
            return 0
        return round_half_up(100 / (1 + math.exp(exponent)))

    def classify(self, ses: float, sharp_pct: int) -> tuple[str, str]:
        """Return (label, recommendation)."""
        c = self.config
        if ses >= c.pick_ses_threshold and sharp_pct >= c.pick_sharp_pct:
            return "SHARP", "pick"
        if ses <= c.fade_ses_threshold and sharp_pct <= c.fade_sharp_pct:
            return "TRAP", "fade"
        return "CAUTION", "caution"

    def analyze(self, movement: MovementInput) -> SharpResult:
        """
        Score one movement.

        Args:
            movement: Raw movement observation (defaults applied here)

        Returns:
            SharpResult with pressures, SES, probability and label
        """
        m = movement.normalized()
        c = self.config

        bucket = self.movement_bucket(m.price_change)
        mw = self.movement_weight(bucket)
        nw = self.noise_weight(bucket)
        tw = self.time_weight(m.hours_to_game)
        early = 1 if m.hours_to_game > 6 else 0

        sharp = self.sharp_signals(m)
        traps = self.trap_signals(m)

        sp_move = mw * tw * c.base_move_sharp
        sp_signals = sum(points for _, points in sharp)
        tp_noise = nw * (0.5 + 0.5 * early) * c.base_noise
        tp_trap = sum(points for _, points in traps)

        sp = sp_move + sp_signals
        tp = tp_noise + tp_trap
        ses = sp - tp
        sharp_pct = self.logistic_pct(ses)
        label, recommendation = self.classify(ses, sharp_pct)

        result = SharpResult(
            sharp_pressure=round(sp, 2),
            sp_move=round(sp_move, 2),
            sp_signals=round(sp_signals, 2),
            trap_pressure=round(tp, 2),
            tp_noise=round(tp_noise, 2),
            tp_trap=round(tp_trap, 2),
            ses=round(ses, 2),
            sharp_pct=sharp_pct,
            movement_weight=mw,
            time_weight=tw,
            label=label,
            recommendation=recommendation,
            sharp_signals=[name for name, _ in sharp],
            trap_signals=[name for name, _ in traps],
            signal_points={name: points for name, points in sharp + traps},
            consensus_ratio=round(self.consensus_ratio(m.books_count, m.total_books), 3),
            movement_bucket=bucket,
            price_direction=self.price_direction(m.current_price, m.opening_price),
            opening_side=self.opening_side(m.opening_price),
        )

        logger.debug(
            "sharp_movement_scored",
            ses=result.ses,
            sharp_pct=result.sharp_pct,
            label=result.label,
            sharp_signals=result.sharp_signals,
            trap_signals=result.trap_signals,
        )
        return result


def analyze_movement(
    movement: MovementInput | Mapping[str, Any],
    config: SharpEngineConfig | None = None,
) -> SharpResult:
    """
    Convenience function to score a movement.

    Args:
        movement: MovementInput or a dict of its fields
        config: Optional weights

    Returns:
        SharpResult
    """
    if not isinstance(movement, MovementInput):
        known = {f.name for f in fields(MovementInput)}
        movement = MovementInput(**{k: v for k, v in movement.items() if k in known})
    return SharpEngine(config).analyze(movement)
