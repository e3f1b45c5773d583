"""NBA median matchup engine.

Compares a player's recent median production against a sportsbook line,
adjusted for the opponent's defence code, recent form and volatility.

    adjusted = median10 x (1 + defence multiplier)
    edge     = adjusted - line + 0.2 x (median5 - median10)
    edge    *= 0.88 when volatility (coefficient of variation) > 0.35

A pick is LEAN when |edge| clears the per-stat lean threshold and the hit
rate in the edge direction is at least 60%; STRONG additionally needs a 70%
hit rate, the strong threshold and volatility under the per-stat cap.
"""

import math
import statistics
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from linewatch.services.scoring.sharp import round_half_up

logger = structlog.get_logger(__name__)

STAT_TYPES = ("points", "rebounds", "assists", "pra", "pr", "pa", "ra")

# Components summed per game for each stat
STAT_COMPONENTS: dict[str, tuple[str, ...]] = {
    "points": ("points",),
    "rebounds": ("rebounds",),
    "assists": ("assists",),
    "pra": ("points", "rebounds", "assists"),
    "pr": ("points", "rebounds"),
    "pa": ("points", "assists"),
    "ra": ("rebounds", "assists"),
}


@dataclass(frozen=True)
class StatThreshold:
    lean: float
    strong: float
    vol_cap_strong: float


DEFAULT_THRESHOLDS: dict[str, StatThreshold] = {
    "points": StatThreshold(1.5, 3.0, 0.32),
    "rebounds": StatThreshold(1.3, 2.5, 0.34),
    "assists": StatThreshold(1.2, 2.2, 0.30),
    "pra": StatThreshold(2.0, 4.0, 0.28),
    "pr": StatThreshold(1.8, 3.5, 0.30),
    "pa": StatThreshold(1.6, 3.0, 0.30),
    "ra": StatThreshold(1.4, 2.6, 0.32),
}


@dataclass(frozen=True)
class MedianEngineConfig:
    """Engine parameters; thresholds are per stat type."""

    min_games: int = 8
    sample_size: int = 10
    volatility_damping_threshold: float = 0.35
    volatility_damping: float = 0.88
    trend_weight: float = 0.2
    lean_hit_rate: float = 0.60
    strong_hit_rate: float = 0.70
    tier_b_hit_rate: float = 0.67
    thresholds: Mapping[str, StatThreshold] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "MedianEngineConfig":
        """Build from the median_matchup section of defaults.yaml."""
        if not data:
            return cls()
        thresholds = dict(DEFAULT_THRESHOLDS)
        for stat, values in (data.get("thresholds") or {}).items():
            thresholds[stat] = StatThreshold(
                lean=float(values["lean"]),
                strong=float(values["strong"]),
                vol_cap_strong=float(values["vol_cap_strong"]),
            )
        scalars = {
            key: data[key]
            for key in (
                "min_games",
                "sample_size",
                "volatility_damping_threshold",
                "volatility_damping",
                "trend_weight",
            )
            if key in data
        }
        return cls(thresholds=thresholds, **scalars)


@dataclass
class GameLine:
    """The per-game numbers the engine needs from a game log."""

    minutes: float = 0
    points: float = 0
    rebounds: float = 0
    assists: float = 0


@dataclass
class DefenseCodes:
    vs_points: int | None = None
    vs_rebounds: int | None = None
    vs_assists: int | None = None


@dataclass
class MedianPick:
    """Engine output for one prop."""

    player_name: str
    stat_type: str
    line: float
    games_analyzed: int
    median10: float
    median5: float
    adjusted_median: float
    edge: float
    hit_rate_over: float
    hit_rate_under: float
    volatility: float
    defense_code: int | None
    defense_multiplier: float
    recommendation: str
    tier: str
    reason: str
    event_id: str | None = None
    opponent: str | None = None

    @property
    def actionable(self) -> bool:
        return self.recommendation != "NO BET"

    @property
    def direction(self) -> str | None:
        if not self.actionable:
            return None
        return self.recommendation.split(" ", 1)[1]

    @property
    def bet_label(self) -> str | None:
        if not self.actionable:
            return None
        return self.recommendation.split(" ", 1)[0]

    @property
    def confidence_flag(self) -> str:
        return "HIGH" if self.bet_label == "STRONG" else "MEDIUM"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.median(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)


def volatility_ratio(values: Sequence[float]) -> float:
    """Coefficient of variation; 1 when the mean is not positive."""
    mean = sum(values) / (len(values) or 1)
    if mean <= 0:
        return 1.0
    return std_dev(values) / mean


def hit_rates(values: Sequence[float], line: float) -> tuple[float, float]:
    """Share of games strictly over and strictly under the line."""
    n = len(values) or 1
    over = sum(1 for v in values if v > line) / n
    under = sum(1 for v in values if v < line) / n
    return over, under


def defense_multiplier(code: int | None) -> float:
    """Higher code = harder defence = suppress the stat."""
    if code is None:
        return 0.0
    if code >= 80:
        return -0.08
    if code >= 60:
        return -0.04
    if code >= 40:
        return 0.0
    if code >= 20:
        return 0.04
    return 0.08


PROP_TYPE_ALIASES: dict[str, str] = {
    "points_rebounds_assists": "pra",
    "points_rebounds": "pr",
    "points_assists": "pa",
    "rebounds_assists": "ra",
}


def normalize_prop_type(prop_type: str | None) -> str | None:
    """
    Map a prop type onto an engine stat type.

    Accepts market keys (player_points_rebounds), stored prop types
    (points_rebounds) and short codes (pr).
    """
    t = (prop_type or "").strip().lower().removeprefix("player_")
    t = PROP_TYPE_ALIASES.get(t, t)
    return t if t in STAT_COMPONENTS else None


def stat_series(logs: Sequence[GameLine], stat_type: str) -> list[float]:
    components = STAT_COMPONENTS[stat_type]
    return [sum(getattr(log, c) or 0 for c in components) for log in logs]


def defense_code_for(codes: DefenseCodes | None, stat_type: str) -> int | None:
    """Stat-specific defence code; combos use the rounded mean of their parts."""
    if codes is None:
        return None
    parts = [getattr(codes, f"vs_{c}") for c in STAT_COMPONENTS[stat_type]]
    if any(p is None for p in parts):
        return None
    if len(parts) == 1:
        return parts[0]
    return round_half_up(sum(parts) / len(parts))


class MedianMatchupEngine:
    """Evaluate player props against recent medians."""

    def __init__(self, config: MedianEngineConfig | None = None):
        self.config = config or MedianEngineConfig()

    def evaluate(
        self,
        player_name: str,
        stat_type: str,
        line: float,
        logs: Sequence[GameLine],
        defense: DefenseCodes | None = None,
        event_id: str | None = None,
        opponent: str | None = None,
    ) -> MedianPick:
        """
        Evaluate one prop.

        Args:
            player_name: Player
            stat_type: One of STAT_TYPES
            line: Sportsbook line
            logs: Game logs, most recent first
            defense: Opponent defence codes
            event_id: Event the prop belongs to
            opponent: Opponent team name

        Returns:
            MedianPick (recommendation "NO BET" when not actionable)
        """
        cfg = self.config
        played = [g for g in logs if (g.minutes or 0) > 0][: cfg.sample_size]

        if len(played) < cfg.min_games:
            return MedianPick(
                player_name=player_name,
                stat_type=stat_type,
                line=line,
                games_analyzed=len(played),
                median10=0,
                median5=0,
                adjusted_median=0,
                edge=0,
                hit_rate_over=0,
                hit_rate_under=0,
                volatility=1,
                defense_code=None,
                defense_multiplier=0,
                recommendation="NO BET",
                tier="D",
                reason=f"Insufficient sample ({len(played)}/{cfg.min_games} games)",
                event_id=event_id,
                opponent=opponent,
            )

        series10 = stat_series(played, stat_type)
        series5 = series10[:5]
        med10 = median(series10)
        med5 = median(series5)
        over, under = hit_rates(series10, line)
        vol = volatility_ratio(series10)

        def_code = defense_code_for(defense, stat_type)
        def_mult = defense_multiplier(def_code)
        adjusted = med10 * (1 + def_mult)

        edge = adjusted - line
        edge += (med5 - med10) * cfg.trend_weight
        if vol > cfg.volatility_damping_threshold:
            edge *= cfg.volatility_damping

        threshold = cfg.thresholds[stat_type]
        direction = "OVER" if edge >= 0 else "UNDER"
        abs_edge = abs(edge)
        hit_rate = over if direction == "OVER" else under

        recommendation = "NO BET"
        if abs_edge >= threshold.lean and hit_rate >= cfg.lean_hit_rate:
            recommendation = f"LEAN {direction}"
        if (
            abs_edge >= threshold.strong
            and hit_rate >= cfg.strong_hit_rate
            and vol <= threshold.vol_cap_strong
        ):
            recommendation = f"STRONG {direction}"

        if recommendation.startswith("STRONG"):
            tier = "A"
        elif recommendation.startswith("LEAN"):
            tier = "B" if hit_rate >= cfg.tier_b_hit_rate else "C"
        else:
            tier = "D"

        reason = " | ".join(
            [
                f"med10={med10:.1f}",
                f"med5={med5:.1f}",
                f"adj={adjusted:.1f}",
                f"def={def_code}->{def_mult * 100:.0f}%" if def_code is not None else "def=NA",
                f"edge={'+' if edge >= 0 else ''}{edge:.2f}",
                f"hit{direction.lower()}={hit_rate * 100:.0f}%",
                f"vol={vol:.2f}",
            ]
        )

        return MedianPick(
            player_name=player_name,
            stat_type=stat_type,
            line=line,
            games_analyzed=len(played),
            median10=round(med10, 2),
            median5=round(med5, 2),
            adjusted_median=round(adjusted, 2),
            edge=round(edge, 2),
            hit_rate_over=round(over, 3),
            hit_rate_under=round(under, 3),
            volatility=round(vol, 3),
            defense_code=def_code,
            defense_multiplier=def_mult,
            recommendation=recommendation,
            tier=tier,
            reason=reason,
            event_id=event_id,
            opponent=opponent,
        )


def valid_line(line: Any) -> float | None:
    """Positive finite line or None."""
    try:
        value = float(line)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value
