"""Rule-based player archetype classification.

Rules are evaluated in priority order and the first match wins.
ROLE_PLAYER is the fallback.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass
class PlayerAverages:
    """Per-game averages used by the rules. Missing values count as 0."""

    player_name: str
    avg_points: float = 0
    avg_rebounds: float = 0
    avg_assists: float = 0
    avg_threes: float = 0
    avg_blocks: float = 0
    avg_steals: float = 0
    avg_minutes: float = 0
    games_played: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "PlayerAverages":
        """Build from a PlayerSeasonStats row or a mapping."""
        get = row.get if isinstance(row, Mapping) else lambda k: getattr(row, k, None)
        return cls(
            player_name=get("player_name"),
            avg_points=get("avg_points") or 0,
            avg_rebounds=get("avg_rebounds") or 0,
            avg_assists=get("avg_assists") or 0,
            avg_threes=get("avg_threes") or 0,
            avg_blocks=get("avg_blocks") or 0,
            avg_steals=get("avg_steals") or 0,
            avg_minutes=get("avg_minutes") or 0,
            games_played=get("games_played") or 0,
        )


@dataclass(frozen=True)
class ArchetypeRule:
    name: str
    priority: int
    condition: Callable[[PlayerAverages], bool]
    description: str


ARCHETYPE_RULES: tuple[ArchetypeRule, ...] = (
    ArchetypeRule(
        "ELITE_REBOUNDER", 1,
        lambda s: s.avg_rebounds >= 9.0,
        "Dominant rebounder (9+ RPG)",
    ),
    ArchetypeRule(
        "RIM_PROTECTOR", 2,
        lambda s: s.avg_blocks >= 2.0 and s.avg_rebounds >= 6.0,
        "Shot blocker + rebounder (2+ BPG, 6+ RPG)",
    ),
    ArchetypeRule(
        "GLASS_CLEANER", 3,
        lambda s: 7.0 <= s.avg_rebounds < 9.0,
        "Strong rebounder (7-9 RPG)",
    ),
    ArchetypeRule(
        "ELITE_PLAYMAKER", 4,
        lambda s: s.avg_assists >= 8.0,
        "Elite distributor (8+ APG)",
    ),
    ArchetypeRule(
        "PLAYMAKER", 5,
        lambda s: s.avg_assists >= 6.0,
        "Primary playmaker (6+ APG)",
    ),
    ArchetypeRule(
        "PRIMARY_SCORER", 6,
        lambda s: s.avg_points >= 24.0 and s.avg_minutes >= 32,
        "High volume scorer (24+ PPG, 32+ MPG)",
    ),
    ArchetypeRule(
        "PURE_SHOOTER", 7,
        lambda s: s.avg_threes >= 2.5 and s.avg_points >= 12.0,
        "3PT specialist (2.5+ 3PM, 12+ PPG)",
    ),
    ArchetypeRule(
        "SCORING_WING", 8,
        lambda s: s.avg_points >= 18.0 and s.avg_threes >= 1.5,
        "Scoring wing player (18+ PPG, 1.5+ 3PM)",
    ),
    ArchetypeRule(
        "STRETCH_BIG", 9,
        lambda s: s.avg_rebounds >= 5.0 and s.avg_threes >= 1.5,
        "Rebounding big who shoots 3s (5+ RPG, 1.5+ 3PM)",
    ),
    ArchetypeRule(
        "COMBO_GUARD", 10,
        lambda s: 4.0 <= s.avg_assists < 6.0 and s.avg_points >= 12.0,
        "Scoring guard who can pass (4-6 APG, 12+ PPG)",
    ),
    ArchetypeRule(
        "TWO_WAY_WING", 11,
        lambda s: s.avg_steals >= 1.2 and s.avg_points >= 10.0,
        "Defensive wing with scoring (1.2+ SPG, 10+ PPG)",
    ),
    ArchetypeRule(
        "DEFENSIVE_ANCHOR", 12,
        lambda s: s.avg_blocks >= 1.5 or (s.avg_steals >= 1.5 and s.avg_rebounds >= 4.0),
        "Defense-first player (1.5+ BPG or 1.5+ SPG)",
    ),
    ArchetypeRule(
        "SCORING_GUARD", 13,
        lambda s: s.avg_points >= 15.0 and s.avg_assists < 4.0,
        "Shooting guard (15+ PPG, <4 APG)",
    ),
    ArchetypeRule(
        "ROLE_PLAYER", 99,
        lambda s: True,
        "Default classification",
    ),
)


def classify_player(
    stats: PlayerAverages,
    rules: tuple[ArchetypeRule, ...] = ARCHETYPE_RULES,
) -> ArchetypeRule:
    """Return the first rule (by priority) the player satisfies."""
    for rule in sorted(rules, key=lambda r: r.priority):
        if rule.condition(stats):
            return rule
    return ARCHETYPE_RULES[-1]
