"""Player season stats.

Aggregates nba_player_game_logs into per-player season rows: overall
averages, home/away points, and last-10 / last-5 form.
"""

from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import NbaPlayerGameLog, PlayerSeasonStats
from linewatch.models.upsert import upsert_rows

logger = structlog.get_logger(__name__)

MIN_GAMES = 3


def season_for(day: date) -> str:
    """
    NBA season label for a date.

    Seasons start in October: 2026-10-19 -> '2026-27', 2027-03-01 -> '2026-27'.
    """
    start = day.year if day.month >= 10 else day.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def _avg(games: Sequence[Any], attr: str) -> float | None:
    if not games:
        return None
    return round(sum(getattr(g, attr) or 0 for g in games) / len(games), 1)


def aggregate_player(
    player_name: str,
    games: Sequence[Any],
    season: str,
    sport: str = "NBA",
) -> dict[str, Any] | None:
    """
    Build a player_season_stats row from game log rows.

    Args:
        player_name: Player name
        games: Game log rows (any objects with the stat attributes)
        season: Season label
        sport: Sport code

    Returns:
        Row dict, or None with fewer than MIN_GAMES games
    """
    if len(games) < MIN_GAMES:
        return None

    ordered = sorted(games, key=lambda g: g.game_date, reverse=True)
    home = [g for g in ordered if g.is_home is True]
    away = [g for g in ordered if g.is_home is False]
    last10 = ordered[:10]
    last5 = ordered[:5]
    avg_points = _avg(ordered, "points")

    return {
        "player_name": player_name,
        "sport": sport,
        "season": season,
        "team": ordered[0].team,
        "games_played": len(ordered),
        "avg_minutes": _avg(ordered, "minutes"),
        "avg_points": avg_points,
        "avg_rebounds": _avg(ordered, "rebounds"),
        "avg_assists": _avg(ordered, "assists"),
        "avg_steals": _avg(ordered, "steals"),
        "avg_blocks": _avg(ordered, "blocks"),
        "avg_turnovers": _avg(ordered, "turnovers"),
        "avg_threes": _avg(ordered, "threes_made"),
        # Without home or away games the split falls back to the overall average
        "home_avg_points": _avg(home, "points") if home else avg_points,
        "away_avg_points": _avg(away, "points") if away else avg_points,
        "last10_avg_points": _avg(last10, "points"),
        "last10_avg_rebounds": _avg(last10, "rebounds"),
        "last10_avg_assists": _avg(last10, "assists"),
        "last5_avg_points": _avg(last5, "points"),
        "last5_avg_rebounds": _avg(last5, "rebounds"),
        "last5_avg_assists": _avg(last5, "assists"),
    }


class SeasonStatsService:
    """Recompute season averages for every player with game logs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def compute(self, season: str | None = None) -> dict[str, Any]:
        """
        Aggregate game logs and upsert player_season_stats.

        Args:
            season: Season label (defaults to the current season)

        Returns:
            Dict with total_players, updated, skipped counts
        """
        season = season or season_for(date.today())
        result = await self.session.execute(select(NbaPlayerGameLog))
        by_player: dict[str, list[NbaPlayerGameLog]] = defaultdict(list)
        for log in result.scalars().all():
            by_player[log.player_name].append(log)

        rows = []
        skipped = 0
        for player_name, games in by_player.items():
            row = aggregate_player(player_name, games, season)
            if row is None:
                skipped += 1
                continue
            rows.append(row)

        updated = 0
        for i in range(0, len(rows), 200):
            batch = rows[i : i + 200]
            try:
                updated += await upsert_rows(
                    self.session,
                    PlayerSeasonStats,
                    batch,
                    conflict_keys=["player_name", "sport", "season"],
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.error("season_stats_upsert_failed", error=str(e), rows=len(batch))

        stats = {
            "season": season,
            "total_players": len(by_player),
            "updated": updated,
            "skipped": skipped,
        }
        logger.info("season_stats_computed", **stats)
        return stats
