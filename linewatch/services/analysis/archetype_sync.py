"""Sync player_archetypes from season averages."""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import PlayerArchetype, PlayerSeasonStats
from linewatch.models.upsert import upsert_rows
from linewatch.services.scoring.archetypes import PlayerAverages, classify_player

logger = structlog.get_logger(__name__)

MIN_GAMES = 3
SAMPLE_SIZE = 30


def _fmt(value: float) -> str:
    return f"{value:g}"


class ArchetypeSyncService:
    """
    Classify every player with enough games.

    Manual overrides are never touched and unchanged archetypes are not
    rewritten.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def sync(self, season: str | None = None) -> dict[str, Any]:
        query = select(PlayerSeasonStats).where(PlayerSeasonStats.games_played >= MIN_GAMES)
        if season:
            query = query.where(PlayerSeasonStats.season == season)
        season_rows = (await self.session.execute(query)).scalars().all()

        if not season_rows:
            logger.info("archetype_sync_no_players")
            return {
                "message": "No players to classify",
                "players_analyzed": 0,
                "classified": 0,
                "inserted": 0,
                "updated": 0,
                "skipped_manual": 0,
                "skipped_same": 0,
                "sample_classifications": [],
            }

        existing = {
            a.player_name: a
            for a in (await self.session.execute(select(PlayerArchetype))).scalars().all()
        }

        # A player can have rows for several seasons; keep the most games
        latest: dict[str, PlayerSeasonStats] = {}
        for row in season_rows:
            current = latest.get(row.player_name)
            if current is None or (row.games_played or 0) > (current.games_played or 0):
                latest[row.player_name] = row

        rows: list[dict[str, Any]] = []
        samples: list[dict[str, str]] = []
        inserted = updated = skipped_manual = skipped_same = 0

        for player_name, stats_row in latest.items():
            stats = PlayerAverages.from_row(stats_row)
            rule = classify_player(stats)
            current = existing.get(player_name)

            if current is not None and current.manual_override:
                skipped_manual += 1
                continue
            if current is not None and current.archetype == rule.name:
                skipped_same += 1
                continue

            is_new = current is None
            rows.append(
                {
                    "player_name": player_name,
                    "archetype": rule.name,
                    "description": rule.description,
                    "manual_override": False,
                    "source_stats": {
                        "avg_points": stats.avg_points,
                        "avg_rebounds": stats.avg_rebounds,
                        "avg_assists": stats.avg_assists,
                        "avg_threes": stats.avg_threes,
                        "avg_blocks": stats.avg_blocks,
                        "avg_steals": stats.avg_steals,
                        "avg_minutes": stats.avg_minutes,
                        "games_played": stats.games_played,
                    },
                }
            )
            if is_new:
                inserted += 1
            else:
                updated += 1
            if len(samples) < SAMPLE_SIZE:
                samples.append(
                    {
                        "player": player_name,
                        "archetype": rule.name,
                        "reason": (
                            f"{rule.description} ({_fmt(stats.avg_points)}/"
                            f"{_fmt(stats.avg_rebounds)}/{_fmt(stats.avg_assists)})"
                        ),
                        "action": "INSERT" if is_new else "UPDATE",
                    }
                )

        if rows:
            await upsert_rows(
                self.session,
                PlayerArchetype,
                rows,
                conflict_keys=["player_name"],
            )
            await self.session.commit()

        result = {
            "players_analyzed": len(latest),
            "classified": inserted + updated,
            "inserted": inserted,
            "updated": updated,
            "skipped_manual": skipped_manual,
            "skipped_same": skipped_same,
            "sample_classifications": samples,
        }
        logger.info(
            "archetype_sync_complete",
            **{k: v for k, v in result.items() if k != "sample_classifications"},
        )
        return result
