"""NBA game log ingestion from ESPN box scores."""

from datetime import date, timedelta
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import NbaPlayerGameLog
from linewatch.models.upsert import upsert_rows
from linewatch.services.espn import ESPNClient, ESPNError
from linewatch.services.espn.client import completed_event_ids

logger = structlog.get_logger(__name__)

MAX_GAMES_PER_RUN = 20


class GameLogService:
    """
    Collect completed games from the scoreboard and store box score lines.

    Days are walked backwards from today; at most ``max_games`` box scores
    are fetched per run.
    """

    def __init__(
        self,
        client: ESPNClient,
        session: AsyncSession,
        max_games: int = MAX_GAMES_PER_RUN,
    ):
        self.client = client
        self.session = session
        self.max_games = max_games

    async def collect_game_ids(self, days_back: int, today: date | None = None) -> list[str]:
        """Completed game ids for the last ``days_back`` days (today included)."""
        today = today or date.today()
        game_ids: list[str] = []
        for offset in range(days_back):
            day = today - timedelta(days=offset)
            try:
                scoreboard = await self.client.get_scoreboard(day)
            except ESPNError as e:
                logger.warning("scoreboard_fetch_failed", day=day.isoformat(), error=str(e))
                continue
            game_ids.extend(
                gid for gid in completed_event_ids(scoreboard) if gid not in game_ids
            )
        return game_ids

    async def sync(self, days_back: int = 7, today: date | None = None) -> dict[str, Any]:
        """
        Fetch box scores and upsert game logs keyed by player and date.

        Returns:
            Dict with counts (espn_records, stats_inserted, games_processed, errors)
        """
        days_back = max(1, days_back)
        stats = {
            "days_back": days_back,
            "games_found": 0,
            "games_processed": 0,
            "espn_records": 0,
            "stats_inserted": 0,
            "errors": [],
        }

        game_ids = await self.collect_game_ids(days_back, today)
        stats["games_found"] = len(game_ids)
        logger.info("completed_games_found", count=len(game_ids), days_back=days_back)

        rows: list[dict[str, Any]] = []
        for game_id in game_ids[: self.max_games]:
            try:
                lines = await self.client.get_box_score(game_id)
            except ESPNError as e:
                logger.warning("box_score_fetch_failed", game_id=game_id, error=str(e))
                stats["errors"].append(f"{game_id}: {e}")
                continue
            stats["games_processed"] += 1
            rows.extend(line.to_row() for line in lines)

        stats["espn_records"] = len(rows)
        if not rows:
            return stats

        try:
            stats["stats_inserted"] = await upsert_rows(
                self.session,
                NbaPlayerGameLog,
                rows,
                conflict_keys=["player_name", "game_date"],
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error("game_log_upsert_failed", error=str(e), rows=len(rows))
            stats["errors"].append(str(e))

        logger.info(
            "game_logs_synced",
            games_processed=stats["games_processed"],
            records=stats["stats_inserted"],
        )
        return stats
