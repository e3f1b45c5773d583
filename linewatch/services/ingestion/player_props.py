"""Player prop line refresh.

Fetches today's events from The Odds API, pulls each event's player prop
markets and upserts one row per event / bookmaker / player / prop type into
unified_props with over and under prices merged. Props whose game has
started are deactivated.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.domain import UnifiedProp
from linewatch.models.upsert import upsert_rows
from linewatch.services.odds_api import OddsAPIClient, OddsAPIError, OddsEvent

logger = structlog.get_logger(__name__)

DEFAULT_PROP_MARKETS = ["player_points", "player_rebounds", "player_assists", "player_threes"]
DEFAULT_PROP_BOOKMAKERS = ["fanduel", "draftkings"]


@dataclass
class PropLine:
    event_id: str
    sport: str
    commence_time: datetime | None
    home_team: str
    away_team: str
    bookmaker: str
    player_name: str
    prop_type: str
    line: float
    over_price: int | None = None
    under_price: int | None = None

    @property
    def key(self) -> tuple[str, str, str, str]:
        return (self.event_id, self.bookmaker, self.player_name, self.prop_type)

    def to_row(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "sport": self.sport,
            "commence_time": self.commence_time,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "bookmaker": self.bookmaker,
            "player_name": self.player_name,
            "prop_type": self.prop_type,
            "line": self.line,
            "over_price": self.over_price,
            "under_price": self.under_price,
            "is_active": True,
        }


def parse_prop_lines(
    event: OddsEvent,
    sport: str,
    bookmakers: list[str] | None = None,
) -> list[PropLine]:
    """
    Merge Over/Under outcomes of an event-odds response into prop lines.

    Outcomes without a player description or a point are ignored. The
    prop type drops the ``player_`` prefix (player_points -> points).
    """
    merged: dict[tuple[str, str, str, str], PropLine] = {}
    for bookmaker in event.bookmakers:
        if bookmakers and bookmaker.key not in bookmakers:
            continue
        for market in bookmaker.markets:
            prop_type = market.key.removeprefix("player_")
            for outcome in market.outcomes:
                if not outcome.description or outcome.point is None:
                    continue
                prop = PropLine(
                    event_id=event.id,
                    sport=sport,
                    commence_time=event.commence_time,
                    home_team=event.home_team,
                    away_team=event.away_team,
                    bookmaker=bookmaker.key,
                    player_name=outcome.description,
                    prop_type=prop_type,
                    line=outcome.point,
                )
                existing = merged.setdefault(prop.key, prop)
                side = outcome.name.lower()
                if side == "over":
                    existing.over_price = outcome.price
                elif side == "under":
                    existing.under_price = outcome.price
    return list(merged.values())


def todays_events(events: list[OddsEvent], now: datetime) -> list[OddsEvent]:
    """Events starting between now and the end of the current UTC day."""
    day_end = datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)
    return [e for e in events if e.commence_time and now <= e.commence_time < day_end]


class PlayerPropsService:
    """Refresh the unified_props table for one sport."""

    def __init__(
        self,
        client: OddsAPIClient,
        session: AsyncSession,
        markets: list[str] | None = None,
        bookmakers: list[str] | None = None,
    ):
        self.client = client
        self.session = session
        self.markets = markets or DEFAULT_PROP_MARKETS
        self.bookmakers = bookmakers or DEFAULT_PROP_BOOKMAKERS

    async def refresh(
        self,
        sport: str = "NBA",
        sport_key: str = "basketball_nba",
        force_clear: bool = False,
    ) -> dict[str, Any]:
        """
        Refresh today's player props.

        Args:
            sport: Sport code stored on each row
            sport_key: Odds API sport key
            force_clear: Delete every prop of the sport before refreshing

        Returns:
            Dict with counts
        """
        now = datetime.now(timezone.utc)
        stats = {
            "events": 0,
            "api_calls": 0,
            "props_upserted": 0,
            "props_deactivated": 0,
            "cleared": 0,
            "errors": 0,
        }

        if force_clear:
            result = await self.session.execute(
                delete(UnifiedProp).where(UnifiedProp.sport == sport)
            )
            stats["cleared"] = result.rowcount or 0

        stats["props_deactivated"] = await self.deactivate_stale(now)
        await self.session.commit()

        events = todays_events(await self.client.get_events(sport_key), now)
        stats["events"] = len(events)
        if not events:
            logger.info("no_events_today", sport=sport)
            return stats

        rows: list[dict[str, Any]] = []
        for event in events:
            try:
                prop_event = await self.client.get_event_odds(sport_key, event.id, self.markets)
                stats["api_calls"] += 1
            except OddsAPIError as e:
                logger.warning(
                    "prop_event_fetch_failed",
                    event_id=event.id,
                    error=str(e),
                    error_type=e.error_type.value,
                )
                stats["errors"] += 1
                continue

            if prop_event.commence_time is None:
                prop_event.commence_time = event.commence_time
            prop_event.home_team = prop_event.home_team or event.home_team
            prop_event.away_team = prop_event.away_team or event.away_team
            rows.extend(p.to_row() for p in parse_prop_lines(prop_event, sport, self.bookmakers))

        for i in range(0, len(rows), 100):
            batch = rows[i : i + 100]
            try:
                stats["props_upserted"] += await upsert_rows(
                    self.session,
                    UnifiedProp,
                    batch,
                    conflict_keys=["event_id", "bookmaker", "player_name", "prop_type"],
                )
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                logger.error("prop_upsert_failed", error=str(e), rows=len(batch))
                stats["errors"] += 1

        logger.info(
            "player_props_refreshed",
            sport=sport,
            requests_remaining=self.client.requests_remaining,
            **stats,
        )
        return stats

    async def deactivate_stale(self, now: datetime | None = None) -> int:
        """Mark props for games that have already started as inactive."""
        now = now or datetime.now(timezone.utc)
        result = await self.session.execute(
            update(UnifiedProp)
            .where(UnifiedProp.is_active.is_(True), UnifiedProp.commence_time < now)
            .values(is_active=False)
        )
        return result.rowcount or 0
