"""ESPN site API client for NBA scoreboards and box scores.

No authentication; calls are spaced with a short delay and retried with
linear backoff on timeouts and 5xx responses.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
import structlog

from linewatch.config import get_settings

logger = structlog.get_logger(__name__)

# Box score stat columns: MIN, FG, 3PT, FT, OREB, DREB, REB, AST, STL, BLK, TO, PF, +/-, PTS
STAT_MIN = 0
STAT_3PT = 2
STAT_REB = 6
STAT_AST = 7
STAT_STL = 8
STAT_BLK = 9
STAT_TO = 10
STAT_PTS = 13

PLAYER_CATEGORIES = ("starters", "bench")


class ESPNError(Exception):
    """ESPN request failure."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


@dataclass
class PlayerGameLine:
    """One player's parsed box score line."""

    player_name: str
    team: str
    opponent: str
    game_date: date
    is_home: bool
    espn_game_id: str
    minutes: float
    points: int
    rebounds: int
    assists: int
    steals: int
    blocks: int
    turnovers: int
    threes_made: int

    def to_row(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "team": self.team,
            "opponent": self.opponent,
            "game_date": self.game_date,
            "is_home": self.is_home,
            "espn_game_id": self.espn_game_id,
            "minutes": self.minutes,
            "points": self.points,
            "rebounds": self.rebounds,
            "assists": self.assists,
            "steals": self.steals,
            "blocks": self.blocks,
            "turnovers": self.turnovers,
            "threes_made": self.threes_made,
        }


def _int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def parse_minutes(value: str | None) -> float:
    """'34:12' or '34' -> 34."""
    if not value:
        return 0.0
    return float(_int(str(value).split(":")[0]))


def parse_made(value: str | None) -> int:
    """'3-7' -> 3."""
    return _int((value or "0-0").split("-")[0])


def completed_event_ids(scoreboard: dict[str, Any]) -> list[str]:
    """Event ids from a scoreboard response whose status is completed."""
    return [
        str(event["id"])
        for event in scoreboard.get("events") or []
        if ((event.get("status") or {}).get("type") or {}).get("completed")
    ]


def parse_box_score(summary: dict[str, Any], game_id: str) -> list[PlayerGameLine]:
    """
    Extract player lines from a game summary response.

    Returns an empty list when the summary has no date or box score.
    """
    competition = ((summary.get("header") or {}).get("competitions") or [{}])[0]
    raw_date = competition.get("date")
    if not raw_date:
        return []
    game_date = date.fromisoformat(raw_date.split("T")[0])

    competitors = competition.get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), {})
    away = next((c for c in competitors if c.get("homeAway") == "away"), {})
    home_id = (home.get("team") or {}).get("id")
    home_name = (home.get("team") or {}).get("displayName") or "Unknown"
    away_name = (away.get("team") or {}).get("displayName") or "Unknown"

    lines: list[PlayerGameLine] = []
    for team_stats in (summary.get("boxscore") or {}).get("players") or []:
        team = team_stats.get("team") or {}
        is_home = team.get("id") == home_id
        team_name = home_name if is_home else away_name
        opponent = away_name if is_home else home_name

        for category in team_stats.get("statistics") or []:
            if (category.get("name") or "").lower() not in PLAYER_CATEGORIES:
                continue
            for athlete in category.get("athletes") or []:
                name = (athlete.get("athlete") or {}).get("displayName")
                if not name:
                    continue
                stats = athlete.get("stats") or []

                def stat(i: int) -> str | None:
                    return stats[i] if i < len(stats) else None

                lines.append(
                    PlayerGameLine(
                        player_name=name,
                        team=team_name,
                        opponent=opponent,
                        game_date=game_date,
                        is_home=is_home,
                        espn_game_id=game_id,
                        minutes=parse_minutes(stat(STAT_MIN)),
                        points=_int(stat(STAT_PTS)),
                        rebounds=_int(stat(STAT_REB)),
                        assists=_int(stat(STAT_AST)),
                        steals=_int(stat(STAT_STL)),
                        blocks=_int(stat(STAT_BLK)),
                        turnovers=_int(stat(STAT_TO)),
                        threes_made=parse_made(stat(STAT_3PT)),
                    )
                )
    return lines


class ESPNClient:
    """Async client for the ESPN NBA site API."""

    def __init__(self, base_url: str | None = None, request_delay: float = 0.1):
        self.settings = get_settings()
        self.base_url = (base_url or self.settings.espn_nba_base_url).rstrip("/")
        self.request_delay = request_delay
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ESPNClient":
        self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._http_client

    async def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        max_retries = self.settings.http_max_retries
        url = f"{self.base_url}/{path}"

        for attempt in range(max_retries + 1):
            wait_time = self.settings.http_retry_delay * (attempt + 1)
            try:
                client = await self._get_client()
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException:
                if attempt < max_retries:
                    logger.warning("espn_timeout_retrying", path=path, attempt=attempt)
                    await asyncio.sleep(wait_time)
                    continue
                raise ESPNError("Request timeout", retryable=True)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempt < max_retries:
                    logger.warning(
                        "espn_error_retrying", path=path, status_code=status, attempt=attempt
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise ESPNError(
                    f"ESPN error: {status}", status_code=status, retryable=status >= 500
                )
            except httpx.TransportError as e:
                if attempt < max_retries:
                    await asyncio.sleep(wait_time)
                    continue
                raise ESPNError(str(e), retryable=True)

    async def get_scoreboard(self, day: date) -> dict[str, Any]:
        return await self._request("scoreboard", {"dates": day.strftime("%Y%m%d")})

    async def get_summary(self, game_id: str) -> dict[str, Any]:
        return await self._request("summary", {"event": game_id})

    async def get_box_score(self, game_id: str) -> list[PlayerGameLine]:
        """Fetch and parse one game's box score, then pause for request_delay."""
        summary = await self.get_summary(game_id)
        lines = parse_box_score(summary, game_id)
        await asyncio.sleep(self.request_delay)
        return lines
