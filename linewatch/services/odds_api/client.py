"""The Odds API client.

Provides async access to The Odds API v4 with:
- Rate limiting
- Linear-backoff retry on timeouts, 429 and 5xx
- Error classification
- Remaining-quota tracking from response headers
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import httpx
import redis.asyncio as redis
import structlog

from linewatch.config import get_settings
from linewatch.services.odds_api.rate_limiter import OddsAPIRateLimiter

logger = structlog.get_logger(__name__)


class OddsAPIErrorType(Enum):
    """Classification of Odds API errors."""

    UNAUTHORIZED = "UNAUTHORIZED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_INPUT = "INVALID_INPUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    UNKNOWN = "UNKNOWN"


class OddsAPIError(Exception):
    """Odds API error with classification."""

    def __init__(self, message: str, error_type: OddsAPIErrorType, retryable: bool = False):
        super().__init__(message)
        self.error_type = error_type
        self.retryable = retryable


@dataclass
class Outcome:
    """One priced outcome within a market."""

    name: str
    price: int
    point: float | None = None
    description: str | None = None


@dataclass
class Market:
    key: str
    outcomes: list[Outcome] = field(default_factory=list)


@dataclass
class Bookmaker:
    key: str
    title: str
    markets: list[Market] = field(default_factory=list)


@dataclass
class OddsEvent:
    """Event with bookmaker odds."""

    id: str
    sport_key: str
    commence_time: datetime | None
    home_team: str
    away_team: str
    bookmakers: list[Bookmaker] = field(default_factory=list)

    @property
    def description(self) -> str:
        return f"{self.away_team} @ {self.home_team}"


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_event(item: dict[str, Any]) -> OddsEvent:
    """Parse one event object from an odds or event-odds response."""
    bookmakers = []
    for bm in item.get("bookmakers") or []:
        markets = []
        for mk in bm.get("markets") or []:
            outcomes = [
                Outcome(
                    name=o["name"],
                    price=int(o["price"]),
                    point=o.get("point"),
                    description=o.get("description"),
                )
                for o in mk.get("outcomes") or []
                if o.get("price") is not None
            ]
            markets.append(Market(key=mk["key"], outcomes=outcomes))
        bookmakers.append(Bookmaker(key=bm["key"], title=bm.get("title", bm["key"]), markets=markets))

    return OddsEvent(
        id=item["id"],
        sport_key=item.get("sport_key", ""),
        commence_time=_parse_time(item.get("commence_time")),
        home_team=item.get("home_team", ""),
        away_team=item.get("away_team", ""),
        bookmakers=bookmakers,
    )


class OddsAPIClient:
    """
    The Odds API client.

    Supports:
    - API key authentication (query parameter)
    - Optional Redis token bucket rate limiting
    - Linear-backoff retry
    - Quota tracking via x-requests-remaining
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        rate_limiter: OddsAPIRateLimiter | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize the client.

        Args:
            redis_client: Redis client for rate limiting
            rate_limiter: Optional custom rate limiter
            api_key: Override for the configured API key
            base_url: Override for the configured base URL
        """
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.odds_api_key
        self.base_url = (base_url or self.settings.odds_api_base_url).rstrip("/")
        self.rate_limiter = rate_limiter or (
            OddsAPIRateLimiter(redis_client, rate=self.settings.odds_api_rate)
            if redis_client
            else None
        )
        self.requests_remaining: int | None = None
        self.requests_used: int | None = None
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "OddsAPIClient":
        """Async context manager entry."""
        self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._http_client

    def _track_quota(self, response: httpx.Response) -> None:
        remaining = response.headers.get("x-requests-remaining")
        used = response.headers.get("x-requests-used")
        if remaining is not None:
            try:
                self.requests_remaining = int(float(remaining))
            except ValueError:
                pass
        if used is not None:
            try:
                self.requests_used = int(float(used))
            except ValueError:
                pass

    async def _request(
        self,
        path: str,
        params: dict[str, Any],
        max_retries: int | None = None,
    ) -> Any:
        """
        Make a GET request with rate limiting and retry.

        Args:
            path: Path below the base URL
            params: Query parameters (API key added here)
            max_retries: Retries after the first attempt

        Returns:
            Parsed JSON body

        Raises:
            OddsAPIError: If the request fails after retries
        """
        if not self.api_key:
            raise OddsAPIError(
                "ODDS_API_KEY is not configured", OddsAPIErrorType.NOT_CONFIGURED
            )

        if max_retries is None:
            max_retries = self.settings.http_max_retries
        delay = self.settings.http_retry_delay
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {"apiKey": self.api_key, **params}

        for attempt in range(max_retries + 1):
            wait_time = delay * (attempt + 1)
            try:
                if self.rate_limiter:
                    await self.rate_limiter.wait_if_needed("odds")

                client = await self._get_client()
                response = await client.get(url, params=query)
                self._track_quota(response)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException:
                if attempt < max_retries:
                    logger.warning(
                        "odds_api_timeout_retrying",
                        path=path,
                        attempt=attempt,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise OddsAPIError(
                    "Request timeout", OddsAPIErrorType.TIMEOUT, retryable=True
                )

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429 or status >= 500:
                    if attempt < max_retries:
                        logger.warning(
                            "odds_api_error_retrying",
                            path=path,
                            status_code=status,
                            attempt=attempt,
                            wait_time=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    error_type = (
                        OddsAPIErrorType.RATE_LIMITED
                        if status == 429
                        else OddsAPIErrorType.SERVICE_UNAVAILABLE
                    )
                    raise OddsAPIError(
                        f"Odds API error: {status}", error_type, retryable=True
                    )
                error_type = self._classify_status(status, e.response.text)
                raise OddsAPIError(
                    f"Odds API error {status}: {e.response.text[:200] if e.response.text else ''}",
                    error_type,
                    retryable=False,
                )

            except httpx.TransportError as e:
                if attempt < max_retries:
                    logger.warning(
                        "odds_api_transport_error_retrying",
                        path=path,
                        error=str(e),
                        attempt=attempt,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise OddsAPIError(str(e), OddsAPIErrorType.SERVICE_UNAVAILABLE, retryable=True)

    @staticmethod
    def _classify_status(status: int, body: str | None) -> OddsAPIErrorType:
        """Classify a non-retryable HTTP status."""
        if status == 401:
            if body and "quota" in body.lower():
                return OddsAPIErrorType.QUOTA_EXCEEDED
            return OddsAPIErrorType.UNAUTHORIZED
        if status == 404:
            return OddsAPIErrorType.NOT_FOUND
        if status in (400, 422):
            return OddsAPIErrorType.INVALID_INPUT
        return OddsAPIErrorType.UNKNOWN

    async def get_odds(
        self,
        sport_key: str,
        markets: list[str],
        regions: str | None = None,
    ) -> list[OddsEvent]:
        """
        Fetch featured-market odds for every upcoming event of a sport.

        Args:
            sport_key: Odds API sport key (e.g. basketball_nba)
            markets: Market keys (spreads, h2h, totals)
            regions: Bookmaker regions

        Returns:
            Events with bookmaker odds
        """
        data = await self._request(
            f"sports/{sport_key}/odds/",
            {
                "regions": regions or self.settings.odds_api_regions,
                "markets": ",".join(markets),
                "oddsFormat": "american",
            },
        )
        events = [parse_event(item) for item in data or []]
        logger.info(
            "odds_fetched",
            sport_key=sport_key,
            events=len(events),
            requests_remaining=self.requests_remaining,
        )
        return events

    async def get_event_odds(
        self,
        sport_key: str,
        event_id: str,
        markets: list[str],
        regions: str | None = None,
    ) -> OddsEvent:
        """Fetch odds for one event (used for player prop markets)."""
        data = await self._request(
            f"sports/{sport_key}/events/{event_id}/odds",
            {
                "regions": regions or self.settings.odds_api_regions,
                "markets": ",".join(markets),
                "oddsFormat": "american",
            },
        )
        return parse_event(data)

    async def get_events(self, sport_key: str) -> list[OddsEvent]:
        """List upcoming events (no odds) for a sport."""
        data = await self._request(f"sports/{sport_key}/events", {})
        return [parse_event(item) for item in data or []]

    async def get_sports(self) -> list[dict[str, Any]]:
        """In-season sports. Does not count against the usage quota."""
        return await self._request("sports", {}, max_retries=1) or []

    async def health_check(self) -> bool:
        """True when the API key is accepted."""
        try:
            await self.get_sports()
            return True
        except OddsAPIError as e:
            logger.warning("odds_api_health_check_failed", error=str(e), error_type=e.error_type.value)
            return False
