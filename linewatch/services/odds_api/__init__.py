"""The Odds API client module."""

from linewatch.services.odds_api.client import (
    OddsAPIClient,
    OddsAPIError,
    OddsAPIErrorType,
    OddsEvent,
)
from linewatch.services.odds_api.rate_limiter import OddsAPIRateLimiter

__all__ = [
    "OddsAPIClient",
    "OddsAPIError",
    "OddsAPIErrorType",
    "OddsEvent",
    "OddsAPIRateLimiter",
]
