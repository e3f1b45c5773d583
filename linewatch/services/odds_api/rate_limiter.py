"""Rate limiter for The Odds API.

Token bucket kept in Redis so that the API process and Celery workers share
one budget. Default: 2 requests/second with a burst of 4.
"""

import asyncio
import time

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

# Atomic token bucket: returns {acquired, wait_seconds}
TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local rate = tonumber(ARGV[1])
local burst = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local state = redis.call('HMGET', key, 'tokens', 'last_update')
local tokens = tonumber(state[1]) or burst
local last_update = tonumber(state[2]) or now

tokens = math.min(burst, tokens + (now - last_update) * rate)

if tokens >= 1 then
    redis.call('HMSET', key, 'tokens', tokens - 1, 'last_update', now)
    redis.call('EXPIRE', key, 60)
    return {1, '0'}
end
return {0, tostring((1 - tokens) / rate)}
"""


class OddsAPIRateLimiter:
    """Redis token bucket rate limiter."""

    def __init__(
        self,
        redis_client: redis.Redis,
        rate: float = 2.0,
        burst: int = 4,
        key_prefix: str = "ratelimit:odds_api",
        max_wait: float = 10.0,
    ):
        """
        Initialize the rate limiter.

        Args:
            redis_client: Redis client for shared state
            rate: Requests per second allowed
            burst: Maximum burst size
            key_prefix: Redis key prefix
            max_wait: Give up waiting after this many seconds
        """
        self.redis = redis_client
        self.rate = rate
        self.burst = burst
        self.key_prefix = key_prefix
        self.max_wait = max_wait

    def _get_key(self, bucket: str) -> str:
        return f"{self.key_prefix}:{bucket}"

    async def acquire(self, bucket: str = "default") -> tuple[bool, float]:
        """
        Try to take a token.

        Returns:
            (acquired, seconds until the next token)
        """
        try:
            result = await self.redis.eval(
                TOKEN_BUCKET_SCRIPT,
                1,
                self._get_key(bucket),
                str(self.rate),
                str(self.burst),
                str(time.time()),
            )
        except redis.RedisError as e:
            # Fail open: an unavailable Redis must not stop ingestion
            logger.error("rate_limiter_error", error=str(e), bucket=bucket)
            return True, 0.0
        return int(result[0]) == 1, float(result[1])

    async def wait_if_needed(self, bucket: str = "default") -> None:
        """Block until a token is available or max_wait has elapsed."""
        total_wait = 0.0
        while True:
            acquired, wait_time = await self.acquire(bucket)
            if acquired:
                return
            if total_wait >= self.max_wait:
                logger.warning(
                    "rate_limiter_max_wait_exceeded",
                    bucket=bucket,
                    total_wait=total_wait,
                )
                return
            wait_time = min(max(wait_time, 0.05), self.max_wait - total_wait)
            await asyncio.sleep(wait_time)
            total_wait += wait_time
