"""FastAPI dependencies for LineWatch."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.config import get_settings
from linewatch.models.base import async_session_factory
from linewatch.services.espn import ESPNClient
from linewatch.services.odds_api import OddsAPIClient


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.aclose()


async def get_odds_client(
    redis_client: redis.Redis = Depends(get_redis),
) -> AsyncGenerator[OddsAPIClient, None]:
    """Get The Odds API client dependency."""
    async with OddsAPIClient(redis_client=redis_client) as client:
        yield client


async def get_espn_client() -> AsyncGenerator[ESPNClient, None]:
    """Get ESPN client dependency."""
    async with ESPNClient() as client:
        yield client
