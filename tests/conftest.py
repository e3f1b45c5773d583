"""Pytest configuration and fixtures for LineWatch tests."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


@pytest.fixture
def sample_movements():
    """Line movements covering the sharp / caution / trap range."""
    from linewatch.services.scoring.sharp import MovementInput

    return {
        # Line and juice together, late window, 4 of 5 books
        "late_steam": MovementInput(
            price_change=20,
            line_change=1,
            hours_to_game=2,
            books_count=4,
            total_books=5,
            current_price=-110,
            opening_price=-105,
        ),
        # Juice only, morning of game, both sides moving, lone book
        "price_only_trap": MovementInput(
            price_change=-25,
            line_change=0,
            hours_to_game=10,
            books_count=1,
            total_books=5,
            current_price=-160,
            opening_price=-130,
            opposite_side_moved=True,
        ),
        "empty": MovementInput(),
    }


@pytest.fixture
def game_logs():
    """Ten played games, most recent first, for a steady 25-point scorer."""
    from linewatch.services.scoring.median_matchup import GameLine

    points = [28, 26, 30, 24, 27, 25, 29, 23, 26, 27]
    return [GameLine(minutes=34, points=p, rebounds=6, assists=5) for p in points]


@pytest.fixture
def log_rows():
    """Game log rows as returned by the database (attribute access)."""
    start = date(2026, 11, 1)
    rows = []
    for i in range(6):
        rows.append(
            SimpleNamespace(
                player_name="Jalen Brunson",
                team="New York Knicks",
                game_date=start + timedelta(days=2 * i),
                is_home=i % 2 == 0,
                minutes=35.0,
                points=20 + i,
                rebounds=3,
                assists=7,
                steals=1,
                blocks=0,
                turnovers=2,
                threes_made=2,
            )
        )
    return rows


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def run_db():
    """
    Run an async callable against a fresh in-memory SQLite database.

    Usage: run_db(lambda session: service(session).do())
    """
    from linewatch.models.base import Base

    def runner(operation):
        async def _run():
            engine = create_async_engine(
                "sqlite+aiosqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            factory = async_sessionmaker(engine, expire_on_commit=False)
            try:
                async with factory() as session:
                    return await operation(session)
            finally:
                await engine.dispose()

        return asyncio.run(_run())

    return runner
