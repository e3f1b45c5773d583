"""Declarative base, column types and async session handling."""

from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool

from linewatch.config import get_settings

settings = get_settings()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def get_engine(pooled: bool = True) -> AsyncEngine:
    """
    Build an async engine for the configured database.

    Args:
        pooled: Keep a connection pool. Engines that live for a single
            event loop (Celery tasks) pass False.
    """
    url = settings.database_url
    if not pooled or url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug, poolclass=NullPool)
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.debug,
    )


def get_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Shared by the API process, which runs a single event loop
engine = get_engine()
async_session_factory = get_session_factory(engine)


@asynccontextmanager
async def get_task_session():
    """
    Session for a Celery task.

    Each task runs its own event loop, so it gets its own unpooled engine,
    disposed when the block exits.
    """
    task_engine = get_engine(pooled=False)
    try:
        async with get_session_factory(task_engine)() as session:
            yield session
    finally:
        await task_engine.dispose()


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at / updated_at maintained by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
