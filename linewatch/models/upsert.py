"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE helpers.

Every ingestion writes through these helpers so that re-running a job with
identical upstream data leaves exactly one row per natural key.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from linewatch.models.base import Base


def _insert_for(session: AsyncSession, model: type[Base]):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


async def upsert_rows(
    session: AsyncSession,
    model: type[Base],
    rows: Sequence[dict[str, Any]],
    conflict_keys: Sequence[str],
    update_columns: Iterable[str] | None = None,
) -> int:
    """
    Upsert rows into a table keyed by a unique constraint.

    Args:
        session: Active database session
        model: ORM model class
        rows: Column dictionaries, all with the same keys
        conflict_keys: Columns of the unique constraint to resolve against
        update_columns: Columns overwritten on conflict (default: every
            supplied column that is not part of the key)

    Returns:
        Number of rows written
    """
    if not rows:
        return 0

    # One statement cannot touch the same key twice; last row wins
    unique: dict[tuple, dict[str, Any]] = {}
    for row in rows:
        unique[tuple(row[k] for k in conflict_keys)] = row
    rows = list(unique.values())

    stmt = _insert_for(session, model).values(rows)
    if update_columns is None:
        update_columns = [c for c in rows[0] if c not in conflict_keys]

    set_ = {col: stmt.excluded[col] for col in update_columns}
    if set_:
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=set_)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_keys))

    await session.execute(stmt)
    return len(rows)
