"""Dialect-aware INSERT construction for conflict-safe writes."""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.db.exceptions import DatabaseError

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def conflict_insert(db: AsyncSession, model):
    """Return an INSERT for *model* that supports ``on_conflict_do_nothing``."""
    dialect = db.get_bind().dialect.name
    factory = _INSERTS.get(dialect)
    if factory is None:
        raise DatabaseError(f"Conflict-aware insert is not supported on {dialect}")
    return factory(model)
