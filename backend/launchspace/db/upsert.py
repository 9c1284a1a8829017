"""Dialect-specific INSERT constructs for ON CONFLICT handling."""

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.db.utils import dialect_name

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_for(db: AsyncSession):
    """Return the ``insert`` that supports ``on_conflict_*`` for this session.

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support
    """
    name = dialect_name(db)
    try:
        return _INSERTS[name]
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on '{name}'") from None
