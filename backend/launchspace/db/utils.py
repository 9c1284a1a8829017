"""Database utility functions and common queries."""

from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Usage in FastAPI endpoints:
        @router.get("/apps")
        async def list_apps(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success, rolled back on error and always
    closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def dialect_name(db: AsyncSession) -> str:
    """Name of the dialect behind a session ("postgresql", "sqlite", ...)."""
    return db.get_bind().dialect.name


async def check_database_health(db: AsyncSession) -> dict[str, bool]:
    """Check if database is accessible and responsive.

    Returns:
        dict with 'healthy' boolean and optional 'error' message
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
