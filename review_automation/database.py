"""Async database engine and session factory."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def enable_sqlite_savepoints(eng: AsyncEngine) -> AsyncEngine:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT/ROLLBACK TO work on SQLite.

    The sqlite3 driver defers BEGIN on its own, which breaks nested
    transactions. Each action runs inside a savepoint, so this is required.
    """
    if eng.dialect.name != "sqlite":
        return eng

    @event.listens_for(eng.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return eng


engine = enable_sqlite_savepoints(
    create_async_engine(settings.database_url, echo=settings.echo_sql)
)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """Yield an async session."""
    async with async_session_factory() as session:
        yield session


async def init_db(eng: AsyncEngine | None = None) -> None:
    """Create all tables (local/dev databases)."""
    from .models import Base

    async with (eng or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
