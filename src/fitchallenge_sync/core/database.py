"""Database initialization and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fitchallenge_sync.core.config import settings

logger = structlog.get_logger()


def create_engine(url: str | None = None) -> AsyncEngine:
    """Create the database engine.

    Args:
        url: Database URL (defaults to the configured PostgreSQL URL)

    Returns:
        Async SQLAlchemy engine
    """
    url = url or settings.database_url
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(url, echo=False)
        configure_sqlite(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,  # Recycle connections every 5 minutes
    )


def configure_sqlite(db_engine: AsyncEngine) -> None:
    """Make SQLite honour SAVEPOINTs and foreign keys.

    The sqlite3 driver manages BEGIN itself and releases the outermost
    SAVEPOINT as a commit; take over transaction control so nested
    transactions behave as on PostgreSQL.
    """

    @event.listens_for(db_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(db_engine.sync_engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


# Global engine and session maker
engine = create_engine()
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_database(db_engine: AsyncEngine | None = None) -> None:
    """Verify database is reachable and migrations have been applied.

    Does NOT create tables - use Alembic migrations for schema management.
    """
    db_engine = db_engine or engine
    async with db_engine.connect() as conn:
        has_migrations = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table("alembic_version")
        )

    if not has_migrations:
        logger.warning(
            "Database migrations have not been applied. "
            "Run 'alembic upgrade head' to initialize the database schema."
        )
    else:
        logger.info("Database initialized")


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Usage:
        async with get_session() as session:
            result = await session.execute(select(Challenge))
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_database(db_engine: AsyncEngine | None = None) -> None:
    """Close database connection pool."""
    await (db_engine or engine).dispose()
