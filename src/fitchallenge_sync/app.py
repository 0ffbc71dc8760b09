"""Litestar application factory."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from advanced_alchemy.config.asyncio import AsyncSessionConfig
from litestar import Litestar
from litestar.plugins.sqlalchemy import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from litestar.openapi import OpenAPIConfig
from sqlalchemy.ext.asyncio import AsyncEngine

from fitchallenge_sync import __version__
from fitchallenge_sync.api import api_routers
from fitchallenge_sync.api.errors import exception_handlers
from fitchallenge_sync.core.config import settings
from fitchallenge_sync.core.database import close_database, engine, init_database

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def make_lifespan(
    db_engine: AsyncEngine,
) -> Callable[[Litestar], AbstractAsyncContextManager[None]]:
    """Build the lifespan manager for an engine."""

    @asynccontextmanager
    async def lifespan(app: Litestar) -> AsyncIterator[None]:
        """Application lifespan manager.

        - Verify the database on startup
        - Close database connections on shutdown
        """
        logger.info("Starting fitchallenge-sync", version=__version__)

        await init_database(db_engine)

        yield

        await close_database(db_engine)
        logger.info("Shutdown complete")

    return lifespan


def create_app(db_engine: AsyncEngine | None = None) -> Litestar:
    """Create Litestar application.

    Args:
        db_engine: Engine to bind sessions to (defaults to the configured one)

    Returns:
        Configured Litestar app instance
    """
    db_engine = db_engine or engine

    return Litestar(
        route_handlers=api_routers,
        lifespan=[make_lifespan(db_engine)],
        openapi_config=OpenAPIConfig(
            title="fitchallenge-sync API",
            version=__version__,
            description="Idempotent activity ingestion for fitness challenges",
        ),
        plugins=[
            SQLAlchemyPlugin(
                config=SQLAlchemyAsyncConfig(
                    engine_instance=db_engine,
                    session_dependency_key="session",
                    session_config=AsyncSessionConfig(expire_on_commit=False),
                ),
            ),
        ],
        exception_handlers=exception_handlers,
        debug=settings.log_level == "DEBUG",
    )


# Application instance
app = create_app()
