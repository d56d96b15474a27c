"""
Cozy Cove — Application Entrypoint

Configures structlog, opens the database and runs the catalog scheduler
until SIGTERM/SIGINT. For a one-off refresh use scripts/refresh_catalog.py.

Run via:
    python -m src.main
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings
from src.models.base import Base
from src.pipeline.scheduler import run_scheduler

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def configure_logging(log_level: str | None = None) -> None:
    """
    Stdlib logging for third-party libraries, structlog JSON for ours.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR (default: settings.LOG_LEVEL).
    """
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


async def create_db_engine(
    database_url: str | None = None,
) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create the async engine and session factory.

    SQLite URLs (local development) get their tables created on the spot;
    Postgres schemas are managed by Alembic.

    Returns:
        (engine, session_factory) tuple.
    """
    url = database_url or settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")

    logger.info("database_engine_initializing", dialect=url.split(":", 1)[0])

    engine_kwargs: dict[str, Any] = {"echo": False}
    if not is_sqlite:
        engine_kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)
    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_engine_ready", sqlite=is_sqlite)
    return engine, session_factory


async def check_database(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """SELECT 1 against the configured database; raises on failure."""
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    logger.info("database_health_check_passed")


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """
    Application entrypoint.

    Execution order:
    1. Configure logging (structlog JSON)
    2. Create async database engine and session factory
    3. Verify database connection (health check)
    4. Run the scheduler until a shutdown signal
    """
    configure_logging()
    logger.info("cozy_cove_startup_begin", version="0.1.0")

    if not settings.ALIEXPRESS_APP_KEY:
        logger.warning("config_aliexpress_app_key_missing", note="catalog refresh disabled")
    if not settings.ALIEXPRESS_TRACKING_ID:
        logger.warning("config_aliexpress_tracking_id_missing", note="affiliate links untracked")

    engine, session_factory = await create_db_engine()

    try:
        await check_database(session_factory)
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        await engine.dispose()
        raise

    logger.info(
        "cozy_cove_startup_complete",
        catalog_categories=list(settings.CATALOG_CATEGORIES),
        catalog_refresh_hours=settings.CATALOG_REFRESH_INTERVAL_HOURS,
    )

    try:
        await run_scheduler(engine, session_factory)
    except KeyboardInterrupt:
        logger.info("cozy_cove_interrupted_by_user")
    except Exception as e:
        logger.error(
            "cozy_cove_fatal_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await engine.dispose()
        logger.info("cozy_cove_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(main())
