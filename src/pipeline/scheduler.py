"""
Cozy Cove — Polling Scheduler

Runs two periodic jobs on independent clocks:
- catalog refresh from AliExpress (CATALOG_REFRESH_INTERVAL_HOURS, default 6h)
- recent-clicks window reset (RECENT_CLICKS_WINDOW_HOURS, default 24h)

The catalog refresh runs once right after startup so a fresh deployment has
products to show.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.catalog.repository import reset_recent_clicks
from src.config import settings
from src.pipeline.aliexpress import AliExpressClient
from src.pipeline.ingest import refresh_catalog

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Async scheduler for catalog polling and stats windowing.

    Maintains independent clocks per job; one job failing never stops the
    other.
    """

    def __init__(
        self,
        db_engine: Any,
        session_factory: async_sessionmaker[AsyncSession],
        client_factory: Callable[[], AliExpressClient] = AliExpressClient,
    ):
        self.db_engine = db_engine
        self.session_factory = session_factory
        self.client_factory = client_factory
        self._shutdown_event = asyncio.Event()

        # None forces the first catalog refresh on startup
        self._catalog_last_poll: datetime | None = None
        self._catalog_cadence_minutes = settings.CATALOG_REFRESH_INTERVAL_HOURS * 60

        self._clicks_window_started: datetime = datetime.now(timezone.utc)
        self._clicks_window_minutes = settings.RECENT_CLICKS_WINDOW_HOURS * 60

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    def _should_refresh_catalog(self) -> bool:
        """Check if the catalog refresh window has elapsed."""
        if self._catalog_last_poll is None:
            return True
        now = datetime.now(timezone.utc)
        elapsed_minutes = (now - self._catalog_last_poll).total_seconds() / 60
        return elapsed_minutes >= self._catalog_cadence_minutes

    def _should_reset_clicks(self) -> bool:
        """Check if the recent-clicks window has elapsed."""
        now = datetime.now(timezone.utc)
        elapsed_minutes = (now - self._clicks_window_started).total_seconds() / 60
        return elapsed_minutes >= self._clicks_window_minutes

    async def _refresh_catalog(self) -> int:
        """
        Fetch, normalize and store every curated category.

        Returns:
            Number of product rows upserted.
        """
        logger.info("scheduler_catalog_refresh_start")

        async with self.session_factory() as session:
            async with self.client_factory() as client:
                rowcount = await refresh_catalog(client, session)

        self._catalog_last_poll = datetime.now(timezone.utc)

        logger.info(
            "scheduler_catalog_refresh_complete",
            rowcount=rowcount,
            next_poll_in_hours=settings.CATALOG_REFRESH_INTERVAL_HOURS,
        )
        return rowcount

    async def _reset_clicks_window(self) -> int:
        """
        Zero recent_clicks for every product.

        Returns:
            Number of stats rows reset.
        """
        async with self.session_factory() as session:
            rowcount = await reset_recent_clicks(session)

        self._clicks_window_started = datetime.now(timezone.utc)

        logger.info(
            "scheduler_clicks_window_reset",
            rowcount=rowcount,
            window_hours=settings.RECENT_CLICKS_WINDOW_HOURS,
        )
        return rowcount

    async def run(self) -> None:
        """
        Main scheduler loop. Runs indefinitely until shutdown is signaled.

        Periodically checks if poll windows have elapsed and executes jobs.
        """
        logger.info(
            "scheduler_started",
            catalog_cadence_hours=settings.CATALOG_REFRESH_INTERVAL_HOURS,
            clicks_window_hours=settings.RECENT_CLICKS_WINDOW_HOURS,
        )

        poll_check_interval = settings.SCHEDULER_CHECK_INTERVAL_SECONDS

        try:
            while not self._shutdown_event.is_set():
                try:
                    if self._should_refresh_catalog():
                        await self._refresh_catalog()

                    if self._should_reset_clicks():
                        await self._reset_clicks_window()

                    # Sleep before next check
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=poll_check_interval,
                    )
                except asyncio.TimeoutError:
                    # Expected: timeout means no shutdown signal, continue loop
                    continue
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    # Continue running despite errors
                    await asyncio.sleep(poll_check_interval)

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(db_engine: Any, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Initialize and run the scheduler with graceful shutdown handling.

    Registers SIGTERM/SIGINT handlers to trigger shutdown.

    Args:
        db_engine: SQLAlchemy async engine.
        session_factory: SQLAlchemy async session factory.
    """
    scheduler = Scheduler(db_engine, session_factory)

    def handle_signal(_signum: int, _frame: Any) -> None:
        """Called by SIGTERM/SIGINT."""
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise
