"""Background task scheduler using APScheduler.

Manages scheduled jobs for:
- Thinking store expiry sweep (every THINKING_SWEEP_INTERVAL_SECONDS)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)
from apscheduler.triggers.interval import (  # type: ignore[import-untyped]
    IntervalTrigger,
)

from core.config import get_settings
from dependencies.services import get_thinking_store


logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None


async def run_thinking_sweep() -> None:
    """Scheduled job: drop thinking entries idle past their TTL."""
    try:
        removed = get_thinking_store().sweep()
        if removed > 0:
            logger.info(f"Thinking sweep: {removed} entries expired")
    except Exception as e:
        logger.error(f"Thinking sweep failed: {e}", exc_info=True)


def setup_scheduler() -> AsyncIOScheduler:
    """Initialize APScheduler with all background jobs."""
    global scheduler
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        run_thinking_sweep,
        trigger=IntervalTrigger(seconds=settings.THINKING_SWEEP_INTERVAL_SECONDS),
        id="sweep_thinking_store",
        name="Thinking store expiry sweep",
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured: thinking sweep "
        f"({settings.THINKING_SWEEP_INTERVAL_SECONDS}s)"
    )
    return scheduler


@asynccontextmanager
async def scheduler_lifespan() -> AsyncGenerator[None, None]:
    """Context manager for scheduler lifecycle.

    Usage in FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with scheduler_lifespan():
                yield
    """
    setup_scheduler()
    if scheduler:
        scheduler.start()
        logger.info("Background scheduler started")
    try:
        yield
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=True)
            logger.info("Background scheduler shut down")
