"""
Periodic sweeper: expires stale holds and lapsed featured promotions.

Runs inside the API process on the event loop, independent of request
traffic. Each job opens its own session and goes through the same
service operations the request path uses. A failed run is logged and the
next tick retries.
"""

from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from turnolibre.core.clock import Clock, get_clock
from turnolibre.core.config import get_settings
from turnolibre.core.logging import get_logger
from turnolibre.core.metrics import record_sweep
from turnolibre.db.session import AsyncSessionLocal
from turnolibre.services import club_service, hold_service

logger = get_logger(__name__)
settings = get_settings()


class PeriodicSweeper:
    """Background scheduler for the expiry jobs."""

    def __init__(self, session_factory=AsyncSessionLocal, clock_factory: Callable[[], Clock] = get_clock):
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory
        self.clock_factory = clock_factory
        self.running = False

    async def start(self):
        if self.running:
            logger.warning("sweeper_already_running")
            return

        self.scheduler.add_job(
            self.expire_holds,
            IntervalTrigger(minutes=settings.HOLD_SWEEP_INTERVAL_MINUTES),
            id="expire_holds",
            name="Expire stale holds",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.expire_featured,
            IntervalTrigger(minutes=settings.FEATURED_SWEEP_INTERVAL_MINUTES),
            id="expire_featured_clubs",
            name="Expire featured promotions",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self.running = True
        logger.info(
            "sweeper_started",
            hold_interval_minutes=settings.HOLD_SWEEP_INTERVAL_MINUTES,
            featured_interval_minutes=settings.FEATURED_SWEEP_INTERVAL_MINUTES,
        )

    async def stop(self):
        if not self.running:
            return

        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("sweeper_stopped")

    async def _run(self, job: str, operation) -> Optional[int]:
        async with self.session_factory() as db:
            try:
                count = await operation(db, self.clock_factory())
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error("sweep_failed", job=job, error=str(e), exc_info=True)
                return None

        record_sweep(job, count)
        logger.debug("sweep_finished", job=job, count=count)
        return count

    async def expire_holds(self) -> Optional[int]:
        return await self._run("holds", hold_service.expire_stale_holds)

    async def expire_featured(self) -> Optional[int]:
        return await self._run("featured_clubs", club_service.expire_featured_clubs)


sweeper = PeriodicSweeper()
