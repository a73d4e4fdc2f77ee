"""Internal task scheduler using APScheduler.

Runs housekeeping jobs within the FastAPI process. Today that is the
sweep of expired OTP rate-limit entries.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dischargely.config import settings
from dischargely.core.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def sweep_rate_limits(rate_limiter: RateLimiter) -> int:
    """Drop expired rate-limit entries. Returns the number of clients removed."""
    removed = rate_limiter.cleanup_expired()
    if removed:
        logger.info(f"[scheduler] Rate-limit sweep: removed {removed} idle clients")
    return removed


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self, rate_limiter: RateLimiter) -> None:
        self.rate_limiter = rate_limiter
        self._scheduler: AsyncIOScheduler | None = None

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            sweep_rate_limits,
            trigger=IntervalTrigger(minutes=settings.rate_limit_cleanup_minutes),
            args=[self.rate_limiter],
            id="rate_limit_sweep",
            name="Rate Limit Sweep",
            replace_existing=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with rate-limit sweep every "
            f"{settings.rate_limit_cleanup_minutes} minutes"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")
