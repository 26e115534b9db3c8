"""Daily refresh of the current month's registers on the remote store."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .errors import NotConnectedError

logger = logging.getLogger(__name__)


def parse_time(expr: str) -> tuple[int, int]:
    """Parse ``HH:MM`` into ``(hour, minute)``.

    Raises:
        ValueError: If the string is not a valid time of day.
    """
    hh, sep, mm = expr.strip().partition(":")
    if not sep or not hh.isdigit() or not mm.isdigit():
        raise ValueError(f"Orario non valido: {expr!r} (atteso HH:MM)")
    hour, minute = int(hh), int(mm)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Orario non valido: {expr!r} (atteso HH:MM)")
    return hour, minute


class RegisterScheduler:
    """Runs the register update once a day with APScheduler.

    ``job`` is the coroutine function doing the work, usually a bound
    :meth:`RegisterSync.update_current_month` wrapped with the record book.
    """

    JOB_ID = "update_registers"

    def __init__(self, config, job: Callable[[], Awaitable[object]]) -> None:
        """Initialize scheduler with a HaccpConfig.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler è necessario: pip install 'haccp-registers[scheduler]'"
            )

        self._config = config
        self._job = job
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register the daily update at the configured time."""
        hour, minute = parse_time(self._config.scheduler.time)
        # replace_existing has no effect on jobs queued before start()
        if self._scheduler.get_job(self.JOB_ID) is not None:
            self._scheduler.remove_job(self.JOB_ID)
        self._scheduler.add_job(
            self._job_update_registers,
            trigger=self._CronTrigger(hour=hour, minute=minute),
            id=self.JOB_ID,
            name="Aggiornamento automatico registri",
            replace_existing=True,
        )
        logger.info("Register update job scheduled at %02d:%02d", hour, minute)

    def start(self) -> None:
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    async def _job_update_registers(self) -> bool:
        """Run one update. Failures are logged; the next day runs regardless."""
        logger.info("Running scheduled register update")
        try:
            await self._job()
        except NotConnectedError as e:
            logger.warning("Remote store not connected, update skipped: %s", e)
            return False
        except Exception:
            logger.exception("Scheduled register update failed")
            return False
        return True
