"""Periodic driver for the SLA checker.

Wraps an APScheduler :class:`AsyncIOScheduler` running a single interval
job. The job is limited to one concurrent run and missed runs are
coalesced, so ticks never overlap within a process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from litestar_automation.sla.checker import SlaChecker
    from litestar_automation.sla.models import SlaCheckResult

__all__ = ["DEFAULT_INTERVAL_SECONDS", "SlaScheduler"]

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 60
JOB_ID = "sla_check"


class SlaScheduler:
    """Runs :meth:`SlaChecker.run_sla_check` on a fixed interval.

    Attributes:
        checker: The checker to run.
        interval_seconds: Seconds between runs.
        last_result: Result of the most recent run, if any.

    Example:
        >>> scheduler = SlaScheduler(checker, interval_seconds=300)
        >>> scheduler.start()
        >>> ...
        >>> scheduler.stop()
    """

    def __init__(self, checker: SlaChecker, interval_seconds: int = DEFAULT_INTERVAL_SECONDS) -> None:
        if interval_seconds <= 0:
            msg = "interval_seconds must be positive"
            raise ValueError(msg)
        self.checker = checker
        self.interval_seconds = interval_seconds
        self.last_result: SlaCheckResult | None = None
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        """Whether the interval job is scheduled."""
        return self._scheduler is not None and self._scheduler.running

    async def run_once(self) -> SlaCheckResult:
        """Run one SLA check immediately and remember its result."""
        self.last_result = await self.checker.run_sla_check()
        if self.last_result.errors:
            logger.warning("SLA check reported errors", extra={"errors": self.last_result.errors})
        return self.last_result

    async def _tick(self) -> None:
        try:
            await self.run_once()
        except Exception:
            logger.exception("SLA check run failed")

    def start(self) -> None:
        """Schedule the interval job; must be called with a running event loop."""
        if self.is_running:
            logger.warning("SLA scheduler already running")
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._tick,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            name="SLA breach check",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    def stop(self) -> None:
        """Remove the job and shut the scheduler down."""
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("SLA scheduler stopped")
