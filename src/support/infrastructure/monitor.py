"""
Stuck Response Monitor
======================

Periodic report of approved responses whose delivery never completed.

Reports only; operators retry by approving again.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from support.application import TicketLifecycle
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class StuckResponseMonitor:
    """
    Wrapper for APScheduler running the stuck-response check.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, lifecycle: TicketLifecycle, interval_seconds: int = 300):
        self._lifecycle = lifecycle
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def check(self) -> int:
        """Log each stuck response. Returns how many were found."""
        try:
            stuck = await self._lifecycle.list_stuck_responses()
        except Exception as e:
            logger.error("Stuck response check failed", extra={"error": str(e)})
            return 0

        for response in stuck:
            logger.warning(
                "Approved response was never sent",
                extra={
                    "response_id": response.id,
                    "ticket_id": response.ticket_id,
                    "created_at": response.created_at.isoformat()
                }
            )
        if stuck:
            logger.info("Stuck responses found", extra={"count": len(stuck)})
        return len(stuck)

    async def start(self) -> None:
        if self._running:
            logger.warning("Stuck response monitor already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check,
            "interval",
            seconds=self.interval_seconds,
            id="stuck_response_check",
            name="Stuck Response Check",
            misfire_grace_time=60,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Stuck response monitor started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Stuck response monitor stopped")

    @property
    def is_running(self) -> bool:
        return self._running
