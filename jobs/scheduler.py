"""
Background job scheduler for the periodic inbox poll.
"""

from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from emails import run_email_poll
from integrations.base import DraftGenerator, InboundMessageSource
from observability import trace_logger
from repositories import Repositories


class JobScheduler:
    """Runs the inbox poll on the application's event loop."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._repositories_factory: Optional[Callable[[], Repositories]] = None
        self._message_source_factory: Optional[Callable[[], InboundMessageSource]] = None
        self._draft_generator_factory: Optional[Callable[[], DraftGenerator]] = None

    def start(
        self,
        repositories_factory: Callable[[], Repositories],
        message_source_factory: Callable[[], InboundMessageSource],
        draft_generator_factory: Callable[[], DraftGenerator]
    ):
        """Start the scheduler. Must be called from a running event loop."""
        if not settings.enable_background_jobs:
            trace_logger.info("Background jobs disabled")
            return

        self._repositories_factory = repositories_factory
        self._message_source_factory = message_source_factory
        self._draft_generator_factory = draft_generator_factory

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            func=self.poll_inbox,
            trigger=IntervalTrigger(
                minutes=settings.email_poll_interval_minutes
            ),
            id="poll_inbox",
            name="Poll inbox and queue draft replies",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        trace_logger.info("Job scheduler started")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler is None or not self.scheduler.running:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        trace_logger.info("Job scheduler stopped")

    async def poll_inbox(self):
        """Run one inbox poll; errors are logged and retried on the next tick."""
        try:
            _, _, summary = await run_email_poll(
                self._repositories_factory(),
                self._message_source_factory(),
                self._draft_generator_factory()
            )
            trace_logger.info(
                "Scheduled inbox poll finished",
                **summary.to_dict()
            )
        except Exception as e:
            trace_logger.error_occurred(
                error_type="scheduled_poll_error",
                error_message=str(e)
            )


# Singleton instance
job_scheduler = JobScheduler()
