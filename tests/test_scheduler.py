from unittest.mock import AsyncMock, MagicMock

import pytest

from config import settings
from jobs import JobScheduler
from jobs import scheduler as scheduler_module
from emails import PollSummary

pytestmark = pytest.mark.asyncio


def _factories():
    return dict(
        repositories_factory=MagicMock(),
        message_source_factory=MagicMock(),
        draft_generator_factory=MagicMock()
    )


async def test_disabled_scheduler_does_not_start(monkeypatch):
    monkeypatch.setattr(settings, "enable_background_jobs", False)
    job_scheduler = JobScheduler()

    job_scheduler.start(**_factories())

    assert job_scheduler.scheduler is None
    job_scheduler.stop()


async def test_enabled_scheduler_registers_poll_job(monkeypatch):
    monkeypatch.setattr(settings, "enable_background_jobs", True)
    job_scheduler = JobScheduler()

    job_scheduler.start(**_factories())
    try:
        job = job_scheduler.scheduler.get_job("poll_inbox")
        assert job is not None
        assert job.trigger.interval.total_seconds() == settings.email_poll_interval_minutes * 60
    finally:
        job_scheduler.stop()

    assert job_scheduler.scheduler is None


async def test_poll_inbox_runs_email_poll(monkeypatch):
    run_email_poll = AsyncMock(return_value=(None, None, PollSummary(fetched=2)))
    monkeypatch.setattr(scheduler_module, "run_email_poll", run_email_poll)
    factories = _factories()
    job_scheduler = JobScheduler()
    job_scheduler._repositories_factory = factories["repositories_factory"]
    job_scheduler._message_source_factory = factories["message_source_factory"]
    job_scheduler._draft_generator_factory = factories["draft_generator_factory"]

    await job_scheduler.poll_inbox()

    run_email_poll.assert_awaited_once_with(
        factories["repositories_factory"].return_value,
        factories["message_source_factory"].return_value,
        factories["draft_generator_factory"].return_value
    )


async def test_poll_inbox_errors_are_logged_not_raised(monkeypatch):
    monkeypatch.setattr(
        scheduler_module, "run_email_poll", AsyncMock(side_effect=RuntimeError("gmail down"))
    )
    job_scheduler = JobScheduler()
    job_scheduler._repositories_factory = MagicMock()
    job_scheduler._message_source_factory = MagicMock()
    job_scheduler._draft_generator_factory = MagicMock()

    await job_scheduler.poll_inbox()
