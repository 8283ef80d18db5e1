import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import make_lead
from emails import (
    InboundEmailPoller, build_draft_prompt, fallback_draft, read_poll_cursor, run_email_poll
)
from integrations.base import DraftGenerator, InboundMessage, InboundMessageSource
from models import (
    DraftStatus, EmailDirection, EmailRecord, LogLevel, LogRecord, PipelineStatus, Tier
)

pytestmark = pytest.mark.asyncio

READY_TO_BUY = "I am ready to buy. Please schedule viewing this week as I am interested."


def _message(**overrides) -> InboundMessage:
    fields = dict(
        message_id="gmail-msg-1",
        thread_id="thread-abc",
        from_email="Ada@Example.com",
        subject="Viewing",
        body=READY_TO_BUY + "\n\nOn Sun, Mar 1, 2026 Agent wrote:\n> Curated options",
        received_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return InboundMessage(**fields)


@pytest.fixture
def message_source():
    source = AsyncMock(spec=InboundMessageSource)
    source.fetch_inbound_messages.return_value = [_message()]
    return source


@pytest.fixture
def draft_generator():
    generator = AsyncMock(spec=DraftGenerator)
    generator.generate_draft.return_value = "Happy to set up a viewing on Saturday."
    return generator


@pytest.fixture
def poller(repositories, message_source, draft_generator, fixed_now):
    ids = (f"id-{n}" for n in itertools.count(1))
    return InboundEmailPoller(
        repositories,
        message_source,
        draft_generator,
        now=lambda: fixed_now,
        generate_id=lambda: next(ids)
    )


def _created(repositories, direction):
    return [
        c.kwargs for c in repositories.emails.create.await_args_list
        if c.kwargs["direction"] == direction
    ]


def _logged_events(repositories):
    return [c.kwargs["message"] for c in repositories.logs.create.await_args_list]


async def test_reply_rescored_and_draft_queued(poller, repositories, message_source, draft_generator):
    repositories.leads.find_by_email.return_value = make_lead()
    repositories.emails.count_inbound_by_lead_and_thread.return_value = 1

    summary = await poller.poll(after=None)

    message_source.fetch_inbound_messages.assert_awaited_once_with(None)
    repositories.leads.find_by_email.assert_awaited_once_with("ada@example.com")

    inbound = _created(repositories, EmailDirection.INBOUND)
    assert len(inbound) == 1
    assert inbound[0]["body"] == READY_TO_BUY
    assert inbound[0]["gmail_message_id"] == "gmail-msg-1"
    assert inbound[0]["sent_at"] == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    repositories.emails.count_inbound_by_lead_and_thread.assert_awaited_once_with("lead-1", "thread-abc")
    repositories.leads.update.assert_awaited_once_with(
        "lead-1",
        interaction_score=80,
        total_score=80,
        tier=Tier.HOT,
        pipeline_status=PipelineStatus.INTERESTED
    )

    prompt = draft_generator.generate_draft.await_args.args[0]
    assert "Lead Name: Ada Obi" in prompt
    assert "Lead Tier: Hot" in prompt
    assert "Pipeline Status: Interested" in prompt
    assert f"Buyer Message: {READY_TO_BUY}" in prompt

    drafts = _created(repositories, EmailDirection.DRAFT)
    assert len(drafts) == 1
    assert drafts[0]["subject"] == "Re: Viewing"
    assert drafts[0]["body"] == "Happy to set up a viewing on Saturday."
    assert drafts[0]["draft_status"] == DraftStatus.PENDING_APPROVAL
    assert drafts[0]["thread_id"] == "thread-abc"

    assert summary.to_dict() == {
        "fetched": 1,
        "processed": 1,
        "duplicates": 0,
        "unmatched": 0,
        "thread_conflicts": 0,
        "empty_ignored": 0,
        "drafts_pending_approval": 1,
        "drafts_needs_review": 0,
    }
    assert _logged_events(repositories) == ["email_inbound_processed"]


async def test_already_stored_message_is_skipped(poller, repositories):
    repositories.emails.find_by_message_id.return_value = EmailRecord(id="existing")

    summary = await poller.poll()

    assert summary.duplicates == 1
    repositories.leads.find_by_email.assert_not_awaited()
    repositories.emails.create.assert_not_awaited()
    repositories.logs.create.assert_not_awaited()


async def test_unknown_sender_is_unmatched(poller, repositories):
    summary = await poller.poll()

    assert summary.unmatched == 1
    assert summary.processed == 0
    repositories.emails.create.assert_not_awaited()
    assert _logged_events(repositories) == ["email_unmatched"]


async def test_empty_reply_is_stored_and_ignored(poller, repositories, message_source, draft_generator):
    repositories.leads.find_by_email.return_value = make_lead()
    message_source.fetch_inbound_messages.return_value = [_message(body="> only quoted text")]

    summary = await poller.poll()

    assert summary.empty_ignored == 1
    inbound = _created(repositories, EmailDirection.INBOUND)
    assert inbound[0]["body"] == ""
    repositories.leads.update.assert_not_awaited()
    draft_generator.generate_draft.assert_not_awaited()
    assert _logged_events(repositories) == ["email_empty_ignored"]


@pytest.mark.parametrize("lead_thread", [None, "thread-other"])
async def test_thread_conflict_stores_inbound_only(poller, repositories, draft_generator, lead_thread):
    repositories.leads.find_by_email.return_value = make_lead(thread_id=lead_thread)

    summary = await poller.poll()

    assert summary.thread_conflicts == 1
    assert summary.processed == 0
    assert len(_created(repositories, EmailDirection.INBOUND)) == 1
    assert not _created(repositories, EmailDirection.DRAFT)
    repositories.leads.update.assert_not_awaited()
    draft_generator.generate_draft.assert_not_awaited()

    conflict = repositories.logs.create.await_args.kwargs
    assert conflict["message"] == "email_thread_conflict"
    assert conflict["level"] == "warn"
    assert conflict["metadata"]["expected_thread_id"] == lead_thread
    assert conflict["metadata"]["actual_thread_id"] == "thread-abc"


async def test_draft_failure_queues_fallback_for_review(poller, repositories, draft_generator):
    repositories.leads.find_by_email.return_value = make_lead()
    repositories.emails.count_inbound_by_lead_and_thread.return_value = 1
    draft_generator.generate_draft.side_effect = RuntimeError("LLM unavailable")

    summary = await poller.poll()

    draft = _created(repositories, EmailDirection.DRAFT)[0]
    assert draft["draft_status"] == DraftStatus.NEEDS_REVIEW
    assert draft["body"] == fallback_draft("LLM unavailable")
    assert draft["body"].endswith("Internal note: LLM unavailable")
    assert summary.processed == 1
    assert summary.drafts_needs_review == 1
    assert summary.drafts_pending_approval == 0


async def test_missing_subject_gets_default(poller, repositories, message_source):
    repositories.leads.find_by_email.return_value = make_lead()
    repositories.emails.count_inbound_by_lead_and_thread.return_value = 1
    message_source.fetch_inbound_messages.return_value = [_message(subject=None)]

    await poller.poll()

    assert _created(repositories, EmailDirection.DRAFT)[0]["subject"] == "Re: Property inquiry"


async def test_messages_processed_oldest_first(poller, repositories, message_source):
    base = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    message_source.fetch_inbound_messages.return_value = [
        _message(message_id="late", received_at=base + timedelta(hours=2)),
        _message(message_id="early", received_at=base),
        _message(message_id="middle", received_at=base + timedelta(hours=1)),
    ]

    summary = await poller.poll()

    order = [c.args[0] for c in repositories.emails.find_by_message_id.await_args_list]
    assert order == ["early", "middle", "late"]
    assert summary.fetched == 3
    assert summary.unmatched == 3


async def test_repository_error_aborts_poll(poller, repositories, message_source):
    repositories.leads.find_by_email.side_effect = RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await poller.poll()


async def test_build_draft_prompt():
    prompt = build_draft_prompt("Ada", Tier.WARM, PipelineStatus.QUESTION, "Is parking included?")

    lines = prompt.split("\n")
    assert lines[0] == "You are assisting a premium real-estate agent in Lekki and Victoria Island."
    assert "- Keep under 180 words." in lines
    assert lines[-4:] == [
        "Lead Name: Ada",
        "Lead Tier: Warm",
        "Pipeline Status: Question",
        "Buyer Message: Is parking included?",
    ]


async def test_run_email_poll_uses_and_records_cursor(repositories, message_source, draft_generator):
    cursor = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    completed = datetime(2026, 3, 1, 9, 5, tzinfo=timezone.utc)
    repositories.logs.find_latest_by_message.return_value = LogRecord(
        id="log-1",
        level=LogLevel.INFO,
        message="email_poll_completed",
        event_metadata={"poll_completed_at": cursor.isoformat()},
        created_at=datetime(2026, 3, 1, 7, 0, tzinfo=timezone.utc)
    )
    message_source.fetch_inbound_messages.return_value = []

    after, completed_at, summary = await run_email_poll(
        repositories, message_source, draft_generator, now=lambda: completed
    )

    repositories.logs.find_latest_by_message.assert_awaited_once_with("email_poll_completed")
    message_source.fetch_inbound_messages.assert_awaited_once_with(cursor)
    assert after == cursor
    assert completed_at == completed
    assert summary.fetched == 0

    record = repositories.logs.create.await_args.kwargs
    assert record["message"] == "email_poll_completed"
    assert record["metadata"]["poll_completed_at"] == completed.isoformat()
    assert record["metadata"]["summary"]["fetched"] == 0


async def test_run_email_poll_records_start_time_as_next_cursor(
    repositories, message_source, draft_generator
):
    started = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    completed = datetime(2026, 3, 1, 9, 4, tzinfo=timezone.utc)
    repositories.logs.find_latest_by_message.return_value = None
    message_source.fetch_inbound_messages.return_value = []

    _, completed_at, _ = await run_email_poll(
        repositories, message_source, draft_generator, now=iter([started, completed]).__next__
    )

    assert completed_at == completed
    metadata = repositories.logs.create.await_args.kwargs["metadata"]
    assert metadata["poll_started_at"] == started.isoformat()
    assert metadata["poll_completed_at"] == completed.isoformat()

    repositories.logs.find_latest_by_message.return_value = LogRecord(
        id="log-2",
        level=LogLevel.INFO,
        message="email_poll_completed",
        event_metadata=metadata,
        created_at=completed
    )
    assert await read_poll_cursor(repositories) == started


async def test_run_email_poll_cursor_falls_back_to_log_time(repositories, message_source, draft_generator):
    created_at = datetime(2026, 3, 1, 7, 0)
    repositories.logs.find_latest_by_message.return_value = LogRecord(
        id="log-1",
        level=LogLevel.INFO,
        message="email_poll_completed",
        event_metadata={},
        created_at=created_at
    )
    message_source.fetch_inbound_messages.return_value = []

    after, _, _ = await run_email_poll(repositories, message_source, draft_generator)

    assert after == created_at.replace(tzinfo=timezone.utc)


async def test_first_poll_has_no_cursor(repositories, message_source, draft_generator):
    repositories.logs.find_latest_by_message.return_value = None
    message_source.fetch_inbound_messages.return_value = []

    after, _, _ = await run_email_poll(repositories, message_source, draft_generator)

    assert after is None
    message_source.fetch_inbound_messages.assert_awaited_once_with(None)
