from unittest.mock import AsyncMock

import pytest

from conftest import make_draft, make_lead
from core import (
    DraftNotFoundError, DraftStatusMismatchError, LeadNotFoundError, ThreadMismatchError
)
from emails import DraftApprovalService
from integrations.base import EmailSender, SentMessage
from models import DraftStatus, EmailDirection, SendDraftRequest

pytestmark = pytest.mark.asyncio


def _request(**overrides) -> SendDraftRequest:
    fields = dict(
        draft_id="draft-1",
        thread_id="thread-abc",
        body="Saturday at 11am works. See you then.",
        expected_status=DraftStatus.PENDING_APPROVAL,
    )
    fields.update(overrides)
    return SendDraftRequest(**fields)


@pytest.fixture
def email_sender():
    sender = AsyncMock(spec=EmailSender)
    sender.send_reply.return_value = SentMessage(message_id="sent-1", thread_id="thread-abc")
    return sender


@pytest.fixture
def service(repositories, email_sender, fixed_now):
    repositories.emails.get_by_id.return_value = make_draft()
    repositories.leads.get_by_id.return_value = make_lead()
    return DraftApprovalService(
        repositories,
        email_sender,
        now=lambda: fixed_now,
        generate_id=lambda: "outbound-1"
    )


async def test_approved_draft_is_sent_and_recorded(service, repositories, email_sender, fixed_now):
    result = await service.send_approved_draft(_request())

    email_sender.send_reply.assert_awaited_once_with(
        to="ada@example.com",
        subject="Re: Viewing",
        body="Saturday at 11am works. See you then.",
        thread_id="thread-abc"
    )
    outbound = repositories.emails.create.await_args.kwargs
    assert outbound["id"] == "outbound-1"
    assert outbound["direction"] == EmailDirection.OUTBOUND
    assert outbound["gmail_message_id"] == "sent-1"
    assert outbound["body"] == "Saturday at 11am works. See you then."
    assert outbound["sent_at"] == fixed_now

    repositories.leads.update.assert_awaited_once_with("lead-1", last_email_sent_at=fixed_now)
    repositories.emails.update_draft_status.assert_awaited_once_with("draft-1", DraftStatus.SENT)

    assert result.draft_id == "draft-1"
    assert result.sent_message_id == "sent-1"
    assert result.thread_id == "thread-abc"
    assert result.lead_id == "lead-1"
    assert result.sent_at == fixed_now
    assert repositories.logs.create.await_args.kwargs["message"] == "email_outbound_sent"


async def test_writes_happen_in_order(service, repositories):
    calls = []
    repositories.emails.create.side_effect = lambda **kw: calls.append("outbound")
    repositories.leads.update.side_effect = lambda *a, **kw: calls.append("lead")
    repositories.emails.update_draft_status.side_effect = lambda *a: calls.append("draft")

    await service.send_approved_draft(_request())

    assert calls == ["outbound", "lead", "draft"]


@pytest.mark.parametrize("status", [DraftStatus.SENT, DraftStatus.NEEDS_REVIEW])
async def test_non_pending_expected_status_rejected_before_lookup(service, repositories, status):
    with pytest.raises(DraftStatusMismatchError):
        await service.send_approved_draft(_request(expected_status=status))

    repositories.emails.get_by_id.assert_not_awaited()


async def test_missing_draft(service, repositories):
    repositories.emails.get_by_id.return_value = None

    with pytest.raises(DraftNotFoundError):
        await service.send_approved_draft(_request())


async def test_record_that_is_not_a_draft(service, repositories, email_sender):
    repositories.emails.get_by_id.return_value = make_draft(
        direction=EmailDirection.OUTBOUND, draft_status=None
    )

    with pytest.raises(DraftStatusMismatchError):
        await service.send_approved_draft(_request())

    email_sender.send_reply.assert_not_awaited()


async def test_already_sent_draft_cannot_be_sent_twice(service, repositories, email_sender):
    repositories.emails.get_by_id.return_value = make_draft(draft_status=DraftStatus.SENT)

    with pytest.raises(DraftStatusMismatchError) as exc_info:
        await service.send_approved_draft(_request())

    assert "Expected PendingApproval, received Sent" in exc_info.value.message
    email_sender.send_reply.assert_not_awaited()


async def test_draft_thread_mismatch(service, email_sender):
    with pytest.raises(ThreadMismatchError):
        await service.send_approved_draft(_request(thread_id="thread-xyz"))

    email_sender.send_reply.assert_not_awaited()


async def test_missing_lead(service, repositories):
    repositories.leads.get_by_id.return_value = None

    with pytest.raises(LeadNotFoundError):
        await service.send_approved_draft(_request())


@pytest.mark.parametrize("lead_thread", [None, "thread-other"])
async def test_lead_thread_mismatch(service, repositories, email_sender, lead_thread):
    repositories.leads.get_by_id.return_value = make_lead(thread_id=lead_thread)

    with pytest.raises(ThreadMismatchError):
        await service.send_approved_draft(_request())

    email_sender.send_reply.assert_not_awaited()


async def test_provider_thread_mismatch_leaves_draft_pending(service, repositories, email_sender):
    email_sender.send_reply.return_value = SentMessage(message_id="sent-1", thread_id="thread-new")

    with pytest.raises(ThreadMismatchError):
        await service.send_approved_draft(_request())

    repositories.emails.create.assert_not_awaited()
    repositories.emails.update_draft_status.assert_not_awaited()
    repositories.leads.update.assert_not_awaited()
    conflict = repositories.logs.create.await_args.kwargs
    assert conflict["message"] == "email_thread_conflict"
    assert conflict["metadata"]["actual_thread_id"] == "thread-new"


async def test_missing_subject_uses_default(service, repositories, email_sender):
    repositories.emails.get_by_id.return_value = make_draft(subject=None)

    await service.send_approved_draft(_request())

    assert email_sender.send_reply.await_args.kwargs["subject"] == "Re: Property inquiry"


async def test_send_failure_propagates_without_writes(service, repositories, email_sender):
    email_sender.send_reply.side_effect = RuntimeError("gmail down")

    with pytest.raises(RuntimeError):
        await service.send_approved_draft(_request())

    repositories.emails.create.assert_not_awaited()
    repositories.emails.update_draft_status.assert_not_awaited()
