"""
Agent approval of AI drafts: verify state and thread, send, then record.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from core import (
    DraftNotFoundError, DraftStatusMismatchError, LeadNotFoundError, ThreadMismatchError
)
from emails.poll import DEFAULT_DRAFT_SUBJECT
from integrations.base import EmailSender
from models import DraftStatus, EmailDirection, SendDraftRequest
from observability import record_event, trace_logger
from repositories.base import Repositories


@dataclass(frozen=True)
class SentDraftResult:
    draft_id: str
    sent_message_id: str
    thread_id: str
    lead_id: str
    sent_at: datetime


def _status_value(status: Optional[DraftStatus]) -> str:
    return DraftStatus(status).value if status else "null"


class DraftApprovalService:
    """Sends approved drafts at most once, into the lead's own thread."""

    def __init__(
        self,
        repositories: Repositories,
        email_sender: EmailSender,
        now: Optional[Callable[[], datetime]] = None,
        generate_id: Optional[Callable[[], str]] = None
    ):
        self.repositories = repositories
        self.email_sender = email_sender
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.generate_id = generate_id or (lambda: str(uuid.uuid4()))

    async def send_approved_draft(self, request: SendDraftRequest) -> SentDraftResult:
        """
        Send the (possibly edited) draft body and mark the draft Sent.

        The outbound record, lead timestamp and draft status are written one
        after another; a crash in between can leave a sent email with its
        draft still pending.

        Raises:
            DraftStatusMismatchError: draft is not pending approval
            DraftNotFoundError: no record with this ID
            LeadNotFoundError: draft points at a missing lead
            ThreadMismatchError: draft, lead, request or provider disagree on the thread
        """
        with trace_logger.trace():
            return await self._send(request)

    async def _send(self, request: SendDraftRequest) -> SentDraftResult:
        if request.expected_status != DraftStatus.PENDING_APPROVAL:
            raise DraftStatusMismatchError("Only PendingApproval drafts can be sent")

        emails = self.repositories.emails
        leads = self.repositories.leads

        draft = await emails.get_by_id(request.draft_id)
        if draft is None:
            raise DraftNotFoundError(request.draft_id)
        if draft.direction != EmailDirection.DRAFT:
            raise DraftStatusMismatchError("Email record is not a draft")
        if draft.draft_status != request.expected_status:
            raise DraftStatusMismatchError(
                f"Draft status mismatch. Expected {_status_value(request.expected_status)}, "
                f"received {_status_value(draft.draft_status)}"
            )
        if draft.thread_id != request.thread_id:
            raise ThreadMismatchError("Draft thread does not match provided thread")

        lead = await leads.get_by_id(draft.lead_id)
        if lead is None:
            raise LeadNotFoundError(draft.lead_id)
        if not lead.thread_id or lead.thread_id != request.thread_id:
            raise ThreadMismatchError("Lead thread does not match provided thread")

        subject = draft.subject or DEFAULT_DRAFT_SUBJECT
        sent = await self.email_sender.send_reply(
            to=lead.email,
            subject=subject,
            body=request.body,
            thread_id=request.thread_id
        )
        if sent.thread_id != request.thread_id:
            await record_event(
                self.repositories.logs, "warn", "email_thread_conflict",
                draft_id=draft.id,
                lead_id=lead.id,
                expected_thread_id=request.thread_id,
                actual_thread_id=sent.thread_id
            )
            raise ThreadMismatchError("Gmail returned a different thread id")

        sent_at = self.now()
        await emails.create(
            id=self.generate_id(),
            lead_id=lead.id,
            gmail_message_id=sent.message_id,
            thread_id=sent.thread_id,
            direction=EmailDirection.OUTBOUND,
            subject=draft.subject,
            body=request.body,
            sent_at=sent_at
        )
        await leads.update(lead.id, last_email_sent_at=sent_at)
        await emails.update_draft_status(draft.id, DraftStatus.SENT)

        await record_event(
            self.repositories.logs, "info", "email_outbound_sent",
            draft_id=draft.id,
            lead_id=lead.id,
            message_id=sent.message_id,
            thread_id=sent.thread_id
        )

        return SentDraftResult(
            draft_id=draft.id,
            sent_message_id=sent.message_id,
            thread_id=sent.thread_id,
            lead_id=lead.id,
            sent_at=sent_at
        )
