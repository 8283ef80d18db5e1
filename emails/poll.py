"""
Inbound email poll: match replies to leads, rescore them and queue AI drafts
for agent approval.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from emails.cleaning import clean_inbound_body, derive_pipeline_status
from integrations.base import DraftGenerator, InboundMessage, InboundMessageSource
from models import DraftStatus, EmailDirection, Lead, PipelineStatus, Tier
from observability import record_event, trace_logger
from repositories.base import Repositories
from scoring import (
    InteractionScoreInput, as_utc, compute_interaction_score, compute_tier,
    compute_total_score
)

POLL_COMPLETED_EVENT = "email_poll_completed"
DEFAULT_DRAFT_SUBJECT = "Re: Property inquiry"


@dataclass
class PollSummary:
    """Counters of one poll run."""
    fetched: int = 0
    processed: int = 0
    duplicates: int = 0
    unmatched: int = 0
    thread_conflicts: int = 0
    empty_ignored: int = 0
    drafts_pending_approval: int = 0
    drafts_needs_review: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def build_draft_prompt(
    lead_name: str,
    lead_tier: Tier,
    lead_status: PipelineStatus,
    buyer_message: str
) -> str:
    return "\n".join([
        "You are assisting a premium real-estate agent in Lekki and Victoria Island.",
        "Write a concise and professional email reply.",
        "Constraints:",
        "- Keep under 180 words.",
        "- Confirm understanding of buyer message.",
        "- Suggest next actionable step (viewing schedule or question response).",
        "- Keep tone polite, direct, and sales-professional.",
        "",
        f"Lead Name: {lead_name}",
        f"Lead Tier: {Tier(lead_tier).value}",
        f"Pipeline Status: {PipelineStatus(lead_status).value}",
        f"Buyer Message: {buyer_message}",
    ])


def fallback_draft(error_message: str) -> str:
    """Placeholder body stored when draft generation fails."""
    return "\n".join([
        "Thank you for your reply.",
        "",
        "I have reviewed your message and will get back with the most relevant "
        "options and next steps shortly.",
        "",
        f"Internal note: {error_message}",
    ])


def draft_subject(subject: Optional[str]) -> str:
    return f"Re: {subject}" if subject else DEFAULT_DRAFT_SUBJECT


class InboundEmailPoller:
    """Processes one batch of inbound messages, oldest first."""

    def __init__(
        self,
        repositories: Repositories,
        message_source: InboundMessageSource,
        draft_generator: DraftGenerator,
        now: Optional[Callable[[], datetime]] = None,
        generate_id: Optional[Callable[[], str]] = None
    ):
        self.repositories = repositories
        self.message_source = message_source
        self.draft_generator = draft_generator
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.generate_id = generate_id or (lambda: str(uuid.uuid4()))

    async def poll(self, after: Optional[datetime] = None) -> PollSummary:
        """
        Fetch messages received after ``after`` and process them one by one.

        Repository and source errors propagate; the summary of a failed run is
        lost and the next run re-reads the same window.
        """
        summary = PollSummary()
        messages = await self.message_source.fetch_inbound_messages(after)
        ordered = sorted(messages, key=lambda m: as_utc(m.received_at))
        summary.fetched = len(ordered)

        for message in ordered:
            await self._process_message(message, summary)

        return summary

    async def _process_message(self, message: InboundMessage, summary: PollSummary) -> None:
        leads = self.repositories.leads
        emails = self.repositories.emails
        logs = self.repositories.logs

        if await emails.find_by_message_id(message.message_id):
            summary.duplicates += 1
            return

        lead = await leads.find_by_email(message.from_email.lower())
        if lead is None:
            summary.unmatched += 1
            await record_event(
                logs, "warn", "email_unmatched",
                message_id=message.message_id,
                thread_id=message.thread_id,
                from_email=message.from_email
            )
            return

        cleaned_body = clean_inbound_body(message.body)
        if not cleaned_body:
            summary.empty_ignored += 1
            await record_event(
                logs, "info", "email_empty_ignored",
                lead_id=lead.id, message_id=message.message_id
            )
            await self._store_inbound(lead, message, "")
            return

        await self._store_inbound(lead, message, cleaned_body)

        if not lead.thread_id or lead.thread_id != message.thread_id:
            summary.thread_conflicts += 1
            await record_event(
                logs, "warn", "email_thread_conflict",
                lead_id=lead.id,
                message_id=message.message_id,
                expected_thread_id=lead.thread_id,
                actual_thread_id=message.thread_id
            )
            return

        # includes the message stored above
        reply_count = await emails.count_inbound_by_lead_and_thread(lead.id, message.thread_id)
        interaction_score = compute_interaction_score(
            InteractionScoreInput(
                last_email_sent_at=lead.last_email_sent_at,
                reply_received_at=message.received_at,
                message_body=cleaned_body,
                reply_count_in_thread=reply_count
            )
        )
        total_score = compute_total_score(lead.form_score, interaction_score)
        tier = compute_tier(total_score)
        pipeline_status = derive_pipeline_status(cleaned_body, lead.pipeline_status)

        await leads.update(
            lead.id,
            interaction_score=interaction_score,
            total_score=total_score,
            tier=tier,
            pipeline_status=pipeline_status
        )

        draft_status = DraftStatus.PENDING_APPROVAL
        try:
            draft_body = await self.draft_generator.generate_draft(
                build_draft_prompt(lead.full_name, tier, pipeline_status, cleaned_body)
            )
        except Exception as e:
            trace_logger.error_occurred(
                error_type="draft_generation_error",
                error_message=str(e),
                context={"lead_id": lead.id, "message_id": message.message_id}
            )
            draft_status = DraftStatus.NEEDS_REVIEW
            draft_body = fallback_draft(str(e) or "AI draft generation failed")

        await emails.create(
            id=self.generate_id(),
            lead_id=lead.id,
            thread_id=message.thread_id,
            direction=EmailDirection.DRAFT,
            subject=draft_subject(message.subject),
            body=draft_body,
            draft_status=draft_status
        )

        summary.processed += 1
        if draft_status == DraftStatus.PENDING_APPROVAL:
            summary.drafts_pending_approval += 1
        else:
            summary.drafts_needs_review += 1

        await record_event(
            logs, "info", "email_inbound_processed",
            lead_id=lead.id,
            message_id=message.message_id,
            interaction_score=interaction_score,
            total_score=total_score,
            tier=tier.value,
            pipeline_status=PipelineStatus(pipeline_status).value,
            processed_at=self.now().isoformat()
        )

    async def _store_inbound(self, lead: Lead, message: InboundMessage, body: str) -> None:
        await self.repositories.emails.create(
            id=self.generate_id(),
            lead_id=lead.id,
            gmail_message_id=message.message_id,
            thread_id=message.thread_id,
            direction=EmailDirection.INBOUND,
            subject=message.subject,
            body=body,
            sent_at=message.received_at
        )


def _parse_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


async def read_poll_cursor(repositories: Repositories) -> Optional[datetime]:
    """
    Start time of the last successful poll, or None on the first run.

    Older records without a start time fall back to their completion time.
    """
    latest = await repositories.logs.find_latest_by_message(POLL_COMPLETED_EVENT)
    if latest is None:
        return None
    metadata = latest.event_metadata or {}
    return (
        _parse_datetime(metadata.get("poll_started_at"))
        or _parse_datetime(metadata.get("poll_completed_at"))
        or _parse_datetime(latest.created_at)
    )


async def run_email_poll(
    repositories: Repositories,
    message_source: InboundMessageSource,
    draft_generator: DraftGenerator,
    now: Optional[Callable[[], datetime]] = None
) -> Tuple[Optional[datetime], datetime, PollSummary]:
    """
    Run one poll from the stored cursor and record its completion.

    Returns:
        (after cursor, completion time, summary)
    """
    now = now or (lambda: datetime.now(timezone.utc))

    with trace_logger.trace():
        # next poll resumes from here so replies arriving mid-batch are fetched
        started_at = now()
        after = await read_poll_cursor(repositories)

        poller = InboundEmailPoller(repositories, message_source, draft_generator, now=now)
        summary = await poller.poll(after)

        completed_at = now()
        trace_logger.poll_completed(summary.to_dict(), after.isoformat() if after else None)
        await repositories.logs.create(
            level="info",
            message=POLL_COMPLETED_EVENT,
            metadata={
                "summary": summary.to_dict(),
                "poll_started_at": started_at.isoformat(),
                "poll_completed_at": completed_at.isoformat()
            }
        )
    return after, completed_at, summary
