"""
Webhook intake: validate, dedupe, score and create a lead, then send the first
outreach email and bind the lead to the resulting thread.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from config import settings
from core import (
    DuplicateLeadError, InitialEmailSendError, ValidationError, execute_with_retry
)
from integrations.base import EmailSender, SentMessage
from leads.idempotency import DedupStore
from leads.mapping import (
    map_location_preference, map_payment_readiness,
    map_property_type_specificity, map_purchase_timeline
)
from leads.typeform import normalize_lead_webhook_payload
from models import EmailDirection, LeadWebhookRequest, PipelineStatus, Tier
from observability import record_event, trace_logger
from repositories.base import Repositories
from scoring import (
    FormScoreInput, ScoringConfig, compute_form_score, compute_tier,
    compute_total_score, normalize_scoring_config
)

INITIAL_EMAIL_SUBJECT = "Curated Property Options for You"


@dataclass(frozen=True)
class IntakeResult:
    """Outcome of one webhook call. ``idempotent`` results carry nothing else."""
    idempotent: bool
    lead_id: Optional[str] = None
    form_score: Optional[float] = None
    interaction_score: Optional[float] = None
    total_score: Optional[float] = None
    tier: Optional[Tier] = None
    message_id: Optional[str] = None
    thread_id: Optional[str] = None


def build_initial_email_body(payload: LeadWebhookRequest) -> str:
    return "\n".join([
        f"Hi {payload.full_name},",
        "",
        "Thanks for your property interest. Based on your preferences, I can share "
        "curated options in Lekki and Victoria Island.",
        "",
        "Your preference summary:",
        f"- Budget: {payload.budget}",
        f"- Timeline: {payload.purchase_timeline}",
        f"- Payment: {payload.payment_readiness}",
        f"- Location: {payload.location_preference}",
        f"- Property Type: {payload.property_type}",
        "",
        payload.message,
        "",
        "Reply to this email with your preferred viewing day and time.",
    ])


def parse_webhook_payload(
    raw_payload: Any,
    header_idempotency_key: Optional[str] = None
) -> LeadWebhookRequest:
    """Normalize a native or Typeform payload and validate it."""
    normalized = normalize_lead_webhook_payload(raw_payload, header_idempotency_key)
    try:
        return LeadWebhookRequest.model_validate(normalized)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid webhook payload",
            errors=e.errors(include_url=False, include_context=False, include_input=False)
        ) from e


class LeadIntakePipeline:
    """Turns a lead-capture submission into a contacted lead."""

    def __init__(
        self,
        repositories: Repositories,
        email_sender: EmailSender,
        dedup_store: DedupStore,
        scoring_config: Optional[ScoringConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
        generate_id: Optional[Callable[[], str]] = None,
        retry_delay: Optional[float] = None,
        send_retry_delay: Optional[float] = None
    ):
        self.repositories = repositories
        self.email_sender = email_sender
        self.dedup_store = dedup_store
        self.scoring_config = scoring_config or normalize_scoring_config(
            settings.premium_budget_threshold,
            settings.mid_tier_budget_threshold,
            settings.entry_tier_budget_threshold
        )
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.generate_id = generate_id or (lambda: str(uuid.uuid4()))
        self.retry_attempts = settings.persistence_retry_attempts
        self.retry_delay = (
            retry_delay if retry_delay is not None
            else settings.persistence_retry_delay_seconds
        )
        self.send_attempts = settings.initial_email_retry_attempts
        self.send_retry_delay = (
            send_retry_delay if send_retry_delay is not None
            else settings.initial_email_retry_delay_seconds
        )

    async def process_raw(
        self,
        raw_payload: Any,
        header_idempotency_key: Optional[str] = None
    ) -> IntakeResult:
        """Normalize, validate and process an untrusted webhook body."""
        return await self.process(parse_webhook_payload(raw_payload, header_idempotency_key))

    async def process(self, payload: LeadWebhookRequest) -> IntakeResult:
        """
        Run the intake steps in order.

        Raises:
            DuplicateLeadError: a lead with this email already exists
            InitialEmailSendError: lead created but the first email failed
        """
        with trace_logger.trace():
            return await self._process(payload)

    async def _process(self, payload: LeadWebhookRequest) -> IntakeResult:
        if self.dedup_store.has(payload.idempotency_key):
            trace_logger.info(
                "Duplicate submission ignored by idempotency key",
                idempotency_key=payload.idempotency_key
            )
            return IntakeResult(idempotent=True)

        leads = self.repositories.leads
        logs = self.repositories.logs
        email = str(payload.email).lower()

        await record_event(
            logs, "info", "lead_webhook_received",
            email=email, idempotency_key=payload.idempotency_key
        )

        if await leads.find_by_email(email):
            await record_event(logs, "warn", "lead_duplicate_rejected", email=email)
            raise DuplicateLeadError(email)

        form_score = compute_form_score(
            FormScoreInput(
                budget=payload.budget,
                purchase_timeline=map_purchase_timeline(payload.purchase_timeline),
                payment_readiness=map_payment_readiness(payload.payment_readiness),
                location_match=map_location_preference(payload.location_preference),
                property_type_specificity=map_property_type_specificity(payload.property_type)
            ),
            self.scoring_config
        )
        interaction_score = 0.0
        total_score = compute_total_score(form_score, interaction_score)
        tier = compute_tier(total_score)

        await record_event(
            logs, "info", "lead_scored",
            email=email, form_score=form_score, interaction_score=interaction_score,
            total_score=total_score, tier=tier.value
        )

        lead_id = self.generate_id()
        await self._persist(
            "lead_create",
            lambda: leads.create(
                id=lead_id,
                full_name=payload.full_name,
                email=email,
                phone=payload.phone,
                budget=payload.budget,
                form_score=form_score,
                interaction_score=interaction_score,
                total_score=total_score,
                tier=tier,
                pipeline_status=PipelineStatus.NEW
            )
        )
        await record_event(logs, "info", "lead_created", lead_id=lead_id, email=email)

        subject = INITIAL_EMAIL_SUBJECT
        body = build_initial_email_body(payload)
        sent = await self._send_initial_email(lead_id, email, subject, body)

        sent_at = self.now()
        await self._persist(
            "outbound_email_create",
            lambda: self.repositories.emails.create(
                id=self.generate_id(),
                lead_id=lead_id,
                gmail_message_id=sent.message_id,
                thread_id=sent.thread_id,
                direction=EmailDirection.OUTBOUND,
                subject=subject,
                body=body,
                sent_at=sent_at
            )
        )
        await self._persist(
            "lead_mark_contacted",
            lambda: leads.update(
                lead_id,
                pipeline_status=PipelineStatus.CONTACTED,
                thread_id=sent.thread_id,
                last_email_sent_at=sent_at
            )
        )
        await record_event(
            logs, "info", "email_outbound_sent",
            lead_id=lead_id, message_id=sent.message_id, thread_id=sent.thread_id
        )

        self.dedup_store.mark(payload.idempotency_key)

        return IntakeResult(
            idempotent=False,
            lead_id=lead_id,
            form_score=form_score,
            interaction_score=interaction_score,
            total_score=total_score,
            tier=tier,
            message_id=sent.message_id,
            thread_id=sent.thread_id
        )

    async def _persist(self, name: str, operation):
        return await execute_with_retry(
            operation,
            attempts=self.retry_attempts,
            delay=self.retry_delay,
            name=name
        )

    async def _send_initial_email(
        self,
        lead_id: str,
        email: str,
        subject: str,
        body: str
    ) -> SentMessage:
        logs = self.repositories.logs

        async def on_retry(error: BaseException, attempt: int) -> None:
            await record_event(
                logs, "warn", "initial_email_retry",
                lead_id=lead_id, attempt=attempt, error=str(error)
            )

        try:
            return await execute_with_retry(
                lambda: self.email_sender.send_reply(to=email, subject=subject, body=body),
                attempts=self.send_attempts,
                delay=self.send_retry_delay,
                on_retry=on_retry,
                name="initial_email_send"
            )
        except Exception as e:
            await record_event(
                logs, "error", "email_send_failed",
                lead_id=lead_id, email=email, error=str(e)
            )
            raise InitialEmailSendError(lead_id) from e
