"""Inbound reply processing and draft approval."""

from emails.cleaning import clean_inbound_body, derive_pipeline_status
from emails.poll import (
    InboundEmailPoller, PollSummary, build_draft_prompt, fallback_draft,
    read_poll_cursor, run_email_poll
)
from emails.send_draft import DraftApprovalService, SentDraftResult

__all__ = [
    "clean_inbound_body", "derive_pipeline_status",
    "InboundEmailPoller", "PollSummary", "build_draft_prompt", "fallback_draft",
    "read_poll_cursor", "run_email_poll",
    "DraftApprovalService", "SentDraftResult"
]
