"""
Error taxonomy for the lead and email pipelines.

The pipelines raise these; the API layer translates them to HTTP responses
using ``status_code``.
"""

from typing import Any, Dict, List, Optional


class CRMError(Exception):
    """Base class for errors surfaced by the CRM core."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CRMError):
    """Caller input is malformed. Never retried."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class DuplicateLeadError(CRMError):
    """A lead with this email already exists."""

    status_code = 409

    def __init__(self, email: str):
        super().__init__(f"Duplicate lead for email: {email}")
        self.email = email


class InitialEmailSendError(CRMError):
    """The lead was persisted but the first outreach email could not be sent."""

    status_code = 502

    def __init__(self, lead_id: str, message: str = "Failed to send initial email"):
        super().__init__(message)
        self.lead_id = lead_id


class DraftNotFoundError(CRMError):
    status_code = 404

    def __init__(self, draft_id: Optional[str] = None):
        super().__init__("Draft not found")
        self.draft_id = draft_id


class LeadNotFoundError(CRMError):
    status_code = 404

    def __init__(self, lead_id: Optional[str] = None):
        super().__init__("Lead not found")
        self.lead_id = lead_id


class DraftStatusMismatchError(CRMError):
    """Draft is not in the state the caller asserted (double-send guard)."""

    status_code = 409


class ThreadMismatchError(CRMError):
    """Conversation thread disagrees between draft, lead, request or provider."""

    status_code = 409
