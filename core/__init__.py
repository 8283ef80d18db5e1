"""Shared error taxonomy and retry helper."""

from core.errors import (
    CRMError, ValidationError, DuplicateLeadError, InitialEmailSendError,
    DraftNotFoundError, LeadNotFoundError, DraftStatusMismatchError,
    ThreadMismatchError
)
from core.retry import execute_with_retry

__all__ = [
    "CRMError", "ValidationError", "DuplicateLeadError", "InitialEmailSendError",
    "DraftNotFoundError", "LeadNotFoundError", "DraftStatusMismatchError",
    "ThreadMismatchError", "execute_with_retry"
]
