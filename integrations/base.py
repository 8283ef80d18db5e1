"""
Capabilities the pipelines consume: sending mail, reading the inbox, drafting
replies. Implementations are injected.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class SentMessage:
    """Provider identifiers of a sent email.

    ``thread_id`` may differ from the one requested; callers must check.
    """
    message_id: str
    thread_id: str


@dataclass(frozen=True)
class InboundMessage:
    message_id: str
    thread_id: str
    from_email: str
    subject: Optional[str]
    body: str
    received_at: datetime


class EmailSender(ABC):

    @abstractmethod
    async def send_reply(
        self,
        to: str,
        subject: str,
        body: str,
        thread_id: Optional[str] = None
    ) -> SentMessage:
        """Send an email, optionally into an existing thread."""
        pass


class InboundMessageSource(ABC):

    @abstractmethod
    async def fetch_inbound_messages(self, after: Optional[datetime]) -> List[InboundMessage]:
        """Messages received after ``after`` (or a default look-back when None)."""
        pass


class DraftGenerator(ABC):

    @abstractmethod
    async def generate_draft(self, prompt: str) -> str:
        """Generate a reply body. May raise."""
        pass
