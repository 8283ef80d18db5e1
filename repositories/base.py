"""
Asynchronous repository interfaces consumed by the lead and email pipelines.

Any method may fail with an I/O error; the pipelines decide whether to retry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.lead import (
    Lead, EmailRecord, LogRecord, DraftStatus, EmailDirection, PipelineStatus, Tier
)


class LeadsRepository(ABC):

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def create(
        self,
        id: str,
        full_name: str,
        email: str,
        form_score: float,
        interaction_score: float,
        total_score: float,
        tier: Tier,
        pipeline_status: PipelineStatus,
        phone: Optional[str] = None,
        budget: Optional[int] = None,
        thread_id: Optional[str] = None,
        last_email_sent_at: Optional[datetime] = None
    ) -> Lead:
        pass

    @abstractmethod
    async def update(self, lead_id: str, **patch: Any) -> Optional[Lead]:
        """Apply a partial update. Returns None when the lead does not exist."""
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[PipelineStatus] = None,
        min_score: Optional[float] = None,
        limit: int = 200
    ) -> List[Lead]:
        pass


class EmailsRepository(ABC):

    @abstractmethod
    async def get_by_id(self, email_id: str) -> Optional[EmailRecord]:
        pass

    @abstractmethod
    async def find_by_message_id(self, message_id: str) -> Optional[EmailRecord]:
        pass

    @abstractmethod
    async def count_inbound_by_lead_and_thread(self, lead_id: str, thread_id: str) -> int:
        pass

    @abstractmethod
    async def create(
        self,
        id: str,
        lead_id: str,
        thread_id: str,
        direction: EmailDirection,
        body: str,
        gmail_message_id: Optional[str] = None,
        subject: Optional[str] = None,
        draft_status: Optional[DraftStatus] = None,
        sent_at: Optional[datetime] = None
    ) -> EmailRecord:
        pass

    @abstractmethod
    async def update_draft_status(self, email_id: str, status: DraftStatus) -> Optional[EmailRecord]:
        pass

    @abstractmethod
    async def list_drafts(
        self,
        status: Optional[DraftStatus] = None,
        limit: int = 100
    ) -> List[EmailRecord]:
        pass

    @abstractmethod
    async def list_by_lead(self, lead_id: str) -> List[EmailRecord]:
        pass


class LogsRepository(ABC):

    @abstractmethod
    async def create(
        self,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LogRecord:
        pass

    @abstractmethod
    async def find_latest_by_message(self, message: str) -> Optional[LogRecord]:
        pass

    @abstractmethod
    async def list(
        self,
        level: Optional[str] = None,
        limit: int = 100
    ) -> List[LogRecord]:
        pass


@dataclass
class Repositories:
    """The three repositories a pipeline needs, passed around together."""
    leads: LeadsRepository
    emails: EmailsRepository
    logs: LogsRepository
