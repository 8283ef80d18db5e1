"""
SQLAlchemy-backed repositories.

Each call opens its own session, detaches the returned objects, and runs the
blocking work in a worker thread so the event loop is not held.
"""

import asyncio
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import create_engine, func
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from config import settings
from models import (
    Base, Lead, EmailRecord, LogRecord,
    DraftStatus, EmailDirection, LogLevel, PipelineStatus, Tier
)
from observability import trace_logger
from repositories.base import (
    LeadsRepository, EmailsRepository, LogsRepository, Repositories
)

T = TypeVar("T")

LEAD_UPDATABLE_FIELDS = {
    "full_name", "phone", "budget", "form_score", "interaction_score",
    "total_score", "tier", "pipeline_status", "thread_id", "last_email_sent_at",
}


class Database:
    """Engine and session factory shared by the repositories."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url
        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine: Engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False} if "sqlite" in self.database_url else {}
        )
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Create tables
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def get_session(self) -> Session:
        """Get database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            trace_logger.error_occurred(
                error_type="database_error",
                error_message=str(e)
            )
            raise
        finally:
            session.close()

    async def run(self, work: Callable[[Session], T]) -> T:
        """Run ``work`` inside a session on a worker thread."""
        def _run() -> T:
            with self.get_session() as session:
                result = work(session)
                session.flush()
                if isinstance(result, list):
                    for item in result:
                        session.expunge(item)
                elif result is not None and not isinstance(result, (int, float)):
                    session.expunge(result)
                return result

        return await asyncio.to_thread(_run)


class SQLLeadsRepository(LeadsRepository):

    def __init__(self, database: Database):
        self.db = database

    async def find_by_email(self, email: str) -> Optional[Lead]:
        normalized = email.strip().lower()
        return await self.db.run(
            lambda s: s.query(Lead).filter(func.lower(Lead.email) == normalized).first()
        )

    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        return await self.db.run(lambda s: s.get(Lead, lead_id))

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
        def _create(session: Session) -> Lead:
            lead = Lead(
                id=id,
                full_name=full_name,
                email=email.strip().lower(),
                phone=phone,
                budget=budget,
                form_score=form_score,
                interaction_score=interaction_score,
                total_score=total_score,
                tier=tier,
                pipeline_status=pipeline_status,
                thread_id=thread_id,
                last_email_sent_at=last_email_sent_at
            )
            session.add(lead)
            return lead

        lead = await self.db.run(_create)
        trace_logger.debug("Lead created", lead_id=lead.id)
        return lead

    async def update(self, lead_id: str, **patch: Any) -> Optional[Lead]:
        unknown = set(patch) - LEAD_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown lead fields: {sorted(unknown)}")

        def _update(session: Session) -> Optional[Lead]:
            lead = session.get(Lead, lead_id)
            if not lead:
                return None
            for key, value in patch.items():
                setattr(lead, key, value)
            lead.updated_at = datetime.now(timezone.utc)
            return lead

        lead = await self.db.run(_update)
        if lead:
            trace_logger.debug("Lead updated", lead_id=lead_id, fields=sorted(patch))
        return lead

    async def list(
        self,
        status: Optional[PipelineStatus] = None,
        min_score: Optional[float] = None,
        limit: int = 200
    ) -> List[Lead]:
        def _list(session: Session) -> List[Lead]:
            query = session.query(Lead)
            if status:
                query = query.filter(Lead.pipeline_status == status)
            if min_score is not None:
                query = query.filter(Lead.total_score >= min_score)
            return query.order_by(Lead.created_at.desc()).limit(limit).all()

        return await self.db.run(_list)


class SQLEmailsRepository(EmailsRepository):

    def __init__(self, database: Database):
        self.db = database

    async def get_by_id(self, email_id: str) -> Optional[EmailRecord]:
        return await self.db.run(lambda s: s.get(EmailRecord, email_id))

    async def find_by_message_id(self, message_id: str) -> Optional[EmailRecord]:
        return await self.db.run(
            lambda s: s.query(EmailRecord)
            .filter(EmailRecord.gmail_message_id == message_id)
            .first()
        )

    async def count_inbound_by_lead_and_thread(self, lead_id: str, thread_id: str) -> int:
        return await self.db.run(
            lambda s: s.query(EmailRecord)
            .filter(
                EmailRecord.lead_id == lead_id,
                EmailRecord.thread_id == thread_id,
                EmailRecord.direction == EmailDirection.INBOUND
            )
            .count()
        )

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
        def _create(session: Session) -> EmailRecord:
            record = EmailRecord(
                id=id,
                lead_id=lead_id,
                gmail_message_id=gmail_message_id,
                thread_id=thread_id,
                direction=direction,
                subject=subject,
                body=body,
                draft_status=draft_status,
                sent_at=sent_at
            )
            session.add(record)
            return record

        return await self.db.run(_create)

    async def update_draft_status(self, email_id: str, status: DraftStatus) -> Optional[EmailRecord]:
        def _update(session: Session) -> Optional[EmailRecord]:
            record = session.get(EmailRecord, email_id)
            if not record:
                return None
            if record.direction != EmailDirection.DRAFT:
                raise ValueError(f"Email record {email_id} is not a draft")
            record.draft_status = status
            record.updated_at = datetime.now(timezone.utc)
            return record

        return await self.db.run(_update)

    async def list_drafts(
        self,
        status: Optional[DraftStatus] = None,
        limit: int = 100
    ) -> List[EmailRecord]:
        def _list(session: Session) -> List[EmailRecord]:
            query = session.query(EmailRecord).filter(
                EmailRecord.direction == EmailDirection.DRAFT
            )
            if status:
                query = query.filter(EmailRecord.draft_status == status)
            return query.order_by(EmailRecord.created_at.desc()).limit(limit).all()

        return await self.db.run(_list)

    async def list_by_lead(self, lead_id: str) -> List[EmailRecord]:
        return await self.db.run(
            lambda s: s.query(EmailRecord)
            .filter(EmailRecord.lead_id == lead_id)
            .order_by(EmailRecord.created_at)
            .all()
        )


class SQLLogsRepository(LogsRepository):

    def __init__(self, database: Database):
        self.db = database

    async def create(
        self,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> LogRecord:
        def _create(session: Session) -> LogRecord:
            record = LogRecord(
                id=str(uuid.uuid4()),
                level=LogLevel(level),
                message=message,
                event_metadata=_json_safe(metadata or {}),
                created_at=datetime.now(timezone.utc)
            )
            session.add(record)
            return record

        return await self.db.run(_create)

    async def find_latest_by_message(self, message: str) -> Optional[LogRecord]:
        return await self.db.run(
            lambda s: s.query(LogRecord)
            .filter(LogRecord.message == message)
            .order_by(LogRecord.created_at.desc())
            .first()
        )

    async def list(
        self,
        level: Optional[str] = None,
        limit: int = 100
    ) -> List[LogRecord]:
        def _list(session: Session) -> List[LogRecord]:
            query = session.query(LogRecord)
            if level:
                query = query.filter(LogRecord.level == LogLevel(level))
            return query.order_by(LogRecord.created_at.desc()).limit(limit).all()

        return await self.db.run(_list)


def _json_safe(value: Any) -> Any:
    """Convert enums and datetimes so metadata can be stored as JSON."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def create_repositories(database_url: Optional[str] = None) -> Repositories:
    """Build SQL repositories sharing one engine."""
    database = Database(database_url)
    return Repositories(
        leads=SQLLeadsRepository(database),
        emails=SQLEmailsRepository(database),
        logs=SQLLogsRepository(database)
    )
