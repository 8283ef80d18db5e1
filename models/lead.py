"""
SQLAlchemy models for the CRM store.
Represents leads, their email conversation records, and operational logs.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, Enum
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Tier(str, PyEnum):
    """Coarse lead-quality bucket derived from total score."""
    HOT = "Hot"
    WARM = "Warm"
    COLD = "Cold"


class PipelineStatus(str, PyEnum):
    """Conversation stage of a lead."""
    NEW = "New"
    CONTACTED = "Contacted"
    INTERESTED = "Interested"
    QUESTION = "Question"
    OBJECTION = "Objection"
    UNQUALIFIED = "Unqualified"
    CLOSED = "Closed"


class EmailDirection(str, PyEnum):
    """Email record direction."""
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    DRAFT = "Draft"


class DraftStatus(str, PyEnum):
    """Approval state of a draft reply."""
    PENDING_APPROVAL = "PendingApproval"
    SENT = "Sent"
    NEEDS_REVIEW = "NeedsReview"


class LogLevel(str, PyEnum):
    """Level of a persisted log record."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Lead(Base):
    """Lead model representing a prospective buyer."""

    __tablename__ = "leads"

    id = Column(String(36), primary_key=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(50))
    budget = Column(Integer)

    # Scoring
    form_score = Column(Float, default=0.0, nullable=False)
    interaction_score = Column(Float, default=0.0, nullable=False)
    total_score = Column(Float, default=0.0, nullable=False)
    tier = Column(Enum(Tier), default=Tier.COLD, nullable=False)

    pipeline_status = Column(
        Enum(PipelineStatus),
        default=PipelineStatus.NEW,
        nullable=False,
        index=True
    )

    # The single conversation thread bound to this lead
    thread_id = Column(String(255))
    last_email_sent_at = Column(DateTime(timezone=True))

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    # Relationships
    emails = relationship(
        "EmailRecord",
        back_populates="lead",
        order_by="EmailRecord.created_at"
    )

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "budget": self.budget,
            "form_score": self.form_score,
            "interaction_score": self.interaction_score,
            "total_score": self.total_score,
            "tier": self.tier.value if self.tier else None,
            "pipeline_status": self.pipeline_status.value if self.pipeline_status else None,
            "thread_id": self.thread_id,
            "last_email_sent_at": _iso(self.last_email_sent_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class EmailRecord(Base):
    """Inbound, outbound or draft email belonging to a lead."""

    __tablename__ = "emails"

    id = Column(String(36), primary_key=True)
    lead_id = Column(String(36), ForeignKey("leads.id"), nullable=False, index=True)
    gmail_message_id = Column(String(255), index=True)
    thread_id = Column(String(255), nullable=False, index=True)

    direction = Column(Enum(EmailDirection), nullable=False)
    subject = Column(String(998))
    body = Column(Text, nullable=False, default="")

    # Only meaningful when direction is Draft
    draft_status = Column(Enum(DraftStatus))
    sent_at = Column(DateTime(timezone=True))

    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
        index=True
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    # Relationships
    lead = relationship("Lead", back_populates="emails")

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "gmail_message_id": self.gmail_message_id,
            "thread_id": self.thread_id,
            "direction": self.direction.value if self.direction else None,
            "subject": self.subject,
            "body": self.body,
            "draft_status": self.draft_status.value if self.draft_status else None,
            "sent_at": _iso(self.sent_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class LogRecord(Base):
    """Append-only operational event. Also serves as the inbox poll cursor."""

    __tablename__ = "logs"

    id = Column(String(36), primary_key=True)
    level = Column(Enum(LogLevel), nullable=False, default=LogLevel.INFO)
    message = Column(String(255), nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, default=dict)

    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
        index=True
    )

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "level": self.level.value if self.level else None,
            "message": self.message,
            "metadata": self.event_metadata,
            "created_at": _iso(self.created_at),
        }
