"""
Pydantic schemas for API requests and responses.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone

from models.lead import DraftStatus, PipelineStatus, Tier


class CamelModel(BaseModel):
    """Accepts camelCase keys from webhook/UI clients as well as snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LeadWebhookRequest(CamelModel):
    """Normalized lead-capture submission."""
    idempotency_key: str = Field(..., min_length=8, description="Submission idempotency key")
    full_name: str = Field(..., min_length=1, max_length=255, description="Lead full name")
    email: EmailStr = Field(..., description="Lead email address")
    phone: str = Field(..., min_length=5, max_length=50, description="Lead phone number")
    budget: int = Field(..., gt=0, description="Budget in local currency")
    purchase_timeline: str = Field(..., min_length=1, description="Free-text purchase timeline")
    payment_readiness: str = Field(..., min_length=1, description="Free-text payment readiness")
    location_preference: str = Field(..., min_length=1, description="Free-text preferred location")
    property_type: str = Field(..., min_length=1, description="Free-text property type")
    message: str = Field(..., min_length=1, max_length=10000, description="Lead message")


class LeadScores(BaseModel):
    form_score: float
    interaction_score: float
    total_score: float
    tier: Tier


class LeadWebhookResponse(BaseModel):
    """Response for a processed (or replayed) webhook submission."""
    idempotent: bool
    message: Optional[str] = None
    lead_id: Optional[str] = None
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    scores: Optional[LeadScores] = None


class SendDraftRequest(CamelModel):
    """Agent approval of a pending draft."""
    draft_id: str = Field(..., min_length=1, description="Draft email record ID")
    thread_id: str = Field(..., min_length=5, description="Thread the reply must land in")
    body: str = Field(..., min_length=1, max_length=10000, description="Final (possibly edited) body")
    expected_status: DraftStatus = Field(
        default=DraftStatus.PENDING_APPROVAL,
        description="Status the caller believes the draft is in"
    )


class SendDraftBody(CamelModel):
    """Request body of the draft send endpoint; the draft ID comes from the path."""
    thread_id: str = Field(..., min_length=5)
    body: str = Field(..., min_length=1, max_length=10000)
    expected_status: DraftStatus = Field(default=DraftStatus.PENDING_APPROVAL)


class LeadStatusUpdate(CamelModel):
    """Manual move of a lead to another pipeline stage."""
    pipeline_status: PipelineStatus


class BulkLeadStatusUpdate(CamelModel):
    lead_ids: List[str] = Field(..., min_length=1, max_length=200)
    pipeline_status: PipelineStatus


class BulkUpdateFailure(BaseModel):
    lead_id: str
    reason: str


class BulkLeadStatusResponse(BaseModel):
    requested_count: int
    updated_count: int
    failed_count: int
    pipeline_status: PipelineStatus
    failures: List[BulkUpdateFailure]


class SendDraftResponse(BaseModel):
    draft_id: str
    lead_id: str
    thread_id: str
    message_id: str
    sent_at: datetime


class PollResponse(BaseModel):
    after_cursor: Optional[datetime]
    poll_completed_at: datetime
    summary: Dict[str, int]


class LeadInsightResponse(BaseModel):
    priority_score: int
    urgency: str
    next_action: str
    rationale: str
    sla_risk: bool
    stale_lead: bool
    hours_since_last_email: Optional[int]


class PortfolioInsightResponse(BaseModel):
    projected_viewings_30d: float
    high_priority_count: int
    sla_risk_count: int


class LeadDetailResponse(BaseModel):
    lead: Dict[str, Any]
    insight: LeadInsightResponse
    emails: List[Dict[str, Any]]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(default="healthy")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(default="1.0.0")
