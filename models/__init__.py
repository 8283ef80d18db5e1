"""Data models and schemas."""

from models.lead import (
    Base, Lead, EmailRecord, LogRecord,
    Tier, PipelineStatus, EmailDirection, DraftStatus, LogLevel
)
from models.schemas import (
    LeadWebhookRequest, LeadWebhookResponse, LeadScores,
    SendDraftRequest, SendDraftBody, SendDraftResponse, PollResponse,
    LeadStatusUpdate, BulkLeadStatusUpdate, BulkUpdateFailure, BulkLeadStatusResponse,
    LeadInsightResponse, PortfolioInsightResponse,
    LeadDetailResponse, HealthResponse
)

__all__ = [
    "Base", "Lead", "EmailRecord", "LogRecord",
    "Tier", "PipelineStatus", "EmailDirection", "DraftStatus", "LogLevel",
    "LeadWebhookRequest", "LeadWebhookResponse", "LeadScores",
    "SendDraftRequest", "SendDraftBody", "SendDraftResponse", "PollResponse",
    "LeadStatusUpdate", "BulkLeadStatusUpdate", "BulkUpdateFailure", "BulkLeadStatusResponse",
    "LeadInsightResponse", "PortfolioInsightResponse",
    "LeadDetailResponse", "HealthResponse"
]
