"""
API routes: lead webhook, lead triage and status updates, inbox poll, draft approval, logs.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response

from api.dependencies import (
    get_draft_approval_service, get_draft_generator, get_intake_pipeline,
    get_message_source, get_repositories
)
from core import CRMError, ValidationError
from emails import DraftApprovalService, run_email_poll
from integrations.base import DraftGenerator, InboundMessageSource
from leads import LeadIntakePipeline, build_lead_insight, build_portfolio_insight
from models import (
    DraftStatus, LogLevel, PipelineStatus,
    BulkLeadStatusResponse, BulkLeadStatusUpdate, BulkUpdateFailure,
    HealthResponse, LeadDetailResponse, LeadScores, LeadStatusUpdate, LeadWebhookResponse,
    PollResponse, PortfolioInsightResponse, SendDraftBody, SendDraftRequest,
    SendDraftResponse
)
from observability import record_event, trace_logger
from repositories import Repositories


router = APIRouter()

DUPLICATE_SUBMISSION_MESSAGE = "Duplicate submission ignored by idempotency key"


def _to_http_error(error: CRMError) -> HTTPException:
    detail: Any = error.message
    if isinstance(error, ValidationError) and error.errors:
        detail = {"message": error.message, "errors": error.errors}
    return HTTPException(status_code=error.status_code, detail=detail)


def _internal_error(error_type: str, error: Exception, message: str, **context) -> HTTPException:
    trace_logger.error_occurred(
        error_type=error_type,
        error_message=str(error),
        context=context
    )
    return HTTPException(status_code=500, detail=message)


@router.post("/api/v1/leads/webhook", response_model=LeadWebhookResponse, status_code=201)
async def lead_webhook(
    request: Request,
    response: Response,
    x_idempotency_key: Optional[str] = Header(default=None),
    pipeline: LeadIntakePipeline = Depends(get_intake_pipeline)
) -> LeadWebhookResponse:
    """
    Lead-capture webhook (native JSON or Typeform).

    Replays of an already-processed submission return 200 with ``idempotent``
    set; new leads return 201.
    """
    try:
        raw_payload = await request.json()
    except ValueError:
        raw_payload = None

    try:
        result = await pipeline.process_raw(raw_payload, x_idempotency_key)
    except CRMError as e:
        raise _to_http_error(e)
    except Exception as e:
        raise _internal_error("webhook_error", e, "Failed to process webhook")

    if result.idempotent:
        response.status_code = 200
        return LeadWebhookResponse(idempotent=True, message=DUPLICATE_SUBMISSION_MESSAGE)

    return LeadWebhookResponse(
        idempotent=False,
        lead_id=result.lead_id,
        message_id=result.message_id,
        thread_id=result.thread_id,
        scores=LeadScores(
            form_score=result.form_score,
            interaction_score=result.interaction_score,
            total_score=result.total_score,
            tier=result.tier
        )
    )


@router.get("/api/v1/leads")
async def list_leads(
    status: Optional[PipelineStatus] = Query(default=None),
    min_score: Optional[float] = Query(default=None, ge=0, le=100, alias="minScore"),
    limit: int = Query(default=200, ge=1, le=500),
    repositories: Repositories = Depends(get_repositories)
) -> Dict[str, Any]:
    """Leads with their triage insight, highest priority first."""
    try:
        leads = await repositories.leads.list(status=status, min_score=min_score, limit=limit)
    except Exception as e:
        raise _internal_error("lead_list_error", e, "Failed to fetch leads")

    items = [
        {"lead": lead.to_dict(), "insight": build_lead_insight(lead).to_dict()}
        for lead in leads
    ]
    items.sort(key=lambda item: item["insight"]["priority_score"], reverse=True)
    return {"count": len(items), "leads": items}


@router.get("/api/v1/leads/insights", response_model=PortfolioInsightResponse)
async def lead_insights(
    repositories: Repositories = Depends(get_repositories)
) -> PortfolioInsightResponse:
    try:
        leads = await repositories.leads.list()
    except Exception as e:
        raise _internal_error("lead_insights_error", e, "Failed to build lead insights")

    return PortfolioInsightResponse(**build_portfolio_insight(leads).to_dict())


@router.get("/api/v1/leads/{lead_id}", response_model=LeadDetailResponse)
async def get_lead(
    lead_id: str,
    repositories: Repositories = Depends(get_repositories)
) -> LeadDetailResponse:
    """Lead detail with insight and full email history."""
    try:
        lead = await repositories.leads.get_by_id(lead_id)
        if lead is None:
            raise HTTPException(status_code=404, detail="Lead not found")
        history = await repositories.emails.list_by_lead(lead.id)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("lead_detail_error", e, "Failed to fetch lead detail", lead_id=lead_id)

    return LeadDetailResponse(
        lead=lead.to_dict(),
        insight=build_lead_insight(lead).to_dict(),
        emails=[email.to_dict() for email in history]
    )


@router.patch("/api/v1/leads/{lead_id}")
async def update_lead_status(
    lead_id: str,
    body: LeadStatusUpdate,
    repositories: Repositories = Depends(get_repositories)
) -> Dict[str, Any]:
    """Move a lead to another pipeline stage (e.g. Closed)."""
    try:
        existing = await repositories.leads.get_by_id(lead_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Lead not found")
        updated = await repositories.leads.update(lead_id, pipeline_status=body.pipeline_status)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("lead_update_error", e, "Failed to update lead", lead_id=lead_id)

    await record_event(
        repositories.logs, "info", "lead_status_updated",
        lead_id=lead_id,
        previous_status=existing.pipeline_status.value,
        pipeline_status=body.pipeline_status.value
    )
    return {"lead": updated.to_dict() if updated else None}


@router.post("/api/v1/leads/bulk-update", response_model=BulkLeadStatusResponse)
async def bulk_update_lead_status(
    body: BulkLeadStatusUpdate,
    response: Response,
    repositories: Repositories = Depends(get_repositories)
) -> BulkLeadStatusResponse:
    """
    Set one pipeline status on many leads.

    Each lead is updated independently. Returns 207 when any of them failed.
    """
    lead_ids = list(dict.fromkeys(lead_id.strip() for lead_id in body.lead_ids if lead_id.strip()))
    if not lead_ids:
        raise HTTPException(status_code=400, detail="No valid lead IDs provided")

    updated_count = 0
    failures: List[BulkUpdateFailure] = []
    for lead_id in lead_ids:
        try:
            if await repositories.leads.get_by_id(lead_id) is None:
                failures.append(BulkUpdateFailure(lead_id=lead_id, reason="Lead not found"))
                continue
            await repositories.leads.update(lead_id, pipeline_status=body.pipeline_status)
            updated_count += 1
        except Exception as e:
            trace_logger.error_occurred(
                error_type="lead_update_error",
                error_message=str(e),
                context={"lead_id": lead_id}
            )
            failures.append(BulkUpdateFailure(lead_id=lead_id, reason=str(e) or "Unknown update error"))

    await record_event(
        repositories.logs, "info", "lead_status_bulk_updated",
        pipeline_status=body.pipeline_status.value,
        updated_count=updated_count,
        failed_count=len(failures)
    )

    if failures:
        response.status_code = 207
    return BulkLeadStatusResponse(
        requested_count=len(lead_ids),
        updated_count=updated_count,
        failed_count=len(failures),
        pipeline_status=body.pipeline_status,
        failures=failures
    )


@router.post("/api/v1/emails/poll", response_model=PollResponse)
async def poll_inbox(
    repositories: Repositories = Depends(get_repositories),
    message_source: InboundMessageSource = Depends(get_message_source),
    draft_generator: DraftGenerator = Depends(get_draft_generator)
) -> PollResponse:
    """Run one inbox poll from the stored cursor."""
    try:
        after, completed_at, summary = await run_email_poll(
            repositories, message_source, draft_generator
        )
    except Exception as e:
        raise _internal_error("email_poll_error", e, f"Failed to run email poll: {e}")

    return PollResponse(
        after_cursor=after,
        poll_completed_at=completed_at,
        summary=summary.to_dict()
    )


@router.get("/api/v1/emails/drafts")
async def list_drafts(
    status: Optional[DraftStatus] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=200),
    repositories: Repositories = Depends(get_repositories)
) -> Dict[str, Any]:
    """Draft queue, each draft with a short summary of its lead."""
    try:
        drafts = await repositories.emails.list_drafts(status=status, limit=limit)
        items = []
        for draft in drafts:
            lead = await repositories.leads.get_by_id(draft.lead_id)
            items.append({
                "draft": draft.to_dict(),
                "lead": {
                    "id": lead.id,
                    "full_name": lead.full_name,
                    "email": lead.email,
                    "tier": lead.tier.value,
                    "pipeline_status": lead.pipeline_status.value,
                } if lead else None
            })
    except Exception as e:
        raise _internal_error("draft_list_error", e, "Failed to fetch drafts")

    return {"count": len(items), "items": items}


@router.post("/api/v1/emails/{draft_id}/send", response_model=SendDraftResponse)
async def send_draft(
    draft_id: str,
    body: SendDraftBody,
    service: DraftApprovalService = Depends(get_draft_approval_service)
) -> SendDraftResponse:
    """Send an approved (possibly edited) draft into the lead's thread."""
    request = SendDraftRequest(
        draft_id=draft_id,
        thread_id=body.thread_id,
        body=body.body,
        expected_status=body.expected_status
    )
    try:
        result = await service.send_approved_draft(request)
    except CRMError as e:
        raise _to_http_error(e)
    except Exception as e:
        raise _internal_error(
            "draft_send_error", e, "Failed to send approved draft", draft_id=draft_id
        )

    return SendDraftResponse(
        draft_id=result.draft_id,
        lead_id=result.lead_id,
        thread_id=result.thread_id,
        message_id=result.sent_message_id,
        sent_at=result.sent_at
    )


@router.get("/api/v1/logs")
async def list_logs(
    level: Optional[LogLevel] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    repositories: Repositories = Depends(get_repositories)
) -> Dict[str, Any]:
    """Most recent pipeline log records, newest first."""
    try:
        entries = await repositories.logs.list(
            level=level.value if level else None,
            limit=limit
        )
    except Exception as e:
        raise _internal_error("log_list_error", e, "Failed to fetch logs")

    return {"count": len(entries), "logs": [entry.to_dict() for entry in entries]}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version="1.0.0"
    )
