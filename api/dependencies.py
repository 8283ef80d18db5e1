"""
Process-wide collaborators handed to the routes through FastAPI ``Depends``.
"""

from functools import lru_cache

from fastapi import Depends

from emails import DraftApprovalService
from integrations import GmailClient, LLMDraftGenerator
from integrations.base import DraftGenerator, EmailSender, InboundMessageSource
from leads import InMemoryDedupStore, LeadIntakePipeline
from leads.idempotency import DedupStore
from repositories import Repositories, create_repositories


@lru_cache(maxsize=None)
def get_repositories() -> Repositories:
    return create_repositories()


@lru_cache(maxsize=None)
def get_gmail_client() -> GmailClient:
    return GmailClient()


def get_email_sender() -> EmailSender:
    return get_gmail_client()


def get_message_source() -> InboundMessageSource:
    return get_gmail_client()


@lru_cache(maxsize=None)
def get_draft_generator() -> DraftGenerator:
    return LLMDraftGenerator()


@lru_cache(maxsize=None)
def get_dedup_store() -> DedupStore:
    # single-instance only; keys are lost on restart
    return InMemoryDedupStore()


def get_intake_pipeline(
    repositories: Repositories = Depends(get_repositories),
    email_sender: EmailSender = Depends(get_email_sender),
    dedup_store: DedupStore = Depends(get_dedup_store)
) -> LeadIntakePipeline:
    return LeadIntakePipeline(repositories, email_sender, dedup_store)


def get_draft_approval_service(
    repositories: Repositories = Depends(get_repositories),
    email_sender: EmailSender = Depends(get_email_sender)
) -> DraftApprovalService:
    return DraftApprovalService(repositories, email_sender)
