"""External capabilities: Gmail and LLM-backed draft generation."""

from integrations.base import (
    EmailSender, InboundMessageSource, DraftGenerator, InboundMessage, SentMessage
)
from integrations.llm_provider import LLMProvider, LLMDraftGenerator, get_llm_provider
from integrations.gmail import GmailClient

__all__ = [
    "EmailSender", "InboundMessageSource", "DraftGenerator", "InboundMessage", "SentMessage",
    "LLMProvider", "LLMDraftGenerator", "get_llm_provider", "GmailClient"
]
