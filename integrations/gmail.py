"""
Gmail API client: sends outreach/replies and lists inbound messages.
"""

import asyncio
import base64
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Any, Dict, List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import settings
from integrations.base import EmailSender, InboundMessage, InboundMessageSource, SentMessage
from observability import trace_logger

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]
TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_LOOKBACK_QUERY = "newer_than:30d"


def _decode_base64(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def extract_body(payload: Dict[str, Any]) -> str:
    """Plain-text body of a Gmail message payload."""
    if not payload:
        return ""

    parts = payload.get("parts") or []
    data = (payload.get("body") or {}).get("data")
    if data and not parts:
        return _decode_base64(data).decode("utf-8", errors="ignore")

    for part in parts:
        part_data = (part.get("body") or {}).get("data")
        if part.get("mimeType") == "text/plain" and part_data:
            return _decode_base64(part_data).decode("utf-8", errors="ignore")

    for part in parts:
        part_data = (part.get("body") or {}).get("data")
        if part_data:
            return _decode_base64(part_data).decode("utf-8", errors="ignore")

    return ""


def parse_headers(headers: List[Dict[str, Any]]) -> Dict[str, str]:
    parsed = {}
    for header in headers or []:
        name = header.get("name", "").lower()
        parsed[name] = header.get("value", "")
    return parsed


def parse_sender_email(from_header: str) -> str:
    _, address = parseaddr(from_header or "")
    return (address or from_header or "").strip().lower()


def resolve_received_at(internal_date: Optional[str]) -> datetime:
    """Gmail internalDate is epoch milliseconds."""
    try:
        return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)


def build_raw_email(to: str, subject: str, body: str) -> str:
    message = MIMEText(body, "plain", "utf-8")
    message["to"] = to
    message["subject"] = subject
    return base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")


def build_inbound_query(after: Optional[datetime]) -> str:
    parts = ["in:inbox", "-from:me"]
    if after:
        parts.append(f"after:{int(after.timestamp())}")
    else:
        parts.append(DEFAULT_LOOKBACK_QUERY)
    return " ".join(parts)


def to_inbound_message(message: Dict[str, Any]) -> Optional[InboundMessage]:
    """Convert a ``users.messages.get(format=full)`` response."""
    message_id = message.get("id")
    thread_id = message.get("threadId")
    if not message_id or not thread_id:
        return None

    payload = message.get("payload") or {}
    headers = parse_headers(payload.get("headers", []))
    from_email = parse_sender_email(headers.get("from", ""))
    if not from_email:
        return None

    return InboundMessage(
        message_id=message_id,
        thread_id=thread_id,
        from_email=from_email,
        subject=headers.get("subject") or None,
        body=extract_body(payload) or message.get("snippet", ""),
        received_at=resolve_received_at(message.get("internalDate"))
    )


class GmailClient(EmailSender, InboundMessageSource):
    """Gmail account of the agent, authorized with a stored refresh token."""

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    def _get_credentials(self) -> Credentials:
        if self._credentials is None:
            settings.validate_gmail_credentials()
            self._credentials = Credentials(
                token=None,
                refresh_token=settings.google_refresh_token,
                token_uri=TOKEN_URI,
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                scopes=SCOPES,
            )
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials

    def _service(self):
        return build("gmail", "v1", credentials=self._get_credentials(), cache_discovery=False)

    async def send_reply(
        self,
        to: str,
        subject: str,
        body: str,
        thread_id: Optional[str] = None
    ) -> SentMessage:
        def _send() -> Dict[str, Any]:
            request_body: Dict[str, Any] = {"raw": build_raw_email(to, subject, body)}
            if thread_id:
                request_body["threadId"] = thread_id
            try:
                return (
                    self._service()
                    .users()
                    .messages()
                    .send(userId="me", body=request_body)
                    .execute()
                )
            except HttpError as exc:
                raise RuntimeError(f"Gmail send failed: {exc}") from exc

        result = await asyncio.to_thread(_send)
        message_id = result.get("id")
        sent_thread_id = result.get("threadId")
        if not message_id or not sent_thread_id:
            raise RuntimeError("Gmail API response missing message or thread id")
        return SentMessage(message_id=message_id, thread_id=sent_thread_id)

    async def fetch_inbound_messages(self, after: Optional[datetime]) -> List[InboundMessage]:
        query = build_inbound_query(after)

        def _list() -> List[InboundMessage]:
            service = self._service()
            try:
                response = (
                    service.users()
                    .messages()
                    .list(
                        userId="me",
                        q=query,
                        maxResults=settings.gmail_poll_max_results,
                        includeSpamTrash=False
                    )
                    .execute()
                )
            except HttpError as exc:
                raise RuntimeError(f"Gmail list failed: {exc}") from exc

            messages = []
            for ref in response.get("messages", []):
                if not ref.get("id"):
                    continue
                try:
                    details = (
                        service.users()
                        .messages()
                        .get(userId="me", id=ref["id"], format="full")
                        .execute()
                    )
                except HttpError as exc:
                    trace_logger.warning(
                        "Skipping unreadable Gmail message",
                        gmail_message_id=ref["id"],
                        error=str(exc)
                    )
                    continue
                inbound = to_inbound_message(details)
                if inbound:
                    messages.append(inbound)
            return messages

        return await asyncio.to_thread(_list)
