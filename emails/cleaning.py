"""
Reply-body cleanup and keyword-based pipeline status derivation.
"""

import re
from typing import List

from models import PipelineStatus
from scoring import compute_intent_score

UNQUALIFIED_KEYWORDS = (
    "not interested",
    "cannot afford",
    "can't afford",
    "outside budget",
    "stop contacting",
    "not proceeding",
)
OBJECTION_KEYWORDS = (
    "too expensive",
    "price is high",
    "price too high",
    "not sure",
    "concern",
    "objection",
)
QUESTION_KEYWORDS = ("how", "what", "when", "where", "which", "can you", "could you")

INTERESTED_INTENT_THRESHOLD = 25

_QUOTE_HEADER = re.compile(r"^on .*wrote:$", re.IGNORECASE)
_FORWARD_HEADER = re.compile(r"^from:\s", re.IGNORECASE)
_MOBILE_SIGNATURE = re.compile(r"^sent from my", re.IGNORECASE)


def _starts_quoted_content(line: str) -> bool:
    return (
        line.startswith(">")
        or bool(_QUOTE_HEADER.match(line))
        or bool(_FORWARD_HEADER.match(line))
        or bool(_MOBILE_SIGNATURE.match(line))
        or line == "--"
    )


def clean_inbound_body(body: str) -> str:
    """
    Keep only the new text of a reply.

    Everything from the first quoted line, reply header, forward header,
    mobile signature or ``--`` separator onwards is dropped.
    """
    if not body:
        return ""

    kept: List[str] = []
    for line in body.replace("\r\n", "\n").split("\n"):
        line = line.rstrip()
        stripped = line.strip()
        if not stripped:
            kept.append("")
            continue
        if _starts_quoted_content(stripped):
            break
        kept.append(line)

    return "\n".join(kept).strip()


def derive_pipeline_status(message_body: str, current_status: PipelineStatus) -> PipelineStatus:
    """
    Status implied by a buyer reply.

    Checked in order: unqualified, objection, interested, question. The first
    match wins; no match keeps the current status.
    """
    content = (message_body or "").lower().strip()
    if not content:
        return current_status

    if any(keyword in content for keyword in UNQUALIFIED_KEYWORDS):
        return PipelineStatus.UNQUALIFIED
    if any(keyword in content for keyword in OBJECTION_KEYWORDS):
        return PipelineStatus.OBJECTION
    if compute_intent_score(content) >= INTERESTED_INTENT_THRESHOLD:
        return PipelineStatus.INTERESTED
    if "?" in content or any(keyword in content for keyword in QUESTION_KEYWORDS):
        return PipelineStatus.QUESTION
    return current_status
