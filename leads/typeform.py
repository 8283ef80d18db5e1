"""
Normalization of lead-capture webhook payloads.

Accepts the native JSON shape (camelCase keys) or a Typeform ``form_response``
and produces a flat dict ready for ``LeadWebhookRequest`` validation.
"""

import math
from typing import Any, Dict, Optional, Union

AnswerValue = Union[str, int, float]

# Typeform answers are looked up by field ref first, then by field id.
TYPEFORM_FIELDS = {
    "fullName": {
        "refs": ("06ea7c11-8020-40ac-96c0-31a0f69e3036",),
        "ids": ("BO8x5fgg8RwC",),
    },
    "email": {
        "refs": ("6af29353-48e7-46f3-b851-d45406107c28",),
        "ids": ("pnostcMC0Mr7",),
    },
    "phone": {
        "refs": ("d19f6562-f02c-479c-8c12-1a496d2f4e58",),
        "ids": ("vUeplXz7YLhp",),
    },
    "budget": {
        "refs": ("d8ba6dd1-b292-45f9-92c0-f2b3251f90ac",),
        "ids": ("qFSeII9JilJ6",),
    },
    "locationPreference": {
        "refs": ("20454b3e-3f39-4e7b-b1ca-d35a12715f92",),
        "ids": ("IBIFQdG2L4Im",),
    },
    "purchaseTimeline": {
        "refs": ("4215cc7f-de11-4c90-890a-c3f37acb2874",),
        "ids": ("dngu5AG5UOVz",),
    },
    "paymentReadiness": {
        "refs": ("6d3e06f9-4dbe-4f4a-89ca-747283dfc321",),
        "ids": ("c28I66aZgVW9",),
    },
    "propertyType": {
        "refs": ("cecb112a-93f1-4fc1-9e9e-052c24699f43",),
        "ids": ("hhKBfK5tA7yh",),
    },
    "message": {
        "refs": ("6693957e-ce20-48b5-819e-e9253c01933b",),
        "ids": ("98mlxEIINyVc",),
    },
}

NUMERIC_FIELDS = {"budget"}


def _to_string(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and math.isfinite(value):
        return str(value)
    return None


def _to_number(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        if math.isfinite(parsed):
            return int(parsed) if parsed.is_integer() else parsed
    return None


def _extract_answer_value(answer: Dict[str, Any]) -> Optional[AnswerValue]:
    """Read the value of one Typeform answer according to its type."""
    answer_type = answer.get("type")
    choice = answer.get("choice") if isinstance(answer.get("choice"), dict) else {}

    if answer_type == "email":
        return _to_string(answer.get("email"))
    if answer_type == "phone_number":
        return _to_string(answer.get("phone_number"))
    if answer_type == "number":
        return _to_number(answer.get("number"))
    if answer_type in ("short_text", "long_text", "text"):
        return _to_string(answer.get("text"))
    if answer_type in ("choice", "multiple_choice"):
        return _to_string(choice.get("label"))
    if answer_type == "choices":
        choices = answer.get("choices") if isinstance(answer.get("choices"), dict) else {}
        labels = choices.get("labels") or []
        if not isinstance(labels, list):
            return None
        safe_labels = [label for label in labels if isinstance(label, str) and label.strip()]
        return ", ".join(safe_labels) if safe_labels else None

    for candidate in (
        _to_string(answer.get("text")),
        _to_string(answer.get("email")),
        _to_string(answer.get("phone_number")),
        _to_number(answer.get("number")),
        _to_string(choice.get("label")),
    ):
        if candidate is not None:
            return candidate
    return None


def map_typeform_payload(raw_payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract lead fields and an idempotency key from a Typeform webhook."""
    form_response = raw_payload.get("form_response")
    if not isinstance(form_response, dict):
        form_response = {}
    answers = form_response.get("answers")
    if not isinstance(answers, list):
        return {}

    by_ref: Dict[str, AnswerValue] = {}
    by_id: Dict[str, AnswerValue] = {}

    for answer in answers:
        if not isinstance(answer, dict):
            continue
        value = _extract_answer_value(answer)
        if value is None:
            continue
        field = answer.get("field") if isinstance(answer.get("field"), dict) else {}
        if field.get("ref"):
            by_ref[field["ref"]] = value
        if field.get("id"):
            by_id[field["id"]] = value

    mapped: Dict[str, Any] = {}
    for key, lookup in TYPEFORM_FIELDS.items():
        value = next(
            (by_ref[ref] for ref in lookup["refs"] if ref in by_ref),
            next((by_id[i] for i in lookup["ids"] if i in by_id), None)
        )
        if value is None:
            continue
        # a numeric answer only counts for numeric fields and vice versa
        if key in NUMERIC_FIELDS:
            if isinstance(value, (int, float)):
                mapped[key] = value
        elif isinstance(value, str):
            mapped[key] = value

    idempotency_key = (
        _to_string(form_response.get("token"))
        or _to_string(raw_payload.get("response_id"))
        or _to_string(raw_payload.get("event_id"))
    )
    if idempotency_key:
        mapped["idempotencyKey"] = idempotency_key

    return mapped


def normalize_lead_webhook_payload(
    raw_payload: Any,
    header_idempotency_key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Merge a native or Typeform payload into a single flat dict.

    Typeform values override native keys. The idempotency key is taken from
    the native payload, then the Typeform response, then the request header.
    """
    if not isinstance(raw_payload, dict):
        return {"idempotencyKey": header_idempotency_key}

    typeform_mapped = map_typeform_payload(raw_payload)

    normalized = dict(raw_payload)
    for key, value in typeform_mapped.items():
        if value is not None:
            normalized[key] = value

    normalized["idempotencyKey"] = (
        _to_string(raw_payload.get("idempotencyKey"))
        or _to_string(typeform_mapped.get("idempotencyKey"))
        or header_idempotency_key
    )

    return normalized
