from leads import map_typeform_payload, normalize_lead_webhook_payload


def _typeform_payload(**extra):
    payload = {
        "event_id": "evt-000001",
        "form_response": {
            "token": "tf-token-123",
            "answers": [
                {"type": "text", "text": " Ada Obi ", "field": {"id": "BO8x5fgg8RwC", "ref": "06ea7c11-8020-40ac-96c0-31a0f69e3036"}},
                {"type": "email", "email": "ada@example.com", "field": {"id": "pnostcMC0Mr7"}},
                {"type": "phone_number", "phone_number": "+2348000000000", "field": {"id": "vUeplXz7YLhp"}},
                {"type": "number", "number": 150000000, "field": {"ref": "d8ba6dd1-b292-45f9-92c0-f2b3251f90ac"}},
                {"type": "choice", "choice": {"label": "Lekki"}, "field": {"id": "IBIFQdG2L4Im"}},
                {"type": "choice", "choice": {"label": "Immediately"}, "field": {"id": "dngu5AG5UOVz"}},
                {"type": "choice", "choice": {"label": "Cash ready"}, "field": {"id": "c28I66aZgVW9"}},
                {"type": "choices", "choices": {"labels": ["Duplex", "Terrace"]}, "field": {"id": "hhKBfK5tA7yh"}},
                {"type": "long_text", "text": "Looking for a home", "field": {"id": "98mlxEIINyVc"}},
            ],
        },
    }
    payload.update(extra)
    return payload


def test_map_typeform_payload_reads_answers_by_type():
    mapped = map_typeform_payload(_typeform_payload())

    assert mapped == {
        "fullName": "Ada Obi",
        "email": "ada@example.com",
        "phone": "+2348000000000",
        "budget": 150000000,
        "locationPreference": "Lekki",
        "purchaseTimeline": "Immediately",
        "paymentReadiness": "Cash ready",
        "propertyType": "Duplex, Terrace",
        "message": "Looking for a home",
        "idempotencyKey": "tf-token-123",
    }


def test_map_typeform_payload_ignores_numeric_answer_for_text_field():
    payload = _typeform_payload()
    payload["form_response"]["answers"].append(
        {"type": "number", "number": 5, "field": {"ref": "06ea7c11-8020-40ac-96c0-31a0f69e3036"}}
    )
    assert "fullName" not in map_typeform_payload(payload)


def test_map_typeform_payload_without_answers():
    assert map_typeform_payload({"fullName": "x"}) == {}


def test_idempotency_key_falls_back_to_event_id():
    payload = _typeform_payload()
    del payload["form_response"]["token"]
    assert map_typeform_payload(payload)["idempotencyKey"] == "evt-000001"


def test_normalize_prefers_native_idempotency_key():
    normalized = normalize_lead_webhook_payload(
        _typeform_payload(idempotencyKey="native-key-1"),
        header_idempotency_key="header-key-1"
    )
    assert normalized["idempotencyKey"] == "native-key-1"
    assert normalized["fullName"] == "Ada Obi"


def test_normalize_typeform_overrides_native_fields():
    normalized = normalize_lead_webhook_payload(_typeform_payload(fullName="Someone Else"))
    assert normalized["fullName"] == "Ada Obi"
    assert normalized["idempotencyKey"] == "tf-token-123"


def test_normalize_native_payload_uses_header_key():
    normalized = normalize_lead_webhook_payload(
        {"fullName": "Ada", "email": "ada@example.com"},
        header_idempotency_key="header-key-1"
    )
    assert normalized == {
        "fullName": "Ada",
        "email": "ada@example.com",
        "idempotencyKey": "header-key-1",
    }


def test_normalize_non_dict_payload_keeps_only_header_key():
    assert normalize_lead_webhook_payload(None, "header-key-1") == {"idempotencyKey": "header-key-1"}
    assert normalize_lead_webhook_payload(["x"]) == {"idempotencyKey": None}
