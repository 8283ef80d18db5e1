"""Lead intake: payload normalization, dedupe, mapping, insights."""

from leads.idempotency import DedupStore, InMemoryDedupStore
from leads.insights import (
    LeadInsight, PortfolioInsight, Urgency, build_lead_insight, build_portfolio_insight
)
from leads.intake import IntakeResult, LeadIntakePipeline, parse_webhook_payload
from leads.mapping import (
    map_location_preference, map_payment_readiness,
    map_property_type_specificity, map_purchase_timeline
)
from leads.typeform import map_typeform_payload, normalize_lead_webhook_payload

__all__ = [
    "DedupStore", "InMemoryDedupStore",
    "LeadInsight", "PortfolioInsight", "Urgency", "build_lead_insight", "build_portfolio_insight",
    "IntakeResult", "LeadIntakePipeline", "parse_webhook_payload",
    "map_location_preference", "map_payment_readiness",
    "map_property_type_specificity", "map_purchase_timeline",
    "map_typeform_payload", "normalize_lead_webhook_payload"
]
