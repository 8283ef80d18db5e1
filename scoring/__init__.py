"""Lead scoring engine."""

from scoring.engine import (
    ScoringConfig, FormScoreInput, InteractionScoreInput,
    PurchaseTimeline, PaymentReadiness, LocationMatch, PropertyTypeSpecificity,
    normalize_scoring_config, compute_budget_score, compute_timeline_score,
    compute_payment_score, compute_location_score, compute_property_type_score,
    compute_form_score, compute_reply_speed_score, compute_intent_score,
    compute_length_score, compute_follow_up_score, compute_interaction_score,
    compute_total_score, compute_tier, round_half_up, round_one_decimal, as_utc,
    clamp, count_words
)

__all__ = [
    "ScoringConfig", "FormScoreInput", "InteractionScoreInput",
    "PurchaseTimeline", "PaymentReadiness", "LocationMatch", "PropertyTypeSpecificity",
    "normalize_scoring_config", "compute_budget_score", "compute_timeline_score",
    "compute_payment_score", "compute_location_score", "compute_property_type_score",
    "compute_form_score", "compute_reply_speed_score", "compute_intent_score",
    "compute_length_score", "compute_follow_up_score", "compute_interaction_score",
    "compute_total_score", "compute_tier", "round_half_up", "round_one_decimal", "as_utc",
    "clamp", "count_words"
]
