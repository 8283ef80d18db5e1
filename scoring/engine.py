"""
Deterministic lead scoring.

Form score is computed once from the lead-capture form. Interaction score is
recomputed on every inbound reply. Total score blends the two and drives the
tier. All functions are pure.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from models.lead import Tier


HIGH_INTENT_KEYWORDS = (
    "schedule viewing",
    "book viewing",
    "ready to buy",
    "cash ready",
    "when can we meet",
)
MEDIUM_INTENT_KEYWORDS = ("interested", "tell me more", "available", "price negotiable")
LOW_INTENT_KEYWORDS = ("still considering", "maybe later", "just checking")

FORM_WEIGHT = 0.6
INTERACTION_WEIGHT = 0.4
HOT_THRESHOLD = 75
WARM_THRESHOLD = 50


class PurchaseTimeline(str, Enum):
    IMMEDIATE = "immediate"
    ONE_TO_THREE_MONTHS = "one_to_three_months"
    THREE_TO_SIX_MONTHS = "three_to_six_months"
    SIX_PLUS_MONTHS = "six_plus_months"
    BROWSING = "browsing"


class PaymentReadiness(str, Enum):
    CASH_READY = "cash_ready"
    MORTGAGE_PRE_APPROVED = "mortgage_pre_approved"
    MORTGAGE_PLANNING = "mortgage_planning"
    NOT_SPECIFIED = "not_specified"


class LocationMatch(str, Enum):
    CORE_AREA = "core_area"
    NEARBY_AREA = "nearby_area"
    OUTSIDE_TARGET = "outside_target"
    NOT_SPECIFIED = "not_specified"


class PropertyTypeSpecificity(str, Enum):
    SPECIFIC = "specific"
    BROAD = "broad"
    NOT_SPECIFIED = "not_specified"


@dataclass(frozen=True)
class ScoringConfig:
    """Budget tier thresholds."""
    premium_budget_threshold: int
    mid_tier_budget_threshold: int
    entry_tier_budget_threshold: int


@dataclass(frozen=True)
class FormScoreInput:
    budget: Optional[float]
    purchase_timeline: PurchaseTimeline
    payment_readiness: PaymentReadiness
    location_match: LocationMatch
    property_type_specificity: PropertyTypeSpecificity


@dataclass(frozen=True)
class InteractionScoreInput:
    last_email_sent_at: Optional[datetime]
    reply_received_at: Optional[datetime]
    message_body: str
    reply_count_in_thread: int


TIMELINE_SCORES = {
    PurchaseTimeline.IMMEDIATE: 25,
    PurchaseTimeline.ONE_TO_THREE_MONTHS: 18,
    PurchaseTimeline.THREE_TO_SIX_MONTHS: 10,
    PurchaseTimeline.SIX_PLUS_MONTHS: 5,
}
PAYMENT_SCORES = {
    PaymentReadiness.CASH_READY: 20,
    PaymentReadiness.MORTGAGE_PRE_APPROVED: 15,
    PaymentReadiness.MORTGAGE_PLANNING: 8,
}
LOCATION_SCORES = {
    LocationMatch.CORE_AREA: 15,
    LocationMatch.NEARBY_AREA: 10,
    LocationMatch.OUTSIDE_TARGET: 5,
}
PROPERTY_TYPE_SCORES = {
    PropertyTypeSpecificity.SPECIFIC: 10,
    PropertyTypeSpecificity.BROAD: 5,
}


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for non-negative scores (2.5 -> 3, not 2)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_one_decimal(value: float) -> float:
    return round_half_up(value, 1)


def clamp(value: float, lower: float = 0, upper: float = 100) -> float:
    return min(upper, max(lower, value))


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def count_words(text: str) -> int:
    return len(text.split())


def normalize_scoring_config(
    premium_budget_threshold: int,
    mid_tier_budget_threshold: Optional[int] = None,
    entry_tier_budget_threshold: Optional[int] = None
) -> ScoringConfig:
    """Derive missing budget tiers: mid is 60% of premium, entry 50% of mid."""
    mid = mid_tier_budget_threshold
    if mid is None:
        mid = int(round_half_up(premium_budget_threshold * 0.6))
    entry = entry_tier_budget_threshold
    if entry is None:
        entry = int(round_half_up(mid * 0.5))
    return ScoringConfig(
        premium_budget_threshold=premium_budget_threshold,
        mid_tier_budget_threshold=mid,
        entry_tier_budget_threshold=entry
    )


def compute_budget_score(budget: Optional[float], config: ScoringConfig) -> int:
    if budget is None or math.isnan(budget) or budget <= 0:
        return 0
    if budget >= config.premium_budget_threshold:
        return 30
    if budget >= config.mid_tier_budget_threshold:
        return 20
    if budget >= config.entry_tier_budget_threshold:
        return 10
    return 0


def compute_timeline_score(timeline: PurchaseTimeline) -> int:
    return TIMELINE_SCORES.get(timeline, 0)


def compute_payment_score(readiness: PaymentReadiness) -> int:
    return PAYMENT_SCORES.get(readiness, 0)


def compute_location_score(location: LocationMatch) -> int:
    return LOCATION_SCORES.get(location, 0)


def compute_property_type_score(specificity: PropertyTypeSpecificity) -> int:
    return PROPERTY_TYPE_SCORES.get(specificity, 0)


def compute_form_score(form: FormScoreInput, config: ScoringConfig) -> float:
    """Sum of the five form sub-scores, clamped to [0, 100]."""
    total = (
        compute_budget_score(form.budget, config)
        + compute_timeline_score(form.purchase_timeline)
        + compute_payment_score(form.payment_readiness)
        + compute_location_score(form.location_match)
        + compute_property_type_score(form.property_type_specificity)
    )
    return round_one_decimal(clamp(total))


def compute_reply_speed_score(
    last_email_sent_at: Optional[datetime],
    reply_received_at: Optional[datetime]
) -> int:
    """Score how quickly the lead replied to our last outbound email."""
    if last_email_sent_at is None or reply_received_at is None:
        return 0
    elapsed = as_utc(reply_received_at) - as_utc(last_email_sent_at)
    hours = elapsed.total_seconds() / 3600
    if hours < 0:
        return 0
    if hours < 6:
        return 30
    if hours <= 24:
        return 20
    if hours <= 72:
        return 10
    return 5


def compute_intent_score(message_body: str) -> int:
    """Score of the single highest intent tier matched (never a sum)."""
    body = (message_body or "").lower().strip()
    if not body:
        return 0
    if any(keyword in body for keyword in HIGH_INTENT_KEYWORDS):
        return 40
    if any(keyword in body for keyword in MEDIUM_INTENT_KEYWORDS):
        return 25
    if any(keyword in body for keyword in LOW_INTENT_KEYWORDS):
        return 10
    return 0


def compute_length_score(message_body: str) -> int:
    words = count_words(message_body or "")
    if words >= 50:
        return 15
    if words >= 20:
        return 10
    if words >= 5:
        return 5
    return 0


def compute_follow_up_score(reply_count_in_thread: int) -> int:
    if reply_count_in_thread >= 3:
        return 15
    if reply_count_in_thread == 2:
        return 10
    if reply_count_in_thread == 1:
        return 5
    return 0


def compute_interaction_score(interaction: InteractionScoreInput) -> float:
    """Reply speed + intent + length + thread depth, clamped to [0, 100]."""
    total = (
        compute_reply_speed_score(
            interaction.last_email_sent_at,
            interaction.reply_received_at
        )
        + compute_intent_score(interaction.message_body)
        + compute_length_score(interaction.message_body)
        + compute_follow_up_score(interaction.reply_count_in_thread)
    )
    return round_one_decimal(clamp(total))


def compute_total_score(form_score: float, interaction_score: float) -> float:
    total = form_score * FORM_WEIGHT + interaction_score * INTERACTION_WEIGHT
    return round_one_decimal(clamp(total))


def compute_tier(total_score: float) -> Tier:
    if total_score >= HOT_THRESHOLD:
        return Tier.HOT
    if total_score >= WARM_THRESHOLD:
        return Tier.WARM
    return Tier.COLD
