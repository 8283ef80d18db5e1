"""
Map free-text form answers onto the closed scoring categories.

Upstream forms word their options differently, so each category is matched by
substring heuristics on the lower-cased answer.
"""

from typing import Iterable, Optional

from config import settings
from scoring import (
    PurchaseTimeline, PaymentReadiness, LocationMatch, PropertyTypeSpecificity
)


def _normalized(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def map_purchase_timeline(value: Optional[str]) -> PurchaseTimeline:
    text = _normalized(value)
    if "immediate" in text or "0-1" in text or "now" in text:
        return PurchaseTimeline.IMMEDIATE
    if "1-3" in text:
        return PurchaseTimeline.ONE_TO_THREE_MONTHS
    if "3-6" in text:
        return PurchaseTimeline.THREE_TO_SIX_MONTHS
    if "6+" in text or "six" in text or "later" in text:
        return PurchaseTimeline.SIX_PLUS_MONTHS
    return PurchaseTimeline.BROWSING


def map_payment_readiness(value: Optional[str]) -> PaymentReadiness:
    text = _normalized(value)
    if "cash" in text:
        return PaymentReadiness.CASH_READY
    if "pre" in text and "approved" in text:
        return PaymentReadiness.MORTGAGE_PRE_APPROVED
    if "mortgage" in text and "planning" in text:
        return PaymentReadiness.MORTGAGE_PLANNING
    return PaymentReadiness.NOT_SPECIFIED


def map_location_preference(
    value: Optional[str],
    core_areas: Optional[Iterable[str]] = None,
    nearby_areas: Optional[Iterable[str]] = None
) -> LocationMatch:
    text = _normalized(value)
    if not text or "not specified" in text or "n/a" in text:
        return LocationMatch.NOT_SPECIFIED

    core = core_areas if core_areas is not None else settings.core_areas
    nearby = nearby_areas if nearby_areas is not None else settings.nearby_areas

    if any(area.lower() in text for area in core):
        return LocationMatch.CORE_AREA
    if any(area.lower() in text for area in nearby):
        return LocationMatch.NEARBY_AREA
    return LocationMatch.OUTSIDE_TARGET


def map_property_type_specificity(value: Optional[str]) -> PropertyTypeSpecificity:
    text = _normalized(value)
    if not text or "not specified" in text or "no preference" in text or text == "any":
        return PropertyTypeSpecificity.NOT_SPECIFIED
    if "broad" in text or "all properties" in text or "any property" in text:
        return PropertyTypeSpecificity.BROAD
    return PropertyTypeSpecificity.SPECIFIC
