"""
Triage insights: per-lead priority/urgency/next action and a portfolio summary.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from models.lead import Lead, PipelineStatus, Tier
from scoring import as_utc, clamp, round_half_up, round_one_decimal

STALE_AFTER_HOURS = 24
VERY_STALE_AFTER_HOURS = 72
MAX_PRIORITY = 150

TIER_BONUS = {Tier.HOT: 20, Tier.WARM: 10}
STATUS_BONUS = {
    PipelineStatus.NEW: 25,
    PipelineStatus.QUESTION: 15,
    PipelineStatus.OBJECTION: 15,
    PipelineStatus.INTERESTED: 12,
}
NEVER_CONTACTED_BONUS = 20
STALE_BONUS = 15
VERY_STALE_BONUS = 10
CLOSED_PENALTY = 100

VIEWING_WEIGHTS = {Tier.HOT: 0.25, Tier.WARM: 0.12, Tier.COLD: 0.04}
INTERESTED_VIEWING_BONUS = 0.1


class Urgency(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass(frozen=True)
class LeadInsight:
    priority_score: int
    urgency: Urgency
    next_action: str
    rationale: str
    sla_risk: bool
    stale_lead: bool
    hours_since_last_email: Optional[int]

    def to_dict(self):
        data = asdict(self)
        data["urgency"] = self.urgency.value
        return data


@dataclass(frozen=True)
class PortfolioInsight:
    projected_viewings_30d: float
    high_priority_count: int
    sla_risk_count: int

    def to_dict(self):
        return asdict(self)


def hours_between(start: Optional[datetime], end: datetime) -> Optional[int]:
    """Whole hours elapsed from ``start`` to ``end``, floored at zero."""
    if start is None:
        return None
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, math.floor(seconds / 3600))


def urgency_for(priority_score: float) -> Urgency:
    if priority_score >= 95:
        return Urgency.CRITICAL
    if priority_score >= 75:
        return Urgency.HIGH
    if priority_score >= 50:
        return Urgency.MEDIUM
    return Urgency.LOW


def _select_next_action(
    status: PipelineStatus,
    tier: Tier,
    never_contacted: bool
) -> Tuple[str, Optional[str]]:
    """First matching rule wins. Returns (action, reason)."""
    if status == PipelineStatus.CLOSED:
        return "No action required. Lead is closed.", "Pipeline status is Closed"
    if status == PipelineStatus.NEW or never_contacted:
        return (
            "Send first response now and propose 2 viewing slots.",
            "No outbound email sent yet"
        )
    if status in (PipelineStatus.OBJECTION, PipelineStatus.QUESTION):
        return (
            "Address objection/question with a tailored response.",
            f"Lead is in {status.value} stage"
        )
    if tier == Tier.HOT:
        return "Call now and lock a viewing date this week.", "Lead tier is Hot"
    if status == PipelineStatus.INTERESTED:
        return (
            "Send curated listings and ask for preferred viewing time.",
            "Lead already signaled interest"
        )
    return "Monitor activity and keep nurturing.", None


def build_lead_insight(lead: Lead, now: Optional[datetime] = None) -> LeadInsight:
    """Priority, urgency bucket and recommended next action for one lead."""
    now = now or datetime.now(timezone.utc)
    hours = hours_between(lead.last_email_sent_at, now)
    status = lead.pipeline_status
    is_closed = status == PipelineStatus.CLOSED
    never_contacted = lead.last_email_sent_at is None

    stale_lead = not is_closed and hours is not None and hours >= STALE_AFTER_HOURS
    sla_risk = not is_closed and (never_contacted or stale_lead)

    priority = lead.total_score or 0.0
    priority += TIER_BONUS.get(lead.tier, 0)
    priority += STATUS_BONUS.get(status, 0)
    if never_contacted and not is_closed:
        priority += NEVER_CONTACTED_BONUS
    if hours is not None and hours >= STALE_AFTER_HOURS:
        priority += STALE_BONUS
    if hours is not None and hours >= VERY_STALE_AFTER_HOURS:
        priority += VERY_STALE_BONUS
    if is_closed:
        priority -= CLOSED_PENALTY

    priority_score = 0 if is_closed else int(clamp(round_half_up(priority), 0, MAX_PRIORITY))

    next_action, reason = _select_next_action(status, lead.tier, never_contacted)
    reasons: List[str] = [reason] if reason else []
    if stale_lead:
        reasons.append("No follow-up in the last 24+ hours")
    if (lead.interaction_score or 0) >= 70:
        reasons.append("Strong interaction signals")
    if (lead.total_score or 0) >= 75:
        reasons.append("High conversion potential")

    rationale = " | ".join(reasons[:2]) if reasons else "No strong signals yet"

    return LeadInsight(
        priority_score=priority_score,
        urgency=urgency_for(priority_score),
        next_action=next_action,
        rationale=rationale,
        sla_risk=sla_risk,
        stale_lead=stale_lead,
        hours_since_last_email=hours
    )


def build_portfolio_insight(
    leads: Iterable[Lead],
    now: Optional[datetime] = None
) -> PortfolioInsight:
    """Aggregate triage counts and a 30-day viewing forecast."""
    now = now or datetime.now(timezone.utc)
    projected_viewings = 0.0
    high_priority_count = 0
    sla_risk_count = 0

    for lead in leads:
        insight = build_lead_insight(lead, now)
        if insight.urgency in (Urgency.CRITICAL, Urgency.HIGH):
            high_priority_count += 1
        if insight.sla_risk:
            sla_risk_count += 1
        if lead.pipeline_status in (PipelineStatus.CLOSED, PipelineStatus.UNQUALIFIED):
            continue

        projected_viewings += VIEWING_WEIGHTS.get(lead.tier, VIEWING_WEIGHTS[Tier.COLD])
        if lead.pipeline_status == PipelineStatus.INTERESTED:
            projected_viewings += INTERESTED_VIEWING_BONUS

    return PortfolioInsight(
        projected_viewings_30d=round_one_decimal(projected_viewings),
        high_priority_count=high_priority_count,
        sla_risk_count=sla_risk_count
    )
