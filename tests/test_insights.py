from datetime import timedelta

from conftest import make_lead
from leads import Urgency, build_lead_insight, build_portfolio_insight
from models import PipelineStatus, Tier


def test_recently_contacted_cold_lead(fixed_now):
    insight = build_lead_insight(make_lead(), fixed_now)

    assert insight.priority_score == 48
    assert insight.urgency == Urgency.LOW
    assert insight.next_action == "Monitor activity and keep nurturing."
    assert insight.rationale == "No strong signals yet"
    assert insight.hours_since_last_email == 3
    assert not insight.sla_risk
    assert not insight.stale_lead


def test_new_lead_never_contacted(fixed_now):
    lead = make_lead(pipeline_status=PipelineStatus.NEW, last_email_sent_at=None, thread_id=None)
    insight = build_lead_insight(lead, fixed_now)

    assert insight.priority_score == 48 + 25 + 20
    assert insight.urgency == Urgency.HIGH
    assert insight.next_action == "Send first response now and propose 2 viewing slots."
    assert insight.rationale == "No outbound email sent yet"
    assert insight.hours_since_last_email is None
    assert insight.sla_risk


def test_stale_hot_lead_is_critical(fixed_now):
    lead = make_lead(
        total_score=80.0,
        interaction_score=80.0,
        tier=Tier.HOT,
        pipeline_status=PipelineStatus.INTERESTED,
        last_email_sent_at=fixed_now - timedelta(hours=80)
    )
    insight = build_lead_insight(lead, fixed_now)

    assert insight.priority_score == 80 + 20 + 12 + 15 + 10
    assert insight.urgency == Urgency.CRITICAL
    assert insight.next_action == "Call now and lock a viewing date this week."
    assert insight.rationale == "Lead tier is Hot | No follow-up in the last 24+ hours"
    assert insight.stale_lead
    assert insight.sla_risk
    assert insight.hours_since_last_email == 80


def test_priority_is_capped(fixed_now):
    lead = make_lead(
        total_score=100.0,
        tier=Tier.HOT,
        pipeline_status=PipelineStatus.NEW,
        last_email_sent_at=fixed_now - timedelta(hours=100)
    )
    assert build_lead_insight(lead, fixed_now).priority_score == 150


def test_question_stage_action(fixed_now):
    lead = make_lead(pipeline_status=PipelineStatus.QUESTION, tier=Tier.HOT)
    insight = build_lead_insight(lead, fixed_now)

    assert insight.next_action == "Address objection/question with a tailored response."
    assert insight.rationale == "Lead is in Question stage"


def test_closed_lead_needs_nothing(fixed_now):
    lead = make_lead(
        total_score=90.0,
        tier=Tier.HOT,
        pipeline_status=PipelineStatus.CLOSED,
        last_email_sent_at=fixed_now - timedelta(hours=200)
    )
    insight = build_lead_insight(lead, fixed_now)

    assert insight.priority_score == 0
    assert insight.urgency == Urgency.LOW
    assert insight.next_action == "No action required. Lead is closed."
    assert not insight.sla_risk
    assert not insight.stale_lead


def test_future_last_email_counts_as_zero_hours(fixed_now):
    lead = make_lead(last_email_sent_at=fixed_now + timedelta(hours=2))
    assert build_lead_insight(lead, fixed_now).hours_since_last_email == 0


def test_portfolio_insight(fixed_now):
    recent = fixed_now - timedelta(hours=2)
    leads = [
        make_lead(id="hot", total_score=80.0, tier=Tier.HOT,
                  pipeline_status=PipelineStatus.INTERESTED,
                  last_email_sent_at=fixed_now - timedelta(hours=80)),
        make_lead(id="warm", total_score=60.0, tier=Tier.WARM, last_email_sent_at=recent),
        make_lead(id="new", pipeline_status=PipelineStatus.NEW, last_email_sent_at=None),
        make_lead(id="closed", total_score=90.0, tier=Tier.HOT,
                  pipeline_status=PipelineStatus.CLOSED, last_email_sent_at=recent),
        make_lead(id="unqualified", total_score=30.0,
                  pipeline_status=PipelineStatus.UNQUALIFIED, last_email_sent_at=recent),
    ]

    portfolio = build_portfolio_insight(leads, fixed_now)

    assert portfolio.projected_viewings_30d == 0.5
    assert portfolio.high_priority_count == 2
    assert portfolio.sla_risk_count == 2
    assert portfolio.to_dict() == {
        "projected_viewings_30d": 0.5,
        "high_priority_count": 2,
        "sla_risk_count": 2,
    }


def test_empty_portfolio(fixed_now):
    portfolio = build_portfolio_insight([], fixed_now)
    assert portfolio.projected_viewings_30d == 0
    assert portfolio.high_priority_count == 0
