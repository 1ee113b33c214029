"""
Unit Tests for Scoring Engine
Priority score components, confidence and next action
"""
from datetime import timedelta

import pytest

from cadence.domain.models.lead import (
    ExitedDnc,
    Snoozed,
    Task,
    TaskType,
    TemperatureBand,
)
from cadence.domain.models.phone import PhoneStatus
from cadence.domain.models.scoring import ConfidenceLevel, NextAction
from cadence.domain.services.scoring_engine import ScoringEngine


LOW_MOTIVATIONS = ["Absentee", "Free & Clear", "Long Ownership", "Senior Owner", "MLS Expired"]


@pytest.fixture
def engine(config):
    return ScoringEngine(config)


class TestMotivations:
    """Tests for tiering, diminishing returns and synergies"""

    def test_each_additional_motivation_adds_less(self, engine):
        contributions = engine.motivation_contributions(["Probate", "Tax Lien", "Foreclosure"])

        assert [c.name for c in contributions] == ["Foreclosure", "Tax Lien", "Probate"]
        assert [c.points for c in contributions] == [12, 9, 5]

    def test_decay_continues_past_schedule(self, engine):
        assert engine.decay_multiplier(0) == 1.0
        assert engine.decay_multiplier(5) == 0.15
        assert engine.decay_multiplier(6) == pytest.approx(0.075)
        assert engine.decay_multiplier(7) == pytest.approx(0.0375)

    def test_duplicates_are_ignored(self, engine):
        contributions = engine.motivation_contributions(["Vacant", "vacant ", "VACANT"])

        assert len(contributions) == 1

    def test_low_urgency_stack_stays_below_one_critical(self, engine):
        low_total = sum(c.points for c in engine.motivation_contributions(LOW_MOTIVATIONS))
        critical = engine.motivation_contributions(["Foreclosure"])[0].points

        assert low_total == 9
        assert low_total < critical

    def test_unknown_motivation_is_low(self, engine):
        assert engine.get_motivation_tier("Something New") == "LOW"

    def test_synergy_bonus(self, engine, make_lead, now):
        lead = make_lead(motivations=["Foreclosure", "Vacant"])

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("synergy") == 5


class TestScoreComponents:
    """Tests for individual score components"""

    def test_bare_lead_score(self, engine, make_lead, now):
        """Test WARM 25 + never-contacted rescue 20"""
        lead = make_lead(phones=[])

        result = engine.compute_priority(lead, now)

        assert result.score == 45
        assert result.breakdown.total_for("rescue") == 20
        assert result.next_action == NextAction.GET_NUMBERS
        assert result.confidence == ConfidenceLevel.LOW

    def test_mobile_phone_adds_channel_points(self, engine, make_lead, now):
        lead = make_lead()

        result = engine.compute_priority(lead, now)

        assert result.score == 55
        assert result.breakdown.total_for("channel") == 10
        assert result.next_action == NextAction.CALL_NOW

    def test_only_worse_of_recency_and_fatigue_applies(self, engine, make_lead, now):
        lead = make_lead(
            last_contacted_at=now - timedelta(hours=12),
            no_response_streak=9,
        )

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("fatigue") == -25
        assert result.breakdown.total_for("recency") == 0

    def test_recent_contact_penalty_when_not_fatigued(self, engine, make_lead, now):
        lead = make_lead(last_contacted_at=now - timedelta(hours=12), no_response_streak=1)

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("recency") == -20
        assert result.breakdown.total_for("fatigue") == 0

    def test_due_for_contact_bonus(self, engine, make_lead, now):
        lead = make_lead(last_contacted_at=now - timedelta(days=10))

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("recency") == 10

    def test_fatigue_resets_after_contact(self, engine, make_lead, now):
        tired = make_lead(no_response_streak=7)
        reset = make_lead(no_response_streak=0)

        assert engine.compute_priority(tired, now).breakdown.total_for("fatigue") == -15
        assert engine.compute_priority(reset, now).breakdown.total_for("fatigue") == 0

    def test_rescue_is_zero_once_engaged(self, engine, make_lead, now):
        lead = make_lead(has_engaged=True)

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("rescue") == 0
        assert result.breakdown.total_for("engagement") == 20

    def test_rescue_grows_with_time_untouched(self, engine, make_lead, now):
        fresh = make_lead(last_contacted_at=now - timedelta(days=5))
        stale = make_lead(last_contacted_at=now - timedelta(days=30))

        assert engine.compute_priority(fresh, now).breakdown.total_for("rescue") == 0
        assert engine.compute_priority(stale, now).breakdown.total_for("rescue") == 10

    def test_recent_callback_request(self, engine, make_lead, now):
        lead = make_lead(callback_requested_at=now - timedelta(days=2))

        assert engine.compute_priority(lead, now).breakdown.total_for("engagement") == 30

    def test_overdue_callback_task(self, engine, make_lead, now):
        lead = make_lead(tasks=[
            Task(id="t1", title="Call back", task_type=TaskType.CALLBACK, due_date=now - timedelta(days=1)),
        ])

        result = engine.compute_priority(lead, now)

        assert result.breakdown.total_for("task") == 20
        assert result.flags.has_overdue_task is True
        assert result.next_action == NextAction.FOLLOW_UP

    def test_not_interested_status_halves_score(self, engine, make_lead, now):
        lead = make_lead(phones=[], temperature_band=TemperatureBand.HOT, status_name="Not Interested")

        assert engine.compute_priority(lead, now).score == 30


class TestWorkability:
    """Tests for flags and next action"""

    def test_dnc_status_keeps_score(self, engine, make_lead, now):
        lead = make_lead(status_name="DNC")

        result = engine.compute_priority(lead, now)

        assert result.score > 0
        assert result.flags.is_dnc is True
        assert result.next_action == NextAction.NOT_WORKABLE

    def test_snoozed_lead_is_not_workable(self, engine, make_lead, now):
        lead = make_lead(state=Snoozed(until=now + timedelta(hours=3)))

        assert engine.compute_priority(lead, now).next_action == NextAction.NOT_WORKABLE

    def test_expired_snooze_is_workable(self, engine, make_lead, now):
        lead = make_lead(state=Snoozed(until=now - timedelta(hours=3)))

        assert engine.compute_priority(lead, now).flags.is_snoozed is False

    def test_terminal_lead_is_not_workable(self, engine, make_lead, now):
        lead = make_lead(state=ExitedDnc(exit_date=now))

        assert engine.compute_priority(lead, now).next_action == NextAction.NOT_WORKABLE

    def test_low_score_is_nurture(self, engine, make_lead, make_phone, now):
        lead = make_lead(
            temperature_band=TemperatureBand.ICE,
            phones=[make_phone("p1", type="LANDLINE", status=PhoneStatus.UNVERIFIED)],
            has_engaged=True,
        )

        assert engine.compute_priority(lead, now).next_action == NextAction.NURTURE

    def test_score_is_deterministic(self, engine, make_lead, now):
        lead = make_lead(motivations=["Probate", "Vacant"], last_contacted_at=now - timedelta(days=4))

        first = engine.compute_priority(lead, now)
        second = engine.compute_priority(lead, now)

        assert first == second


class TestConfidence:
    """Tests for calculate_confidence"""

    def test_full_data_is_high_confidence(self, engine, make_lead, now):
        lead = make_lead(
            owner_name="Pat Doe",
            motivations=["Vacant"],
            tags=["list-a"],
            skiptrace_date=now,
        )

        level, points = engine.calculate_confidence(lead)

        assert points == 90
        assert level == ConfidenceLevel.HIGH

    def test_medium_confidence(self, engine, make_lead):
        lead = make_lead(motivations=["Vacant"])

        assert engine.calculate_confidence(lead) == (ConfidenceLevel.MEDIUM, 50)

    def test_suggested_band(self, engine):
        assert engine.suggest_band(85) == TemperatureBand.HOT
        assert engine.suggest_band(55) == TemperatureBand.WARM
        assert engine.suggest_band(30) == TemperatureBand.COLD
        assert engine.suggest_band(5) == TemperatureBand.ICE
