"""
Unit Tests for Result Handler
Call label classification and call processing
"""
import pytest

from cadence.domain.models.cadence_template import ActionType, CadenceType
from cadence.domain.models.call_outcome import CallOutcome, ResultType
from cadence.domain.models.lead import CadencePhase, CadenceStateName, TemperatureBand
from cadence.domain.models.phone import PhoneStatus
from cadence.domain.services.result_handler import ResultHandler


@pytest.fixture
def handler(config):
    return ResultHandler(config)


class TestOutcomeMapping:
    """Tests for map_call_result_to_outcome"""

    @pytest.mark.parametrize("label,expected", [
        ("Left Voicemail", CallOutcome.VOICEMAIL),
        ("no answer", CallOutcome.NO_ANSWER),
        ("  CALLBACK ", CallOutcome.ANSWERED_CALLBACK),
        ("no_answer", CallOutcome.NO_ANSWER),
        ("wrong-number", CallOutcome.WRONG_NUMBER),
        ("Seller is not interested at all", CallOutcome.ANSWERED_NOT_INTERESTED),
        ("Very interested in an offer", CallOutcome.ANSWERED_INTERESTED),
        ("Number not in service anymore", CallOutcome.DISCONNECTED),
        ("Owner deceased", CallOutcome.DECEASED),
    ])
    def test_known_labels(self, handler, label, expected):
        assert handler.map_call_result_to_outcome(label) == expected

    def test_unknown_label_defaults_to_no_answer(self, handler):
        assert handler.map_call_result_to_outcome("asdf") == CallOutcome.NO_ANSWER
        assert handler.map_call_result_to_outcome(None) == CallOutcome.NO_ANSWER

    def test_unknown_answered_label_defaults_to_neutral(self, handler):
        assert handler.map_call_result_to_outcome("asdf", was_answered=True) == CallOutcome.ANSWERED_NEUTRAL

    def test_result_type_follows_outcome(self, handler):
        """Test that the coarse type is read from the outcome table"""
        assert handler.map_call_result_to_result_type("Callback") == ResultType.CONTACT_MADE
        assert handler.map_call_result_to_result_type("Busy") == ResultType.RETRY
        assert handler.map_call_result_to_result_type("Wrong #") == ResultType.BAD_DATA
        assert handler.map_call_result_to_result_type("Do Not Call") == ResultType.TERMINAL
        assert handler.map_call_result_to_result_type("Voicemail") == ResultType.NO_CONTACT

    def test_every_outcome_has_consistent_config(self, handler):
        """Test that contact outcomes are never classified as no-contact"""
        for outcome in CallOutcome:
            outcome_config = handler.get_outcome_config(outcome)
            if outcome_config.result_type == ResultType.CONTACT_MADE:
                assert outcome_config.is_contact is True
            if outcome_config.is_terminal:
                assert outcome_config.exit_state is not None

    def test_status_prompt(self, handler):
        assert handler.should_prompt_for_status(CallOutcome.ANSWERED_NEUTRAL) is True
        assert handler.should_prompt_for_status(CallOutcome.NO_ANSWER) is False


class TestCounters:
    """Tests for engagement score and no-response streak"""

    def test_engagement_score_is_clamped(self, handler):
        assert handler.calculate_new_engagement_score(90, CallOutcome.ANSWERED_INTERESTED) == 100
        assert handler.calculate_new_engagement_score(10, CallOutcome.DNC) == 0
        assert handler.calculate_new_engagement_score(40, CallOutcome.ANSWERED_NEUTRAL) == 50

    def test_contact_resets_streak(self, handler):
        assert handler.calculate_new_no_response_streak(5, CallOutcome.ANSWERED_NEUTRAL) == 0

    def test_no_response_extends_streak(self, handler):
        assert handler.calculate_new_no_response_streak(5, CallOutcome.NO_ANSWER) == 6
        assert handler.calculate_new_no_response_streak(5, CallOutcome.VOICEMAIL) == 6

    def test_busy_leaves_streak(self, handler):
        assert handler.calculate_new_no_response_streak(5, CallOutcome.BUSY) == 5


class TestProcessCallResult:
    """Tests for process_call_result"""

    def test_no_answer_on_new_lead(self, handler, make_lead, now):
        lead = make_lead(cadence_phase=CadencePhase.NEW)

        result = handler.process_call_result(lead, "No Answer", now, phone_id="p1")

        assert result.outcome == CallOutcome.NO_ANSWER
        assert result.is_contact_made is False
        assert result.phase_transition.new_phase == CadencePhase.BLITZ_1
        assert result.phone_update.consecutive_no_answer == 1
        assert result.phone_exhausted is False

    def test_last_bad_number_forces_deep_prospect(self, handler, make_lead, make_phone, now):
        lead = make_lead(
            cadence_phase=CadencePhase.BLITZ_1,
            blitz_attempts=1,
            phones=[make_phone("p1", status=PhoneStatus.UNVERIFIED)],
        )

        result = handler.process_call_result(lead, "Wrong Number", now, phone_id="p1")

        assert result.is_bad_data is True
        assert result.phone_exhausted is True
        assert result.should_move_to_deep_prospect is True
        assert result.phase_transition.new_phase == CadencePhase.DEEP_PROSPECT
        assert result.phase_transition.new_state == CadenceStateName.ACTIVE
        assert result.phase_transition.next_action_type == ActionType.SKIPTRACE

    def test_terminal_outcome_is_not_overridden_by_exhaustion(self, handler, make_lead, now):
        lead = make_lead(cadence_phase=CadencePhase.BLITZ_1)

        result = handler.process_call_result(lead, "DNC", now, phone_id="p1")

        assert result.is_terminal is True
        assert result.phone_exhausted is True
        assert result.phase_transition.new_state == CadenceStateName.EXITED_DNC
        assert result.phase_transition.new_phase == CadencePhase.BLITZ_1

    def test_unknown_phone_is_skipped(self, handler, make_lead, now):
        lead = make_lead()

        result = handler.process_call_result(lead, "No Answer", now, phone_id="missing")

        assert result.phone_update is None

    def test_completion_wait_uses_given_score(self, handler, make_lead, now):
        lead = make_lead(
            cadence_phase=CadencePhase.TEMPERATURE,
            cadence_type=CadenceType.HOT,
            cadence_step=7,
            temperature_band=TemperatureBand.HOT,
            priority_score=0,
        )

        result = handler.process_call_result(lead, "No Answer", now, phone_id="p1", priority_score=90)

        transition = result.phase_transition
        assert transition.new_state == CadenceStateName.COMPLETED_NO_CONTACT
        assert transition.re_enrollment_date == handler.phase_manager.calculate_re_enrollment_date(
            TemperatureBand.HOT, 90, lead.enrollment_count, now
        )
