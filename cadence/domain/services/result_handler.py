"""
Result Handler
Maps free-text call results to canonical outcomes and combines the phase
and phone decisions for a logged call
"""
import logging
from datetime import datetime
from typing import Optional

from cadence.domain.models.cadence_config import CadenceConfig, get_cadence_config
from cadence.domain.models.cadence_template import ActionType
from cadence.domain.models.call_outcome import CallOutcome, OutcomeConfig, ResultType
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.transition import CallResult
from cadence.domain.services.phase_manager import PhaseManager
from cadence.domain.services.phone_manager import PhoneManager

logger = logging.getLogger(__name__)


NO_RESPONSE_OUTCOMES = frozenset({CallOutcome.NO_ANSWER, CallOutcome.VOICEMAIL})

_DEEP_PROSPECT_STATES = frozenset({CadenceStateName.ACTIVE, CadenceStateName.STALE_ENGAGED})

# Contact outcomes after which the user is asked to update the lead status
STATUS_PROMPT_OUTCOMES = frozenset({
    CallOutcome.ANSWERED_INTERESTED,
    CallOutcome.ANSWERED_NEUTRAL,
    CallOutcome.ANSWERED_NOT_NOW,
    CallOutcome.ANSWERED_NOT_INTERESTED,
})


class ResultHandler:
    """
    Call result processing.

    The outcome table in config is the only place that says whether an
    outcome is a contact; the coarse result type of a label is always read
    from its outcome, so the two classifications cannot disagree.
    """

    def __init__(
        self,
        config: Optional[CadenceConfig] = None,
        phase_manager: Optional[PhaseManager] = None,
        phone_manager: Optional[PhoneManager] = None
    ):
        self.config = config or get_cadence_config()
        self.phase_manager = phase_manager or PhaseManager(self.config)
        self.phone_manager = phone_manager or PhoneManager(self.config)

    # Classification

    def map_call_result_to_outcome(self, result_label: Optional[str], was_answered: bool = False) -> CallOutcome:
        """
        Classify a free-text call result.

        Exact synonyms win, then enum names ("no_answer"), then ordered
        substring rules. Unknown labels become NO_ANSWER, or
        ANSWERED_NEUTRAL when the caller says the call was answered.
        """
        label = (result_label or "").strip().lower()

        if label in self.config.call_result_synonyms:
            return self.config.call_result_synonyms[label]

        enum_name = label.upper().replace(" ", "_").replace("-", "_")
        if enum_name in CallOutcome.__members__:
            return CallOutcome[enum_name]

        for pattern in self.config.call_result_patterns:
            if any(fragment in label for fragment in pattern.contains):
                return pattern.outcome

        fallback = CallOutcome.ANSWERED_NEUTRAL if was_answered else CallOutcome.NO_ANSWER
        if label:
            logger.info(f"Unrecognized call result '{result_label}', defaulting to {fallback.value}")
        return fallback

    def get_outcome_config(self, outcome: CallOutcome) -> OutcomeConfig:
        return self.config.outcomes[outcome]

    def map_call_result_to_result_type(self, result_label: Optional[str], was_answered: bool = False) -> ResultType:
        outcome = self.map_call_result_to_outcome(result_label, was_answered)
        return self.get_outcome_config(outcome).result_type

    def get_follow_up_days(self, outcome: CallOutcome) -> Optional[int]:
        return self.get_outcome_config(outcome).follow_up_days

    def should_prompt_for_status(self, outcome: CallOutcome) -> bool:
        return outcome in STATUS_PROMPT_OUTCOMES

    # Counters

    def calculate_new_engagement_score(self, current: int, outcome: CallOutcome) -> int:
        """Engagement score after an outcome, clamped to 0-100"""
        return max(0, min(100, current + self.get_outcome_config(outcome).score_change))

    def calculate_new_no_response_streak(self, current: int, outcome: CallOutcome) -> int:
        if self.get_outcome_config(outcome).is_contact:
            return 0
        if outcome in NO_RESPONSE_OUTCOMES:
            return current + 1
        return current

    # Processing

    def process_call_result(
        self,
        lead: Lead,
        result_label: Optional[str],
        now: datetime,
        phone_id: Optional[str] = None,
        was_answered: bool = False,
        callback_date: Optional[datetime] = None,
        priority_score: Optional[int] = None
    ) -> CallResult:
        """
        Work out everything a logged call implies.

        Args:
            lead: Lead before the call
            result_label: Free-text result as entered by the caller
            now: Time of the call
            phone_id: Phone dialed, if known
            was_answered: Whether someone picked up
            callback_date: Requested callback time
            priority_score: Current score of the lead, used to size a re-enrollment wait

        Returns:
            CallResult with the phase transition and phone update
        """
        outcome = self.map_call_result_to_outcome(result_label, was_answered)
        outcome_config = self.get_outcome_config(outcome)

        transition = self.phase_manager.calculate_phase_transition(
            lead, outcome, now, callback_date=callback_date, priority_score=priority_score
        )

        phone_update = None
        phones_after = list(lead.phones)
        phone = lead.get_phone(phone_id)
        if phone is not None:
            phone_update = self.phone_manager.get_phone_status_update(phone, outcome, now, lead.phones)
            phones_after = [
                self.phone_manager.apply_update(p, phone_update) if p.id == phone.id else p
                for p in lead.phones
            ]
        elif phone_id:
            logger.warning(f"Lead {lead.id} has no phone {phone_id}, skipping phone update")

        phone_exhausted = self.phone_manager.should_mark_phone_exhausted(phones_after)
        move_to_deep_prospect = transition.should_move_to_deep_prospect

        if phone_exhausted and not outcome_config.is_terminal and not outcome_config.is_contact:
            move_to_deep_prospect = True
            transition = transition.model_copy(update={
                "new_phase": CadencePhase.DEEP_PROSPECT,
                "new_state": (
                    transition.new_state
                    if transition.new_state in _DEEP_PROSPECT_STATES
                    else CadenceStateName.ACTIVE
                ),
                "re_enrollment_date": None,
                "next_action_due": None,
                "next_action_type": ActionType.SKIPTRACE,
                "should_move_to_deep_prospect": True,
                "reason": f"{transition.reason}; all phones exhausted".lstrip("; "),
            })

        return CallResult(
            outcome=outcome,
            result_type=outcome_config.result_type,
            phase_transition=transition,
            phone_update=phone_update,
            phone_exhausted=phone_exhausted,
            is_contact_made=outcome_config.is_contact,
            is_terminal=outcome_config.is_terminal,
            is_bad_data=outcome_config.result_type == ResultType.BAD_DATA,
            should_move_to_deep_prospect=move_to_deep_prospect,
            score_change=outcome_config.score_change,
            reason=transition.reason,
        )
