"""
Phase Manager
Cadence state machine: decides the next phase, state and scheduled action
for a lead after a call outcome, enrollment, new phone or re-enrollment
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from cadence.domain.models.cadence_config import CadenceConfig, get_cadence_config
from cadence.domain.models.cadence_template import ActionType, CadenceTemplate, CadenceType
from cadence.domain.models.call_outcome import CallOutcome, ResultType
from cadence.domain.models.lead import (
    CadencePhase,
    CadenceStateName,
    Lead,
    TemperatureBand,
)
from cadence.domain.models.transition import PhaseTransition
from cadence.utils.time_utils import business_time, days_between

logger = logging.getLogger(__name__)


# States a logged call pulls back into active work
_RESUMED_BY_CALL = frozenset({
    CadenceStateName.NOT_ENROLLED,
    CadenceStateName.SNOOZED,
    CadenceStateName.PAUSED,
})

# Phases a new phone number reactivates into BLITZ_2
_REACTIVATED_BY_PHONE = frozenset({
    CadencePhase.DEEP_PROSPECT,
    CadencePhase.COMPLETED,
    CadencePhase.NURTURE,
})

_CALLABLE_PHASES = frozenset({
    CadencePhase.NEW,
    CadencePhase.BLITZ_1,
    CadencePhase.BLITZ_2,
    CadencePhase.TEMPERATURE,
    CadencePhase.ENGAGED,
})


class PhaseManager:
    """
    Lead lifecycle transitions.

    Phase flow:
        NEW -> BLITZ_1 -> DEEP_PROSPECT -> (new phone) -> BLITZ_2 -> TEMPERATURE
        TEMPERATURE -> COMPLETED (re-enrollment scheduled) or NURTURE (cycle cap)
        any phase -> ENGAGED / NURTURE on contact, EXITED_* on terminal outcomes

    Every method is pure: it reads the lead and `now` and returns a
    PhaseTransition without touching the lead.
    """

    def __init__(self, config: Optional[CadenceConfig] = None):
        self.config = config or get_cadence_config()
        self.limits = self.config.phases

    # Helpers

    def _at_business_hour(self, reference: datetime, days: int = 0) -> datetime:
        return business_time(
            reference,
            days=days,
            hour=self.config.business.hour,
            timezone=self.config.business.timezone,
        )

    def get_template(self, cadence_type: Optional[CadenceType]) -> CadenceTemplate:
        """Template for a cadence type, falling back to WARM"""
        template = self.config.templates.get(cadence_type) if cadence_type else None
        if template is None:
            logger.warning(f"No cadence template for {cadence_type}, falling back to WARM")
            return self.config.templates[CadenceType.WARM]
        return template

    def template_type_for_band(self, band: TemperatureBand) -> CadenceType:
        try:
            return CadenceType(TemperatureBand(band).value)
        except ValueError:
            return CadenceType.WARM

    def get_cadence_progress(self, step: int, cadence_type: Optional[CadenceType]) -> Optional[str]:
        """Progress string like "3/7", or None outside a template"""
        if not cadence_type or step <= 0:
            return None
        template = self.get_template(cadence_type)
        return f"{min(step, template.total_steps)}/{template.total_steps}"

    def is_phase_callable(self, phase: CadencePhase) -> bool:
        return phase in _CALLABLE_PHASES

    def can_re_enroll(self, state: CadenceStateName) -> bool:
        return state not in self.config.states.never_re_enroll

    def _working_state(self, lead: Lead) -> CadenceStateName:
        if lead.cadence_state in _RESUMED_BY_CALL:
            return CadenceStateName.ACTIVE
        return lead.cadence_state

    def _carry(self, lead: Lead, **overrides) -> PhaseTransition:
        """Transition that keeps the lead where it is except for `overrides`"""
        values = {
            "new_phase": lead.cadence_phase,
            "new_state": self._working_state(lead),
            "new_blitz_attempts": lead.blitz_attempts,
            "new_cadence_step": lead.cadence_step,
            "new_cadence_type": lead.cadence_type,
            "next_action_due": lead.next_action_due,
            "next_action_type": lead.next_action_type or ActionType.CALL,
        }
        values.update(overrides)
        return PhaseTransition(**values)

    # Re-enrollment timing

    def calculate_re_enrollment_date(
        self,
        band: TemperatureBand,
        score: int,
        enrollment_count: int,
        now: datetime
    ) -> datetime:
        """
        When a lead that completed its cadence without contact should restart.

        wait = base wait for the band x score multiplier x cycle penalty,
        rounded to whole days and never less than one day.
        """
        rules = self.config.re_enrollment
        base = rules.base_wait_days.get(band, rules.base_wait_days[TemperatureBand.WARM])

        score_multiplier = rules.score_multipliers[-1].multiplier
        for entry in rules.score_multipliers:
            if score >= entry.min_score:
                score_multiplier = entry.multiplier
                break

        penalty = rules.cycle_penalty
        cycle_multiplier = (
            penalty.multiplier
            if penalty.min_cycle <= enrollment_count <= penalty.max_cycle
            else 1.0
        )

        wait_days = max(1, round(base * score_multiplier * cycle_multiplier))
        return self._at_business_hour(now, wait_days)

    # Call outcomes

    def calculate_phase_transition(
        self,
        lead: Lead,
        outcome: CallOutcome,
        now: datetime,
        callback_date: Optional[datetime] = None,
        priority_score: Optional[int] = None
    ) -> PhaseTransition:
        """
        Decide where a lead goes after a call outcome.

        Args:
            lead: Lead before the call
            outcome: Canonical call outcome
            now: Time of the call
            callback_date: Requested callback time, for ANSWERED_CALLBACK
            priority_score: Score used to size a re-enrollment wait

        Returns:
            PhaseTransition for the engine to apply
        """
        outcome_config = self.config.outcomes[outcome]

        if outcome_config.is_terminal:
            exit_state = CadenceStateName(outcome_config.exit_state or CadenceStateName.EXITED_DNC)
            return self._carry(
                lead,
                new_state=exit_state,
                next_action_due=None,
                next_action_type=ActionType.NONE,
                should_move_to_not_workable=True,
                reason=f"Terminal outcome {outcome.value}",
            )

        if outcome == CallOutcome.ANSWERED_CALLBACK:
            callback_at = callback_date or now + timedelta(hours=self.limits.default_callback_hours)
            return self._carry(
                lead,
                next_action_due=callback_at,
                next_action_type=ActionType.CALL,
                callback_scheduled_for=callback_at,
                reason=f"Callback scheduled for {callback_at.isoformat()}",
            )

        if outcome_config.is_contact:
            return self._transition_on_contact(lead, outcome, outcome_config.follow_up_days, now)

        if outcome_config.result_type == ResultType.BAD_DATA:
            if lead.cadence_phase == CadencePhase.NEW:
                return self._start_blitz_1(lead, now, next_action_due=now, reason="Bad number on first call")
            return self._carry(
                lead,
                next_action_due=now,
                next_action_type=ActionType.CALL,
                reason="Bad number, try next phone",
            )

        if outcome_config.result_type == ResultType.RETRY:
            return self._carry(
                lead,
                next_action_due=self._at_business_hour(now, 1),
                next_action_type=ActionType.CALL,
                reason="Line busy, retry tomorrow",
            )

        return self._transition_on_no_contact(lead, now, priority_score)

    def _transition_on_contact(
        self,
        lead: Lead,
        outcome: CallOutcome,
        follow_up_days: Optional[int],
        now: datetime
    ) -> PhaseTransition:
        due = self._at_business_hour(now, follow_up_days or 1)

        if outcome == CallOutcome.ANSWERED_NOT_INTERESTED:
            return self._carry(
                lead,
                new_phase=CadencePhase.NURTURE,
                new_state=CadenceStateName.LONG_TERM_NURTURE,
                next_action_due=due,
                next_action_type=ActionType.CALL,
                re_enrollment_date=due,
                reason=f"Not interested, nurture for {follow_up_days} days",
            )

        return self._carry(
            lead,
            new_phase=CadencePhase.ENGAGED,
            new_state=CadenceStateName.EXITED_ENGAGED,
            next_action_due=due,
            next_action_type=ActionType.CALL,
            reason=f"Contact made ({outcome.value}), follow up in {follow_up_days} days",
        )

    def _transition_on_no_contact(
        self,
        lead: Lead,
        now: datetime,
        priority_score: Optional[int]
    ) -> PhaseTransition:
        phase = lead.cadence_phase

        if phase == CadencePhase.NEW:
            return self._start_blitz_1(lead, now, next_action_due=self._at_business_hour(now, 1))

        if phase == CadencePhase.BLITZ_1:
            attempts = lead.blitz_attempts + 1
            if attempts >= self.limits.blitz_1_max_attempts:
                return self._carry(
                    lead,
                    new_phase=CadencePhase.DEEP_PROSPECT,
                    new_blitz_attempts=attempts,
                    next_action_due=None,
                    next_action_type=ActionType.SKIPTRACE,
                    should_move_to_deep_prospect=True,
                    reason=f"BLITZ_1 exhausted after {attempts} attempts",
                )
            return self._carry(
                lead,
                new_blitz_attempts=attempts,
                new_cadence_step=attempts + 1,
                new_cadence_type=CadenceType.BLITZ,
                next_action_due=self._at_business_hour(now, 1),
                next_action_type=ActionType.CALL,
                reason=f"BLITZ_1 attempt {attempts}/{self.limits.blitz_1_max_attempts}",
            )

        if phase == CadencePhase.BLITZ_2:
            attempts = lead.blitz_attempts + 1
            if attempts >= self.limits.blitz_2_max_attempts:
                return self._start_temperature_cadence(lead, now, attempts)
            return self._carry(
                lead,
                new_blitz_attempts=attempts,
                new_cadence_step=attempts + 1,
                new_cadence_type=CadenceType.BLITZ,
                next_action_due=self._at_business_hour(now, 1),
                next_action_type=ActionType.CALL,
                reason=f"BLITZ_2 attempt {attempts}/{self.limits.blitz_2_max_attempts}",
            )

        if phase == CadencePhase.TEMPERATURE:
            return self._advance_temperature_cadence(lead, now, priority_score)

        if phase == CadencePhase.DEEP_PROSPECT:
            return self._carry(
                lead,
                next_action_due=None,
                next_action_type=ActionType.SKIPTRACE,
                should_move_to_deep_prospect=True,
                reason="Still needs new numbers",
            )

        if phase == CadencePhase.NURTURE:
            return self._carry(
                lead,
                new_cadence_type=CadenceType.ANNUAL,
                new_cadence_step=1,
                next_action_due=self._at_business_hour(now, self.limits.nurture_check_days),
                next_action_type=ActionType.CALL,
                reason="Nurture check rescheduled",
            )

        return self._carry(
            lead,
            next_action_due=self._at_business_hour(now, 1),
            next_action_type=ActionType.CALL,
            reason=f"No contact in {phase.value}, retry tomorrow",
        )

    def _start_blitz_1(self, lead: Lead, now: datetime, next_action_due: datetime, reason: str = "") -> PhaseTransition:
        return self._carry(
            lead,
            new_phase=CadencePhase.BLITZ_1,
            new_state=CadenceStateName.ACTIVE,
            new_blitz_attempts=1,
            new_cadence_step=2,
            new_cadence_type=CadenceType.BLITZ,
            new_cadence_start_date=now,
            next_action_due=next_action_due,
            next_action_type=ActionType.CALL,
            reason=reason or "First attempt made, starting BLITZ_1",
        )

    def _start_temperature_cadence(self, lead: Lead, now: datetime, attempts: int) -> PhaseTransition:
        template = self.get_template(self.template_type_for_band(lead.temperature_band))
        first_step = template.step(1)
        return self._carry(
            lead,
            new_phase=CadencePhase.TEMPERATURE,
            new_state=CadenceStateName.ACTIVE,
            new_blitz_attempts=attempts,
            new_cadence_step=1,
            new_cadence_type=template.cadence_type,
            new_cadence_start_date=now,
            next_action_due=now,
            next_action_type=first_step.action_type if first_step else ActionType.CALL,
            reason=f"BLITZ_2 exhausted, starting {template.cadence_type.value} cadence",
        )

    def _advance_temperature_cadence(
        self,
        lead: Lead,
        now: datetime,
        priority_score: Optional[int]
    ) -> PhaseTransition:
        template = self.get_template(
            lead.cadence_type or self.template_type_for_band(lead.temperature_band)
        )
        next_step_number = lead.cadence_step + 1
        next_step = template.step(next_step_number)

        if next_step is not None:
            start = lead.cadence_start_date or now
            scheduled = self._at_business_hour(start, next_step.day_offset)
            earliest = self._at_business_hour(now, 1)
            return self._carry(
                lead,
                new_cadence_step=next_step_number,
                new_cadence_type=template.cadence_type,
                next_action_due=max(scheduled, earliest),
                next_action_type=next_step.action_type,
                reason=f"{template.cadence_type.value} step {next_step_number}/{template.total_steps}",
            )

        if lead.enrollment_count >= self.limits.max_enrollment_cycles:
            return self._park_in_nurture(lead, now, "Cadence complete at enrollment cap")

        score = lead.priority_score if priority_score is None else priority_score
        re_enroll_at = self.calculate_re_enrollment_date(
            lead.temperature_band, score, lead.enrollment_count, now
        )
        return self._carry(
            lead,
            new_phase=CadencePhase.COMPLETED,
            new_state=CadenceStateName.COMPLETED_NO_CONTACT,
            new_cadence_type=template.cadence_type,
            next_action_due=None,
            next_action_type=ActionType.NONE,
            re_enrollment_date=re_enroll_at,
            reason=f"{template.cadence_type.value} cadence complete without contact",
        )

    def _park_in_nurture(self, lead: Lead, now: datetime, reason: str) -> PhaseTransition:
        check_at = self._at_business_hour(now, self.limits.nurture_check_days)
        return self._carry(
            lead,
            new_phase=CadencePhase.NURTURE,
            new_state=CadenceStateName.LONG_TERM_NURTURE,
            new_cadence_type=CadenceType.ANNUAL,
            new_cadence_step=1,
            new_cadence_start_date=now,
            next_action_due=check_at,
            next_action_type=ActionType.CALL,
            re_enrollment_date=check_at,
            reason=reason,
        )

    # Enrollment and reactivation

    def enroll_new_lead(self, has_callable_phone: bool, now: datetime, enrollment_count: int = 0) -> PhaseTransition:
        """First enrollment: NEW when there is a number to dial, else DEEP_PROSPECT"""
        if not has_callable_phone:
            return PhaseTransition(
                new_phase=CadencePhase.DEEP_PROSPECT,
                new_state=CadenceStateName.ACTIVE,
                new_enrollment_count=max(1, enrollment_count),
                next_action_due=None,
                next_action_type=ActionType.SKIPTRACE,
                should_move_to_deep_prospect=True,
                reason="No callable phone, needs skip trace",
            )
        return PhaseTransition(
            new_phase=CadencePhase.NEW,
            new_state=CadenceStateName.ACTIVE,
            new_enrollment_count=max(1, enrollment_count),
            next_action_due=now,
            next_action_type=ActionType.CALL,
            reason="Enrolled as new lead",
        )

    def handle_new_phone_added(self, lead: Lead, now: datetime) -> PhaseTransition:
        """
        Reaction to a new callable number.

        Parked phases restart in BLITZ_2; otherwise the phase is kept and
        the next call is pulled forward to now.
        """
        if (
            lead.cadence_phase in _REACTIVATED_BY_PHONE
            and lead.cadence_state != CadenceStateName.EXITED_ENGAGED
        ):
            return PhaseTransition(
                new_phase=CadencePhase.BLITZ_2,
                new_state=CadenceStateName.ACTIVE,
                new_blitz_attempts=0,
                new_cadence_step=1,
                new_cadence_type=CadenceType.BLITZ,
                new_cadence_start_date=now,
                next_action_due=now,
                next_action_type=ActionType.CALL,
                reason=f"New phone added, restarting from {lead.cadence_phase.value} in BLITZ_2",
            )

        if lead.cadence_state == CadenceStateName.NOT_ENROLLED:
            return self.enroll_new_lead(True, now, lead.enrollment_count)

        return self._carry(
            lead,
            new_state=lead.cadence_state,
            next_action_due=now,
            next_action_type=ActionType.CALL,
            reason="New phone added, call now",
        )

    def re_enroll(self, lead: Lead, now: datetime, stale_engaged: bool = False) -> Optional[PhaseTransition]:
        """
        Restart a finished or stale lead on a fresh cadence.

        Returns None for leads in a never-re-enroll state. At the enrollment
        cap the lead is parked in long-term nurture instead.
        """
        if not self.can_re_enroll(lead.cadence_state):
            return None

        if lead.enrollment_count >= self.limits.max_enrollment_cycles:
            return self._park_in_nurture(lead, now, "Enrollment cap reached")

        cadence_type = (
            CadenceType.GENTLE if stale_engaged
            else self.template_type_for_band(lead.temperature_band)
        )
        template = self.get_template(cadence_type)
        first_step = template.step(1)

        return PhaseTransition(
            new_phase=CadencePhase.TEMPERATURE,
            new_state=CadenceStateName.STALE_ENGAGED if stale_engaged else CadenceStateName.ACTIVE,
            new_blitz_attempts=lead.blitz_attempts,
            new_cadence_step=1,
            new_cadence_type=template.cadence_type,
            new_cadence_start_date=now,
            new_enrollment_count=lead.enrollment_count + 1,
            next_action_due=self._at_business_hour(now, 0),
            next_action_type=first_step.action_type if first_step else ActionType.CALL,
            reason=(
                f"Re-enrolled ({'stale engaged' if stale_engaged else 'cadence restart'}) "
                f"on {template.cadence_type.value}, cycle {lead.enrollment_count + 1}"
            ),
        )

    def is_stale_engaged(self, lead: Lead, now: datetime) -> bool:
        """Engaged lead with no activity for STALE_ENGAGED_DAYS or more"""
        if lead.cadence_state != CadenceStateName.EXITED_ENGAGED:
            return False
        activity = [t for t in (lead.last_contacted_at, lead.updated_at) if t is not None]
        if not activity:
            return True
        return days_between(max(activity), now) >= self.limits.stale_engaged_days
