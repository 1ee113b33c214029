"""
Transition Models
Pure decisions produced by the phase manager and result handler
"""
from typing import Optional

from pydantic import BaseModel, Field

from cadence.domain.models.base import UtcDatetime
from cadence.domain.models.cadence_template import ActionType, CadenceType
from cadence.domain.models.call_outcome import CallOutcome, ResultType
from cadence.domain.models.lead import CadencePhase, CadenceStateName
from cadence.domain.models.phone import PhoneStatusUpdate


class PhaseTransition(BaseModel):
    """
    Where a lead goes next.

    A transition is a value: applying it to a lead is the engine's job.
    `new_cadence_start_date` is only set when a new template starts.
    """
    new_phase: CadencePhase
    new_state: CadenceStateName
    new_blitz_attempts: int = Field(default=0, ge=0)
    new_cadence_step: int = Field(default=0, ge=0)
    new_cadence_type: Optional[CadenceType] = None
    new_cadence_start_date: Optional[UtcDatetime] = None
    new_enrollment_count: Optional[int] = None
    next_action_due: Optional[UtcDatetime] = None
    next_action_type: ActionType = ActionType.NONE
    callback_scheduled_for: Optional[UtcDatetime] = None
    re_enrollment_date: Optional[UtcDatetime] = None
    should_move_to_deep_prospect: bool = False
    should_move_to_not_workable: bool = False
    reason: str = ""


class CallResult(BaseModel):
    """Everything a logged call implies for the lead and the dialed phone"""
    outcome: CallOutcome
    result_type: ResultType
    phase_transition: PhaseTransition
    phone_update: Optional[PhoneStatusUpdate] = None
    phone_exhausted: bool = False
    is_contact_made: bool = False
    is_terminal: bool = False
    is_bad_data: bool = False
    should_move_to_deep_prospect: bool = False
    score_change: int = 0
    reason: str = ""
