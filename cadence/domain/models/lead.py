"""
Lead Model
A lead record as seen by the cadence engine.

The cadence state is a tagged union: fields that only make sense in one
state (snooze end, pause reason, exit details, re-enrollment date) live on
that state's variant, so a lead cannot be snoozed without being SNOOZED.
"""
import logging
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cadence.domain.models.base import UtcDatetime
from cadence.domain.models.cadence_template import ActionType, CadenceType
from cadence.domain.models.phone import Phone
from cadence.utils.time_utils import ensure_utc, local_day

logger = logging.getLogger(__name__)


class TemperatureBand(str, Enum):
    """Lead temperature, hottest first"""
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"
    ICE = "ICE"


class CadencePhase(str, Enum):
    """Lifecycle phase of a lead"""
    NEW = "NEW"
    BLITZ_1 = "BLITZ_1"
    DEEP_PROSPECT = "DEEP_PROSPECT"
    BLITZ_2 = "BLITZ_2"
    TEMPERATURE = "TEMPERATURE"
    COMPLETED = "COMPLETED"
    ENGAGED = "ENGAGED"
    NURTURE = "NURTURE"


class CadenceStateName(str, Enum):
    """Workability state of a lead"""
    NOT_ENROLLED = "NOT_ENROLLED"
    ACTIVE = "ACTIVE"
    SNOOZED = "SNOOZED"
    PAUSED = "PAUSED"
    COMPLETED_NO_CONTACT = "COMPLETED_NO_CONTACT"
    EXITED_ENGAGED = "EXITED_ENGAGED"
    EXITED_DNC = "EXITED_DNC"
    EXITED_DEAD = "EXITED_DEAD"
    EXITED_CLOSED = "EXITED_CLOSED"
    STALE_ENGAGED = "STALE_ENGAGED"
    LONG_TERM_NURTURE = "LONG_TERM_NURTURE"


TERMINAL_STATES = frozenset({
    CadenceStateName.EXITED_DNC,
    CadenceStateName.EXITED_DEAD,
    CadenceStateName.EXITED_CLOSED,
})


# =============================================================================
# Cadence state variants
# =============================================================================

class _StateBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class NotEnrolled(_StateBase):
    name: Literal["NOT_ENROLLED"] = "NOT_ENROLLED"


class Active(_StateBase):
    name: Literal["ACTIVE"] = "ACTIVE"


class Snoozed(_StateBase):
    name: Literal["SNOOZED"] = "SNOOZED"
    until: UtcDatetime


class Paused(_StateBase):
    name: Literal["PAUSED"] = "PAUSED"
    reason: str = "Manual pause"


class _ExitedBase(_StateBase):
    exit_date: Optional[UtcDatetime] = None
    exit_reason: Optional[str] = None


class CompletedNoContact(_ExitedBase):
    name: Literal["COMPLETED_NO_CONTACT"] = "COMPLETED_NO_CONTACT"
    re_enrollment_date: Optional[UtcDatetime] = None


class ExitedEngaged(_ExitedBase):
    name: Literal["EXITED_ENGAGED"] = "EXITED_ENGAGED"


class ExitedDnc(_ExitedBase):
    name: Literal["EXITED_DNC"] = "EXITED_DNC"


class ExitedDead(_ExitedBase):
    name: Literal["EXITED_DEAD"] = "EXITED_DEAD"


class ExitedClosed(_ExitedBase):
    name: Literal["EXITED_CLOSED"] = "EXITED_CLOSED"


class StaleEngaged(_StateBase):
    name: Literal["STALE_ENGAGED"] = "STALE_ENGAGED"


class LongTermNurture(_StateBase):
    name: Literal["LONG_TERM_NURTURE"] = "LONG_TERM_NURTURE"
    re_enrollment_date: Optional[UtcDatetime] = None


CadenceState = Annotated[
    Union[
        NotEnrolled,
        Active,
        Snoozed,
        Paused,
        CompletedNoContact,
        ExitedEngaged,
        ExitedDnc,
        ExitedDead,
        ExitedClosed,
        StaleEngaged,
        LongTermNurture,
    ],
    Field(discriminator="name"),
]

_STATE_CLASSES = {
    CadenceStateName.NOT_ENROLLED: NotEnrolled,
    CadenceStateName.ACTIVE: Active,
    CadenceStateName.SNOOZED: Snoozed,
    CadenceStateName.PAUSED: Paused,
    CadenceStateName.COMPLETED_NO_CONTACT: CompletedNoContact,
    CadenceStateName.EXITED_ENGAGED: ExitedEngaged,
    CadenceStateName.EXITED_DNC: ExitedDnc,
    CadenceStateName.EXITED_DEAD: ExitedDead,
    CadenceStateName.EXITED_CLOSED: ExitedClosed,
    CadenceStateName.STALE_ENGAGED: StaleEngaged,
    CadenceStateName.LONG_TERM_NURTURE: LongTermNurture,
}


def build_state(
    name: CadenceStateName,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
    re_enrollment_date: Optional[datetime] = None,
    snoozed_until: Optional[datetime] = None,
):
    """
    Construct the state variant for `name`, filling only the fields it owns.

    Exit variants get `now` as their exit date and `reason` as exit reason.
    """
    name = CadenceStateName(name)
    state_class = _STATE_CLASSES[name]

    if name == CadenceStateName.SNOOZED:
        return Snoozed(until=snoozed_until)
    if name == CadenceStateName.PAUSED:
        return Paused(reason=reason or "Manual pause")
    if name == CadenceStateName.COMPLETED_NO_CONTACT:
        return CompletedNoContact(
            exit_date=now, exit_reason=reason, re_enrollment_date=re_enrollment_date
        )
    if name == CadenceStateName.LONG_TERM_NURTURE:
        return LongTermNurture(re_enrollment_date=re_enrollment_date)
    if issubclass(state_class, _ExitedBase):
        return state_class(exit_date=now, exit_reason=reason)
    return state_class()


# =============================================================================
# Tasks
# =============================================================================

class TaskType(str, Enum):
    CALLBACK = "CALLBACK"
    FOLLOW_UP = "FOLLOW_UP"
    OTHER = "OTHER"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Task(BaseModel):
    """A user task attached to a lead"""
    id: str
    title: str = ""
    task_type: TaskType = TaskType.OTHER
    due_date: Optional[UtcDatetime] = None
    status: TaskStatus = TaskStatus.PENDING

    @property
    def is_open(self) -> bool:
        return self.status == TaskStatus.PENDING

    def days_until_due(self, now: datetime, timezone: str = "UTC") -> Optional[int]:
        """Calendar days from today to the due date (negative when overdue)"""
        if self.due_date is None:
            return None
        return (local_day(self.due_date, timezone) - local_day(now, timezone)).days


# =============================================================================
# Lead
# =============================================================================

class Lead(BaseModel):
    """
    Cadence view of a lead.

    `priority_score` and `queue_tier` are derived and rewritten by the engine
    after every action; they are never inputs to a transition.
    """

    id: str
    owner_name: Optional[str] = None
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None

    # Attributes used for scoring
    temperature_band: TemperatureBand = TemperatureBand.WARM
    status_name: Optional[str] = None
    motivations: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    has_email: bool = False
    skiptrace_date: Optional[UtcDatetime] = None

    # Cadence position
    cadence_phase: CadencePhase = CadencePhase.NEW
    state: CadenceState = Field(default_factory=NotEnrolled)
    cadence_type: Optional[CadenceType] = None
    cadence_step: int = Field(default=0, ge=0)
    cadence_start_date: Optional[UtcDatetime] = None
    cadence_progress: Optional[str] = None

    # Counters
    blitz_attempts: int = Field(default=0, ge=0)
    no_response_streak: int = Field(default=0, ge=0)
    enrollment_count: int = Field(default=0, ge=0)
    call_attempts: int = Field(default=0, ge=0)
    has_engaged: bool = False
    engagement_score: int = Field(default=0, ge=0, le=100)

    # Contact history
    last_contacted_at: Optional[UtcDatetime] = None
    last_contact_type: Optional[str] = None
    last_contact_result: Optional[str] = None
    last_phone_called_id: Optional[str] = None

    # Scheduling
    next_action_due: Optional[UtcDatetime] = None
    next_action_type: Optional[ActionType] = None
    callback_scheduled_for: Optional[UtcDatetime] = None
    callback_requested_at: Optional[UtcDatetime] = None
    phone_exhausted_at: Optional[UtcDatetime] = None
    deep_prospect_entered_at: Optional[UtcDatetime] = None

    # Derived
    priority_score: int = 0
    queue_tier: Optional[int] = None

    phones: List[Phone] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)

    # State projections

    @property
    def cadence_state(self) -> CadenceStateName:
        return CadenceStateName(self.state.name)

    @property
    def snoozed_until(self) -> Optional[datetime]:
        return self.state.until if isinstance(self.state, Snoozed) else None

    @property
    def paused_reason(self) -> Optional[str]:
        return self.state.reason if isinstance(self.state, Paused) else None

    @property
    def re_enrollment_date(self) -> Optional[datetime]:
        if isinstance(self.state, (CompletedNoContact, LongTermNurture)):
            return self.state.re_enrollment_date
        return None

    @property
    def cadence_exit_date(self) -> Optional[datetime]:
        return self.state.exit_date if isinstance(self.state, _ExitedBase) else None

    @property
    def cadence_exit_reason(self) -> Optional[str]:
        return self.state.exit_reason if isinstance(self.state, _ExitedBase) else None

    @property
    def is_terminal(self) -> bool:
        return self.cadence_state in TERMINAL_STATES

    def get_phone(self, phone_id: Optional[str]) -> Optional[Phone]:
        for phone in self.phones:
            if phone.id == phone_id:
                return phone
        return None

    def open_tasks(self) -> List[Task]:
        return [task for task in self.tasks if task.is_open]

    # Persistence

    def to_record(self) -> Dict[str, Any]:
        """
        Flatten into the persisted `leads` row.

        Phones and tasks are stored in their own tables and are not included.
        """
        record = self.model_dump(mode="json", exclude={"state", "phones", "tasks"})
        record.update({
            "cadence_state": self.cadence_state.value,
            "snoozed_until": _iso(self.snoozed_until),
            "paused_reason": self.paused_reason,
            "re_enrollment_date": _iso(self.re_enrollment_date),
            "cadence_exit_date": _iso(self.cadence_exit_date),
            "cadence_exit_reason": self.cadence_exit_reason,
        })
        return record

    @classmethod
    def from_record(
        cls,
        record: Dict[str, Any],
        phones: Optional[Iterable[Dict[str, Any]]] = None,
        tasks: Optional[Iterable[Dict[str, Any]]] = None,
    ) -> "Lead":
        """
        Rebuild a lead from a persisted row.

        Contradictory flags are normalized rather than rejected: a SNOOZED row
        without an end time loads as ACTIVE, a PAUSED row without a reason gets
        "Manual hold", and state-specific columns on other states are ignored.
        """
        data = {key: value for key, value in record.items() if key in cls.model_fields}
        data["state"] = _state_from_record(record)
        data["phones"] = [Phone.model_validate(p) for p in (phones or [])]
        data["tasks"] = [Task.model_validate(t) for t in (tasks or [])]
        return cls.model_validate(data)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return ensure_utc(datetime(value.year, value.month, value.day))
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _state_from_record(record: Dict[str, Any]):
    raw_name = record.get("cadence_state") or CadenceStateName.NOT_ENROLLED.value
    try:
        name = CadenceStateName(raw_name)
    except ValueError:
        logger.warning(f"Lead {record.get('id')} has unknown cadence state '{raw_name}', loading as NOT_ENROLLED")
        name = CadenceStateName.NOT_ENROLLED

    if name == CadenceStateName.SNOOZED:
        until = _parse_dt(record.get("snoozed_until"))
        if until is None:
            logger.warning(f"Lead {record.get('id')} is SNOOZED without snoozed_until, loading as ACTIVE")
            return Active()
        return Snoozed(until=until)

    if name == CadenceStateName.PAUSED:
        return Paused(reason=record.get("paused_reason") or "Manual hold")

    return build_state(
        name,
        now=_parse_dt(record.get("cadence_exit_date")),
        reason=record.get("cadence_exit_reason"),
        re_enrollment_date=_parse_dt(record.get("re_enrollment_date")),
    )
