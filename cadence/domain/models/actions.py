"""
Action Models
Inbound engine actions, their results and the audit trail they leave
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from cadence.domain.models.base import UtcDatetime
from cadence.domain.models.lead import Lead
from cadence.domain.models.phone import Phone, PhoneStatusUpdate, PhoneSummary
from cadence.domain.models.queue import QueueAssignment
from cadence.domain.models.scoring import ScoreResult


class ActionKind(str, Enum):
    """Actions accepted by the engine"""
    CALL = "call"
    PHONE_ADDED = "phone_added"
    SNOOZE = "snooze"
    PAUSE = "pause"
    RESUME = "resume"
    TEMPERATURE_CHANGE = "temperature_change"
    COMPLETE = "complete"
    SKIP = "skip"


class ActionPayload(BaseModel):
    """
    Action parameters. Only the fields relevant to the action are read.

    call:               result_label (required), phone_id, was_answered, callback_date
    phone_added:        phone (required)
    snooze:             snooze_hours or snooze_option
    pause:              reason
    temperature_change: temperature (required)
    complete:           reason
    skip:               no parameters
    """
    result_label: Optional[str] = None
    phone_id: Optional[str] = None
    was_answered: bool = False
    callback_date: Optional[UtcDatetime] = None
    phone: Optional[Phone] = None
    snooze_hours: Optional[float] = Field(default=None, gt=0)
    snooze_option: Optional[str] = None
    reason: Optional[str] = None
    temperature: Optional[str] = None
    notes: Optional[str] = None


class AuditEntry(BaseModel):
    """One recorded change to a lead"""
    lead_id: str
    action: str
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    timestamp: UtcDatetime
    source: str = "engine"

    def to_record(self) -> dict:
        return self.model_dump(mode="json")


class ActionOutcome(BaseModel):
    """Pure result of applying an action to a lead, before persistence"""
    lead: Lead
    phone_updates: List[PhoneStatusUpdate] = Field(default_factory=list)
    added_phone: Optional[Phone] = None
    audit_entries: List[AuditEntry] = Field(default_factory=list)
    queue_assignment: QueueAssignment = Field(default_factory=QueueAssignment)
    score: Optional[ScoreResult] = None
    message: str = ""


class ActionResult(BaseModel):
    """What a caller of process_action gets back"""
    success: bool
    lead_id: str
    action: str
    message: str = ""
    error: Optional[str] = None
    lead: Optional[Lead] = None
    queue_assignment: Optional[QueueAssignment] = None
    audit_entries: List[AuditEntry] = Field(default_factory=list)

    @classmethod
    def failure(cls, lead_id: str, action: str, error: str, message: str = "") -> "ActionResult":
        return cls(success=False, lead_id=lead_id, action=action, error=error, message=message or error)


class LeadStatus(BaseModel):
    """Read-only cadence overview of one lead"""
    lead_id: str
    cadence_phase: str
    cadence_state: str
    cadence_type: Optional[str] = None
    cadence_progress: Optional[str] = None
    next_action_due: Optional[datetime] = None
    next_action_type: Optional[str] = None
    callback_scheduled_for: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    re_enrollment_date: Optional[datetime] = None
    enrollment_count: int = 0
    can_re_enroll: bool = False
    is_workable: bool = True
    score: Optional[ScoreResult] = None
    queue_assignment: Optional[QueueAssignment] = None
    phone_summary: Optional[PhoneSummary] = None
