"""
Phone Models
Phone numbers attached to a lead and the per-call status updates applied to them
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from cadence.domain.models.base import UtcDatetime


class PhoneStatus(str, Enum):
    """Reachability status of a single phone number"""
    VALID = "VALID"
    UNVERIFIED = "UNVERIFIED"
    WRONG = "WRONG"
    DISCONNECTED = "DISCONNECTED"
    DNC = "DNC"


CALLABLE_PHONE_STATUSES = frozenset({PhoneStatus.VALID, PhoneStatus.UNVERIFIED})


class Phone(BaseModel):
    """
    A phone number owned by a lead.

    Only VALID and UNVERIFIED numbers may be dialed. The no-answer counter
    drives rotation to the next number and is never reset by rotation itself.
    """
    id: str
    number: str = ""
    type: str = Field(default="OTHER", description="MOBILE, CELL, LANDLINE, WORK, FAX, ...")
    phone_status: PhoneStatus = PhoneStatus.UNVERIFIED
    is_primary: bool = False
    attempt_count: int = Field(default=0, ge=0)
    consecutive_no_answer: int = Field(default=0, ge=0)
    last_attempt_at: Optional[UtcDatetime] = None
    last_outcome: Optional[str] = None

    @property
    def is_callable(self) -> bool:
        return self.phone_status in CALLABLE_PHONE_STATUSES

    def to_record(self) -> dict:
        """Flatten to a persisted row"""
        return self.model_dump(mode="json")


class PhoneStatusUpdate(BaseModel):
    """Changes to apply to a phone after a call, plus the rotation decision"""
    phone_id: str
    new_status: PhoneStatus
    attempt_count: int
    consecutive_no_answer: int
    last_attempt_at: UtcDatetime
    last_outcome: str
    should_rotate: bool = False
    rotate_reason: Optional[str] = None
    next_phone_id: Optional[str] = None

    def to_fields(self) -> dict:
        """Column changes for the record store"""
        return {
            "phone_status": self.new_status.value,
            "attempt_count": self.attempt_count,
            "consecutive_no_answer": self.consecutive_no_answer,
            "last_attempt_at": self.last_attempt_at.isoformat(),
            "last_outcome": self.last_outcome,
        }


class PhoneSummary(BaseModel):
    """Phone health overview for a lead"""
    total: int = 0
    callable: int = 0
    valid: int = 0
    unverified: int = 0
    bad: int = 0
    has_mobile: bool = False
    exhausted: bool = False
    next_phone_id: Optional[str] = None
    next_phone_number: Optional[str] = None
