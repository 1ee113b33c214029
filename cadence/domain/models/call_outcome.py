"""
Call Outcome Models
Canonical call outcomes and the coarse result types derived from them
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CallOutcome(str, Enum):
    """Fine-grained outcome of a single call"""
    ANSWERED_INTERESTED = "ANSWERED_INTERESTED"
    ANSWERED_CALLBACK = "ANSWERED_CALLBACK"
    ANSWERED_NEUTRAL = "ANSWERED_NEUTRAL"
    ANSWERED_NOT_NOW = "ANSWERED_NOT_NOW"
    ANSWERED_NOT_INTERESTED = "ANSWERED_NOT_INTERESTED"
    ANSWERED_DNC = "ANSWERED_DNC"
    VOICEMAIL = "VOICEMAIL"
    NO_ANSWER = "NO_ANSWER"
    BUSY = "BUSY"
    WRONG_NUMBER = "WRONG_NUMBER"
    DISCONNECTED = "DISCONNECTED"
    DNC = "DNC"
    DECEASED = "DECEASED"


class ResultType(str, Enum):
    """Coarse classification used for cadence decisions"""
    NO_CONTACT = "NO_CONTACT"
    RETRY = "RETRY"
    CONTACT_MADE = "CONTACT_MADE"
    BAD_DATA = "BAD_DATA"
    TERMINAL = "TERMINAL"


class OutcomeConfig(BaseModel):
    """
    Behavior of one call outcome.

    This is the single source of truth for both classifiers: the coarse
    result type of a label is always the result type of its outcome.
    """
    model_config = ConfigDict(frozen=True)

    is_contact: bool = False
    is_terminal: bool = False
    result_type: ResultType = ResultType.NO_CONTACT
    score_change: int = 0
    follow_up_days: Optional[int] = Field(default=None, ge=0)
    exit_state: Optional[str] = Field(
        default=None,
        description="Cadence state a terminal outcome exits to"
    )
