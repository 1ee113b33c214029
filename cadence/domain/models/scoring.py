"""
Scoring Models
Priority score results with their explanation
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from cadence.domain.models.lead import TemperatureBand


class ConfidenceLevel(str, Enum):
    """How much data backs a score"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class NextAction(str, Enum):
    """Recommended next action for a lead"""
    CALL_NOW = "Call Now"
    FOLLOW_UP = "Follow Up"
    GET_NUMBERS = "Get Numbers"
    NURTURE = "Nurture"
    NOT_WORKABLE = "Not Workable"


class ScoreReason(BaseModel):
    """One contribution to a score"""
    label: str
    delta: float
    category: str = "other"

    def format(self) -> str:
        sign = "+" if self.delta >= 0 else ""
        return f"{self.label} ({sign}{round(self.delta)})"


class ScoreBreakdown(BaseModel):
    """Contributions in evaluation order and the resulting total"""
    contributions: List[ScoreReason] = Field(default_factory=list)
    total: int = 0

    def total_for(self, category: str) -> float:
        """Sum of contributions in one category"""
        return sum(c.delta for c in self.contributions if c.category == category)


class ScoreFlags(BaseModel):
    """Workability signals computed alongside the score"""
    is_dnc: bool = False
    is_closed: bool = False
    is_snoozed: bool = False
    is_terminal: bool = False
    has_callable_phone: bool = False
    has_overdue_task: bool = False
    has_due_today_task: bool = False

    @property
    def is_workable(self) -> bool:
        return not (self.is_dnc or self.is_closed or self.is_snoozed or self.is_terminal)


class ScoreResult(BaseModel):
    """Result of scoring a lead"""
    score: int = Field(..., ge=0)
    confidence: ConfidenceLevel
    confidence_points: int = 0
    next_action: NextAction
    reasons: List[ScoreReason] = Field(default_factory=list)
    top_reason: Optional[str] = None
    reason_string: str = ""
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    flags: ScoreFlags = Field(default_factory=ScoreFlags)
    suggested_band: TemperatureBand = TemperatureBand.ICE


class MotivationContribution(BaseModel):
    """Points a single motivation adds after tiering and diminishing returns"""
    name: str
    tier: str
    base_points: int
    multiplier: float
    points: float
