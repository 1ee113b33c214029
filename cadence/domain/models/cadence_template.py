"""
Cadence Template Models
Ordered step sequences a lead is enrolled into
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CadenceType(str, Enum):
    """Named cadence templates"""
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"
    ICE = "ICE"
    GENTLE = "GENTLE"
    ANNUAL = "ANNUAL"
    BLITZ = "BLITZ"


class ActionType(str, Enum):
    """Channel of the next scheduled action"""
    CALL = "CALL"
    SMS = "SMS"
    RVM = "RVM"
    EMAIL = "EMAIL"
    SKIPTRACE = "SKIPTRACE"
    NONE = "NONE"


class CadenceStep(BaseModel):
    """One step of a template, scheduled relative to the cadence start"""
    model_config = ConfigDict(frozen=True)

    step_number: int = Field(..., ge=1)
    day_offset: int = Field(..., ge=0)
    action_type: ActionType = ActionType.CALL
    description: str = ""


class CadenceTemplate(BaseModel):
    """An ordered, 1-indexed list of steps"""
    model_config = ConfigDict(frozen=True)

    cadence_type: CadenceType
    temperature_band: Optional[str] = None
    steps: List[CadenceStep] = Field(default_factory=list)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def total_days(self) -> int:
        return self.steps[-1].day_offset if self.steps else 0

    def step(self, step_number: int) -> Optional[CadenceStep]:
        """Step by 1-based number, or None past the end"""
        if 1 <= step_number <= len(self.steps):
            return self.steps[step_number - 1]
        return None
