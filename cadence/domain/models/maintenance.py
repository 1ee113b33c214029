"""
Maintenance Models
Summaries produced by the daily maintenance sweep
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from cadence.domain.models.base import UtcDatetime


class SweepStep(str, Enum):
    """Sweep steps, in execution order. Values double as summary keys."""
    UNSNOOZE = "unsnoozed"
    RE_ENROLL = "re_enrolled"
    STALE_ENGAGED = "stale_engaged_marked"
    PHONE_EXHAUSTION = "phone_exhausted_marked"
    DEEP_PROSPECT_REACTIVATION = "deep_prospect_reactivated"
    QUEUE_REFRESH = "queue_tiers_refreshed"


class SweepStatus(str, Enum):
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"


class SweepError(BaseModel):
    """A lead, or a whole page read, that failed during a sweep step"""
    model_config = ConfigDict(frozen=True)

    # None when the page read itself failed
    lead_id: Optional[str] = None
    step: SweepStep
    message: str


class PageSummary(BaseModel):
    """Result of processing one page of one step"""
    model_config = ConfigDict(frozen=True)

    step: SweepStep
    scanned: int = 0
    changed: int = 0
    errors: tuple[SweepError, ...] = ()


class SweepSummary(BaseModel):
    """Result of a full sweep run"""
    model_config = ConfigDict(frozen=True)

    started_at: UtcDatetime
    finished_at: Optional[UtcDatetime] = None
    unsnoozed: int = 0
    re_enrolled: int = 0
    stale_engaged_marked: int = 0
    phone_exhausted_marked: int = 0
    deep_prospect_reactivated: int = 0
    queue_tiers_refreshed: int = 0
    scanned: int = 0
    errors: List[SweepError] = Field(default_factory=list)

    @property
    def status(self) -> SweepStatus:
        return SweepStatus.PARTIAL if self.errors else SweepStatus.COMPLETED

    def merge(self, page: PageSummary) -> "SweepSummary":
        """Fold one page summary into a new sweep summary"""
        key = page.step.value
        return self.model_copy(update={
            key: getattr(self, key) + page.changed,
            "scanned": self.scanned + page.scanned,
            "errors": [*self.errors, *page.errors],
        })

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["status"] = self.status.value
        return data
