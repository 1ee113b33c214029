"""
Queue Models
Tier assignments and ordered queue entries
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from cadence.domain.models.base import UtcDatetime
from cadence.domain.models.scoring import ConfidenceLevel, NextAction


NOT_WORKABLE_BUCKET = "not-workable"


class QueueTierConfig(BaseModel):
    """Static description of one queue tier"""
    model_config = ConfigDict(frozen=True)

    name: str
    bucket: str
    description: str = ""


class QueueAssignment(BaseModel):
    """Tier decision for one lead; tier None means excluded from every queue"""
    tier: Optional[int] = Field(default=None, ge=1, le=9)
    tier_name: Optional[str] = None
    bucket: str = NOT_WORKABLE_BUCKET
    reason: str = ""

    @property
    def is_visible(self) -> bool:
        return self.tier is not None


class QueueEntry(BaseModel):
    """A lead placed in the queue"""
    lead_id: str
    tier: int
    tier_name: str
    bucket: str
    reason: str
    score: int
    confidence: ConfidenceLevel
    next_action: NextAction
    top_reason: Optional[str] = None
    next_action_due: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class TierBreakdown(BaseModel):
    """Lead count for a single tier"""
    tier: int
    name: str
    bucket: str
    count: int = 0


class QueueCounts(BaseModel):
    """Lead counts per bucket"""
    total: int = 0
    buckets: Dict[str, int] = Field(default_factory=dict)
    tiers: List[TierBreakdown] = Field(default_factory=list)
