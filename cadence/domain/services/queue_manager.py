"""
Queue Manager
Assigns leads to the nine work-queue tiers and orders the queue
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from cadence.domain.models.cadence_config import CadenceConfig, get_cadence_config
from cadence.domain.models.lead import CadencePhase, CadenceStateName, Lead
from cadence.domain.models.phone import PhoneStatus
from cadence.domain.models.queue import (
    QueueAssignment,
    QueueCounts,
    QueueEntry,
    TierBreakdown,
)
from cadence.domain.models.scoring import ConfidenceLevel, NextAction, ScoreResult
from cadence.domain.services.scoring_engine import ScoringEngine
from cadence.utils.time_utils import is_on_or_before_day

logger = logging.getLogger(__name__)


_BLITZ_PHASES = frozenset({CadencePhase.BLITZ_1, CadencePhase.BLITZ_2})


class QueueManager:
    """
    Work-queue tiering.

    Tiers are checked top-down and the first match wins:
    1. Callbacks due now or overdue
    2. New leads never attempted
    3. Blitz follow-ups due
    4. Tasks due today or overdue
    5. Temperature cadence steps due
    6. Active callable leads
    7. Callable but needs validation
    8. No callable phone, not yet flagged exhausted
    9. Nurture

    Leads outside the queue-visible states are excluded regardless of score.
    """

    def __init__(self, config: Optional[CadenceConfig] = None, scoring_engine: Optional[ScoringEngine] = None):
        self.config = config or get_cadence_config()
        self.scoring_engine = scoring_engine or ScoringEngine(self.config)
        self.tiers = self.config.queue.tiers

    def get_bucket(self, tier: int) -> str:
        return self.tiers[tier].bucket

    def _assign(self, tier: int, reason: str) -> QueueAssignment:
        tier_config = self.tiers[tier]
        return QueueAssignment(tier=tier, tier_name=tier_config.name, bucket=tier_config.bucket, reason=reason)

    def assign_queue_tier(
        self,
        lead: Lead,
        now: datetime,
        score: Optional[ScoreResult] = None
    ) -> QueueAssignment:
        """
        Place a lead in exactly one tier.

        Args:
            lead: Lead to place
            now: Reference time
            score: Precomputed score; computed when omitted

        Returns:
            QueueAssignment; tier is None when the lead is not workable
        """
        if lead.cadence_state not in self.config.states.queue_visible:
            return QueueAssignment(reason=f"State {lead.cadence_state.value} is not queue-visible")

        timezone = self.config.business.timezone
        due_today = is_on_or_before_day(lead.next_action_due, now, timezone)
        has_callable = any(p.is_callable for p in lead.phones)

        if lead.callback_scheduled_for is not None and lead.callback_scheduled_for <= now:
            return self._assign(1, "Callback due")

        if lead.cadence_phase == CadencePhase.NEW and lead.call_attempts == 0:
            return self._assign(2, "New lead, never attempted")

        if lead.cadence_phase in _BLITZ_PHASES and due_today:
            return self._assign(3, f"{lead.cadence_phase.value} follow-up due")

        for task in lead.open_tasks():
            days = task.days_until_due(now, timezone)
            if days is not None and days < 0:
                return self._assign(4, f"Task overdue: {task.title}".rstrip(": "))
        for task in lead.open_tasks():
            if task.days_until_due(now, timezone) == 0:
                return self._assign(4, f"Task due today: {task.title}".rstrip(": "))

        if lead.cadence_phase == CadencePhase.TEMPERATURE and due_today:
            return self._assign(5, f"Cadence step {lead.cadence_progress or lead.cadence_step} due")

        if (
            lead.cadence_state == CadenceStateName.ACTIVE
            and has_callable
            and (lead.next_action_due is None or due_today)
        ):
            return self._assign(6, "Active lead ready to call")

        if has_callable:
            score = score or self.scoring_engine.compute_priority(lead, now)
            has_valid = any(p.phone_status == PhoneStatus.VALID for p in lead.phones)
            if score.confidence == ConfidenceLevel.LOW or not has_valid:
                return self._assign(7, "Callable but needs validation")

        if not has_callable and lead.phone_exhausted_at is None:
            return self._assign(8, "No callable phone")

        return self._assign(9, "Nurture")

    # Queue building

    def build_queue(self, leads: Iterable[Lead], now: datetime) -> List[QueueEntry]:
        """
        Score, tier and order leads.

        Order: tier ascending, score descending, soonest next action,
        earliest created, then id. Excluded and not-workable leads are dropped.
        """
        entries = []
        for lead in leads:
            score = self.scoring_engine.compute_priority(lead, now)
            assignment = self.assign_queue_tier(lead, now, score)
            if not assignment.is_visible or score.next_action == NextAction.NOT_WORKABLE:
                continue
            entries.append(QueueEntry(
                lead_id=lead.id,
                tier=assignment.tier,
                tier_name=assignment.tier_name,
                bucket=assignment.bucket,
                reason=assignment.reason,
                score=score.score,
                confidence=score.confidence,
                next_action=score.next_action,
                top_reason=score.top_reason,
                next_action_due=lead.next_action_due,
                created_at=lead.created_at,
            ))

        return sorted(entries, key=self._sort_key)

    @staticmethod
    def _sort_key(entry: QueueEntry):
        due = entry.next_action_due.timestamp() if entry.next_action_due else float("inf")
        created = entry.created_at.timestamp() if entry.created_at else float("inf")
        return (entry.tier, -entry.score, due, created, entry.lead_id)

    def filter_by_bucket(self, entries: Iterable[QueueEntry], bucket: str) -> List[QueueEntry]:
        return [e for e in entries if e.bucket == bucket]

    def filter_by_tier(self, entries: Iterable[QueueEntry], tier: int) -> List[QueueEntry]:
        return [e for e in entries if e.tier == tier]

    def get_next_up(self, entries: List[QueueEntry]) -> Optional[QueueEntry]:
        return entries[0] if entries else None

    def get_tier_breakdown(self, entries: Iterable[QueueEntry]) -> List[TierBreakdown]:
        counts = Counter(e.tier for e in entries)
        return [
            TierBreakdown(tier=tier, name=config.name, bucket=config.bucket, count=counts.get(tier, 0))
            for tier, config in sorted(self.tiers.items())
        ]

    def get_queue_counts(self, entries: List[QueueEntry]) -> QueueCounts:
        buckets: Dict[str, int] = {}
        for config in self.tiers.values():
            buckets.setdefault(config.bucket, 0)
        for entry in entries:
            buckets[entry.bucket] = buckets.get(entry.bucket, 0) + 1
        return QueueCounts(
            total=len(entries),
            buckets=buckets,
            tiers=self.get_tier_breakdown(entries),
        )

    def get_next_up_in_bucket(self, entries: List[QueueEntry], bucket: str) -> Optional[QueueEntry]:
        return self.get_next_up(self.filter_by_bucket(entries, bucket))

    def get_bucket_tier_breakdown(self, entries: Iterable[QueueEntry], bucket: str) -> List[TierBreakdown]:
        """Tier counts inside one bucket, empty tiers left out"""
        return [t for t in self.get_tier_breakdown(self.filter_by_bucket(entries, bucket)) if t.count > 0]
