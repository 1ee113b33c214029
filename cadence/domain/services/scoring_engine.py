"""
Scoring Engine
Explainable priority score for a lead.

Score = temperature + motivations (with diminishing returns and synergies)
      + task urgency + contact recency + engagement + fatigue + smart rescue
      + status modifier + channel readiness

The score is never zeroed for DNC, closed or snoozed leads; those flags
only change the recommended next action.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from cadence.domain.models.cadence_config import CadenceConfig, StatusCategory, get_cadence_config
from cadence.domain.models.lead import Lead, Snoozed, TaskType, TemperatureBand
from cadence.domain.models.scoring import (
    ConfidenceLevel,
    MotivationContribution,
    NextAction,
    ScoreBreakdown,
    ScoreFlags,
    ScoreReason,
    ScoreResult,
)
from cadence.domain.services.phone_manager import PhoneManager
from cadence.utils.time_utils import days_between

logger = logging.getLogger(__name__)


class ScoringEngine:
    """
    Deterministic lead scoring.

    Rules:
    1. Same lead and same `now` always give the same score
    2. Each additional motivation adds strictly less than the one before
    3. Low-urgency motivations together stay below one high-urgency signal
    4. Leads never engaged get a staleness rescue; any engagement resets it to zero
    5. Only the worse of the recency and fatigue penalties applies
    """

    def __init__(self, config: Optional[CadenceConfig] = None, phone_manager: Optional[PhoneManager] = None):
        self.config = config or get_cadence_config()
        self.rules = self.config.scoring
        self.phone_manager = phone_manager or PhoneManager(self.config)

    # Motivations

    def get_motivation_tier(self, name: str) -> str:
        return self.rules.motivation_tiers.get(name.strip().lower(), self.rules.default_motivation_tier)

    def decay_multiplier(self, position: int) -> float:
        """Multiplier for the motivation at 0-based `position`"""
        schedule = self.rules.diminishing_returns
        if position < len(schedule):
            return schedule[position]
        return schedule[-1] * 0.5 ** (position - len(schedule) + 1)

    def motivation_contributions(self, motivations: List[str]) -> List[MotivationContribution]:
        """
        Points per motivation, strongest first.

        Duplicates are ignored. LOW-tier points are capped together at
        `low_urgency_cap`.
        """
        seen = set()
        unique = []
        for name in motivations:
            key = name.strip().lower()
            if key and key not in seen:
                seen.add(key)
                unique.append(name.strip())

        tier_points = self.rules.motivation_tier_points
        ranked = sorted(
            unique,
            key=lambda n: (-tier_points.get(self.get_motivation_tier(n), 0), n.lower()),
        )

        contributions = []
        low_total = 0.0
        for position, name in enumerate(ranked):
            tier = self.get_motivation_tier(name)
            base = tier_points.get(tier, 0)
            multiplier = self.decay_multiplier(position)
            points = base * multiplier

            if tier == self.rules.low_urgency_tier:
                allowed = max(0.0, self.rules.low_urgency_cap - low_total)
                points = min(points, allowed)
                low_total += points

            contributions.append(MotivationContribution(
                name=name,
                tier=tier,
                base_points=base,
                multiplier=multiplier,
                points=round(points, 2),
            ))
        return contributions

    def synergy_bonuses(self, motivations: List[str]) -> List[Tuple[str, int]]:
        present = {m.strip().lower() for m in motivations}
        bonuses = []
        for synergy in self.rules.synergies:
            if all(m.lower() in present for m in synergy.motivations):
                bonuses.append((" + ".join(synergy.motivations), synergy.bonus))
        return bonuses

    # Individual components

    def _status_category(self, status_name: Optional[str]) -> Tuple[Optional[str], Optional[StatusCategory]]:
        if not status_name:
            return None, None
        category_name = self.rules.status_names.get(status_name.strip().lower())
        if category_name is None:
            return None, None
        return category_name, self.rules.status_categories.get(category_name)

    def _is_dnc_status(self, status_name: Optional[str]) -> bool:
        name = (status_name or "").lower()
        return any(keyword in name for keyword in self.rules.dnc_keywords)

    def _task_urgency(self, lead: Lead, now: datetime) -> Tuple[float, bool, bool, str]:
        rules = self.rules.task
        timezone = self.config.business.timezone
        best_points = 0
        best_label = ""
        overdue = due_today = False
        bonus = 0

        for task in lead.open_tasks():
            days = task.days_until_due(now, timezone)
            if days is None:
                continue
            if days < 0:
                points, label, overdue = rules.overdue, "Task overdue", True
            elif days == 0:
                points, label, due_today = rules.due_today, "Task due today", True
            elif days == 1:
                points, label = rules.due_tomorrow, "Task due tomorrow"
            else:
                continue

            if task.task_type == TaskType.CALLBACK:
                bonus = max(bonus, rules.callback_bonus)
            elif task.task_type == TaskType.FOLLOW_UP:
                bonus = max(bonus, rules.follow_up_bonus)

            if points > best_points:
                best_points, best_label = points, label

        total = min(rules.cap, best_points + bonus) if best_points else 0
        return total, overdue, due_today, best_label

    def _recency_points(self, days_since_contact: Optional[float]) -> int:
        if days_since_contact is None:
            return 0
        for band in self.rules.recency_bands:
            if band.max_days is None or days_since_contact < band.max_days:
                return band.points
        return 0

    def _fatigue_points(self, streak: int) -> int:
        for band in self.rules.fatigue_bands:
            if band.max_streak is None or streak <= band.max_streak:
                return band.points
        return 0

    def _engagement_points(self, lead: Lead, now: datetime) -> Tuple[float, str]:
        rules = self.rules.engagement
        requested_days = days_between(lead.callback_requested_at, now)
        if requested_days is not None and requested_days <= rules.callback_window_days:
            return rules.callback, "Callback requested"
        if lead.has_engaged:
            return rules.engaged, "Previously engaged"
        return min(rules.score_cap, lead.engagement_score), "Engagement score"

    def _rescue_points(self, lead: Lead, days_untouched: Optional[float]) -> float:
        """
        Staleness boost for leads that were never reached.

        Grows toward `max_points` with time untouched; a lead with no
        touch on record gets the full boost. Engagement resets it to zero.
        """
        rules = self.rules.rescue
        if lead.has_engaged:
            return 0.0
        if days_untouched is None:
            return float(rules.max_points)
        if days_untouched < rules.min_days:
            return 0.0
        return round(rules.max_points * (1 - 0.5 ** (days_untouched / rules.half_life_days)), 1)

    def _channel_points(self, lead: Lead) -> List[ScoreReason]:
        rules = self.rules.channel
        callable_phones = [p for p in lead.phones if p.is_callable]
        reasons = []
        if callable_phones:
            reasons.append(ScoreReason(label="Callable phone", delta=rules.callable_phone, category="channel"))
            if any(self.phone_manager.is_mobile(p) for p in callable_phones):
                reasons.append(ScoreReason(label="Mobile phone", delta=rules.mobile_phone, category="channel"))
            if len(callable_phones) > 1:
                reasons.append(ScoreReason(label="Multiple phones", delta=rules.multiple_phones, category="channel"))
        if lead.has_email:
            reasons.append(ScoreReason(label="Email on file", delta=rules.email, category="channel"))
        return reasons

    def calculate_confidence(self, lead: Lead) -> Tuple[ConfidenceLevel, int]:
        """Data-quality confidence, independent of the score"""
        weights = self.rules.confidence
        callable_phones = [p for p in lead.phones if p.is_callable]
        points = 0
        if lead.motivations:
            points += weights.motivations
        if lead.tags:
            points += weights.tags
        if any(self.phone_manager.is_mobile(p) for p in callable_phones):
            points += weights.mobile_phone
        elif callable_phones:
            points += weights.valid_phone
        if lead.skiptrace_date is not None:
            points += weights.skiptrace
        if lead.last_contacted_at is not None:
            points += weights.contacted
        if lead.owner_name:
            points += weights.owner_name

        if points >= weights.high_threshold:
            return ConfidenceLevel.HIGH, points
        if points >= weights.medium_threshold:
            return ConfidenceLevel.MEDIUM, points
        return ConfidenceLevel.LOW, points

    def suggest_band(self, score: int) -> TemperatureBand:
        thresholds = self.rules.band_thresholds
        for band in (TemperatureBand.HOT, TemperatureBand.WARM, TemperatureBand.COLD):
            if band in thresholds and score >= thresholds[band]:
                return band
        return TemperatureBand.ICE

    # Main entry point

    def compute_priority(self, lead: Lead, now: datetime) -> ScoreResult:
        """
        Score a lead.

        Args:
            lead: Lead to score
            now: Reference time; the engine never reads the clock

        Returns:
            ScoreResult with ordered contributions and the recommended action
        """
        contributions: List[ScoreReason] = []

        # 1. Temperature
        band = TemperatureBand(lead.temperature_band)
        contributions.append(ScoreReason(
            label=f"{band.value} temperature",
            delta=self.rules.temperature_points.get(band, 0),
            category="temperature",
        ))

        # 2. Motivations and synergies
        for item in self.motivation_contributions(lead.motivations):
            if item.points > 0:
                contributions.append(ScoreReason(label=item.name, delta=item.points, category="motivation"))
        for label, bonus in self.synergy_bonuses(lead.motivations):
            contributions.append(ScoreReason(label=f"Synergy: {label}", delta=bonus, category="synergy"))

        # 3. Tasks
        task_points, has_overdue, has_due_today, task_label = self._task_urgency(lead, now)
        if task_points:
            contributions.append(ScoreReason(label=task_label, delta=task_points, category="task"))

        # 4-6. Recency, engagement, fatigue
        days_since_contact = days_between(lead.last_contacted_at, now)
        recency = self._recency_points(days_since_contact)
        fatigue = self._fatigue_points(lead.no_response_streak)

        if recency > 0:
            contributions.append(ScoreReason(label="Due for contact", delta=recency, category="recency"))

        engagement, engagement_label = self._engagement_points(lead, now)
        if engagement:
            contributions.append(ScoreReason(label=engagement_label, delta=engagement, category="engagement"))

        recency_penalty = min(recency, 0)
        if fatigue < recency_penalty:
            contributions.append(ScoreReason(
                label=f"No response x{lead.no_response_streak}", delta=fatigue, category="fatigue"
            ))
        elif recency_penalty < 0:
            contributions.append(ScoreReason(
                label="Contacted recently", delta=recency_penalty, category="recency"
            ))

        # 7. Smart rescue
        rescue = self._rescue_points(lead, days_since_contact)
        if rescue > 0:
            label = "Never contacted" if days_since_contact is None else f"Untouched {int(days_since_contact)} days"
            contributions.append(ScoreReason(label=label, delta=rescue, category="rescue"))

        # 8. Status
        _, category = self._status_category(lead.status_name)
        if category is not None and category.points:
            contributions.append(ScoreReason(
                label=f"Status: {lead.status_name}", delta=category.points, category="status"
            ))

        # 9. Channel readiness
        contributions.extend(self._channel_points(lead))

        subtotal = sum(c.delta for c in contributions)
        if category is not None and category.multiplier != 1.0 and subtotal > 0:
            adjustment = subtotal * category.multiplier - subtotal
            contributions.append(ScoreReason(
                label=f"Status: {lead.status_name}", delta=round(adjustment, 2), category="status"
            ))
            subtotal += adjustment

        score = max(0, round(subtotal))

        flags = ScoreFlags(
            is_dnc=self._is_dnc_status(lead.status_name),
            is_closed=bool(category is not None and category.not_workable),
            is_snoozed=isinstance(lead.state, Snoozed) and lead.state.until > now,
            is_terminal=lead.is_terminal,
            has_callable_phone=self.phone_manager.has_callable_phone(lead.phones),
            has_overdue_task=has_overdue,
            has_due_today_task=has_due_today,
        )
        confidence, confidence_points = self.calculate_confidence(lead)
        next_action = self._next_action(score, flags)

        reasons = sorted(contributions, key=lambda c: abs(c.delta), reverse=True)
        top = reasons[: self.rules.top_reasons]

        return ScoreResult(
            score=score,
            confidence=confidence,
            confidence_points=confidence_points,
            next_action=next_action,
            reasons=reasons,
            top_reason=reasons[0].label if reasons else None,
            reason_string=", ".join(r.format() for r in top),
            breakdown=ScoreBreakdown(contributions=contributions, total=score),
            flags=flags,
            suggested_band=self.suggest_band(score),
        )

    def _next_action(self, score: int, flags: ScoreFlags) -> NextAction:
        if not flags.is_workable:
            return NextAction.NOT_WORKABLE
        if flags.has_overdue_task or flags.has_due_today_task:
            return NextAction.FOLLOW_UP
        if not flags.has_callable_phone:
            return NextAction.GET_NUMBERS
        if score >= self.rules.call_now_threshold:
            return NextAction.CALL_NOW
        return NextAction.NURTURE
