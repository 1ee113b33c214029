"""
Cadence Engine
Single entry point for lead actions: validates the action against the
lead's state, applies the pure cadence components and persists the diff
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from cadence.domain.interfaces.record_store import PersistenceError, RecordStore
from cadence.domain.models.actions import (
    ActionKind,
    ActionOutcome,
    ActionPayload,
    ActionResult,
    AuditEntry,
    LeadStatus,
)
from cadence.domain.models.cadence_config import CadenceConfig, get_cadence_config
from cadence.domain.models.cadence_template import ActionType, CadenceType
from cadence.domain.models.call_outcome import CallOutcome
from cadence.domain.models.lead import (
    Active,
    CadencePhase,
    CadenceStateName,
    Lead,
    Paused,
    Snoozed,
    TemperatureBand,
    build_state,
)
from cadence.domain.models.queue import QueueEntry
from cadence.domain.models.scoring import ScoreResult
from cadence.domain.models.transition import PhaseTransition
from cadence.domain.services.phase_manager import PhaseManager
from cadence.domain.services.phone_manager import PhoneManager
from cadence.domain.services.queue_manager import QueueManager
from cadence.domain.services.result_handler import ResultHandler
from cadence.domain.services.scoring_engine import ScoringEngine
from cadence.utils.time_utils import business_time, ensure_utc, utc_now

logger = logging.getLogger(__name__)


_TEMPERATURE_CADENCES = frozenset({CadenceType.HOT, CadenceType.WARM, CadenceType.COLD, CadenceType.ICE})

# Lead columns whose changes are written to the audit trail
AUDITED_FIELDS = (
    "cadence_phase",
    "cadence_state",
    "cadence_type",
    "temperature_band",
    "snoozed_until",
    "paused_reason",
    "re_enrollment_date",
    "phone_exhausted_at",
    "callback_scheduled_for",
)


class LeadNotFoundError(Exception):
    """Raised when the store has no lead with the given id."""
    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        self.message = f"Lead {lead_id} not found"
        super().__init__(self.message)


class InvalidTransitionError(Exception):
    """Raised when an action is not allowed in the lead's current state."""
    def __init__(self, lead_id: str, action: str, state: str, detail: str = ""):
        self.lead_id = lead_id
        self.action = action
        self.state = state
        self.message = f"Action '{action}' not allowed for lead {lead_id} in state {state}"
        if detail:
            self.message = f"{self.message}: {detail}"
        super().__init__(self.message)


class InvalidActionError(Exception):
    """Raised for unknown actions or payloads missing required fields."""
    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(self.message)


class CadenceEngine:
    """
    Lead Cadence Engine facade.

    Actions:
    - call: log a call result
    - phone_added: attach a new phone number
    - snooze / pause / resume: manual holds
    - temperature_change: move a lead to another temperature band
    - complete: mark the lead engaged and take it out of the cadence
    - skip: leave the lead as is and only refresh its tier

    compute_action is pure and never touches the store; process_action
    loads, computes, persists and reports failures as ActionResult.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        config: Optional[CadenceConfig] = None,
        scoring_engine: Optional[ScoringEngine] = None,
        phone_manager: Optional[PhoneManager] = None,
        phase_manager: Optional[PhaseManager] = None,
        result_handler: Optional[ResultHandler] = None,
        queue_manager: Optional[QueueManager] = None
    ):
        self.store = store
        self.config = config or get_cadence_config()
        self.phone_manager = phone_manager or PhoneManager(self.config)
        self.phase_manager = phase_manager or PhaseManager(self.config)
        self.scoring_engine = scoring_engine or ScoringEngine(self.config, self.phone_manager)
        self.result_handler = result_handler or ResultHandler(
            self.config, self.phase_manager, self.phone_manager
        )
        self.queue_manager = queue_manager or QueueManager(self.config, self.scoring_engine)

        self._handlers: Dict[ActionKind, Callable[[Lead, ActionPayload, datetime], ActionOutcome]] = {
            ActionKind.CALL: self._apply_call,
            ActionKind.PHONE_ADDED: self._apply_phone_added,
            ActionKind.SNOOZE: self._apply_snooze,
            ActionKind.PAUSE: self._apply_pause,
            ActionKind.RESUME: self._apply_resume,
            ActionKind.TEMPERATURE_CHANGE: self._apply_temperature_change,
            ActionKind.COMPLETE: self._apply_complete,
            ActionKind.SKIP: self._apply_skip,
        }

    # =========================================================================
    # Pure computation
    # =========================================================================

    def compute_action(
        self,
        lead: Lead,
        action: Union[ActionKind, str],
        payload: Optional[Union[ActionPayload, Dict[str, Any]]] = None,
        now: Optional[datetime] = None,
        source: str = "engine"
    ) -> ActionOutcome:
        """
        Apply an action to a lead without persisting anything.

        Raises:
            InvalidActionError: Unknown action or incomplete payload
            InvalidTransitionError: Action not allowed in the lead's state
        """
        kind = self._parse_action(action)
        payload = self._parse_payload(kind, payload)
        now = ensure_utc(now) if now else utc_now()

        outcome = self._handlers[kind](lead, payload, now)
        return self._finalize(lead, outcome, kind.value, now, source)

    def _parse_action(self, action: Union[ActionKind, str]) -> ActionKind:
        try:
            return ActionKind(action)
        except ValueError:
            raise InvalidActionError(str(action), f"Unknown action '{action}'")

    def _parse_payload(self, kind: ActionKind, payload) -> ActionPayload:
        if payload is None:
            return ActionPayload()
        if isinstance(payload, ActionPayload):
            return payload
        try:
            return ActionPayload.model_validate(payload)
        except ValueError as e:
            raise InvalidActionError(kind.value, f"Invalid payload for '{kind.value}': {e}")

    def _finalize(
        self,
        original: Lead,
        outcome: ActionOutcome,
        action_name: str,
        now: datetime,
        source: str
    ) -> ActionOutcome:
        """Recompute derived fields and attach audit entries"""
        lead = outcome.lead
        lead = lead.model_copy(update={
            "cadence_progress": self.phase_manager.get_cadence_progress(lead.cadence_step, lead.cadence_type),
        })
        score = self.scoring_engine.compute_priority(lead, now)
        assignment = self.queue_manager.assign_queue_tier(lead, now, score)
        lead = lead.model_copy(update={"priority_score": score.score, "queue_tier": assignment.tier})

        audit = [
            AuditEntry(
                lead_id=original.id,
                action=action_name,
                new_value=outcome.message,
                timestamp=now,
                source=source,
            )
        ]
        audit.extend(self._field_audit(original, lead, action_name, now, source))

        return outcome.model_copy(update={
            "lead": lead,
            "score": score,
            "queue_assignment": assignment,
            "audit_entries": audit,
        })

    def _field_audit(self, before: Lead, after: Lead, action: str, now: datetime, source: str) -> List[AuditEntry]:
        old_record = before.to_record()
        new_record = after.to_record()
        entries = []
        for field in AUDITED_FIELDS:
            old_value, new_value = old_record.get(field), new_record.get(field)
            if old_value != new_value:
                entries.append(AuditEntry(
                    lead_id=before.id,
                    action=action,
                    field=field,
                    old_value=None if old_value is None else str(old_value),
                    new_value=None if new_value is None else str(new_value),
                    timestamp=now,
                    source=source,
                ))
        return entries

    def _reject_if_terminal(self, lead: Lead, action: str) -> None:
        if lead.is_terminal:
            raise InvalidTransitionError(lead.id, action, lead.cadence_state.value, "lead has exited the cadence")

    def apply_transition(self, lead: Lead, transition: PhaseTransition, now: datetime) -> Lead:
        """Copy of `lead` with a phase transition applied"""
        if transition.new_state == lead.cadence_state and transition.re_enrollment_date is None:
            state = lead.state
        else:
            state = build_state(
                transition.new_state,
                now=now,
                reason=transition.reason,
                re_enrollment_date=transition.re_enrollment_date,
            )

        updates: Dict[str, Any] = {
            "cadence_phase": transition.new_phase,
            "state": state,
            "blitz_attempts": transition.new_blitz_attempts,
            "cadence_step": transition.new_cadence_step,
            "cadence_type": transition.new_cadence_type,
            "next_action_due": transition.next_action_due,
            "next_action_type": transition.next_action_type,
            "updated_at": now,
        }
        if transition.new_cadence_start_date is not None:
            updates["cadence_start_date"] = transition.new_cadence_start_date
        if transition.new_enrollment_count is not None:
            updates["enrollment_count"] = transition.new_enrollment_count
        if (
            transition.new_phase == CadencePhase.DEEP_PROSPECT
            and lead.cadence_phase != CadencePhase.DEEP_PROSPECT
        ):
            updates["deep_prospect_entered_at"] = now
        return lead.model_copy(update=updates)

    # Action handlers

    def _apply_call(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        self._reject_if_terminal(lead, ActionKind.CALL.value)
        if not payload.result_label:
            raise InvalidActionError(ActionKind.CALL.value, "Call action requires result_label")

        phone_id = payload.phone_id
        if phone_id is None:
            next_phone = self.phone_manager.get_next_phone_to_call(lead.phones, lead.last_phone_called_id)
            phone_id = next_phone.id if next_phone else None
        elif lead.get_phone(phone_id) is None:
            raise InvalidActionError(ActionKind.CALL.value, f"Lead {lead.id} has no phone {phone_id}")

        # The stored priority_score may be stale or never computed
        live_score = self.scoring_engine.compute_priority(lead, now).score
        result = self.result_handler.process_call_result(
            lead,
            payload.result_label,
            now,
            phone_id=phone_id,
            was_answered=payload.was_answered,
            callback_date=payload.callback_date,
            priority_score=live_score,
        )
        transition = result.phase_transition
        updated = self.apply_transition(lead, transition, now)

        phones = lead.phones
        phone_updates = []
        if result.phone_update is not None:
            phone_updates.append(result.phone_update)
            phones = [
                self.phone_manager.apply_update(p, result.phone_update) if p.id == result.phone_update.phone_id else p
                for p in lead.phones
            ]

        updates: Dict[str, Any] = {
            "phones": phones,
            "call_attempts": lead.call_attempts + 1,
            "no_response_streak": self.result_handler.calculate_new_no_response_streak(
                lead.no_response_streak, result.outcome
            ),
            "engagement_score": self.result_handler.calculate_new_engagement_score(
                lead.engagement_score, result.outcome
            ),
            "has_engaged": lead.has_engaged or result.is_contact_made,
            "last_contacted_at": now,
            "last_contact_type": "CALL",
            "last_contact_result": payload.result_label,
            "last_phone_called_id": phone_id or lead.last_phone_called_id,
            "callback_scheduled_for": transition.callback_scheduled_for,
        }
        if result.outcome == CallOutcome.ANSWERED_CALLBACK:
            updates["callback_requested_at"] = now
        if result.phone_exhausted and not result.is_terminal:
            updates["phone_exhausted_at"] = lead.phone_exhausted_at or now
        updated = updated.model_copy(update=updates)

        message = (
            f"Call logged as {result.outcome.value} ({result.result_type.value}): "
            f"{updated.cadence_phase.value}/{updated.cadence_state.value}"
        )
        return ActionOutcome(lead=updated, phone_updates=phone_updates, message=message)

    def _apply_phone_added(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        self._reject_if_terminal(lead, ActionKind.PHONE_ADDED.value)
        phone = payload.phone
        if phone is None:
            raise InvalidActionError(ActionKind.PHONE_ADDED.value, "phone_added action requires phone")
        if lead.get_phone(phone.id) is not None:
            raise InvalidActionError(ActionKind.PHONE_ADDED.value, f"Lead {lead.id} already has phone {phone.id}")

        updated = lead.model_copy(update={"phones": [*lead.phones, phone], "updated_at": now})
        if not phone.is_callable:
            return ActionOutcome(
                lead=updated,
                added_phone=phone,
                message=f"Added {phone.phone_status.value} phone, no cadence change",
            )

        transition = self.phase_manager.handle_new_phone_added(lead, now)
        updated = self.apply_transition(updated, transition, now)
        updated = updated.model_copy(update={"phone_exhausted_at": None})
        return ActionOutcome(lead=updated, added_phone=phone, message=transition.reason)

    def _apply_snooze(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        self._reject_if_terminal(lead, ActionKind.SNOOZE.value)

        hours = payload.snooze_hours
        if hours is None and payload.snooze_option:
            hours = self.config.snooze_options.get(payload.snooze_option.strip().upper())
        if hours is None:
            raise InvalidActionError(
                ActionKind.SNOOZE.value,
                f"Snooze requires snooze_hours or one of {sorted(self.config.snooze_options)}",
            )

        until = now + timedelta(hours=hours)
        if hours >= 24:
            until = business_time(
                until, hour=self.config.business.hour, timezone=self.config.business.timezone
            )

        updated = lead.model_copy(update={"state": Snoozed(until=until), "updated_at": now})
        return ActionOutcome(lead=updated, message=f"Snoozed until {until.isoformat()}")

    def _apply_pause(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        self._reject_if_terminal(lead, ActionKind.PAUSE.value)
        reason = payload.reason or "Manual pause"
        updated = lead.model_copy(update={"state": Paused(reason=reason), "updated_at": now})
        return ActionOutcome(lead=updated, message=f"Paused: {reason}")

    def _apply_resume(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        if lead.cadence_state not in (CadenceStateName.SNOOZED, CadenceStateName.PAUSED):
            raise InvalidTransitionError(
                lead.id, ActionKind.RESUME.value, lead.cadence_state.value, "lead is not snoozed or paused"
            )
        next_type = lead.next_action_type
        if next_type in (None, ActionType.NONE):
            next_type = ActionType.CALL
        updated = lead.model_copy(update={
            "state": Active(),
            "next_action_due": now,
            "next_action_type": next_type,
            "updated_at": now,
        })
        return ActionOutcome(lead=updated, message="Resumed")

    def _apply_temperature_change(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        if not payload.temperature:
            raise InvalidActionError(ActionKind.TEMPERATURE_CHANGE.value, "temperature_change requires temperature")
        try:
            band = TemperatureBand(payload.temperature.strip().upper())
        except ValueError:
            raise InvalidActionError(
                ActionKind.TEMPERATURE_CHANGE.value, f"Unknown temperature '{payload.temperature}'"
            )

        old_band = TemperatureBand(lead.temperature_band)
        updates: Dict[str, Any] = {"temperature_band": band, "updated_at": now}

        if (
            band != old_band
            and lead.cadence_phase == CadencePhase.TEMPERATURE
            and lead.cadence_type in _TEMPERATURE_CADENCES
            and not lead.is_terminal
        ):
            template = self.phase_manager.get_template(self.phase_manager.template_type_for_band(band))
            step_number = min(max(lead.cadence_step, 1), template.total_steps)
            step = template.step(step_number)
            start = lead.cadence_start_date or now
            updates.update({
                "cadence_type": template.cadence_type,
                "cadence_step": step_number,
                "next_action_due": business_time(
                    start,
                    days=step.day_offset,
                    hour=self.config.business.hour,
                    timezone=self.config.business.timezone,
                ),
                "next_action_type": step.action_type,
            })

        updated = lead.model_copy(update=updates)
        return ActionOutcome(lead=updated, message=f"Temperature {old_band.value} -> {band.value}")

    def _apply_complete(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        self._reject_if_terminal(lead, ActionKind.COMPLETE.value)
        if lead.cadence_state == CadenceStateName.EXITED_ENGAGED:
            raise InvalidTransitionError(
                lead.id, ActionKind.COMPLETE.value, lead.cadence_state.value, "lead is already engaged"
            )
        reason = payload.reason or "Marked as engaged"
        updated = lead.model_copy(update={
            "cadence_phase": CadencePhase.ENGAGED,
            "state": build_state(CadenceStateName.EXITED_ENGAGED, now=now, reason=reason),
            "has_engaged": True,
            "next_action_due": None,
            "next_action_type": None,
            "callback_scheduled_for": None,
            "updated_at": now,
        })
        return ActionOutcome(lead=updated, message=reason)

    def _apply_skip(self, lead: Lead, payload: ActionPayload, now: datetime) -> ActionOutcome:
        return ActionOutcome(lead=lead, message="Record skipped")

    # Maintenance operations (pure, used by the sweep)

    def compute_enrollment(self, lead: Lead, now: datetime, source: str = "engine") -> ActionOutcome:
        """Enroll a NOT_ENROLLED lead"""
        if lead.cadence_state != CadenceStateName.NOT_ENROLLED:
            raise InvalidTransitionError(lead.id, "enroll", lead.cadence_state.value, "lead is already enrolled")
        transition = self.phase_manager.enroll_new_lead(
            self.phone_manager.has_callable_phone(lead.phones), now, lead.enrollment_count
        )
        updated = self.apply_transition(lead, transition, now)
        return self._finalize(lead, ActionOutcome(lead=updated, message=transition.reason), "enroll", now, source)

    def compute_unsnooze(self, lead: Lead, now: datetime, source: str = "maintenance") -> Optional[ActionOutcome]:
        """Wake a lead whose snooze has expired"""
        if not isinstance(lead.state, Snoozed) or lead.state.until > now:
            return None
        updated = lead.model_copy(update={"state": Active(), "next_action_due": now, "updated_at": now})
        return self._finalize(lead, ActionOutcome(lead=updated, message="Snooze expired"), "unsnooze", now, source)

    def compute_re_enrollment(
        self,
        lead: Lead,
        now: datetime,
        stale_engaged: bool = False,
        source: str = "maintenance"
    ) -> Optional[ActionOutcome]:
        """Re-enroll a completed or stale lead; None when it may not be re-enrolled"""
        transition = self.phase_manager.re_enroll(lead, now, stale_engaged=stale_engaged)
        if transition is None:
            return None
        updated = self.apply_transition(lead, transition, now)
        action = "stale_engaged" if stale_engaged else "re_enroll"
        return self._finalize(lead, ActionOutcome(lead=updated, message=transition.reason), action, now, source)

    def compute_phone_exhaustion(self, lead: Lead, now: datetime, source: str = "maintenance") -> Optional[ActionOutcome]:
        """Flag an ACTIVE lead with no callable phone and move it to DEEP_PROSPECT"""
        if lead.cadence_state != CadenceStateName.ACTIVE or lead.phone_exhausted_at is not None:
            return None
        if not self.phone_manager.should_mark_phone_exhausted(lead.phones):
            return None
        transition = PhaseTransition(
            new_phase=CadencePhase.DEEP_PROSPECT,
            new_state=lead.cadence_state,
            new_blitz_attempts=lead.blitz_attempts,
            new_cadence_step=lead.cadence_step,
            new_cadence_type=lead.cadence_type,
            next_action_due=None,
            next_action_type=ActionType.SKIPTRACE,
            should_move_to_deep_prospect=True,
            reason="All phones exhausted",
        )
        updated = self.apply_transition(lead, transition, now).model_copy(update={"phone_exhausted_at": now})
        return self._finalize(lead, ActionOutcome(lead=updated, message=transition.reason), "phone_exhausted", now, source)

    def compute_deep_prospect_reactivation(
        self,
        lead: Lead,
        now: datetime,
        source: str = "maintenance"
    ) -> Optional[ActionOutcome]:
        """Restart a DEEP_PROSPECT lead that has an untried callable phone"""
        if lead.cadence_phase != CadencePhase.DEEP_PROSPECT or lead.is_terminal:
            return None
        if not any(p.is_callable and p.attempt_count == 0 for p in lead.phones):
            return None
        transition = self.phase_manager.handle_new_phone_added(lead, now)
        updated = self.apply_transition(lead, transition, now).model_copy(update={"phone_exhausted_at": None})
        return self._finalize(lead, ActionOutcome(lead=updated, message=transition.reason), "reactivate", now, source)

    def compute_queue_refresh(self, lead: Lead, now: datetime, source: str = "maintenance") -> Optional[ActionOutcome]:
        """Recompute score and tier; None when neither changed. updated_at is left alone."""
        score = self.scoring_engine.compute_priority(lead, now)
        assignment = self.queue_manager.assign_queue_tier(lead, now, score)
        if score.score == lead.priority_score and assignment.tier == lead.queue_tier:
            return None
        updated = lead.model_copy(update={"priority_score": score.score, "queue_tier": assignment.tier})
        audit = [
            AuditEntry(
                lead_id=lead.id,
                action="queue_refresh",
                field=field,
                old_value=None if old is None else str(old),
                new_value=None if new is None else str(new),
                timestamp=now,
                source=source,
            )
            for field, old, new in (
                ("queue_tier", lead.queue_tier, assignment.tier),
                ("priority_score", lead.priority_score, score.score),
            )
            if old != new
        ]
        return ActionOutcome(
            lead=updated,
            queue_assignment=assignment,
            score=score,
            audit_entries=audit,
            message=f"Queue tier refreshed: {assignment.reason}",
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def _require_store(self) -> RecordStore:
        if self.store is None:
            raise RuntimeError("CadenceEngine has no record store configured")
        return self.store

    async def load_lead(self, lead_id: str) -> Lead:
        lead = await self._require_store().get_lead(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    async def persist_outcome(self, original: Lead, outcome: ActionOutcome) -> None:
        """
        Write the changes in `outcome` to the store.

        Phones are written before the lead row. Audit failures are logged
        and do not fail the action.
        """
        store = self._require_store()
        old_record = original.to_record()
        changes = {
            key: value for key, value in outcome.lead.to_record().items()
            if old_record.get(key) != value
        }

        for update in outcome.phone_updates:
            await store.update_phone(original.id, update.phone_id, update.to_fields())
        if outcome.added_phone is not None:
            await store.add_phone(original.id, outcome.added_phone)
        if changes:
            await store.update_lead(original.id, changes)

        if outcome.audit_entries:
            try:
                await store.append_audit(outcome.audit_entries)
            except PersistenceError as e:
                logger.error(f"Audit write failed for lead {original.id}: {e.message}")

    async def _execute(
        self,
        lead_id: str,
        action_name: str,
        compute: Callable[[Lead], ActionOutcome]
    ) -> ActionResult:
        try:
            lead = await self.load_lead(lead_id)
            outcome = compute(lead)
            await self.persist_outcome(lead, outcome)
        except (LeadNotFoundError, InvalidTransitionError, InvalidActionError) as e:
            logger.warning(f"Rejected '{action_name}' for lead {lead_id}: {e.message}")
            return ActionResult.failure(lead_id, action_name, e.message)
        except PersistenceError as e:
            logger.error(f"Persistence failed for '{action_name}' on lead {lead_id}: {e.message}")
            return ActionResult.failure(lead_id, action_name, e.message, "Changes were not saved")

        logger.info(
            f"Lead {lead_id} {action_name}: {outcome.message} "
            f"(tier {outcome.queue_assignment.tier}, score {outcome.lead.priority_score})"
        )
        return ActionResult(
            success=True,
            lead_id=lead_id,
            action=action_name,
            message=outcome.message,
            lead=outcome.lead,
            queue_assignment=outcome.queue_assignment,
            audit_entries=outcome.audit_entries,
        )

    async def process_action(
        self,
        lead_id: str,
        action: Union[ActionKind, str],
        payload: Optional[Union[ActionPayload, Dict[str, Any]]] = None,
        now: Optional[datetime] = None,
        source: str = "engine"
    ) -> ActionResult:
        """
        Apply an action to a stored lead.

        Args:
            lead_id: Lead to act on
            action: One of ActionKind
            payload: Action parameters
            now: Reference time (defaults to the current time)
            source: Audit source label

        Returns:
            ActionResult; failures never raise and leave the lead unchanged
        """
        action_name = action.value if isinstance(action, ActionKind) else str(action)
        now = ensure_utc(now) if now else utc_now()
        return await self._execute(
            lead_id, action_name, lambda lead: self.compute_action(lead, action, payload, now, source)
        )

    async def enroll_lead(self, lead_id: str, now: Optional[datetime] = None, source: str = "engine") -> ActionResult:
        """Enroll a NOT_ENROLLED lead into the cadence"""
        now = ensure_utc(now) if now else utc_now()
        return await self._execute(lead_id, "enroll", lambda lead: self.compute_enrollment(lead, now, source))

    # =========================================================================
    # Read side
    # =========================================================================

    async def score_lead(self, lead_id: str, now: Optional[datetime] = None) -> ScoreResult:
        now = ensure_utc(now) if now else utc_now()
        lead = await self.load_lead(lead_id)
        return self.scoring_engine.compute_priority(lead, now)

    async def get_lead_status(self, lead_id: str, now: Optional[datetime] = None) -> LeadStatus:
        """Cadence overview for one lead"""
        now = ensure_utc(now) if now else utc_now()
        lead = await self.load_lead(lead_id)
        score = self.scoring_engine.compute_priority(lead, now)
        return LeadStatus(
            lead_id=lead.id,
            cadence_phase=lead.cadence_phase.value,
            cadence_state=lead.cadence_state.value,
            cadence_type=lead.cadence_type.value if lead.cadence_type else None,
            cadence_progress=self.phase_manager.get_cadence_progress(lead.cadence_step, lead.cadence_type),
            next_action_due=lead.next_action_due,
            next_action_type=lead.next_action_type.value if lead.next_action_type else None,
            callback_scheduled_for=lead.callback_scheduled_for,
            snoozed_until=lead.snoozed_until,
            re_enrollment_date=lead.re_enrollment_date,
            enrollment_count=lead.enrollment_count,
            can_re_enroll=self.phase_manager.can_re_enroll(lead.cadence_state),
            is_workable=score.flags.is_workable,
            score=score,
            queue_assignment=self.queue_manager.assign_queue_tier(lead, now, score),
            phone_summary=self.phone_manager.get_phone_summary(lead.phones, lead.last_phone_called_id),
        )

    async def get_queue(
        self,
        now: Optional[datetime] = None,
        bucket: Optional[str] = None,
        page_size: int = 500
    ) -> List[QueueEntry]:
        """Ordered work queue over every queue-visible lead"""
        now = ensure_utc(now) if now else utc_now()
        store = self._require_store()
        leads: List[Lead] = []
        after_id = None
        while True:
            page = await store.list_leads(
                states=self.config.states.queue_visible, after_id=after_id, limit=page_size
            )
            leads.extend(page)
            if len(page) < page_size:
                break
            after_id = page[-1].id

        entries = self.queue_manager.build_queue(leads, now)
        if bucket:
            entries = self.queue_manager.filter_by_bucket(entries, bucket)
        return entries

    async def get_next_up(self, now: Optional[datetime] = None) -> Optional[QueueEntry]:
        return self.queue_manager.get_next_up(await self.get_queue(now))
