"""
Phone Manager
Ranks a lead's phone numbers, picks the next one to dial and updates
phone status after each call
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from cadence.domain.models.call_outcome import CallOutcome
from cadence.domain.models.cadence_config import CadenceConfig, get_cadence_config
from cadence.domain.models.phone import Phone, PhoneStatus, PhoneStatusUpdate, PhoneSummary

logger = logging.getLogger(__name__)


ANSWERED_OUTCOMES = frozenset({
    CallOutcome.ANSWERED_INTERESTED,
    CallOutcome.ANSWERED_CALLBACK,
    CallOutcome.ANSWERED_NEUTRAL,
    CallOutcome.ANSWERED_NOT_NOW,
    CallOutcome.ANSWERED_NOT_INTERESTED,
})

DNC_OUTCOMES = frozenset({CallOutcome.ANSWERED_DNC, CallOutcome.DNC})


class PhoneManager:
    """
    Phone selection and rotation.

    Rules:
    1. Only VALID and UNVERIFIED numbers are callable
    2. Ranking: phone type, then status, then fewest consecutive no-answers
    3. A number with 2+ consecutive no-answers hands over to the next callable number
    4. Rotation never resets the counter of the number rotated away from
    5. A lead is phone-exhausted when it has numbers and none is callable
    """

    def __init__(self, config: Optional[CadenceConfig] = None):
        self.config = config or get_cadence_config()
        self._rules = self.config.phones

    # Ranking

    def type_priority(self, phone: Phone) -> int:
        return self._rules.type_priority.get(
            (phone.type or "").strip().upper(), self._rules.default_type_priority
        )

    def status_priority(self, phone: Phone) -> int:
        return self._rules.status_priority.get(
            phone.phone_status.value, self._rules.default_status_priority
        )

    def is_mobile(self, phone: Phone) -> bool:
        return (phone.type or "").strip().upper() in self._rules.mobile_types

    def sort_phones_by_priority(self, phones: Iterable[Phone]) -> List[Phone]:
        """Best phone first. Ties fall back to attempts, primary flag, then id."""
        return sorted(
            phones,
            key=lambda p: (
                self.type_priority(p),
                self.status_priority(p),
                p.consecutive_no_answer,
                p.attempt_count,
                not p.is_primary,
                p.id,
            ),
        )

    # Selection

    def get_next_phone_to_call(
        self,
        phones: Sequence[Phone],
        last_called_phone_id: Optional[str] = None
    ) -> Optional[Phone]:
        """
        Pick the phone to dial next.

        Args:
            phones: All phones on the lead
            last_called_phone_id: Phone used on the previous attempt

        Returns:
            Best callable phone, or None if nothing is callable
        """
        callable_phones = self.sort_phones_by_priority(p for p in phones if p.is_callable)
        if not callable_phones:
            return None

        last_phone = next((p for p in phones if p.id == last_called_phone_id), None)
        if last_phone is not None and self._needs_rotation(last_phone):
            alternatives = [p for p in callable_phones if p.id != last_phone.id]
            if alternatives:
                logger.debug(f"Rotating away from phone {last_phone.id} to {alternatives[0].id}")
                return alternatives[0]

        return callable_phones[0]

    def _needs_rotation(self, phone: Phone) -> bool:
        return (
            not phone.is_callable
            or phone.consecutive_no_answer >= self._rules.rotation_no_answer_threshold
        )

    # Status updates

    def get_phone_status_update(
        self,
        phone: Phone,
        outcome: CallOutcome,
        now: datetime,
        all_phones: Sequence[Phone] = ()
    ) -> PhoneStatusUpdate:
        """
        Compute the changes to a phone after a call on it.

        Args:
            phone: Phone that was dialed
            outcome: Call outcome
            now: Time of the call
            all_phones: Every phone on the lead, used for the rotation decision

        Returns:
            PhoneStatusUpdate describing the new phone state and next phone
        """
        new_status = phone.phone_status
        no_answers = phone.consecutive_no_answer

        if outcome in DNC_OUTCOMES:
            new_status = PhoneStatus.DNC
        elif outcome in ANSWERED_OUTCOMES:
            new_status = PhoneStatus.VALID
            no_answers = 0
        elif outcome == CallOutcome.VOICEMAIL:
            # Voicemail proves the number exists, not that anyone picked up
            new_status = PhoneStatus.VALID
        elif outcome == CallOutcome.NO_ANSWER:
            no_answers += 1
        elif outcome == CallOutcome.WRONG_NUMBER:
            new_status = PhoneStatus.WRONG
        elif outcome == CallOutcome.DISCONNECTED:
            new_status = PhoneStatus.DISCONNECTED

        updated = phone.model_copy(update={
            "phone_status": new_status,
            "consecutive_no_answer": no_answers,
            "attempt_count": phone.attempt_count + 1,
            "last_attempt_at": now,
            "last_outcome": outcome.value,
        })

        should_rotate = self._needs_rotation(updated)
        rotate_reason = None
        next_phone_id = phone.id if updated.is_callable else None

        if should_rotate:
            if not updated.is_callable:
                rotate_reason = f"phone_marked_{new_status.value.lower()}"
            else:
                rotate_reason = f"consecutive_no_answer_{no_answers}"
            others = [updated if p.id == phone.id else p for p in all_phones] or [updated]
            next_phone = self.get_next_phone_to_call(others, last_called_phone_id=phone.id)
            next_phone_id = next_phone.id if next_phone else None

        return PhoneStatusUpdate(
            phone_id=phone.id,
            new_status=new_status,
            attempt_count=updated.attempt_count,
            consecutive_no_answer=no_answers,
            last_attempt_at=now,
            last_outcome=outcome.value,
            should_rotate=should_rotate,
            rotate_reason=rotate_reason,
            next_phone_id=next_phone_id,
        )

    update_phone_after_call = get_phone_status_update

    def apply_update(self, phone: Phone, update: PhoneStatusUpdate) -> Phone:
        """Return a copy of `phone` with `update` applied"""
        return phone.model_copy(update={
            "phone_status": update.new_status,
            "attempt_count": update.attempt_count,
            "consecutive_no_answer": update.consecutive_no_answer,
            "last_attempt_at": update.last_attempt_at,
            "last_outcome": update.last_outcome,
        })

    # Lead-level checks

    def has_callable_phone(self, phones: Iterable[Phone]) -> bool:
        return any(p.is_callable for p in phones)

    def count_callable_phones(self, phones: Iterable[Phone]) -> int:
        return sum(1 for p in phones if p.is_callable)

    def should_mark_phone_exhausted(self, phones: Sequence[Phone]) -> bool:
        """True when the lead has phones and none of them is callable"""
        return len(phones) > 0 and not self.has_callable_phone(phones)

    def get_phone_summary(
        self,
        phones: Sequence[Phone],
        last_called_phone_id: Optional[str] = None
    ) -> PhoneSummary:
        """Counts by status plus the phone that would be dialed next"""
        next_phone = self.get_next_phone_to_call(phones, last_called_phone_id)
        valid = sum(1 for p in phones if p.phone_status == PhoneStatus.VALID)
        unverified = sum(1 for p in phones if p.phone_status == PhoneStatus.UNVERIFIED)
        return PhoneSummary(
            total=len(phones),
            callable=valid + unverified,
            valid=valid,
            unverified=unverified,
            bad=len(phones) - valid - unverified,
            has_mobile=any(self.is_mobile(p) and p.is_callable for p in phones),
            exhausted=self.should_mark_phone_exhausted(phones),
            next_phone_id=next_phone.id if next_phone else None,
            next_phone_number=next_phone.number if next_phone else None,
        )
