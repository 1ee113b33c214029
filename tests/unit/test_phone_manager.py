"""
Unit Tests for Phone Manager
Phone ranking, rotation, status updates and exhaustion
"""
import pytest

from cadence.domain.models.call_outcome import CallOutcome
from cadence.domain.models.phone import PhoneStatus
from cadence.domain.services.phone_manager import PhoneManager


@pytest.fixture
def manager(config):
    return PhoneManager(config)


class TestPhoneRanking:
    """Tests for phone ordering"""

    def test_mobile_ranks_above_landline(self, manager, make_phone):
        """Test that type priority comes first"""
        landline = make_phone("p1", type="LANDLINE")
        mobile = make_phone("p2", type="MOBILE", status=PhoneStatus.UNVERIFIED)

        ordered = manager.sort_phones_by_priority([landline, mobile])

        assert [p.id for p in ordered] == ["p2", "p1"]

    def test_valid_ranks_above_unverified_of_same_type(self, manager, make_phone):
        """Test that status breaks ties between phones of the same type"""
        unverified = make_phone("p1", status=PhoneStatus.UNVERIFIED)
        valid = make_phone("p2", status=PhoneStatus.VALID)

        assert manager.sort_phones_by_priority([unverified, valid])[0].id == "p2"

    def test_fewer_no_answers_wins_tie(self, manager, make_phone):
        """Test that consecutive no-answers are the third key"""
        tired = make_phone("p1", consecutive_no_answer=1)
        fresh = make_phone("p2")

        assert manager.sort_phones_by_priority([tired, fresh])[0].id == "p2"

    def test_unknown_type_ranks_last(self, manager, make_phone):
        """Test that unlisted phone types get the default priority"""
        pager = make_phone("p1", type="PAGER")
        work = make_phone("p2", type="WORK")

        assert manager.sort_phones_by_priority([pager, work])[0].id == "p2"


class TestNextPhoneSelection:
    """Tests for get_next_phone_to_call"""

    def test_returns_none_without_callable_phone(self, manager, make_phone):
        """Test that bad numbers are never selected"""
        phones = [
            make_phone("p1", status=PhoneStatus.WRONG),
            make_phone("p2", status=PhoneStatus.DNC),
        ]

        assert manager.get_next_phone_to_call(phones) is None

    def test_rotates_after_two_no_answers(self, manager, make_phone):
        """Test rotation from A to B once A reaches the no-answer threshold"""
        phone_a = make_phone("p1", type="MOBILE", consecutive_no_answer=2)
        phone_b = make_phone("p2", type="LANDLINE")

        selected = manager.get_next_phone_to_call([phone_a, phone_b], last_called_phone_id="p1")

        assert selected.id == "p2"

    def test_stays_on_phone_below_threshold(self, manager, make_phone):
        """Test that one no-answer does not trigger rotation"""
        phone_a = make_phone("p1", type="MOBILE", consecutive_no_answer=1)
        phone_b = make_phone("p2", type="LANDLINE")

        selected = manager.get_next_phone_to_call([phone_a, phone_b], last_called_phone_id="p1")

        assert selected.id == "p1"

    def test_stays_on_only_phone_even_when_tired(self, manager, make_phone):
        """Test that rotation needs somewhere to go"""
        phone_a = make_phone("p1", consecutive_no_answer=5)

        assert manager.get_next_phone_to_call([phone_a], last_called_phone_id="p1").id == "p1"


class TestPhoneStatusUpdate:
    """Tests for per-call phone updates"""

    def test_no_answer_increments_counter(self, manager, make_phone, now):
        """Test that NO_ANSWER counts toward rotation"""
        phone = make_phone("p1", consecutive_no_answer=1)

        update = manager.get_phone_status_update(phone, CallOutcome.NO_ANSWER, now, [phone])

        assert update.consecutive_no_answer == 2
        assert update.attempt_count == 1
        assert update.should_rotate is True
        assert update.rotate_reason == "consecutive_no_answer_2"

    def test_answered_resets_counter_and_validates(self, manager, make_phone, now):
        """Test that a human answer proves the number"""
        phone = make_phone("p1", status=PhoneStatus.UNVERIFIED, consecutive_no_answer=3)

        update = manager.get_phone_status_update(phone, CallOutcome.ANSWERED_NEUTRAL, now, [phone])

        assert update.new_status == PhoneStatus.VALID
        assert update.consecutive_no_answer == 0
        assert update.should_rotate is False

    def test_voicemail_validates_without_reset(self, manager, make_phone, now):
        """Test that voicemail marks the number valid but keeps the counter"""
        phone = make_phone("p1", status=PhoneStatus.UNVERIFIED, consecutive_no_answer=1)

        update = manager.get_phone_status_update(phone, CallOutcome.VOICEMAIL, now, [phone])

        assert update.new_status == PhoneStatus.VALID
        assert update.consecutive_no_answer == 1

    def test_wrong_number_rotates_to_next_phone(self, manager, make_phone, now):
        """Test that a wrong number hands over to the next callable phone"""
        phone_a = make_phone("p1")
        phone_b = make_phone("p2", type="LANDLINE")

        update = manager.get_phone_status_update(phone_a, CallOutcome.WRONG_NUMBER, now, [phone_a, phone_b])

        assert update.new_status == PhoneStatus.WRONG
        assert update.should_rotate is True
        assert update.rotate_reason == "phone_marked_wrong"
        assert update.next_phone_id == "p2"

    def test_dnc_outcomes_mark_phone_dnc(self, manager, make_phone, now):
        """Test both DNC outcomes"""
        phone = make_phone("p1")

        for outcome in (CallOutcome.DNC, CallOutcome.ANSWERED_DNC):
            update = manager.get_phone_status_update(phone, outcome, now, [phone])
            assert update.new_status == PhoneStatus.DNC
            assert update.next_phone_id is None

    def test_apply_update_copies_fields(self, manager, make_phone, now):
        """Test that apply_update does not mutate the original phone"""
        phone = make_phone("p1")
        update = manager.get_phone_status_update(phone, CallOutcome.DISCONNECTED, now, [phone])

        updated = manager.apply_update(phone, update)

        assert updated.phone_status == PhoneStatus.DISCONNECTED
        assert updated.last_attempt_at == now
        assert phone.phone_status == PhoneStatus.VALID


class TestPhoneExhaustion:
    """Tests for exhaustion and summaries"""

    def test_exhausted_when_all_phones_bad(self, manager, make_phone):
        phones = [
            make_phone("p1", status=PhoneStatus.WRONG),
            make_phone("p2", status=PhoneStatus.DISCONNECTED),
        ]

        assert manager.should_mark_phone_exhausted(phones) is True

    def test_not_exhausted_without_phones(self, manager):
        """Test that a lead with no phones needs numbers, not an exhaustion flag"""
        assert manager.should_mark_phone_exhausted([]) is False

    def test_not_exhausted_with_one_callable(self, manager, make_phone):
        phones = [
            make_phone("p1", status=PhoneStatus.WRONG),
            make_phone("p2", status=PhoneStatus.UNVERIFIED),
        ]

        assert manager.should_mark_phone_exhausted(phones) is False

    def test_phone_summary(self, manager, make_phone):
        """Test summary counts and next phone"""
        phones = [
            make_phone("p1", type="LANDLINE"),
            make_phone("p2", type="MOBILE", status=PhoneStatus.UNVERIFIED),
            make_phone("p3", status=PhoneStatus.DNC),
        ]

        summary = manager.get_phone_summary(phones)

        assert summary.total == 3
        assert summary.callable == 2
        assert summary.valid == 1
        assert summary.unverified == 1
        assert summary.bad == 1
        assert summary.has_mobile is True
        assert summary.exhausted is False
        assert summary.next_phone_id == "p2"
