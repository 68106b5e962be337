"""Tests for unlock and withdrawal eligibility."""

from decimal import Decimal

import pytest

from stakeclient.eligibility import is_withdrawable, lock_duration, remaining_time_text
from stakeclient.models import LockTerm, StakeRecord

HOUR = 60 * 60
DAY = 24 * HOUR
START = 1_700_000_000


def _record(
    lock_term: LockTerm = LockTerm.ONE_MONTH,
    claimed: bool = False,
    start_time: int = START,
) -> StakeRecord:
    return StakeRecord(
        index=0,
        principal=Decimal("100"),
        start_time=start_time,
        lock_term=lock_term,
        claimed=claimed,
        current_reward=Decimal("0"),
        unlock_time=start_time + lock_duration(lock_term),
    )


class TestLockDuration:
    @pytest.mark.parametrize(
        "lock_term,expected",
        [
            (LockTerm.FLEXIBLE, 0),
            (LockTerm.ONE_MONTH, 30 * DAY),
            (LockTerm.ONE_YEAR, 365 * DAY),
        ],
    )
    def test_defaults(self, lock_term, expected):
        assert lock_duration(lock_term) == expected

    def test_custom_durations(self):
        assert lock_duration(LockTerm.ONE_MONTH, one_month_seconds=60) == 60
        assert lock_duration(LockTerm.ONE_YEAR, one_year_seconds=120) == 120


class TestIsWithdrawable:
    def test_locked_before_unlock(self):
        record = _record()
        assert is_withdrawable(record, record.unlock_time - 1) is False

    def test_unlock_boundary_is_inclusive(self):
        record = _record()
        assert is_withdrawable(record, record.unlock_time) is True

    def test_flexible_always_withdrawable(self):
        assert is_withdrawable(_record(LockTerm.FLEXIBLE), START) is True

    def test_claimed_never_withdrawable(self):
        record = _record(LockTerm.FLEXIBLE, claimed=True)
        assert is_withdrawable(record, START + 1000 * DAY) is False


class TestRemainingTimeText:
    def test_days_are_truncated(self):
        record = _record()
        assert remaining_time_text(record, record.unlock_time - 36 * HOUR) == "1 day(s) remaining"

    def test_full_month(self):
        assert remaining_time_text(_record(), START) == "30 day(s) remaining"

    def test_hours_under_one_day(self):
        record = _record()
        assert remaining_time_text(record, record.unlock_time - 5 * HOUR - 59) == "5 hour(s) remaining"

    def test_under_one_hour(self):
        record = _record()
        assert remaining_time_text(record, record.unlock_time - 30) == "0 hour(s) remaining"

    def test_none_at_unlock(self):
        record = _record()
        assert remaining_time_text(record, record.unlock_time) is None
        assert is_withdrawable(record, record.unlock_time) is True

    def test_none_for_flexible(self):
        assert remaining_time_text(_record(LockTerm.FLEXIBLE), START) is None

    def test_none_for_claimed(self):
        assert remaining_time_text(_record(claimed=True), START) is None
