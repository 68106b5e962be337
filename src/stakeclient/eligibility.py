"""Unlock and withdrawal eligibility rules for stake records.

Pure functions of a record and the current time. Nothing here is stored;
callers recompute on demand.
"""

from stakeclient.models import LockTerm, StakeRecord

_SECONDS_PER_HOUR = 60 * 60
_SECONDS_PER_DAY = 24 * _SECONDS_PER_HOUR


def lock_duration(
    lock_term: LockTerm,
    one_month_seconds: int = 30 * _SECONDS_PER_DAY,
    one_year_seconds: int = 365 * _SECONDS_PER_DAY,
) -> int:
    """Seconds a stake under lock_term stays locked. FLEXIBLE never locks."""
    if lock_term == LockTerm.ONE_MONTH:
        return one_month_seconds
    if lock_term == LockTerm.ONE_YEAR:
        return one_year_seconds
    return 0


def is_withdrawable(record: StakeRecord, now: float) -> bool:
    """True when the record is unclaimed and either flexible or past unlock."""
    if record.claimed:
        return False
    return record.lock_term == LockTerm.FLEXIBLE or now >= record.unlock_time


def remaining_time_text(record: StakeRecord, now: float) -> str | None:
    """Human-readable time left until unlock, or None when nothing is pending.

    Whole days when at least one day remains, otherwise whole hours.
    Both are truncated, never rounded up.
    """
    if record.claimed or record.lock_term == LockTerm.FLEXIBLE:
        return None
    remaining = record.unlock_time - now
    if remaining <= 0:
        return None

    days = int(remaining // _SECONDS_PER_DAY)
    if days >= 1:
        return f"{days} day(s) remaining"
    hours = int(remaining // _SECONDS_PER_HOUR)
    return f"{hours} hour(s) remaining"
