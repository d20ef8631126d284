"""
Calendar-day keys and the daily lineup lock.

Day keys are 8-digit UTC dates (YYYYMMDD). Zero padding keeps them in
lexicographic order, so plain string comparison orders them like dates.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

DATE_KEY_RE = re.compile(r"^\d{8}$")


def is_valid_date_key(date_key) -> bool:
    if not isinstance(date_key, str) or not DATE_KEY_RE.match(date_key):
        return False
    try:
        parse_date_key(date_key)
    except ValueError:
        return False
    return True


def parse_date_key(date_key: str) -> date:
    """Parse YYYYMMDD into a date. Raises ValueError on anything else."""
    if not isinstance(date_key, str) or not DATE_KEY_RE.match(date_key):
        raise ValueError(f"dateKey must be 8 digits (YYYYMMDD), got {date_key!r}")
    return datetime.strptime(date_key, "%Y%m%d").date()


def date_key_for(moment: Union[int, float, datetime]) -> str:
    """UTC day key for a unix timestamp or an aware datetime."""
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        dt = moment.astimezone(timezone.utc)
    else:
        dt = datetime.fromtimestamp(moment, tz=timezone.utc)
    return dt.strftime("%Y%m%d")


def lock_timestamp(date_key: str, lock_hour_utc: int) -> datetime:
    """The instant lineups for `date_key` lock: lock_hour_utc:00:00 UTC that day."""
    if not 0 <= lock_hour_utc <= 23:
        raise ValueError(f"lock_hour_utc must be 0-23, got {lock_hour_utc}")
    return datetime.combine(parse_date_key(date_key), time(lock_hour_utc, 0, 0), tzinfo=timezone.utc)


def is_locked(date_key: str, lock_hour_utc: int, now: Optional[datetime] = None) -> bool:
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now >= lock_timestamp(date_key, lock_hour_utc)


def retention_cutoff(days: int, now: Optional[datetime] = None) -> str:
    """Oldest day key still inside the retention window."""
    if now is None:
        now = datetime.now(timezone.utc)
    return date_key_for(now - timedelta(days=days))
