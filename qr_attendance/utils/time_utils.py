# qr_attendance/utils/time_utils.py
from datetime import datetime, timezone, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_years(moment: datetime, years: int) -> datetime:
    """Shift by whole calendar years; 29 February falls back to the 28th"""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def never_expires_at(now: datetime, years: int = 100) -> datetime:
    """Far-future expiry used to mark a session that never expires"""
    return add_years(now, years)


def is_never_expires(expires_at: datetime, after_year: int = 2100) -> bool:
    return expires_at.year > after_year


def expiry_for(now: datetime, minutes: int) -> datetime:
    return now + timedelta(minutes=minutes)


def has_expired(expires_at: datetime, now: datetime, after_year: int = 2100) -> bool:
    """True once a non-sentinel expiry lies in the past"""
    if is_never_expires(expires_at, after_year):
        return False
    return expires_at < now


def session_status(is_active: bool, expires_at: datetime, now: datetime, after_year: int = 2100) -> str:
    """History label: ended once deactivated, expired once past a real expiry"""
    if not is_active:
        return "ended"
    if has_expired(expires_at, now, after_year):
        return "expired"
    return "active"


def local_date_time(moment: datetime, tz_name: str = "UTC"):
    """(YYYY-MM-DD, HH:MM) of a moment in the given timezone"""
    local = moment.astimezone(ZoneInfo(tz_name))
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M")
