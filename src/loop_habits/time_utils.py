from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo


DEFAULT_TZ = "Europe/Oslo"


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def today_local(tz_name: str = DEFAULT_TZ) -> date:
    return now_local(tz_name).date()


def day_key(day: date) -> str:
    return day.isoformat()


def parse_day_key(value: str) -> date:
    return date.fromisoformat(value.strip()[:10])


def weekday_index(day: date) -> int:
    """Weekday in the 0=Sunday..6=Saturday convention used by habit schedules."""
    return (day.weekday() + 1) % 7


def last_n_days(end: date, n: int) -> list[date]:
    return [end - timedelta(days=offset) for offset in range(n - 1, -1, -1)]


def parse_hhmm(value: str) -> time:
    hour_str, minute_str = value.split(":", maxsplit=1)
    hour = int(hour_str)
    minute = int(minute_str)
    return time(hour=hour, minute=minute)


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def in_quiet_hours(now: datetime, quiet_range: str | None) -> bool:
    if not quiet_range:
        return False
    try:
        start_raw, end_raw = quiet_range.split("-", maxsplit=1)
        start = parse_hhmm(start_raw)
        end = parse_hhmm(end_raw)
    except ValueError:
        return False

    current = now.time()
    if start <= end:
        return start <= current < end
    return current >= start or current < end
