"""Minute-of-day helpers shared by the opening-hours, schedule and alert code.

Weekdays are numbered 0-6 starting on Sunday, matching the places data.
"""
import re
from datetime import date, datetime, time, tzinfo
from typing import Optional, Union

MINUTES_PER_DAY = 24 * 60

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DAY_NAMES_SHORT = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_NAMES_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

_CLOCK_RE = re.compile(r"^\d{2}:\d{2}$")


def weekday_index(day: Union[date, datetime]) -> int:
    """Sunday-based weekday (0 = Sunday ... 6 = Saturday)."""
    return (day.weekday() + 1) % 7


def is_valid_weekday(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 6


def _to_minutes(hours: int, minutes: int) -> Optional[int]:
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def parse_hhmm(value: object) -> Optional[int]:
    """Parse "0930" (places data format) into minutes since midnight."""
    if not isinstance(value, str) or len(value) < 4:
        return None
    hours, minutes = value[:2], value[2:4]
    if not (hours.isdigit() and minutes.isdigit()):
        return None
    return _to_minutes(int(hours), int(minutes))


def parse_clock(value: object) -> Optional[int]:
    """Parse "09:30" into minutes since midnight."""
    if not isinstance(value, str) or not _CLOCK_RE.match(value):
        return None
    return _to_minutes(int(value[:2]), int(value[3:]))


def format_clock(minutes: int) -> str:
    """Minutes since midnight → "HH:mm" (1440 renders as "24:00")."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time_12h(minutes: int) -> str:
    hours = (minutes // 60) % 24
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes % 60:02d} {period}"


def format_clock_12h(value: str) -> str:
    """ "20:00" → "8:00 PM"; unparseable input is returned unchanged."""
    minutes = parse_clock(value)
    return value if minutes is None else format_time_12h(minutes)


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def at_minute(day: date, minutes: int, tz: Optional[tzinfo] = None) -> datetime:
    """Wall-clock instant `minutes` after midnight on `day`, in `tz` when given."""
    naive = datetime.combine(day, time(minutes // 60, minutes % 60))
    if tz is None:
        return naive
    localize = getattr(tz, "localize", None)  # pytz zones
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=tz)


def format_short_date(day: date) -> str:
    """ "Jan 19" """
    return f"{MONTH_NAMES_SHORT[day.month - 1]} {day.day}"


def relative_day_label(moment: Union[date, datetime], now: Union[date, datetime]) -> str:
    """ "Today", "Tomorrow", or the short weekday name."""
    target = moment.date() if isinstance(moment, datetime) else moment
    today = now.date() if isinstance(now, datetime) else now
    diff = (target - today).days
    if diff == 0:
        return "Today"
    if diff == 1:
        return "Tomorrow"
    return DAY_NAMES_SHORT[weekday_index(target)]
