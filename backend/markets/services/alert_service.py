"""Alert scheduling: when a saved-market reminder should fire.

Pure functions: the caller supplies the settings and `now`.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

import pytz

from markets.config import settings
from markets.services.opening_hours import open_days as period_open_days
from markets.timespan import (
    at_minute,
    format_clock_12h,
    is_valid_weekday,
    minute_of_day,
    parse_clock,
    relative_day_label,
    weekday_index,
)

logger = logging.getLogger(__name__)

MAX_LEAD_DAYS = 7
DEFAULT_LEAD_DAYS = 1
NOT_SCHEDULED_TEXT = "Not scheduled"


@dataclass
class SavedMarketAlertSettings:
    enabled: bool = False
    lead_days: int = DEFAULT_LEAD_DAYS
    open_days: list[int] = field(default_factory=list)
    time_of_day: str = ""  # "HH:mm"; empty = use the user's default


@dataclass
class UserAlertsSettings:
    enabled: bool = True
    default_time_of_day: str = "20:00"
    quiet_hours_enabled: bool = True
    quiet_start: str = "22:00"
    quiet_end: str = "07:00"
    time_zone: str = "UTC"


@dataclass
class NextAlert:
    notify_at: Optional[datetime] = None
    open_on: Optional[datetime] = None

    @property
    def scheduled(self) -> bool:
        return self.notify_at is not None


def normalize_open_days(value: object) -> list[int]:
    if not isinstance(value, (list, tuple, set)):
        return []
    return sorted({day for day in value if is_valid_weekday(day)})


def is_valid_lead_days(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_LEAD_DAYS


def normalize_lead_days(value: object, fallback: int = 0) -> int:
    return value if is_valid_lead_days(value) else fallback


def normalize_time_of_day(value: object, fallback: str = "") -> str:
    return value if parse_clock(value) is not None else fallback


def build_default_alert_settings(periods: Optional[Iterable[object]],
                                 default_time_of_day: Optional[str] = None) -> SavedMarketAlertSettings:
    """Settings for a freshly saved market: off, one day ahead, on every day it opens."""
    return SavedMarketAlertSettings(
        enabled=False,
        lead_days=DEFAULT_LEAD_DAYS,
        open_days=period_open_days(periods),
        time_of_day=normalize_time_of_day(default_time_of_day or settings.DEFAULT_ALERT_TIME,
                                          settings.DEFAULT_ALERT_TIME),
    )


def compute_next_alert(
    open_days: Iterable[int],
    lead_days: int,
    time_of_day: str,
    enabled: bool,
    now: datetime,
    time_zone: Optional[str] = None,
    search_days: Optional[int] = None,
) -> NextAlert:
    """First open day (today onwards) whose reminder instant is still in the future.

    The reminder fires `lead_days` before the open day at `time_of_day`. Up to
    `search_days` days ahead are tried; past that the alert is not scheduled.
    With `time_zone`, day arithmetic runs on that zone's wall clock.
    """
    days = set(normalize_open_days(list(open_days or [])))
    if not enabled or not days:
        return NextAlert()

    tz = None
    local_now = now
    if time_zone:
        tz = pytz.timezone(time_zone)
        local_now = now.astimezone(tz) if now.tzinfo else tz.localize(now)
    elif now.tzinfo is not None:
        tz = now.tzinfo

    minutes = parse_clock(time_of_day)
    if minutes is None:
        minutes = 0
    search_days = settings.ALERT_SEARCH_DAYS if search_days is None else search_days
    start = local_now.date()

    for delta in range(search_days + 1):
        open_on = start + timedelta(days=delta)
        if weekday_index(open_on) not in days:
            continue
        notify_at = at_minute(open_on - timedelta(days=lead_days), minutes, tz)
        if notify_at > local_now:
            return NextAlert(notify_at=notify_at, open_on=at_minute(open_on, 0, tz))

    logger.debug("No alert instant within %d days for days=%s lead=%d", search_days, sorted(days), lead_days)
    return NextAlert()


def alert_label(next_alert: NextAlert, time_of_day: str, now: datetime) -> str:
    """ "Today · 9:00 AM", "Tomorrow · 8:00 PM", "Sat · 8:00 PM" or "Not scheduled". """
    if not next_alert.scheduled:
        return NOT_SCHEDULED_TEXT
    reference = now.astimezone(next_alert.notify_at.tzinfo) if now.tzinfo and next_alert.notify_at.tzinfo else now
    return f"{relative_day_label(next_alert.notify_at, reference)} · {format_clock_12h(time_of_day)}"


def is_in_quiet_hours(user_settings: UserAlertsSettings, moment: datetime) -> bool:
    """Whether `moment`'s wall-clock time falls inside the quiet window (handles overnight windows)."""
    if not user_settings.quiet_hours_enabled:
        return False
    start = parse_clock(user_settings.quiet_start)
    end = parse_clock(user_settings.quiet_end)
    if start is None or end is None or start == end:
        return False
    minute = minute_of_day(moment)
    if start < end:
        return start <= minute < end
    # Overnight window (e.g. 22:00 - 07:00)
    return minute >= start or minute < end
