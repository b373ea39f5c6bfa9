"""Opening-hours engine: is a venue open right now, and when does it open next.

Periods come from the places data source, either in its nested shape
({"open": {"day": 5, "time": "2000"}, "close": {"day": 6, "time": "0200"}}) or flat
({"openDay": 5, "openTime": "2000", "closeDay": 6, "closeTime": "0200"}).
Malformed periods are skipped; a schedule with no usable period is INVALID,
never CLOSED.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from markets.timespan import (
    DAY_NAMES,
    MONTH_NAMES_SHORT,
    at_minute,
    format_time_12h,
    is_valid_weekday,
    minute_of_day,
    parse_hhmm,
    weekday_index,
)

logger = logging.getLogger(__name__)


class OpenStatus(str, enum.Enum):
    open_now = "OPEN_NOW"
    closed = "CLOSED"
    invalid = "INVALID"


@dataclass(frozen=True)
class RecurringPeriod:
    open_day: int
    open_minute: int
    close_day: Optional[int] = None  # None: open for 24h from the opening time
    close_minute: Optional[int] = None

    @property
    def has_close(self) -> bool:
        return self.close_day is not None and self.close_minute is not None


@dataclass
class OpeningStatusResult:
    status: OpenStatus
    next_open_at: Optional[datetime] = None
    next_open_text: Optional[str] = None
    days_ahead: Optional[int] = None


def _endpoint(raw: dict, nested_key: str, day_key: str, time_key: str) -> tuple[object, object]:
    nested = raw.get(nested_key)
    if isinstance(nested, dict):
        return nested.get("day"), nested.get("time")
    return raw.get(day_key), raw.get(time_key)


def parse_period(raw: object) -> Optional[RecurringPeriod]:
    """Build a RecurringPeriod, or None when the opening day/time is unusable.

    An unusable close is dropped rather than rejecting the period.
    """
    if isinstance(raw, RecurringPeriod):
        return raw
    if not isinstance(raw, dict):
        return None
    open_day, open_time = _endpoint(raw, "open", "openDay", "openTime")
    open_minute = parse_hhmm(open_time)
    if not is_valid_weekday(open_day) or open_minute is None:
        return None
    close_day, close_time = _endpoint(raw, "close", "closeDay", "closeTime")
    close_minute = parse_hhmm(close_time)
    if not is_valid_weekday(close_day) or close_minute is None:
        return RecurringPeriod(open_day, open_minute)
    return RecurringPeriod(open_day, open_minute, close_day, close_minute)


def parse_periods(periods: Optional[Iterable[object]]) -> list[RecurringPeriod]:
    parsed = []
    for raw in periods or []:
        period = parse_period(raw)
        if period is None:
            logger.debug("Skipping malformed period %r", raw)
            continue
        parsed.append(period)
    return parsed


def effective_close(period: RecurringPeriod) -> tuple[int, int]:
    """Close (day, minute); a missing close means the same time one day later."""
    if period.has_close:
        return period.close_day, period.close_minute
    return (period.open_day + 1) % 7, period.open_minute


def is_open_at(period: RecurringPeriod, day: int, minute: int) -> bool:
    """Whether `period` covers weekday `day` at `minute` (close is exclusive)."""
    close_day, close_minute = effective_close(period)
    if close_day == period.open_day:
        if close_minute <= period.open_minute:
            return False
        return day == period.open_day and period.open_minute <= minute < close_minute

    span = (close_day - period.open_day) % 7
    offset = (day - period.open_day) % 7
    if offset == 0:
        return minute >= period.open_minute
    if offset == span:
        return minute < close_minute
    return 0 < offset < span


def open_days(periods: Optional[Iterable[object]]) -> list[int]:
    """Distinct weekdays on which some period opens, ascending.

    Only the opening day has to be valid here; a period whose opening time does
    not parse still marks its day, unlike parse_periods.
    """
    days = set()
    for raw in periods or []:
        if isinstance(raw, RecurringPeriod):
            days.add(raw.open_day)
            continue
        if not isinstance(raw, dict):
            continue
        day, _ = _endpoint(raw, "open", "openDay", "openTime")
        if is_valid_weekday(day):
            days.add(day)
    return sorted(days)


def describe_next_open(open_day: int, opens_on: date, open_minute: int) -> str:
    """ "Opens Friday 24 Oct 8:00 PM" """
    month = MONTH_NAMES_SHORT[opens_on.month - 1]
    return f"Opens {DAY_NAMES[open_day]} {opens_on.day} {month} {format_time_12h(open_minute)}"


def get_open_status(periods: Optional[Iterable[object]], now: datetime) -> OpeningStatusResult:
    """Evaluate a weekly schedule at `now`.

    OPEN_NOW if any period covers `now`. Otherwise CLOSED with the soonest
    upcoming opening over the next seven days; an opening earlier today that
    has already passed counts as next week's (7 days ahead). INVALID when no
    period is usable.
    """
    parsed = parse_periods(periods)
    if not parsed:
        return OpeningStatusResult(OpenStatus.invalid)

    today = weekday_index(now)
    minute = minute_of_day(now)
    if any(is_open_at(period, today, minute) for period in parsed):
        return OpeningStatusResult(OpenStatus.open_now)

    best: Optional[tuple[int, int, int]] = None  # (days_ahead, open_minute, open_day)
    for offset in range(7):
        day = (today + offset) % 7
        for period in parsed:
            if period.open_day != day:
                continue
            days_ahead = offset
            if offset == 0 and period.open_minute <= minute:
                days_ahead = 7
            candidate = (days_ahead, period.open_minute, day)
            if best is None or candidate < best:
                best = candidate

    if best is None:
        return OpeningStatusResult(OpenStatus.invalid)

    days_ahead, open_minute, open_day = best
    opens_on = now.date() + timedelta(days=days_ahead)
    return OpeningStatusResult(
        status=OpenStatus.closed,
        next_open_at=at_minute(opens_on, open_minute, now.tzinfo),
        next_open_text=describe_next_open(open_day, opens_on, open_minute),
        days_ahead=days_ahead,
    )
