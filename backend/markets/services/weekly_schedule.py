"""Weekly schedule projection: this week's hours per weekday, for display."""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from markets.services.opening_hours import effective_close, parse_periods
from markets.timespan import (
    DAY_NAMES,
    DAY_NAMES_SHORT,
    MINUTES_PER_DAY,
    format_clock,
    format_short_date,
    weekday_index,
)

NO_SCHEDULE_TEXT = "No schedule available"


@dataclass
class DayWindow:
    open_minute: int
    close_minute: int  # exclusive; 1440 = until midnight

    @property
    def open_time(self) -> str:
        return format_clock(self.open_minute)

    @property
    def close_time(self) -> str:
        return format_clock(self.close_minute)


@dataclass
class WeeklyScheduleDay:
    day: str
    date: str
    windows: list[DayWindow] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return bool(self.windows)

    @property
    def open_time(self) -> str:
        return self.windows[0].open_time if self.windows else ""

    @property
    def close_time(self) -> str:
        return self.windows[-1].close_time if self.windows else ""


def _add_window(table: dict[int, list[DayWindow]], day: int, open_minute: int, close_minute: int) -> None:
    if close_minute > open_minute:
        table[day].append(DayWindow(open_minute, close_minute))


def project_weekly_schedule(periods: Optional[Iterable[object]], today: Optional[date] = None) -> list[WeeklyScheduleDay]:
    """Seven rows, Sunday first, each listing every window that day is open.

    Same-day, missing-close (24h from opening) and multi-day periods follow the
    opening-hours rules. Several periods on one day are all kept.
    """
    today = today or date.today()
    table: dict[int, list[DayWindow]] = {day: [] for day in range(7)}

    for period in parse_periods(periods):
        close_day, close_minute = effective_close(period)
        if close_day == period.open_day:
            _add_window(table, period.open_day, period.open_minute, close_minute)
            continue
        _add_window(table, period.open_day, period.open_minute, MINUTES_PER_DAY)
        day = (period.open_day + 1) % 7
        while day != close_day:
            _add_window(table, day, 0, MINUTES_PER_DAY)
            day = (day + 1) % 7
        _add_window(table, close_day, 0, close_minute)

    today_index = weekday_index(today)
    schedule = []
    for day in range(7):
        on = today + timedelta(days=(day - today_index) % 7)
        windows = sorted(table[day], key=lambda w: (w.open_minute, w.close_minute))
        schedule.append(WeeklyScheduleDay(DAY_NAMES[day], format_short_date(on), windows))
    return schedule


def format_weekly_schedule(schedule: list[WeeklyScheduleDay]) -> str:
    lines = []
    for index, day in enumerate(schedule):
        if not day.is_open:
            continue
        hours = ", ".join(f"{w.open_time} - {w.close_time}" for w in day.windows)
        lines.append(f"{DAY_NAMES_SHORT[index]} {day.date}: {hours}")
    return "\n".join(lines) if lines else NO_SCHEDULE_TEXT
