"""Opening-hours API routes: stateless evaluation of a weekly schedule."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends

from markets.dependencies import get_now
from markets.schemas.hours import (
    DayWindowOut,
    OpenStatusOut,
    OpenStatusRequest,
    WeeklyScheduleDayOut,
    WeeklyScheduleOut,
    WeeklyScheduleRequest,
)
from markets.services.opening_hours import get_open_status
from markets.services.weekly_schedule import format_weekly_schedule, project_weekly_schedule

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/status", response_model=OpenStatusOut)
def open_status(payload: OpenStatusRequest, now: datetime = Depends(get_now)):
    """Open now / closed (with next opening) / invalid for the given periods."""
    result = get_open_status(payload.periods, payload.now or now)
    return OpenStatusOut(
        status=result.status.value,
        next_open_at=result.next_open_at,
        next_open_text=result.next_open_text,
        days_ahead=result.days_ahead,
    )


@router.post("/weekly", response_model=WeeklyScheduleOut)
def weekly_schedule(payload: WeeklyScheduleRequest, now: datetime = Depends(get_now)):
    """This week's hours, one row per weekday starting Sunday."""
    schedule = project_weekly_schedule(payload.periods, payload.today or now.date())
    days = [
        WeeklyScheduleDayOut(
            day=day.day,
            date=day.date,
            is_open=day.is_open,
            open_time=day.open_time,
            close_time=day.close_time,
            windows=[DayWindowOut(open_time=w.open_time, close_time=w.close_time) for w in day.windows],
        )
        for day in schedule
    ]
    return WeeklyScheduleOut(days=days, summary=format_weekly_schedule(schedule))
