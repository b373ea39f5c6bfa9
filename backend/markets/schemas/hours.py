"""Pydantic schemas for opening hours."""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel


class OpenStatusRequest(BaseModel):
    # Raw places-data periods; malformed entries are skipped, not rejected.
    periods: Optional[list[Any]] = None
    now: Optional[datetime] = None


class OpenStatusOut(BaseModel):
    status: str
    next_open_at: Optional[datetime] = None
    next_open_text: Optional[str] = None
    days_ahead: Optional[int] = None


class WeeklyScheduleRequest(BaseModel):
    periods: Optional[list[Any]] = None
    today: Optional[date] = None


class DayWindowOut(BaseModel):
    open_time: str
    close_time: str


class WeeklyScheduleDayOut(BaseModel):
    day: str
    date: str
    is_open: bool
    open_time: str
    close_time: str
    windows: list[DayWindowOut] = []


class WeeklyScheduleOut(BaseModel):
    days: list[WeeklyScheduleDayOut]
    summary: str
