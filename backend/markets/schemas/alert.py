"""Pydantic schemas for saved markets and alerts."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel


class SaveMarketRequest(BaseModel):
    periods: Optional[list[Any]] = None


class AlertSettingsOut(BaseModel):
    enabled: bool
    lead_days: int
    open_days: list[int]
    time_of_day: str

    model_config = {"from_attributes": True}


class AlertSettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    lead_days: Optional[int] = None
    open_days: Optional[list[int]] = None
    time_of_day: Optional[str] = None


class UpcomingAlertOut(BaseModel):
    venue_id: str
    notify_at: Optional[datetime] = None
    open_on: Optional[datetime] = None
    label: str
    in_quiet_hours: bool = False

    model_config = {"from_attributes": True}


class UpcomingAlertsOut(BaseModel):
    scheduled: list[UpcomingAlertOut]
    unscheduled: list[UpcomingAlertOut]


class UserAlertsSettingsOut(BaseModel):
    enabled: bool
    default_time_of_day: str
    quiet_hours_enabled: bool
    quiet_start: str
    quiet_end: str
    time_zone: str

    model_config = {"from_attributes": True}


class UserAlertsSettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    default_time_of_day: Optional[str] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_start: Optional[str] = None
    quiet_end: Optional[str] = None
    time_zone: Optional[str] = None
