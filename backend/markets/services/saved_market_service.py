"""Saved markets and their alert settings, persisted in the document store."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

import pytz
from fastapi import HTTPException, status

from markets.config import settings
from markets.services.alert_service import (
    DEFAULT_LEAD_DAYS,
    NextAlert,
    SavedMarketAlertSettings,
    UserAlertsSettings,
    alert_label,
    build_default_alert_settings,
    compute_next_alert,
    is_in_quiet_hours,
    is_valid_lead_days,
    normalize_lead_days,
    normalize_open_days,
    normalize_time_of_day,
)
from markets.store.adapters import to_iso
from markets.store.document_store import DocumentStore, Transaction
from markets.store.paths import (
    alert_settings_path,
    document_id,
    saved_market_path,
    saved_markets_collection,
)

logger = logging.getLogger(__name__)


@dataclass
class UpcomingAlert:
    venue_id: str
    notify_at: Optional[datetime]
    open_on: Optional[datetime]
    label: str
    in_quiet_hours: bool = False


def _settings_from_document(data: dict) -> SavedMarketAlertSettings:
    """Stored settings merged over the defaults; no open days means the market's own."""
    return SavedMarketAlertSettings(
        enabled=bool(data.get("notifyEnabled")),
        lead_days=normalize_lead_days(data.get("notifyLeadDays"), DEFAULT_LEAD_DAYS),
        open_days=(normalize_open_days(data.get("notifyOpenDays"))
                   or normalize_open_days(data.get("marketOpenDays"))),
        time_of_day=normalize_time_of_day(data.get("notifyTimeOfDay")),
    )


def _settings_to_document(alert_settings: SavedMarketAlertSettings) -> dict[str, Any]:
    return {
        "notifyEnabled": alert_settings.enabled,
        "notifyLeadDays": alert_settings.lead_days,
        "notifyOpenDays": list(alert_settings.open_days),
        "notifyTimeOfDay": alert_settings.time_of_day,
    }


# ---------------------------------------------------------------------------
# User-wide alert preferences
# ---------------------------------------------------------------------------
def get_user_alerts_settings(store: DocumentStore, user_id: str) -> UserAlertsSettings:
    defaults = UserAlertsSettings(default_time_of_day=settings.DEFAULT_ALERT_TIME)
    data = store.get(alert_settings_path(user_id))
    if data is None:
        return defaults
    time_zone = data.get("timeZone")
    if time_zone not in pytz.all_timezones_set:
        time_zone = defaults.time_zone
    return UserAlertsSettings(
        enabled=data["enabled"] if isinstance(data.get("enabled"), bool) else defaults.enabled,
        default_time_of_day=normalize_time_of_day(data.get("defaultTimeOfDay"), defaults.default_time_of_day),
        quiet_hours_enabled=(
            data["quietHoursEnabled"] if isinstance(data.get("quietHoursEnabled"), bool)
            else defaults.quiet_hours_enabled
        ),
        quiet_start=normalize_time_of_day(data.get("quietStart"), defaults.quiet_start),
        quiet_end=normalize_time_of_day(data.get("quietEnd"), defaults.quiet_end),
        time_zone=time_zone,
    )


def update_user_alerts_settings(
    store: DocumentStore, user_id: str, updates: dict[str, Any], now: datetime,
) -> UserAlertsSettings:
    """Partial update; invalid times fall back to the defaults, an empty time zone is ignored."""
    defaults = UserAlertsSettings(default_time_of_day=settings.DEFAULT_ALERT_TIME)
    patch: dict[str, Any] = {"updatedAt": to_iso(now)}
    if isinstance(updates.get("enabled"), bool):
        patch["enabled"] = updates["enabled"]
    if isinstance(updates.get("quiet_hours_enabled"), bool):
        patch["quietHoursEnabled"] = updates["quiet_hours_enabled"]
    if isinstance(updates.get("time_zone"), str) and updates["time_zone"]:
        if updates["time_zone"] not in pytz.all_timezones_set:
            raise HTTPException(status_code=400, detail=f"Unknown time zone '{updates['time_zone']}'")
        patch["timeZone"] = updates["time_zone"]
    if isinstance(updates.get("default_time_of_day"), str):
        patch["defaultTimeOfDay"] = normalize_time_of_day(updates["default_time_of_day"], defaults.default_time_of_day)
    if isinstance(updates.get("quiet_start"), str):
        patch["quietStart"] = normalize_time_of_day(updates["quiet_start"], defaults.quiet_start)
    if isinstance(updates.get("quiet_end"), str):
        patch["quietEnd"] = normalize_time_of_day(updates["quiet_end"], defaults.quiet_end)

    store.set(alert_settings_path(user_id), patch, merge=True)
    logger.info("Updated alert settings for user %s", user_id)
    return get_user_alerts_settings(store, user_id)


# ---------------------------------------------------------------------------
# Saved markets
# ---------------------------------------------------------------------------
def list_saved_markets(store: DocumentStore, user_id: str) -> list[str]:
    return [document_id(path) for path, _ in store.list_collection(saved_markets_collection(user_id))]


def save_market(
    store: DocumentStore,
    user_id: str,
    venue_id: str,
    periods: Optional[Iterable[object]],
    now: datetime,
) -> SavedMarketAlertSettings:
    """Save a market; the first save creates alert settings from the market's open days."""
    user_defaults = get_user_alerts_settings(store, user_id)
    path = saved_market_path(user_id, venue_id)

    def _save(tx: Transaction) -> SavedMarketAlertSettings:
        existing = tx.get(path)
        if existing is not None:
            return _settings_from_document(existing)
        alert_settings = build_default_alert_settings(periods, user_defaults.default_time_of_day)
        tx.set(path, {
            "placeId": venue_id,
            "savedAt": to_iso(now),
            "marketOpenDays": list(alert_settings.open_days),
            **_settings_to_document(alert_settings),
        })
        return alert_settings

    alert_settings = store.run_transaction(_save)
    logger.info("User %s saved market %s", user_id, venue_id)
    return alert_settings


def unsave_market(store: DocumentStore, user_id: str, venue_id: str) -> None:
    store.delete(saved_market_path(user_id, venue_id))
    logger.info("User %s unsaved market %s", user_id, venue_id)


def get_saved_market_alert_settings(store: DocumentStore, user_id: str, venue_id: str) -> SavedMarketAlertSettings:
    data = store.get(saved_market_path(user_id, venue_id))
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved market not found")
    return _settings_from_document(data)


def update_saved_market_alert_settings(
    store: DocumentStore,
    user_id: str,
    venue_id: str,
    updates: dict[str, Any],
    now: datetime,
) -> SavedMarketAlertSettings:
    """Apply a partial update from the client. Out-of-range lead days are ignored."""
    path = saved_market_path(user_id, venue_id)
    patch: dict[str, Any] = {"notifyUpdatedAt": to_iso(now)}
    if isinstance(updates.get("enabled"), bool):
        patch["notifyEnabled"] = updates["enabled"]
    if is_valid_lead_days(updates.get("lead_days")):
        patch["notifyLeadDays"] = updates["lead_days"]
    if updates.get("open_days") is not None:
        patch["notifyOpenDays"] = normalize_open_days(updates["open_days"])
    if isinstance(updates.get("time_of_day"), str):
        patch["notifyTimeOfDay"] = normalize_time_of_day(updates["time_of_day"], settings.DEFAULT_ALERT_TIME)

    def _update(tx: Transaction) -> SavedMarketAlertSettings:
        existing = tx.get(path)
        if existing is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved market not found")
        existing.update(patch)
        tx.set(path, existing)
        return _settings_from_document(existing)

    alert_settings = store.run_transaction(_update)
    logger.info("Updated alert for user %s market %s: %s", user_id, venue_id, sorted(patch))
    return alert_settings


def next_alert_for(
    alert_settings: SavedMarketAlertSettings, user_settings: UserAlertsSettings, now: datetime,
) -> NextAlert:
    if not user_settings.enabled:
        return NextAlert()
    return compute_next_alert(
        open_days=alert_settings.open_days,
        lead_days=alert_settings.lead_days,
        time_of_day=alert_settings.time_of_day or user_settings.default_time_of_day,
        enabled=alert_settings.enabled,
        now=now,
        time_zone=user_settings.time_zone,
    )


def get_next_alert(store: DocumentStore, user_id: str, venue_id: str, now: datetime) -> UpcomingAlert:
    alert_settings = get_saved_market_alert_settings(store, user_id, venue_id)
    user_settings = get_user_alerts_settings(store, user_id)
    return _upcoming(venue_id, alert_settings, user_settings, now)


def _upcoming(
    venue_id: str, alert_settings: SavedMarketAlertSettings, user_settings: UserAlertsSettings, now: datetime,
) -> UpcomingAlert:
    next_alert = next_alert_for(alert_settings, user_settings, now)
    time_of_day = alert_settings.time_of_day or user_settings.default_time_of_day
    return UpcomingAlert(
        venue_id=venue_id,
        notify_at=next_alert.notify_at,
        open_on=next_alert.open_on,
        label=alert_label(next_alert, time_of_day, now),
        in_quiet_hours=bool(next_alert.notify_at and is_in_quiet_hours(user_settings, next_alert.notify_at)),
    )


def list_upcoming_alerts(
    store: DocumentStore, user_id: str, now: datetime,
) -> tuple[list[UpcomingAlert], list[UpcomingAlert]]:
    """(scheduled sorted by notify time, enabled-but-unschedulable) for a user's saved markets."""
    user_settings = get_user_alerts_settings(store, user_id)
    scheduled: list[UpcomingAlert] = []
    unscheduled: list[UpcomingAlert] = []
    for path, data in store.list_collection(saved_markets_collection(user_id)):
        alert_settings = _settings_from_document(data)
        if not alert_settings.enabled:
            continue
        item = _upcoming(document_id(path), alert_settings, user_settings, now)
        (scheduled if item.notify_at else unscheduled).append(item)
    scheduled.sort(key=lambda item: item.notify_at)
    return scheduled, unscheduled
