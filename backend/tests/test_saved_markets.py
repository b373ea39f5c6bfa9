"""Tests for saved markets and their persisted alert settings."""
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

from markets.services import saved_market_service as svc
from markets.store.paths import alert_settings_path, saved_market_path
from tests.conftest import FIXED_NOW, FRI_NIGHT_MARKET, SAT_MORNING_MARKET

PERIODS = [FRI_NIGHT_MARKET, SAT_MORNING_MARKET]


class TestSaveMarket:

    def test_first_save_creates_defaults(self, store):
        alert_settings = svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW)
        assert alert_settings.enabled is False
        assert alert_settings.lead_days == 1
        assert alert_settings.open_days == [5, 6]
        assert alert_settings.time_of_day == "20:00"

        stored = store.get(saved_market_path("u1", "venue-1"))
        assert stored["placeId"] == "venue-1"
        assert stored["notifyOpenDays"] == [5, 6]
        assert svc.list_saved_markets(store, "u1") == ["venue-1"]

    def test_save_again_keeps_existing_settings(self, store):
        svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW)
        svc.update_saved_market_alert_settings(store, "u1", "venue-1", {"enabled": True, "lead_days": 3}, FIXED_NOW)

        again = svc.save_market(store, "u1", "venue-1", [], FIXED_NOW)
        assert again.enabled is True
        assert again.lead_days == 3
        assert again.open_days == [5, 6]

    def test_uses_user_default_time(self, store):
        svc.update_user_alerts_settings(store, "u1", {"default_time_of_day": "07:30"}, FIXED_NOW)
        assert svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW).time_of_day == "07:30"

    def test_unsave(self, store):
        svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW)
        svc.unsave_market(store, "u1", "venue-1")
        svc.unsave_market(store, "u1", "venue-1")
        assert svc.list_saved_markets(store, "u1") == []
        with pytest.raises(HTTPException) as exc_info:
            svc.get_saved_market_alert_settings(store, "u1", "venue-1")
        assert exc_info.value.status_code == 404


class TestUpdateAlertSettings:

    def test_partial_update_normalizes(self, store):
        svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW)
        updated = svc.update_saved_market_alert_settings(
            store, "u1", "venue-1",
            {"lead_days": 9, "open_days": [6, 6, 9], "time_of_day": "late"},
            FIXED_NOW,
        )
        assert updated.lead_days == 1  # out of range, ignored
        assert updated.open_days == [6]
        assert updated.time_of_day == "20:00"
        assert updated.enabled is False
        assert svc.get_saved_market_alert_settings(store, "u1", "venue-1") == updated

    def test_unsaved_market_is_404(self, store):
        with pytest.raises(HTTPException) as exc_info:
            svc.update_saved_market_alert_settings(store, "u1", "nowhere", {"enabled": True}, FIXED_NOW)
        assert exc_info.value.status_code == 404
        assert store.get(saved_market_path("u1", "nowhere")) is None


class TestUserAlertsSettings:

    def test_defaults(self, store):
        user = svc.get_user_alerts_settings(store, "u1")
        assert user.enabled is True
        assert user.default_time_of_day == "20:00"
        assert (user.quiet_start, user.quiet_end, user.time_zone) == ("22:00", "07:00", "UTC")

    def test_update(self, store):
        user = svc.update_user_alerts_settings(
            store, "u1", {"time_zone": "Europe/London", "quiet_hours_enabled": False, "quiet_end": "bad"}, FIXED_NOW,
        )
        assert user.time_zone == "Europe/London"
        assert user.quiet_hours_enabled is False
        assert user.quiet_end == "07:00"

    def test_unknown_time_zone_rejected(self, store):
        with pytest.raises(HTTPException) as exc_info:
            svc.update_user_alerts_settings(store, "u1", {"time_zone": "Mars/Olympus"}, FIXED_NOW)
        assert exc_info.value.status_code == 400

    def test_stored_bad_time_zone_reads_as_utc(self, store):
        store.set(alert_settings_path("u1"), {"timeZone": "Nowhere/Land", "enabled": "yes"})
        user = svc.get_user_alerts_settings(store, "u1")
        assert user.time_zone == "UTC"
        assert user.enabled is True


class TestNextAlert:

    def _enable(self, store, venue_id, periods=PERIODS, **updates):
        svc.save_market(store, "u1", venue_id, periods, FIXED_NOW)
        svc.update_saved_market_alert_settings(store, "u1", venue_id, {"enabled": True, **updates}, FIXED_NOW)

    def test_next_alert(self, store):
        self._enable(store, "venue-1", open_days=[6], time_of_day="09:00")
        upcoming = svc.get_next_alert(store, "u1", "venue-1", FIXED_NOW)
        assert upcoming.notify_at == datetime(2026, 10, 23, 9, 0, tzinfo=timezone.utc)
        assert upcoming.label == "Today · 9:00 AM"
        assert upcoming.in_quiet_hours is False

    def test_quiet_hours_flagged(self, store):
        self._enable(store, "venue-1", open_days=[6], time_of_day="23:00")
        assert svc.get_next_alert(store, "u1", "venue-1", FIXED_NOW).in_quiet_hours is True

    def test_globally_disabled(self, store):
        self._enable(store, "venue-1", open_days=[6], time_of_day="09:00")
        svc.update_user_alerts_settings(store, "u1", {"enabled": False}, FIXED_NOW)
        upcoming = svc.get_next_alert(store, "u1", "venue-1", FIXED_NOW)
        assert upcoming.notify_at is None
        assert upcoming.label == "Not scheduled"

    def test_list_upcoming(self, store):
        self._enable(store, "late", open_days=[6], time_of_day="18:00")
        self._enable(store, "early", open_days=[6], time_of_day="09:00")
        self._enable(store, "never", periods=[])
        svc.save_market(store, "u1", "disabled", PERIODS, FIXED_NOW)

        scheduled, unscheduled = svc.list_upcoming_alerts(store, "u1", FIXED_NOW)
        assert [item.venue_id for item in scheduled] == ["early", "late"]
        assert [item.venue_id for item in unscheduled] == ["never"]
        assert unscheduled[0].label == "Not scheduled"


class TestStoredSettingsFallbacks:

    def test_missing_lead_days_reads_as_one(self, store):
        store.set(saved_market_path("u1", "legacy"), {"placeId": "legacy", "notifyEnabled": True})
        assert svc.get_saved_market_alert_settings(store, "u1", "legacy").lead_days == 1

    def test_empty_open_days_fall_back_to_market_days(self, store):
        svc.save_market(store, "u1", "venue-1", PERIODS, FIXED_NOW)
        updated = svc.update_saved_market_alert_settings(store, "u1", "venue-1", {"open_days": []}, FIXED_NOW)
        assert updated.open_days == [5, 6]
        assert store.get(saved_market_path("u1", "venue-1"))["notifyOpenDays"] == []
