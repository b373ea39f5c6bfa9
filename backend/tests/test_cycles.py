"""Tests for reaction cycle resets and stale-record cleanup."""
from datetime import datetime, timedelta, timezone

import pytest

from markets.errors import TransactionAbortedError
from markets.models.reaction import ReactionField
from markets.services import cycle_service, reaction_service
from markets.services.consensus import summarize_field
from markets.store.paths import (
    market_info_path,
    user_reaction_index_path,
    venue_reactions_collection,
    venue_user_reaction_path,
)
from tests.conftest import FIXED_NOW

TOILET = ReactionField.toilet
PARKING = ReactionField.parking
WEEK = timedelta(days=7)


def _react(store, venue_id, user_id, reaction_field, value, now=FIXED_NOW):
    reaction_service.update_reaction(store, venue_id, user_id, reaction_field, value, now)


@pytest.fixture
def busy_venue(store):
    """Venue "v": toilet Yes/Yes/No and one parking vote, all in cycle 1."""
    _react(store, "v", "u1", TOILET, "Yes")
    _react(store, "v", "u2", TOILET, "Yes")
    _react(store, "v", "u3", TOILET, "No")
    _react(store, "v", "u1", PARKING, "Free")
    return "v"


class TestNextBoundary:

    def test_one_cycle(self):
        assert cycle_service.next_boundary(FIXED_NOW, FIXED_NOW + timedelta(hours=1), WEEK) == FIXED_NOW + WEEK

    def test_skips_missed_cycles(self):
        assert cycle_service.next_boundary(FIXED_NOW, FIXED_NOW + timedelta(days=15), WEEK) == FIXED_NOW + 3 * WEEK

    def test_strictly_after_now(self):
        assert cycle_service.next_boundary(FIXED_NOW, FIXED_NOW + WEEK, WEEK) == FIXED_NOW + 2 * WEEK


class TestResetCycle:

    def test_not_due(self, store, busy_venue):
        assert cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + timedelta(days=6)) is False
        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 1
        assert info.counters(TOILET).counts == {"Yes": 2, "No": 1}

    def test_unknown_venue(self, store):
        assert cycle_service.reset_cycle_if_due(store, "nowhere", FIXED_NOW + WEEK) is False

    def test_due_reset(self, store, busy_venue):
        now = FIXED_NOW + WEEK
        assert cycle_service.reset_cycle_if_due(store, busy_venue, now) is True

        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 2
        assert info.cycle.last_reset_at == now
        assert info.cycle.next_reset_at == FIXED_NOW + 2 * WEEK
        assert info.cycle.cleanup_pending is False
        assert info.counters(TOILET).counts == {"Yes": 0, "No": 0}
        assert info.counters(TOILET).previous == {"Yes": 2, "No": 1}
        assert info.counters(PARKING).previous == {"Free": 1, "Paid": 0, "Street": 0}

        consensus = summarize_field(info, TOILET)
        assert consensus.displayed_value == "Yes"
        assert consensus.has_new_info is False

        assert store.list_collection(venue_reactions_collection(busy_venue)) == []
        assert store.get(user_reaction_index_path("u1", busy_venue)) is None
        assert reaction_service.list_user_reactions(store, "u1") == {}

    def test_second_run_is_noop(self, store, busy_venue):
        now = FIXED_NOW + WEEK
        cycle_service.reset_cycle_if_due(store, busy_venue, now)
        assert cycle_service.reset_cycle_if_due(store, busy_venue, now) is False
        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 2
        assert info.counters(TOILET).previous == {"Yes": 2, "No": 1}

    def test_empty_field_keeps_previous(self, store, busy_venue):
        cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + WEEK)
        _react(store, busy_venue, "u1", PARKING, "Paid", now=FIXED_NOW + WEEK + timedelta(days=1))

        assert cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + 2 * WEEK) is True
        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 3
        assert info.counters(TOILET).previous == {"Yes": 2, "No": 1}
        assert info.counters(PARKING).previous == {"Free": 0, "Paid": 1, "Street": 0}

    def test_reactions_after_reset_count_fresh(self, store, busy_venue):
        later = FIXED_NOW + WEEK + timedelta(hours=1)
        cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + WEEK)
        _react(store, busy_venue, "u1", TOILET, "Yes", now=later)
        assert reaction_service.get_market_info(store, busy_venue).counters(TOILET).counts == {"Yes": 1, "No": 0}


class TestCleanup:

    def test_chunked(self, store, monkeypatch):
        for user_id in ("u1", "u2", "u3", "u4", "u5"):
            _react(store, "v", user_id, TOILET, "Yes")
        chunks = []
        original = cycle_service._delete_stale

        def _counting(tx, venue_id, paths, cycle_number):
            chunks.append(list(paths))
            return original(tx, venue_id, paths, cycle_number)

        monkeypatch.setattr(cycle_service, "_delete_stale", _counting)
        assert cycle_service.reset_cycle_if_due(store, "v", FIXED_NOW + WEEK, batch_size=4) is True

        assert [len(chunk) for chunk in chunks] == [2, 2, 1]
        assert store.list_collection(venue_reactions_collection("v")) == []
        for user_id in ("u1", "u2", "u3", "u4", "u5"):
            assert store.get(user_reaction_index_path(user_id, "v")) is None

    def test_resume_after_crash(self, store, busy_venue, monkeypatch):
        def _crash(*args, **kwargs):
            raise RuntimeError("worker died")

        monkeypatch.setattr(cycle_service, "cleanup_stale_reactions", _crash)
        with pytest.raises(RuntimeError):
            cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + WEEK)
        monkeypatch.undo()

        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 2
        assert info.cycle.cleanup_pending is True
        # Stale records are still there but carry no selection
        assert len(store.list_collection(venue_reactions_collection(busy_venue))) == 3
        assert reaction_service.get_user_reactions(store, busy_venue, "u1") == {}

        assert cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + WEEK) is False
        info = reaction_service.get_market_info(store, busy_venue)
        assert info.cycle.number == 2
        assert info.cycle.cleanup_pending is False
        assert info.counters(TOILET).previous == {"Yes": 2, "No": 1}
        assert store.list_collection(venue_reactions_collection(busy_venue)) == []

    def test_reaction_during_pending_cleanup_survives(self, store, busy_venue, monkeypatch):
        monkeypatch.setattr(cycle_service, "cleanup_stale_reactions", lambda *args, **kwargs: 0)
        cycle_service.reset_cycle_if_due(store, busy_venue, FIXED_NOW + WEEK)
        monkeypatch.undo()

        _react(store, busy_venue, "u1", TOILET, "No", now=FIXED_NOW + WEEK + timedelta(minutes=5))
        cycle_service.cleanup_stale_reactions(store, busy_venue)

        record = store.get(venue_user_reaction_path(busy_venue, "u1"))
        assert record["toilet"] == "No"
        assert record["cycle"] == 2
        assert "parking" not in record
        assert store.get(venue_user_reaction_path(busy_venue, "u2")) is None
        assert store.get(user_reaction_index_path("u1", busy_venue))["toilet"] == "No"
        assert reaction_service.get_market_info(store, busy_venue).counters(TOILET).counts == {"Yes": 0, "No": 1}


class TestRunResetCycles:

    def test_resets_due_venues_only(self, store, busy_venue):
        _react(store, "later", "u1", TOILET, "No", now=FIXED_NOW + timedelta(days=5))
        counts = cycle_service.run_reset_cycles(store, FIXED_NOW + WEEK)
        assert counts == {"reset": 1, "skipped": 1, "failed": 0}
        assert reaction_service.get_market_info(store, "later").cycle.number == 1

    def test_failed_venue_does_not_stop_others(self, store, busy_venue, monkeypatch):
        _react(store, "other", "u1", TOILET, "No")
        original = cycle_service.reset_cycle_if_due

        def _flaky(store, venue_id, now, batch_size=None):
            if venue_id == busy_venue:
                raise TransactionAbortedError(5)
            return original(store, venue_id, now, batch_size)

        monkeypatch.setattr(cycle_service, "reset_cycle_if_due", _flaky)
        counts = cycle_service.run_reset_cycles(store, FIXED_NOW + WEEK)
        assert counts == {"reset": 1, "skipped": 0, "failed": 1}


def test_scheduled_job_uses_own_session(session_factory, monkeypatch):
    from markets.jobs import reset_cycles_job

    calls = []
    monkeypatch.setattr(reset_cycles_job, "SessionLocal", session_factory)
    monkeypatch.setattr(reset_cycles_job, "run_reset_cycles", lambda store, now: calls.append((store, now)))
    reset_cycles_job.run_reset_cycles_job()

    assert len(calls) == 1
    assert calls[0][1].tzinfo is not None


class TestLegacyCycleData:

    def test_cycle_block_without_clock_gets_one(self, store):
        store.set(market_info_path("old"), {"toilet": {"yes": 1, "no": 0}, "cycle": {"lastResetAt": None}})
        _react(store, "old", "u1", TOILET, "No")

        info = reaction_service.get_market_info(store, "old")
        assert info.cycle.number == 1
        assert info.cycle.last_reset_at == FIXED_NOW
        assert info.cycle.next_reset_at == FIXED_NOW + WEEK

        assert cycle_service.reset_cycle_if_due(store, "old", FIXED_NOW + WEEK) is True
        assert reaction_service.get_market_info(store, "old").counters(TOILET).previous == {"Yes": 1, "No": 1}

    def test_naive_timestamp_read_as_utc(self, store):
        store.set(market_info_path("naive"), {
            "toilet": {"Yes": 1, "No": 0},
            "cycle": {"number": 1, "nextResetAt": "2026-10-01T00:00:00"},
        })
        info = reaction_service.get_market_info(store, "naive")
        assert info.cycle.next_reset_at == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert cycle_service.reset_cycle_if_due(store, "naive", FIXED_NOW) is True

    def test_unexpected_error_does_not_stop_job(self, store, busy_venue, monkeypatch):
        _react(store, "other", "u1", TOILET, "No")
        original = cycle_service.reset_cycle_if_due

        def _broken(store, venue_id, now, batch_size=None):
            if venue_id == busy_venue:
                raise TypeError("bad document")
            return original(store, venue_id, now, batch_size)

        monkeypatch.setattr(cycle_service, "reset_cycle_if_due", _broken)
        counts = cycle_service.run_reset_cycles(store, FIXED_NOW + WEEK)
        assert counts == {"reset": 1, "skipped": 0, "failed": 1}
        assert reaction_service.get_market_info(store, "other").cycle.number == 2


def test_reset_without_any_reactions_still_advances_clock(store):
    _react(store, "quiet", "u1", TOILET, "Yes")
    _react(store, "quiet", "u1", TOILET, None)
    now = FIXED_NOW + WEEK + timedelta(hours=3)

    assert cycle_service.reset_cycle_if_due(store, "quiet", now) is True
    info = reaction_service.get_market_info(store, "quiet")
    assert info.cycle.number == 2
    assert info.cycle.last_reset_at == now
    assert info.cycle.next_reset_at == FIXED_NOW + 2 * WEEK
    assert info.counters(TOILET).previous == {"Yes": 0, "No": 0}
    assert cycle_service.reset_cycle_if_due(store, "quiet", now) is False
