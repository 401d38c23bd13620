"""Tests for the daily quota gate of the rate-limited source."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from ipo_bot.fetchers.ipoalerts import QuotaGate, QuotaState
from ipo_bot.models.config import QuotaConfig


def at_utc(hour: int, minute: int = 0, day: int = 10) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=timezone.utc)


class TestBudget:
    @pytest.mark.asyncio
    async def test_twenty_sixth_request_refused(self, quota_gate):
        granted = [await quota_gate.acquire() for _ in range(25)]

        assert all(granted)
        assert quota_gate.remaining() == 0
        assert await quota_gate.acquire() is False
        assert quota_gate.state.request_count == 25

    @pytest.mark.asyncio
    async def test_concurrent_acquires_never_exceed_limit(self, ist_clock):
        gate = QuotaGate(QuotaConfig(daily_limit=5), clock=ist_clock)

        results = await asyncio.gather(*(gate.acquire() for _ in range(20)))

        assert results.count(True) == 5
        assert gate.state.request_count == 5

    def test_status_reports_usage(self, quota_gate):
        quota_gate.state.request_count = 7
        status = quota_gate.status()

        assert status.date == "2026-02-10"
        assert status.used == 7
        assert status.remaining == 18
        assert status.limit == 25

    def test_restored_state(self, ist_clock):
        gate = QuotaGate(state=QuotaState(date="2026-02-10", request_count=24), clock=ist_clock)
        assert gate.remaining() == 1


class TestRollover:
    @pytest.mark.asyncio
    async def test_new_day_resets_counter_and_schedule(self, quota_gate, ist_clock):
        for _ in range(25):
            await quota_gate.acquire()
        quota_gate.mark_completed("open")
        assert quota_gate.scheduled_fetch_type() is None

        ist_clock.now = ist_clock.now + timedelta(days=1)

        assert quota_gate.remaining() == 25
        assert quota_gate.scheduled_fetch_type() == "open"
        assert quota_gate.state.date == "2026-02-11"
        assert await quota_gate.acquire() is True

    def test_day_boundary_follows_reference_timezone(self, ist_clock):
        # 18:45 UTC on the 10th is already 00:15 on the 11th in IST
        ist_clock.now = at_utc(18, 45)
        gate = QuotaGate(clock=ist_clock)
        assert gate.state.date == "2026-02-11"


class TestWindows:
    @pytest.mark.parametrize(
        "utc_time,expected",
        [
            (at_utc(5, 0), "open"),        # 10:30 IST
            (at_utc(7, 0), "upcoming"),    # 12:30 IST
            (at_utc(9, 0), "listed"),      # 14:30 IST
            (at_utc(6, 0), None),          # 11:30 IST
            (at_utc(4, 44), None),         # 10:14 IST
            (at_utc(5, 30), None),         # 11:00 IST, end is exclusive
        ],
    )
    def test_window_mapping(self, ist_clock, utc_time, expected):
        ist_clock.now = utc_time
        gate = QuotaGate(clock=ist_clock)
        assert gate.scheduled_fetch_type() == expected

    def test_completed_type_not_rescheduled(self, quota_gate):
        quota_gate.mark_completed("open")
        assert quota_gate.scheduled_fetch_type() is None
        assert not quota_gate.is_eligible()

    @pytest.mark.asyncio
    async def test_not_eligible_without_budget(self, ist_clock):
        gate = QuotaGate(QuotaConfig(daily_limit=1), clock=ist_clock)
        assert gate.is_eligible()

        await gate.acquire()
        assert not gate.is_eligible()

    def test_not_eligible_outside_windows(self, ist_clock):
        ist_clock.now = at_utc(6, 0)
        assert not QuotaGate(clock=ist_clock).is_eligible()


class TestMarketHours:
    @pytest.mark.parametrize(
        "utc_time,expected",
        [
            (at_utc(3, 44), False),    # 09:14 IST
            (at_utc(3, 45), True),     # 09:15 IST
            (at_utc(12, 0), True),     # 17:30 IST
            (at_utc(12, 1), False),    # 17:31 IST
        ],
    )
    def test_weekday_bounds(self, ist_clock, utc_time, expected):
        ist_clock.now = utc_time
        assert QuotaGate(clock=ist_clock).is_market_hours() is expected

    def test_weekend_closed(self, ist_clock):
        # Saturday 2026-02-14, 10:30 IST
        ist_clock.now = at_utc(5, 0, day=14)
        assert QuotaGate(clock=ist_clock).is_market_hours() is False
