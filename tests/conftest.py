"""Shared fixtures for the ipo-bot test suite."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from ipo_bot.fetchers.base import SourceAdapter
from ipo_bot.fetchers.ipoalerts import QuotaGate
from ipo_bot.models.config import FetchConfig, QuotaConfig
from ipo_bot.models.listing import RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.storage.activity import ActivityLog


def make_record(symbol: str, company_name: str | None = None, **fields: Any) -> RawRecord:
    return RawRecord(symbol=symbol, company_name=company_name or f"{symbol.title()} Industries", **fields)


class ConcurrencyTracker:
    """Counts adapters in flight at the same time."""

    def __init__(self) -> None:
        self.current = 0
        self.peak = 0

    def enter(self) -> None:
        self.current += 1
        self.peak = max(self.peak, self.current)

    def exit(self) -> None:
        self.current -= 1


class StubAdapter(SourceAdapter):
    """Adapter returning canned records, or raising a canned error."""

    operations = frozenset(Operation)

    def __init__(
        self,
        name: str,
        records: list[RawRecord] | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
        tracker: ConcurrencyTracker | None = None,
        activity: ActivityLog | None = None,
    ):
        self.name = name
        super().__init__(config=FetchConfig(retry_delay=0), activity=activity)
        self.records = records or []
        self.error = error
        self.delay = delay
        self.tracker = tracker
        self.calls = 0

    async def _produce(self) -> list[RawRecord]:
        self.calls += 1
        if self.tracker is not None:
            self.tracker.enter()
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return list(self.records)
        finally:
            if self.tracker is not None:
                self.tracker.exit()

    async def _fetch_offerings(self) -> list[RawRecord]:
        return await self._produce()

    async def _fetch_demand(self) -> list[RawRecord]:
        return await self._produce()

    async def _fetch_sentiment(self) -> list[RawRecord]:
        return await self._produce()


class ThrowingAdapter(StubAdapter):
    """Breaks the adapter contract by raising straight out of `fetch`."""

    def fetch(self, operation: Operation):
        raise RuntimeError(f"{self.name} exploded")


class MutableClock:
    """Controllable clock for the quota gate."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def record_factory() -> Callable[..., RawRecord]:
    return make_record


@pytest.fixture
def activity() -> ActivityLog:
    return ActivityLog()


@pytest.fixture
def fast_config() -> FetchConfig:
    """Fetch settings with retries but no backoff delay."""
    return FetchConfig(timeout=5.0, retries=2, retry_delay=0.0)


@pytest.fixture
def ist_clock() -> MutableClock:
    """Clock set to Tuesday 2026-02-10 10:30 IST (inside the 'open' window)."""
    return MutableClock(datetime(2026, 2, 10, 5, 0, tzinfo=timezone.utc))


@pytest.fixture
def quota_gate(ist_clock: MutableClock) -> QuotaGate:
    return QuotaGate(QuotaConfig(), clock=ist_clock)


@pytest.fixture
def stub_adapter() -> type[StubAdapter]:
    return StubAdapter


@pytest.fixture
def throwing_adapter() -> type[ThrowingAdapter]:
    return ThrowingAdapter


@pytest.fixture
def tracker() -> ConcurrencyTracker:
    return ConcurrencyTracker()
