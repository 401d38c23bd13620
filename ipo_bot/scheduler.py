"""Polling loop that runs aggregation passes on a market-hours cadence."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ipo_bot.aggregation import Aggregator
from ipo_bot.models.results import AggregatorResult, Operation, utcnow
from ipo_bot.storage.base import RecordStore


logger = logging.getLogger(__name__)

BIDDING_INTERVAL_SECONDS = 5 * 60
IDLE_INTERVAL_SECONDS = 30 * 60


@dataclass
class SchedulerState:
    is_running: bool = False
    last_poll_time: datetime | None = None
    poll_count: int = 0
    last_results: dict[str, AggregatorResult] = field(default_factory=dict)


class PollScheduler:
    """Runs offerings, demand and sentiment passes until stopped.

    Offerings are persisted through the record store after each poll. A
    failing poll is logged and the loop carries on.
    """

    def __init__(self, aggregator: Aggregator, store: RecordStore | None = None):
        self.aggregator = aggregator
        self.store = store
        self.state = SchedulerState()
        self._stop_event: asyncio.Event | None = None

    def is_bidding_hours(self) -> bool:
        gate = self.aggregator.quota_gate
        return gate.is_market_hours() if gate is not None else False

    def next_interval(self) -> float:
        return BIDDING_INTERVAL_SECONDS if self.is_bidding_hours() else IDLE_INTERVAL_SECONDS

    async def poll_once(self) -> dict[str, AggregatorResult]:
        """Run one poll: every operation, then persist offerings."""
        logger.info(f"Data poll #{self.state.poll_count + 1} (bidding hours: {self.is_bidding_hours()})")

        results: dict[str, AggregatorResult] = {}
        for operation in Operation:
            results[operation.value] = await self.aggregator.run(operation)

        offerings = results[Operation.OFFERINGS.value]
        if self.store is not None and offerings.data:
            saved = self.store.bulk_upsert(offerings.data)
            logger.info(f"Saved {len(saved)} offerings")
        elif not offerings.data:
            logger.warning("Offerings pass returned no records")

        self.state.last_poll_time = utcnow()
        self.state.poll_count += 1
        self.state.last_results = results
        return results

    async def trigger(self) -> dict[str, AggregatorResult]:
        logger.info("Manual poll triggered")
        return await self.poll_once()

    async def run_forever(self, max_polls: int | None = None) -> None:
        """Poll until `stop()` is called or `max_polls` polls have run."""
        if self.state.is_running:
            logger.warning("Scheduler already running")
            return

        self._stop_event = asyncio.Event()
        self.state.is_running = True
        logger.info("Scheduler started: every 5 minutes during bidding hours, 30 minutes otherwise")

        try:
            while not self._stop_event.is_set():
                try:
                    await self.poll_once()
                except Exception:
                    logger.exception("Scheduled poll failed")

                if max_polls is not None and self.state.poll_count >= max_polls:
                    break

                interval = self.next_interval()
                logger.info(f"Next poll in {interval / 60:.0f} minutes")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.state.is_running = False
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        if not self.state.is_running or self._stop_event is None:
            logger.warning("Scheduler not running")
            return
        self._stop_event.set()

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self.state.is_running,
            "last_poll_time": self.state.last_poll_time,
            "poll_count": self.state.poll_count,
            "is_bidding_hours": self.is_bidding_hours(),
            "last_counts": {op: len(r.data) for op, r in self.state.last_results.items()},
        }
