"""Daily request budget and time windows for the rate-limited source.

The budget is counted per calendar day in the configured reference
timezone (India Standard Time by default). Each scheduled fetch type owns
one window per day and runs at most once per day.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ipo_bot.models.config import FetchType, QuotaConfig
from ipo_bot.models.results import QuotaStatus


logger = logging.getLogger(__name__)


@dataclass
class QuotaState:
    """Mutable counters for one reference day."""

    date: str
    request_count: int = 0
    # Scheduled fetch types already run on `date`
    completed: set[str] = field(default_factory=set)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaGate:
    """Admits or refuses requests to the rate-limited source.

    The gate reserves budget before a request is sent, so a request that
    fails still counts. Day rollover is checked on every call.
    """

    def __init__(
        self,
        config: QuotaConfig | None = None,
        state: QuotaState | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or QuotaConfig()
        self.tz = ZoneInfo(self.config.timezone)
        self._clock = clock or _utcnow
        self.state = state or QuotaState(date=self._today())
        self._lock = asyncio.Lock()

    def _now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def _today(self) -> str:
        return self._now().date().isoformat()

    def _minute_of_day(self) -> int:
        now = self._now()
        return now.hour * 60 + now.minute

    def _roll_over(self) -> None:
        today = self._today()
        if self.state.date != today:
            logger.info(
                f"New quota day {today}, resetting counter "
                f"({self.state.request_count} requests used on {self.state.date})"
            )
            self.state.date = today
            self.state.request_count = 0
            self.state.completed.clear()

    def remaining(self) -> int:
        self._roll_over()
        return max(0, self.config.daily_limit - self.state.request_count)

    def can_request(self) -> bool:
        return self.remaining() > 0

    async def acquire(self) -> bool:
        """Reserve one request. Returns False when the day's budget is spent."""
        async with self._lock:
            self._roll_over()
            if self.state.request_count >= self.config.daily_limit:
                logger.warning(f"Daily limit of {self.config.daily_limit} requests reached, refusing request")
                return False
            self.state.request_count += 1
            logger.debug(f"Quota reserved: {self.state.request_count}/{self.config.daily_limit}")
            return True

    def scheduled_fetch_type(self) -> FetchType | None:
        """The fetch type whose window is open now and has not run today."""
        self._roll_over()
        minute = self._minute_of_day()
        for window in self.config.windows:
            if not window.contains(minute):
                continue
            if window.fetch_type in self.state.completed:
                return None
            return window.fetch_type
        return None

    def mark_completed(self, fetch_type: FetchType) -> None:
        self._roll_over()
        self.state.completed.add(fetch_type)
        logger.info(f"Scheduled '{fetch_type}' fetch completed for {self.state.date}")

    def is_eligible(self) -> bool:
        """Budget remains and a scheduled fetch is due."""
        return self.can_request() and self.scheduled_fetch_type() is not None

    def is_market_hours(self) -> bool:
        now = self._now()
        if now.weekday() >= 5:
            return False
        opens = _clock_minutes(self.config.market_open)
        closes = _clock_minutes(self.config.market_close)
        return opens <= self._minute_of_day() <= closes

    def status(self) -> QuotaStatus:
        remaining = self.remaining()
        return QuotaStatus(
            date=self.state.date,
            used=self.state.request_count,
            remaining=remaining,
            limit=self.config.daily_limit,
        )


def _clock_minutes(value: str) -> int:
    hours, _, minutes = value.partition(":")
    return int(hours) * 60 + int(minutes)
