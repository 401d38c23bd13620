"""Source adapter contract shared by every external source."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, ClassVar

import httpx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ipo_bot.models.config import FetchConfig
from ipo_bot.models.listing import RawRecord
from ipo_bot.models.results import FetchResult, FetchStatus, Operation
from ipo_bot.storage.activity import ActivityLog

from .client import FetchClient
from .errors import CredentialError


TIMEOUT_ERRORS = (httpx.TimeoutException, PlaywrightTimeoutError, asyncio.TimeoutError, TimeoutError)


class SourceAdapter:
    """Wraps one external source behind the common fetch/parse/result contract.

    Subclasses set `name` and `operations` and override the matching
    `_fetch_*` coroutines. The public operations never raise: every failure
    becomes a failed `FetchResult`, and each call is reported to the
    activity log exactly once.
    """

    name: ClassVar[str] = "source"
    operations: ClassVar[frozenset[Operation]] = frozenset()
    # Cheapest read used by connectivity probes
    probe_operation: ClassVar[Operation] = Operation.OFFERINGS

    def __init__(
        self,
        config: FetchConfig | None = None,
        activity: ActivityLog | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or FetchConfig()
        self.activity = activity or ActivityLog()
        self.client = FetchClient(self.config, name=self.name, transport=transport)
        self.logger = logging.getLogger(f"ipo_bot.sources.{self.name}")
        self._fatal_error: str | None = None

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "SourceAdapter":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def supports(self, operation: Operation) -> bool:
        return operation in self.operations

    @property
    def disabled(self) -> bool:
        """True once a credential failure made this adapter unusable."""
        return self._fatal_error is not None

    async def get_offerings(self) -> FetchResult:
        return await self._call(Operation.OFFERINGS, self._fetch_offerings)

    async def get_demand_figures(self) -> FetchResult:
        return await self._call(Operation.DEMAND, self._fetch_demand)

    async def get_sentiment_signals(self) -> FetchResult:
        return await self._call(Operation.SENTIMENT, self._fetch_sentiment)

    async def fetch(self, operation: Operation) -> FetchResult:
        """Run one of the three read operations by name."""
        dispatch = {
            Operation.OFFERINGS: self.get_offerings,
            Operation.DEMAND: self.get_demand_figures,
            Operation.SENTIMENT: self.get_sentiment_signals,
        }
        return await dispatch[Operation(operation)]()

    async def probe(self) -> FetchResult:
        """Connectivity check using the source's cheapest read."""
        return await self.fetch(self.probe_operation)

    async def _fetch_offerings(self) -> list[RawRecord]:
        self.logger.debug(f"Offerings not available from {self.name}")
        return []

    async def _fetch_demand(self) -> list[RawRecord]:
        self.logger.debug(f"Demand figures not available from {self.name}")
        return []

    async def _fetch_sentiment(self) -> list[RawRecord]:
        self.logger.debug(f"Sentiment signals not available from {self.name}")
        return []

    async def _call(
        self,
        operation: Operation,
        func: Callable[[], Awaitable[list[RawRecord]]],
    ) -> FetchResult:
        """Run a fetch coroutine and convert its outcome into a FetchResult."""
        start_time = time.time()

        if self._fatal_error is not None:
            return self.wrap_result(operation, [], start_time, error=self._fatal_error)

        try:
            data = await func()
        except CredentialError as e:
            self._fatal_error = str(e)
            self.logger.error(f"Disabling {self.name} for this process: {e}")
            return self.wrap_result(operation, [], start_time, error=str(e))
        except TIMEOUT_ERRORS as e:
            return self.wrap_result(
                operation, [], start_time,
                error=str(e) or "Request timed out",
                status="timeout",
            )
        except Exception as e:
            self.logger.error(f"{operation.value} fetch failed: {type(e).__name__}: {e}")
            return self.wrap_result(operation, [], start_time, error=str(e) or type(e).__name__)

        return self.wrap_result(operation, data, start_time, metadata=self._activity_metadata())

    def _activity_metadata(self) -> dict[str, Any] | None:
        """Extra context recorded with successful calls."""
        return None

    def wrap_result(
        self,
        operation: Operation,
        data: list[RawRecord],
        start_time: float,
        error: str | None = None,
        status: FetchStatus = "error",
        metadata: dict[str, Any] | None = None,
    ) -> FetchResult:
        """Build the typed result and report it to the activity log."""
        response_time_ms = int((time.time() - start_time) * 1000)

        if error is None:
            self.activity.log_success(self.name, operation.value, len(data), response_time_ms, metadata)
            return FetchResult.ok(self.name, operation, data, response_time_ms)

        if status == "timeout":
            self.activity.log_timeout(self.name, operation.value, response_time_ms)
        else:
            self.activity.log_error(self.name, operation.value, error, response_time_ms)
        return FetchResult.failed(self.name, operation, error, response_time_ms, status=status)
