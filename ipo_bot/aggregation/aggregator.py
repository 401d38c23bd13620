"""Fan-out, validation and merge of one operation across many sources."""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping

from ipo_bot.fetchers.base import TIMEOUT_ERRORS, SourceAdapter
from ipo_bot.fetchers.ipoalerts import QuotaGate
from ipo_bot.fetchers.registry import RATE_LIMITED_SOURCES, build_adapters
from ipo_bot.models.config import AggregatorConfig, AppConfig
from ipo_bot.models.listing import AggregatedEntity, Confidence, MergedEntity, RawRecord, Trend
from ipo_bot.models.results import (
    AggregatorResult,
    FetchResult,
    Operation,
    ProbeResult,
    QuotaStatus,
    SourceOutcome,
    utcnow,
)
from ipo_bot.normalizers import normalize_symbol
from ipo_bot.storage.activity import ActivityLog

from .merge import merge_first_known_good, merge_largest_premium
from .validation import rejection_reason


logger = logging.getLogger(__name__)

MergeFunction = Callable[[RawRecord, RawRecord], RawRecord]

# GMP movement (rupees) below which the trend is stable
TREND_THRESHOLD = 5


def calculate_confidence(source_count: int, total_sources: int) -> Confidence:
    if source_count >= 2:
        return "high"
    if source_count == 1 and total_sources >= 2:
        return "medium"
    return "low"


def calculate_trend(values: list[float]) -> Trend:
    """Compare the first and last premium observed during the merge."""
    if len(values) < 2:
        return "stable"
    diff = values[-1] - values[0]
    if diff > TREND_THRESHOLD:
        return "rising"
    if diff < -TREND_THRESHOLD:
        return "falling"
    return "stable"


class Aggregator:
    """Queries many sources for one operation and merges their answers.

    Each pass is independent: adapters run under a shared concurrency cap,
    every failure is contained to its own task, and the merged view is
    rebuilt from scratch.
    """

    def __init__(
        self,
        adapters: Mapping[str, SourceAdapter],
        config: AggregatorConfig | None = None,
        quota_gate: QuotaGate | None = None,
        activity: ActivityLog | None = None,
        rate_limited: Iterable[str] = RATE_LIMITED_SOURCES,
    ):
        self.adapters = dict(adapters)
        self.config = config or AggregatorConfig()
        self.quota_gate = quota_gate
        self.activity = activity or ActivityLog()
        self.rate_limited = frozenset(rate_limited)
        self._limiter = asyncio.Semaphore(self.config.concurrency)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        activity: ActivityLog | None = None,
        quota_gate: QuotaGate | None = None,
    ) -> "Aggregator":
        """Build an aggregator with every registered adapter."""
        activity = activity or ActivityLog(config.activity_log)
        quota_gate = quota_gate or QuotaGate(config.quota)
        adapters = build_adapters(config, activity, quota_gate)
        return cls(adapters, config=config.aggregator, quota_gate=quota_gate, activity=activity)

    async def aclose(self) -> None:
        for adapter in self.adapters.values():
            await adapter.aclose()

    async def __aenter__(self) -> "Aggregator":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def get_offerings(self, sources: Iterable[str] | None = None) -> AggregatorResult:
        return await self.run(Operation.OFFERINGS, sources)

    async def get_demand_figures(self, sources: Iterable[str] | None = None) -> AggregatorResult:
        return await self.run(Operation.DEMAND, sources)

    async def get_sentiment_signals(self, sources: Iterable[str] | None = None) -> AggregatorResult:
        return await self.run(Operation.SENTIMENT, sources)

    async def run_aggregation_pass(
        self,
        operation: Operation | str,
        sources: Iterable[str] | None = None,
    ) -> AggregatorResult:
        return await self.run(operation, sources)

    async def run(
        self,
        operation: Operation | str,
        sources: Iterable[str] | None = None,
    ) -> AggregatorResult:
        """Run one aggregation pass.

        Args:
            operation: Which read to run on every adapter
            sources: Adapter names; defaults to the configured list

        Returns:
            Merged entities plus per-source diagnostics. Never raises for
            source failures; if every source fails the data list is empty.
        """
        operation = Operation(operation)
        if sources is None:
            sources = self.config.default_sources.get(operation.value, list(self.adapters))

        start_time = time.time()
        adapters = self._select_adapters(operation, sources)
        logger.info(f"Fetching {operation.value} from {len(adapters)} sources: {[a.name for a in adapters]}")

        settled = await self._dispatch(operation, adapters)
        result = self._merge(operation, settled)

        logger.info(
            f"Aggregated {len(result.data)} {operation.value} records from "
            f"{result.successful_sources}/{result.total_sources} sources "
            f"({result.rejected_records} rejected) in {time.time() - start_time:.1f}s"
        )
        return result

    def _select_adapters(self, operation: Operation, sources: Iterable[str]) -> list[SourceAdapter]:
        selected = []
        for name in dict.fromkeys(s.lower() for s in sources):
            adapter = self.adapters.get(name)
            if adapter is None:
                logger.warning(f"Unknown source '{name}', skipping")
                continue
            if not adapter.supports(operation):
                logger.debug(f"{name} does not provide {operation.value}, skipping")
                continue
            if name in self.rate_limited and self.quota_gate is not None and not self.quota_gate.is_eligible():
                logger.info(f"{name} not dispatched: no quota budget or no open schedule window")
                continue
            selected.append(adapter)
        return selected

    async def _dispatch(self, operation: Operation, adapters: list[SourceAdapter]) -> list[FetchResult]:
        """Run adapters under the concurrency cap; results in settle order."""
        settled: list[FetchResult] = []

        async def _run(adapter: SourceAdapter) -> None:
            async with self._limiter:
                result = await self._invoke(adapter, operation)
            settled.append(result)

        await asyncio.gather(*(_run(adapter) for adapter in adapters))
        return settled

    async def _invoke(self, adapter: SourceAdapter, operation: Operation) -> FetchResult:
        """Call one adapter, containing anything that escapes it."""
        start_time = time.time()
        try:
            return await adapter.fetch(operation)
        except Exception as e:
            elapsed = int((time.time() - start_time) * 1000)
            error = str(e) or type(e).__name__
            logger.error(f"{adapter.name} raised during {operation.value}: {type(e).__name__}: {e}")
            if isinstance(e, TIMEOUT_ERRORS):
                self.activity.log_timeout(adapter.name, operation.value, elapsed)
                return FetchResult.failed(adapter.name, operation, error, elapsed, status="timeout")
            self.activity.log_error(adapter.name, operation.value, error, elapsed)
            return FetchResult.failed(adapter.name, operation, error, elapsed)

    def _merge(self, operation: Operation, settled: list[FetchResult]) -> AggregatorResult:
        merge: MergeFunction = merge_largest_premium if operation is Operation.SENTIMENT else merge_first_known_good
        entities: dict[str, MergedEntity] = {}
        outcomes: list[SourceOutcome] = []
        rejected_total = 0

        for result in settled:
            accepted = rejected = 0
            for record in result.data if result.success else []:
                key = normalize_symbol(record.symbol)
                reason = rejection_reason(record) or (None if key else "symbol normalizes to empty")
                if reason is not None:
                    rejected += 1
                    logger.warning(f"Rejected record from {result.source} {record.company_name[:50]!r}: {reason}")
                    continue
                accepted += 1
                self._integrate(entities, key, record, result.source, merge)

            rejected_total += rejected
            outcomes.append(SourceOutcome(
                source=result.source,
                success=result.success,
                count=len(result.data),
                accepted=accepted,
                rejected=rejected,
                response_time_ms=result.response_time_ms,
                error=result.error,
            ))

        total_sources = len(settled)
        now = utcnow()
        data = [
            AggregatedEntity(
                **entity.record.model_dump(),
                sources=list(entity.sources),
                source_count=entity.source_count,
                confidence=calculate_confidence(entity.source_count, total_sources),
                trend=calculate_trend(entity.gmp_values) if operation is Operation.SENTIMENT else None,
                last_updated=now,
            )
            for entity in entities.values()
        ]

        return AggregatorResult(
            operation=operation,
            data=data,
            source_results=outcomes,
            total_sources=total_sources,
            successful_sources=sum(1 for r in settled if r.success),
            rejected_records=rejected_total,
            timestamp=now,
        )

    @staticmethod
    def _integrate(
        entities: dict[str, MergedEntity],
        key: str,
        record: RawRecord,
        source: str,
        merge: MergeFunction,
    ) -> None:
        if record.symbol != key:
            record = record.model_copy(update={"symbol": key})

        entity = entities.get(key)
        if entity is None:
            entity = entities[key] = MergedEntity(record=record)
        else:
            entity.record = merge(entity.record, record)

        if source not in entity.sources:
            entity.sources.append(source)
        if record.gmp is not None:
            entity.gmp_values.append(record.gmp)

    async def probe_source(self, name: str) -> ProbeResult:
        """Run one adapter's cheapest read without merging anything."""
        adapter = self.adapters.get(name.lower())
        if adapter is None:
            return ProbeResult(source=name, success=False, error=f"Unknown source '{name}'")

        async with self._limiter:
            start_time = time.time()
            try:
                result = await adapter.probe()
            except Exception as e:
                latency = int((time.time() - start_time) * 1000)
                return ProbeResult(source=adapter.name, success=False, latency_ms=latency, error=str(e) or type(e).__name__)

            latency = int((time.time() - start_time) * 1000)
        return ProbeResult(source=adapter.name, success=result.success, latency_ms=latency, error=result.error)

    async def probe_all(self) -> list[ProbeResult]:
        """Probe every registered adapter, sharing the concurrency cap with passes."""
        return list(await asyncio.gather(*(self.probe_source(name) for name in self.adapters)))

    def get_quota_status(self) -> QuotaStatus | None:
        return self.quota_gate.status() if self.quota_gate is not None else None
