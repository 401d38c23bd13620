"""Tests for the multi-source aggregator."""

import httpx
import pytest

from ipo_bot.aggregation import Aggregator, calculate_confidence, calculate_trend
from ipo_bot.fetchers.ipoalerts import QuotaGate
from ipo_bot.models.config import AggregatorConfig, QuotaConfig
from ipo_bot.models.results import Operation


def build(*adapters, concurrency=2, quota_gate=None, activity=None):
    return Aggregator(
        {adapter.name: adapter for adapter in adapters},
        config=AggregatorConfig(concurrency=concurrency),
        quota_gate=quota_gate,
        activity=activity,
    )


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_mixed_outcomes(self, stub_adapter, throwing_adapter, record_factory, activity):
        thrower = throwing_adapter("alpha", activity=activity)
        slow = stub_adapter("beta", error=httpx.ReadTimeout("timed out"), activity=activity)
        good = stub_adapter(
            "gamma",
            records=[record_factory(s) for s in ("ONE", "TWO", "THREE", "FOUR", "FIVE")],
            activity=activity,
        )
        aggregator = build(thrower, slow, good, activity=activity)

        result = await aggregator.get_offerings(["alpha", "beta", "gamma"])

        assert len(result.data) == 5
        assert result.successful_sources == 1
        assert result.total_sources == 3

        outcomes = {o.source: o for o in result.source_results}
        assert outcomes["alpha"].success is False
        assert "exploded" in outcomes["alpha"].error
        assert outcomes["beta"].success is False
        assert outcomes["gamma"].count == 5

        statuses = {e.source: e.status for e in activity.entries()}
        assert statuses == {"alpha": "error", "beta": "timeout", "gamma": "success"}

    @pytest.mark.asyncio
    async def test_adapter_timeout_result(self, stub_adapter):
        adapter = stub_adapter("beta", error=httpx.ReadTimeout("timed out"))

        result = await adapter.get_offerings()

        assert result.success is False
        assert result.status == "timeout"
        assert result.data == []

    @pytest.mark.asyncio
    async def test_total_failure_returns_empty_result(self, stub_adapter):
        aggregator = build(
            stub_adapter("alpha", error=RuntimeError("down")),
            stub_adapter("beta", error=ValueError("bad page")),
        )

        result = await aggregator.get_demand_figures(["alpha", "beta"])

        assert result.data == []
        assert result.successful_sources == 0
        assert result.total_sources == 2
        assert len(result.source_results) == 2


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_cap_respected(self, stub_adapter, tracker, record_factory):
        adapters = [
            stub_adapter(f"src{i}", records=[record_factory(f"SYM{i}")], delay=0.02, tracker=tracker)
            for i in range(5)
        ]
        aggregator = build(*adapters, concurrency=2)

        result = await aggregator.get_offerings([a.name for a in adapters])

        assert tracker.peak == 2
        assert result.successful_sources == 5
        assert all(a.calls == 1 for a in adapters)

    @pytest.mark.asyncio
    async def test_serial_with_cap_of_one(self, stub_adapter, tracker):
        adapters = [stub_adapter(f"src{i}", delay=0.01, tracker=tracker) for i in range(3)]
        await build(*adapters, concurrency=1).get_offerings([a.name for a in adapters])

        assert tracker.peak == 1


class TestMerging:
    @pytest.mark.asyncio
    async def test_cross_source_merge(self, stub_adapter, record_factory):
        first = stub_adapter("alpha", records=[
            record_factory("ALPHA", company_name="Alpha Tech Ltd", open_date="2026-02-10"),
        ])
        second = stub_adapter("beta", records=[
            record_factory("ALPHA", company_name="Alpha Tech Ltd", price_range="₹100-120", status="open"),
        ], delay=0.01)

        result = await build(first, second).get_offerings(["alpha", "beta"])

        assert len(result.data) == 1
        entity = result.data[0]
        assert entity.symbol == "ALPHA"
        assert entity.open_date == "2026-02-10"
        assert entity.price_range == "₹100-120"
        assert entity.status == "open"
        assert entity.sources == ["alpha", "beta"]
        assert entity.source_count == 2
        assert entity.confidence == "high"
        assert entity.trend is None

    @pytest.mark.asyncio
    async def test_symbols_normalized_before_merging(self, stub_adapter, record_factory):
        first = stub_adapter("alpha", records=[record_factory("Alpha Tech Ltd")])
        second = stub_adapter("beta", records=[record_factory("ALPHA")], delay=0.01)

        result = await build(first, second).get_offerings(["alpha", "beta"])

        assert [e.symbol for e in result.data] == ["ALPHA"]

    @pytest.mark.asyncio
    async def test_single_source_confidence(self, stub_adapter, record_factory):
        reporting = stub_adapter("alpha", records=[record_factory("ALPHA")])
        silent = stub_adapter("beta")

        result = await build(reporting, silent).get_offerings(["alpha", "beta"])
        assert result.data[0].confidence == "medium"

        result = await build(stub_adapter("gamma", records=[record_factory("ALPHA")])).get_offerings(["gamma"])
        assert result.data[0].confidence == "low"

    @pytest.mark.asyncio
    async def test_sentiment_keeps_largest_premium(self, stub_adapter, record_factory):
        low = stub_adapter("alpha", records=[record_factory("ALPHA", gmp=40)])
        high = stub_adapter("beta", records=[record_factory("ALPHA", gmp=55)], delay=0.01)

        result = await build(low, high).get_sentiment_signals(["alpha", "beta"])

        entity = result.data[0]
        assert entity.gmp == 55
        assert entity.trend == "rising"

    @pytest.mark.asyncio
    async def test_rejections_counted(self, stub_adapter, record_factory):
        adapter = stub_adapter("alpha", records=[
            record_factory("ALPHA"),
            record_factory("JUNK", company_name="A" * 200),
            record_factory("!!!", company_name="Punctuation Holdings"),
        ])

        result = await build(adapter).get_offerings(["alpha"])

        assert len(result.data) == 1
        assert result.rejected_records == 2
        outcome = result.source_results[0]
        assert (outcome.count, outcome.accepted, outcome.rejected) == (3, 1, 2)


class TestSourceSelection:
    @pytest.mark.asyncio
    async def test_unknown_source_skipped(self, stub_adapter, record_factory):
        aggregator = build(stub_adapter("alpha", records=[record_factory("ALPHA")]))

        result = await aggregator.get_offerings(["alpha", "nope"])

        assert result.total_sources == 1
        assert len(result.data) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_source_gated(self, stub_adapter, record_factory, ist_clock):
        gate = QuotaGate(QuotaConfig(), clock=ist_clock)
        gate.mark_completed("open")
        limited = stub_adapter("ipoalerts", records=[record_factory("ALPHA")])
        free = stub_adapter("alpha", records=[record_factory("BETA")])

        result = await build(limited, free, quota_gate=gate).get_offerings(["ipoalerts", "alpha"])

        assert limited.calls == 0
        assert result.total_sources == 1
        assert [e.symbol for e in result.data] == ["BETA"]

    @pytest.mark.asyncio
    async def test_rate_limited_source_dispatched_when_eligible(self, stub_adapter, record_factory, quota_gate):
        limited = stub_adapter("ipoalerts", records=[record_factory("ALPHA")])

        result = await build(limited, quota_gate=quota_gate).get_offerings(["ipoalerts"])

        assert limited.calls == 1
        assert result.successful_sources == 1

    @pytest.mark.asyncio
    async def test_default_sources_from_config(self, stub_adapter, record_factory):
        aggregator = Aggregator(
            {"alpha": stub_adapter("alpha", records=[record_factory("ALPHA")])},
            config=AggregatorConfig(default_sources={"offerings": ["alpha"]}),
        )

        result = await aggregator.run_aggregation_pass("offerings")

        assert result.operation is Operation.OFFERINGS
        assert result.successful_sources == 1


class TestProbe:
    @pytest.mark.asyncio
    async def test_probe_source(self, stub_adapter, record_factory):
        aggregator = build(stub_adapter("alpha", records=[record_factory("ALPHA")]))

        probe = await aggregator.probe_source("alpha")

        assert probe.success is True
        assert probe.error is None

    @pytest.mark.asyncio
    async def test_probe_unknown_source(self, stub_adapter):
        probe = await build(stub_adapter("alpha")).probe_source("nope")

        assert probe.success is False
        assert "Unknown source" in probe.error

    @pytest.mark.asyncio
    async def test_probe_all(self, stub_adapter, throwing_adapter):
        aggregator = build(stub_adapter("alpha"), throwing_adapter("beta"))

        probes = {p.source: p for p in await aggregator.probe_all()}

        assert probes["alpha"].success is True
        assert probes["beta"].success is False

    @pytest.mark.asyncio
    async def test_probe_all_respects_cap(self, stub_adapter, tracker):
        adapters = [stub_adapter(f"src{i}", delay=0.02, tracker=tracker) for i in range(4)]

        probes = await build(*adapters, concurrency=2).probe_all()

        assert tracker.peak == 2
        assert all(p.success for p in probes)

    def test_quota_status(self, stub_adapter, quota_gate):
        assert build(stub_adapter("alpha")).get_quota_status() is None
        assert build(stub_adapter("alpha"), quota_gate=quota_gate).get_quota_status().remaining == 25


class TestScoringHelpers:
    @pytest.mark.parametrize(
        "count,total,expected",
        [(2, 2, "high"), (3, 5, "high"), (1, 2, "medium"), (1, 1, "low"), (0, 3, "low")],
    )
    def test_confidence(self, count, total, expected):
        assert calculate_confidence(count, total) == expected

    @pytest.mark.parametrize(
        "values,expected",
        [([40, 55], "rising"), ([55, 40], "falling"), ([40, 44], "stable"), ([40], "stable"), ([], "stable")],
    )
    def test_trend(self, values, expected):
        assert calculate_trend(values) == expected
