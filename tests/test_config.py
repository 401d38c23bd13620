"""Tests for configuration loading and adapter construction."""

import shutil

import pytest
from pydantic import ValidationError

from ipo_bot.aggregation import Aggregator
from ipo_bot.config import CONFIG_DIR, load_config
from ipo_bot.fetchers import ADAPTER_CLASSES, IpoAlertsAdapter, QuotaGate, build_adapters
from ipo_bot.models.config import AppConfig, QuotaWindow


@pytest.fixture
def config_dir(tmp_path):
    shutil.copy(CONFIG_DIR / "sources.sample.yaml", tmp_path / "sources.yaml")
    return tmp_path


class TestLoadConfig:
    def test_sample_config(self, config_dir, monkeypatch):
        monkeypatch.delenv("IPOALERTS_API_KEY", raising=False)
        config = AppConfig.from_yaml(load_config("sources", config_dir))

        assert config.aggregator.concurrency == 2
        assert config.quota.daily_limit == 25
        assert [w.fetch_type for w in config.quota.windows] == ["open", "upcoming", "listed"]
        assert config.ipoalerts.api_key is None

    def test_per_source_overrides(self, config_dir):
        config = AppConfig.from_yaml(load_config("sources", config_dir))

        groww = config.fetch_config_for("groww")
        assert groww.timeout == 45.0
        assert groww.retries == 2
        assert config.fetch_config_for("chittorgarh").timeout == 30.0

    def test_api_key_from_environment(self, config_dir, monkeypatch):
        monkeypatch.setenv("IPOALERTS_API_KEY", "env-key")
        config = AppConfig.from_yaml(load_config("sources", config_dir))

        assert config.ipoalerts.api_key == "env-key"
        assert "api_key" not in config.get_safe_dict()["ipoalerts"]

    def test_missing_file_points_at_sample(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="sources.sample.yaml"):
            load_config("sources", tmp_path)

    @pytest.mark.parametrize("value", ["25:00", "10:75", "noon"])
    def test_window_clock_validated(self, value):
        with pytest.raises(ValidationError):
            QuotaWindow(fetch_type="open", start=value, end="11:00")


class TestBuildAdapters:
    def test_all_registered(self, activity, quota_gate):
        adapters = build_adapters(AppConfig(), activity, quota_gate)

        assert set(adapters) == set(ADAPTER_CLASSES)
        assert isinstance(adapters["ipoalerts"], IpoAlertsAdapter)
        assert adapters["ipoalerts"].gate is quota_gate

    def test_unknown_names_skipped(self, activity, quota_gate):
        adapters = build_adapters(AppConfig(), activity, quota_gate, names=["nse", "bogus"])
        assert list(adapters) == ["nse"]

    def test_overrides_reach_adapter(self, activity, quota_gate):
        config = AppConfig(sources={"nse": {"timeout": 12.0}})
        adapters = build_adapters(config, activity, quota_gate, names=["nse"])

        assert adapters["nse"].config.timeout == 12.0

    @pytest.mark.asyncio
    async def test_aggregator_from_config(self, tmp_path):
        config = AppConfig(activity_log=tmp_path / "activity.jsonl")

        async with Aggregator.from_config(config) as aggregator:
            assert set(aggregator.adapters) == set(ADAPTER_CLASSES)
            assert isinstance(aggregator.quota_gate, QuotaGate)
            assert aggregator.activity.path == tmp_path / "activity.jsonl"
