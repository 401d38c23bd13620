"""Configuration models for fetchers, the quota gate and the aggregator."""

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


FetchType = Literal["open", "upcoming", "listed"]


class FetchConfig(BaseModel):
    """Per-adapter fetch configuration."""

    timeout: float = Field(default=30.0, ge=1.0, description="Per-attempt timeout in seconds")
    retries: int = Field(default=2, ge=0, le=10, description="Retries after the first attempt")
    retry_delay: float = Field(default=1.0, ge=0.0, description="Base backoff delay in seconds")

    def merged(self, overrides: dict[str, Any] | None) -> "FetchConfig":
        """Return a copy with per-source overrides applied."""
        if not overrides:
            return self.model_copy()
        return self.model_copy(update=overrides)


class QuotaWindow(BaseModel):
    """A time-of-day window owned by one scheduled fetch type."""

    fetch_type: FetchType
    start: str = Field(description="Window start, HH:MM in the quota timezone")
    end: str = Field(description="Window end (exclusive), HH:MM in the quota timezone")

    @field_validator("start", "end")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        hours, _, minutes = value.partition(":")
        if not (hours.isdigit() and minutes.isdigit()):
            raise ValueError(f"Expected HH:MM, got {value!r}")
        if int(hours) > 23 or int(minutes) > 59:
            raise ValueError(f"Clock value out of range: {value!r}")
        return value

    @staticmethod
    def _to_minutes(value: str) -> int:
        hours, _, minutes = value.partition(":")
        return int(hours) * 60 + int(minutes)

    @property
    def start_minutes(self) -> int:
        return self._to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return self._to_minutes(self.end)

    def contains(self, minute_of_day: int) -> bool:
        return self.start_minutes <= minute_of_day < self.end_minutes


def _default_windows() -> list[QuotaWindow]:
    return [
        QuotaWindow(fetch_type="open", start="10:15", end="11:00"),
        QuotaWindow(fetch_type="upcoming", start="12:00", end="13:00"),
        QuotaWindow(fetch_type="listed", start="14:00", end="15:00"),
    ]


class QuotaConfig(BaseModel):
    """Daily budget and fetch windows for the rate-limited source."""

    daily_limit: int = Field(default=25, ge=1)
    timezone: str = Field(default="Asia/Kolkata", description="Reference timezone for day boundaries")
    windows: list[QuotaWindow] = Field(default_factory=_default_windows)
    market_open: str = Field(default="09:15")
    market_close: str = Field(default="17:30")


class IpoAlertsConfig(BaseModel):
    """Rate-limited IPO alerts API configuration."""

    base_url: str = Field(default="https://api.ipoalerts.in")
    api_key: str | None = Field(default_factory=lambda: os.environ.get("IPOALERTS_API_KEY"))
    max_per_request: int = Field(default=1, ge=1, le=1, description="The API rejects limit > 1")


def _default_sources() -> dict[str, list[str]]:
    return {
        "offerings": ["investorgain", "groww", "chittorgarh", "ipoalerts", "ipowatch", "nse"],
        "demand": ["chittorgarh", "groww", "nse"],
        "sentiment": ["chittorgarh", "investorgain", "ipowatch"],
    }


class AggregatorConfig(BaseModel):
    """Aggregator configuration."""

    concurrency: int = Field(default=2, ge=1, le=16)
    default_sources: dict[str, list[str]] = Field(default_factory=_default_sources)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    sources: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Per-source FetchConfig overrides",
    )
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    ipoalerts: IpoAlertsConfig = Field(default_factory=IpoAlertsConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    activity_log: Path | None = Field(default=Path("data/activity/activity.jsonl"))
    snapshot_dir: Path = Field(default=Path("data/snapshots"))

    @classmethod
    def from_yaml(cls, data: dict[str, Any]) -> "AppConfig":
        """Create config from parsed YAML data."""
        config_data: dict[str, Any] = {
            "sources": data.get("sources") or {},
            "activity_log": data.get("activity_log"),
            "snapshot_dir": data.get("snapshot_dir"),
        }

        if "fetch" in data:
            config_data["fetch"] = FetchConfig(**data["fetch"])
        if "aggregator" in data:
            config_data["aggregator"] = AggregatorConfig(**data["aggregator"])
        if "quota" in data:
            config_data["quota"] = QuotaConfig(**data["quota"])
        if "ipoalerts" in data:
            ipoalerts = dict(data["ipoalerts"])
            # Empty key in YAML means "use the environment"
            if not ipoalerts.get("api_key"):
                ipoalerts.pop("api_key", None)
            config_data["ipoalerts"] = IpoAlertsConfig(**ipoalerts)

        # Filter out None values
        config_data = {k: v for k, v in config_data.items() if v is not None}

        return cls(**config_data)

    def fetch_config_for(self, source: str) -> FetchConfig:
        """Fetch settings for one source, with its overrides applied."""
        return self.fetch.merged(self.sources.get(source))

    def get_safe_dict(self) -> dict[str, Any]:
        """Config dict safe for logging/manifest (no API key)."""
        data = self.model_dump(mode="json")
        data["ipoalerts"].pop("api_key", None)
        return data
