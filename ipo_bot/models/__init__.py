"""Data models for IPO listings, results and configuration."""

from .listing import AggregatedEntity, MergedEntity, RawRecord
from .manifest import PassStats, SnapshotManifest
from .config import AggregatorConfig, AppConfig, FetchConfig, IpoAlertsConfig, QuotaConfig, QuotaWindow
from .results import (
    AggregatorResult,
    FetchResult,
    Operation,
    ProbeResult,
    QuotaStatus,
    SourceOutcome,
)

__all__ = [
    "RawRecord",
    "MergedEntity",
    "AggregatedEntity",
    "SnapshotManifest",
    "PassStats",
    "AppConfig",
    "AggregatorConfig",
    "FetchConfig",
    "IpoAlertsConfig",
    "QuotaConfig",
    "QuotaWindow",
    "AggregatorResult",
    "FetchResult",
    "Operation",
    "ProbeResult",
    "QuotaStatus",
    "SourceOutcome",
]
