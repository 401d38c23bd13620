"""Manifest models for aggregation snapshots."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .results import SourceOutcome


class PassStats(BaseModel):
    """Statistics from one aggregation pass."""

    total_sources: int = Field(description="Adapters dispatched")
    successful_sources: int = Field(description="Adapters that returned a successful result")
    total_records: int = Field(description="Records returned before validation")
    rejected_records: int = Field(default=0, description="Records rejected by validation")
    unique_records: int = Field(description="Entities after merge")
    duration_seconds: float = Field(description="Total pass duration")

    confidence: dict[str, int] = Field(
        default_factory=dict,
        description="Entity count per confidence level",
    )


class SnapshotManifest(BaseModel):
    """Manifest for an aggregation snapshot.

    Records parameters and per-source outcomes for later health review.
    """

    # Snapshot identification
    operation: str = Field(description="Aggregated operation")
    asof: datetime = Field(description="Snapshot timestamp (ISO 8601)")
    version: str = Field(default="1.0", description="Manifest schema version")

    requested_sources: list[str] = Field(description="Sources named by the caller")

    # Sanitized config - no API keys
    config: dict[str, Any] = Field(default_factory=dict, description="Effective configuration")

    stats: PassStats = Field(description="Pass statistics")
    source_results: list[SourceOutcome] = Field(default_factory=list)

    output_files: list[str] = Field(
        default_factory=list,
        description="List of output file paths relative to snapshot dir",
    )

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert to dict, ensuring no credentials are included."""
        data = self.model_dump(mode="json")
        ipoalerts = data.get("config", {}).get("ipoalerts")
        if isinstance(ipoalerts, dict):
            ipoalerts.pop("api_key", None)
        return data
