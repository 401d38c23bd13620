"""Result models for adapter calls, aggregation passes and probes."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .listing import AggregatedEntity, RawRecord


FetchStatus = Literal["success", "error", "timeout"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Operation(str, Enum):
    """The three read operations every source adapter exposes."""

    OFFERINGS = "offerings"
    DEMAND = "demand"
    SENTIMENT = "sentiment"


class FetchResult(BaseModel):
    """Outcome of one adapter call.

    A failed result never carries data and always carries an error message.
    """

    success: bool
    data: list[RawRecord] = Field(default_factory=list)
    source: str
    operation: Operation
    timestamp: datetime = Field(default_factory=utcnow)
    response_time_ms: int = Field(default=0, ge=0)
    error: str | None = Field(default=None)
    status: FetchStatus = Field(default="success")

    @model_validator(mode="after")
    def _check_variant(self) -> "FetchResult":
        if self.success:
            if self.error is not None or self.status != "success":
                raise ValueError("Successful result cannot carry an error")
        else:
            if self.data:
                raise ValueError("Failed result cannot carry data")
            if not self.error:
                raise ValueError("Failed result requires an error message")
            if self.status == "success":
                raise ValueError("Failed result requires error or timeout status")
        return self

    @classmethod
    def ok(
        cls,
        source: str,
        operation: Operation,
        data: list[RawRecord],
        response_time_ms: int = 0,
    ) -> "FetchResult":
        return cls(
            success=True,
            data=data,
            source=source,
            operation=operation,
            response_time_ms=response_time_ms,
        )

    @classmethod
    def failed(
        cls,
        source: str,
        operation: Operation,
        error: str,
        response_time_ms: int = 0,
        status: FetchStatus = "error",
    ) -> "FetchResult":
        return cls(
            success=False,
            source=source,
            operation=operation,
            error=error or "Unknown error",
            response_time_ms=response_time_ms,
            status=status,
        )


class SourceOutcome(BaseModel):
    """Per-adapter diagnostics row of an aggregation pass."""

    source: str
    success: bool
    count: int = Field(description="Records returned by the adapter")
    accepted: int = Field(default=0, description="Records admitted to merging")
    rejected: int = Field(default=0, description="Records rejected by validation")
    response_time_ms: int = Field(default=0)
    error: str | None = Field(default=None)


class AggregatorResult(BaseModel):
    """Unified output of one aggregation pass."""

    operation: Operation
    data: list[AggregatedEntity] = Field(default_factory=list)
    source_results: list[SourceOutcome] = Field(default_factory=list)
    total_sources: int = Field(default=0)
    successful_sources: int = Field(default=0)
    rejected_records: int = Field(default=0)
    timestamp: datetime = Field(default_factory=utcnow)


class ProbeResult(BaseModel):
    """Connectivity probe outcome for one source."""

    source: str
    success: bool
    latency_ms: int = Field(default=0)
    error: str | None = Field(default=None)


class QuotaStatus(BaseModel):
    """Daily usage of the rate-limited source."""

    date: str = Field(description="Tracked day (YYYY-MM-DD) in the quota timezone")
    used: int
    remaining: int
    limit: int
