"""Append-only activity log of every source fetch attempt.

Each entry is written to the source's logger and, when a path is
configured, appended to a JSONL file:

    data/activity/activity.jsonl
"""

import logging
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal

import orjson
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

ActivityStatus = Literal["success", "error", "timeout"]
HealthState = Literal["healthy", "degraded", "down"]

STATUS_ICONS = {"success": "✓", "error": "✗", "timeout": "⏱"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityEntry(BaseModel):
    """One recorded fetch outcome."""

    source: str
    operation: str
    status: ActivityStatus
    records_count: int = Field(default=0)
    response_time_ms: int | None = Field(default=None)
    error_message: str | None = Field(default=None)
    metadata: dict[str, Any] | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)


class SourceStats(BaseModel):
    """Aggregate call statistics for one source."""

    source: str
    total_calls: int
    success_count: int
    error_count: int
    avg_response_time: int
    last_success: datetime | None
    last_error: datetime | None
    success_rate: int = Field(description="Percentage of successful calls")


class SourceHealth(BaseModel):
    name: str
    status: HealthState
    last_check: datetime | None


class HealthReport(BaseModel):
    sources: list[SourceHealth]
    overall_health: HealthState


class ActivityLog:
    """Records fetch outcomes for later health reporting.

    Entries are only ever appended; readers work on the in-memory tail or
    on the persisted JSONL file.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        max_entries: int = 1000,
        max_bytes: int = 5 * 1024 * 1024,
    ):
        self.path = Path(path) if path is not None else None
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self._entries: deque[ActivityEntry] = deque(maxlen=max_entries)

    @staticmethod
    def format_message(entry: ActivityEntry) -> str:
        icon = STATUS_ICONS[entry.status]
        time_info = f" ({entry.response_time_ms}ms)" if entry.response_time_ms else ""
        record_info = f" - {entry.records_count} records" if entry.status == "success" else ""
        error_info = f": {entry.error_message}" if entry.error_message else ""
        return f"[{entry.source.upper()}] {icon} {entry.operation}{time_info}{record_info}{error_info}"

    def log(self, entry: ActivityEntry) -> None:
        source_logger = logging.getLogger(f"ipo_bot.sources.{entry.source}")
        message = self.format_message(entry)
        if entry.status == "success":
            source_logger.info(message)
        elif entry.status == "error":
            source_logger.error(message)
        else:
            source_logger.warning(message)

        self._entries.append(entry)

        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate()
            with open(self.path, "ab") as fh:
                fh.write(orjson.dumps(entry.model_dump(mode="json"), option=orjson.OPT_APPEND_NEWLINE))
        except OSError as e:
            logger.error(f"Failed to persist activity entry to {self.path}: {e}")

    def _rotate(self) -> None:
        """Move a full log aside to `<name>.1`, replacing the previous backup."""
        if self.path.exists() and self.path.stat().st_size >= self.max_bytes:
            self.path.replace(self.path.with_name(self.path.name + ".1"))

    def log_success(
        self,
        source: str,
        operation: str,
        records_count: int,
        response_time_ms: int,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.log(ActivityEntry(
            source=source,
            operation=operation,
            status="success",
            records_count=records_count,
            response_time_ms=response_time_ms,
            metadata=metadata,
        ))

    def log_error(
        self,
        source: str,
        operation: str,
        error_message: str,
        response_time_ms: int | None = None,
    ) -> None:
        self.log(ActivityEntry(
            source=source,
            operation=operation,
            status="error",
            error_message=error_message,
            response_time_ms=response_time_ms,
        ))

    def log_timeout(self, source: str, operation: str, response_time_ms: int) -> None:
        self.log(ActivityEntry(
            source=source,
            operation=operation,
            status="timeout",
            response_time_ms=response_time_ms,
            error_message="Request timed out",
        ))

    def entries(self) -> list[ActivityEntry]:
        """Most recent `max_entries` entries, oldest first.

        Reads the tail of the persisted file when there is one, so a fresh
        process can report on earlier runs.
        """
        if self.path is None or not self.path.exists():
            return list(self._entries)

        entries = []
        with open(self.path, "rb") as fh:
            for line in deque(fh, maxlen=self.max_entries):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(ActivityEntry.model_validate(orjson.loads(line)))
                except (orjson.JSONDecodeError, ValueError) as e:
                    logger.warning(f"Skipping malformed activity line: {e}")
        return entries

    def recent(self, limit: int = 50) -> list[ActivityEntry]:
        """Most recent entries, newest first."""
        return list(reversed(self.entries()))[:limit]

    def by_source(self, source: str, limit: int = 20) -> list[ActivityEntry]:
        return [e for e in reversed(self.entries()) if e.source == source][:limit]

    def source_stats(self, hours_back: float = 24) -> list[SourceStats]:
        since = _utcnow() - timedelta(hours=hours_back)
        grouped: dict[str, list[ActivityEntry]] = {}
        for entry in self.entries():
            if entry.created_at >= since:
                grouped.setdefault(entry.source, []).append(entry)

        stats = []
        for source, entries in grouped.items():
            successes = [e for e in entries if e.status == "success"]
            failures = [e for e in entries if e.status != "success"]
            total_time = sum(e.response_time_ms or 0 for e in entries)
            stats.append(SourceStats(
                source=source,
                total_calls=len(entries),
                success_count=len(successes),
                error_count=len(failures),
                avg_response_time=round(total_time / len(entries)),
                last_success=max((e.created_at for e in successes), default=None),
                last_error=max((e.created_at for e in failures), default=None),
                success_rate=round(len(successes) / len(entries) * 100),
            ))
        return stats

    def health_status(self, sources: Iterable[str] | None = None, hours_back: float = 1) -> HealthReport:
        """Classify each source by its recent success rate.

        healthy >= 80%, degraded >= 50%, otherwise down. A source with no
        recent calls is down.
        """
        stats = {s.source: s for s in self.source_stats(hours_back)}
        names = list(sources) if sources is not None else sorted(stats)

        health = []
        for name in names:
            source_stats = stats.get(name)
            if source_stats is None or source_stats.total_calls == 0:
                health.append(SourceHealth(name=name, status="down", last_check=None))
                continue

            if source_stats.success_rate >= 80:
                status: HealthState = "healthy"
            elif source_stats.success_rate >= 50:
                status = "degraded"
            else:
                status = "down"
            last_check = max(
                (t for t in (source_stats.last_success, source_stats.last_error) if t is not None),
                default=None,
            )
            health.append(SourceHealth(name=name, status=status, last_check=last_check))

        healthy = sum(1 for h in health if h.status == "healthy")
        overall: HealthState = "healthy" if healthy >= 3 else "degraded" if healthy >= 1 else "down"
        return HealthReport(sources=health, overall_health=overall)
