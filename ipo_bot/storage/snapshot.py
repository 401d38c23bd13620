"""JSONL offering store and per-pass aggregation snapshots.

Directory structure:
    data/
      snapshots/
        records.jsonl
        snapshot=2026-02-10T10-15-00Z/
          manifest.json
          offerings/
            confidence=high.jsonl
            confidence=medium.jsonl
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import orjson

from ipo_bot.aggregation.merge import merge_prefer_incoming
from ipo_bot.models.listing import AggregatedEntity, RawRecord
from ipo_bot.models.manifest import PassStats, SnapshotManifest
from ipo_bot.models.results import AggregatorResult


logger = logging.getLogger(__name__)

RECORDS_FILE = "records.jsonl"


def _format_timestamp(dt: datetime) -> str:
    """Format datetime for directory name (filesystem-safe ISO 8601)."""
    return dt.strftime("%Y-%m-%dT%H-%M-%SZ")


def _as_raw(record: RawRecord) -> RawRecord:
    """Drop per-pass aggregation fields before persisting."""
    if type(record) is RawRecord:
        return record
    return RawRecord.model_validate(record.model_dump(include=set(RawRecord.model_fields)))


class SnapshotWriter:
    """Writer for the entities of one aggregation snapshot.

    Entities are split into one JSONL file per confidence level.
    """

    def __init__(self, snapshot_dir: Path, operation: str):
        self.snapshot_dir = snapshot_dir
        self.operation = operation
        self.operation_dir = snapshot_dir / operation

        self._file_handles: dict[str, Any] = {}
        self._confidence_counts: dict[str, int] = defaultdict(int)
        self._total_count = 0

    def __enter__(self) -> "SnapshotWriter":
        self.operation_dir.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close all file handles."""
        for fh in self._file_handles.values():
            fh.close()
        self._file_handles.clear()

    def _get_file_handle(self, confidence: str) -> Any:
        if confidence not in self._file_handles:
            filepath = self.operation_dir / f"confidence={confidence}.jsonl"
            self._file_handles[confidence] = open(filepath, "wb")
            logger.debug(f"Created file: {filepath}")
        return self._file_handles[confidence]

    def write_entity(self, entity: AggregatedEntity) -> None:
        fh = self._get_file_handle(entity.confidence)
        fh.write(orjson.dumps(
            entity.model_dump(mode="json", exclude_none=True),
            option=orjson.OPT_APPEND_NEWLINE,
        ))
        self._confidence_counts[entity.confidence] += 1
        self._total_count += 1

    def get_stats(self) -> dict[str, int]:
        return dict(self._confidence_counts)

    def get_total_count(self) -> int:
        return self._total_count

    def get_output_files(self) -> list[str]:
        """Output file paths relative to the snapshot dir."""
        return sorted(f"{self.operation}/confidence={c}.jsonl" for c in self._confidence_counts)


class SnapshotStore:
    """Keeps the current state of every offering plus pass snapshots.

    Upserts follow prefer-incoming-unless-null: a field is replaced by the
    incoming value whenever that value is present.
    """

    def __init__(self, base_dir: Path | str = "data/snapshots"):
        self.base_dir = Path(base_dir)
        self.records_path = self.base_dir / RECORDS_FILE

    def load_records(self) -> dict[str, RawRecord]:
        if not self.records_path.exists():
            return {}

        records: dict[str, RawRecord] = {}
        with open(self.records_path, "rb") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                record = RawRecord.model_validate(orjson.loads(line))
                records[record.symbol] = record
        return records

    def _save_records(self, records: dict[str, RawRecord]) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.records_path.with_suffix(".jsonl.tmp")
        with open(tmp_path, "wb") as fh:
            for symbol in sorted(records):
                fh.write(orjson.dumps(
                    records[symbol].model_dump(mode="json", exclude_none=True),
                    option=orjson.OPT_APPEND_NEWLINE,
                ))
        tmp_path.replace(self.records_path)

    def upsert_record(self, record: RawRecord) -> str:
        return self.bulk_upsert([record])[0].symbol

    def bulk_upsert(self, records: Iterable[RawRecord]) -> list[RawRecord]:
        stored = self.load_records()
        written: list[RawRecord] = []
        inserted = 0

        for record in records:
            record = _as_raw(record)
            existing = stored.get(record.symbol)
            if existing is None:
                merged = record
                inserted += 1
            else:
                merged = merge_prefer_incoming(existing, record)
            stored[record.symbol] = merged
            written.append(merged)

        if written:
            self._save_records(stored)
        logger.info(f"Upserted {len(written)} records ({inserted} new) into {self.records_path}")
        return written

    def get_existing_symbols(self) -> set[str]:
        return set(self.load_records())

    def create_snapshot_dir(self, asof: datetime) -> Path:
        snapshot_dir = self.base_dir / f"snapshot={_format_timestamp(asof)}"
        snapshot_dir.mkdir(parents=True, exist_ok=True)
        return snapshot_dir

    def open_writer(self, asof: datetime, operation: str) -> SnapshotWriter:
        return SnapshotWriter(self.create_snapshot_dir(asof), operation)

    def write_manifest(self, asof: datetime, manifest: SnapshotManifest) -> Path:
        manifest_path = self.create_snapshot_dir(asof) / "manifest.json"
        with open(manifest_path, "wb") as f:
            f.write(orjson.dumps(
                manifest.to_safe_dict(),
                option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
            ))
        logger.info(f"Manifest written: {manifest_path}")
        return manifest_path

    def write_snapshot(
        self,
        result: AggregatorResult,
        requested_sources: list[str],
        config: dict[str, Any],
        duration_seconds: float,
    ) -> Path:
        """Write a pass's entities and manifest; returns the manifest path."""
        asof = result.timestamp
        with self.open_writer(asof, result.operation.value) as writer:
            for entity in result.data:
                writer.write_entity(entity)

        manifest = self.build_manifest(result, requested_sources, config, writer, duration_seconds)
        return self.write_manifest(asof, manifest)

    def build_manifest(
        self,
        result: AggregatorResult,
        requested_sources: list[str],
        config: dict[str, Any],
        writer: SnapshotWriter,
        duration_seconds: float,
    ) -> SnapshotManifest:
        stats = PassStats(
            total_sources=result.total_sources,
            successful_sources=result.successful_sources,
            total_records=sum(o.count for o in result.source_results),
            rejected_records=result.rejected_records,
            unique_records=writer.get_total_count(),
            duration_seconds=duration_seconds,
            confidence=writer.get_stats(),
        )
        return SnapshotManifest(
            operation=result.operation.value,
            asof=result.timestamp,
            requested_sources=requested_sources,
            config=config,
            stats=stats,
            source_results=result.source_results,
            output_files=writer.get_output_files(),
        )

    def list_snapshots(self) -> list[Path]:
        """Snapshot directories, newest first."""
        if not self.base_dir.exists():
            return []
        return sorted(self.base_dir.glob("snapshot=*"), reverse=True)

    def read_manifest(self, snapshot_dir: Path) -> SnapshotManifest:
        with open(snapshot_dir / "manifest.json", "rb") as f:
            return SnapshotManifest.model_validate(orjson.loads(f.read()))
