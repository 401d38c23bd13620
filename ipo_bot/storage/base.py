"""Persistence boundary for merged offerings."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from ipo_bot.models.listing import RawRecord


@runtime_checkable
class RecordStore(Protocol):
    """Anything that can keep the current state of each offering."""

    def upsert_record(self, record: RawRecord) -> str:
        """Insert or update one record; returns its stored symbol."""
        ...

    def bulk_upsert(self, records: Iterable[RawRecord]) -> list[RawRecord]:
        """Upsert many records; returns the stored versions."""
        ...

    def get_existing_symbols(self) -> set[str]:
        ...
