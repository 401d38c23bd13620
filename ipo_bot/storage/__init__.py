"""Storage layer: activity log and the record store boundary.

The JSONL snapshot store lives in `ipo_bot.storage.snapshot`; it depends
on the aggregation merge policies and is imported from there directly.
"""

from .activity import ActivityEntry, ActivityLog, HealthReport, SourceHealth, SourceStats
from .base import RecordStore

__all__ = [
    "ActivityEntry",
    "ActivityLog",
    "HealthReport",
    "RecordStore",
    "SourceHealth",
    "SourceStats",
]
