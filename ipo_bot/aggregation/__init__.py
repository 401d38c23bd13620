"""Cross-source aggregation: validation, merge policies and the aggregator."""

from .aggregator import Aggregator, calculate_confidence, calculate_trend
from .merge import (
    is_placeholder,
    merge_first_known_good,
    merge_largest_premium,
    merge_prefer_incoming,
)
from .validation import is_valid_record, rejection_reason

__all__ = [
    "Aggregator",
    "calculate_confidence",
    "calculate_trend",
    "is_placeholder",
    "is_valid_record",
    "merge_first_known_good",
    "merge_largest_premium",
    "merge_prefer_incoming",
    "rejection_reason",
]
