"""Field-level merge policies for records describing the same offering.

Two policies serve the aggregation pass:

* first known good: a field keeps its current value unless that value is a
  placeholder, in which case the incoming value fills it
* largest premium: the record with the larger GMP wins, the other only
  fills placeholders

Persistence uses a third, `merge_prefer_incoming`, where newer values win
unless they are missing.
"""

from typing import Any

from ipo_bot.models.listing import RawRecord


PLACEHOLDER_STRINGS = {"", "TBA", "-", "--", "N/A", "NA"}

# Model defaults that mean "no source said otherwise"
DEFAULT_PLACEHOLDERS: dict[str, Any] = {
    "status": "upcoming",
    "ipo_type": "mainboard",
}

MERGEABLE_FIELDS = [name for name in RawRecord.model_fields if name != "symbol"]


def is_placeholder(field: str, value: Any) -> bool:
    """Whether `value` carries no information for `field`."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip().upper() in PLACEHOLDER_STRINGS:
        return True
    if isinstance(value, list) and not value:
        return True
    return field in DEFAULT_PLACEHOLDERS and DEFAULT_PLACEHOLDERS[field] == value


def merge_first_known_good(existing: RawRecord, incoming: RawRecord) -> RawRecord:
    """Fill placeholders in `existing` from `incoming`; never overwrite."""
    updates = {}
    for name in MERGEABLE_FIELDS:
        if is_placeholder(name, getattr(existing, name)):
            value = getattr(incoming, name)
            if not is_placeholder(name, value):
                updates[name] = value
    return existing.model_copy(update=updates) if updates else existing


def _premium(record: RawRecord) -> float:
    return record.gmp if record.gmp is not None else float("-inf")


def merge_largest_premium(existing: RawRecord, incoming: RawRecord) -> RawRecord:
    """Keep the record with the larger GMP as the base, fill it from the other.

    Ties keep `existing` as the base.
    """
    if _premium(incoming) > _premium(existing):
        merged = merge_first_known_good(incoming, existing)
        return merged.model_copy(update={"symbol": existing.symbol})
    return merge_first_known_good(existing, incoming)


def merge_prefer_incoming(existing: RawRecord, incoming: RawRecord) -> RawRecord:
    """Take every incoming value that is present; keep stored values otherwise."""
    updates = {}
    for name in MERGEABLE_FIELDS:
        value = getattr(incoming, name)
        if value is None or (isinstance(value, list) and not value):
            continue
        updates[name] = value
    return existing.model_copy(update=updates) if updates else existing
