"""Structural filter for records produced by scraping mistakes."""

import logging
import re

from ipo_bot.models.listing import RawRecord


logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 150
MAX_SYMBOL_LENGTH = 20
MAX_COMPANY_SUFFIXES = 2

# Column headers that end up in the name cell when a table is misread
HEADER_FINGERPRINTS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"security.*name.*exchange.*platform",
        r"start.*date.*end.*date",
        r"offer.*price.*face.*value",
        r"issue.*status.*type.*of.*issue",
        r"mainboard.*sme.*forthcoming",
    )
]

_COMPANY_SUFFIX_RE = re.compile(r"\b(?:LTD|LIMITED)\b", re.IGNORECASE)


def rejection_reason(record: RawRecord) -> str | None:
    """Why the record looks malformed, or None if it is acceptable."""
    name = record.company_name
    if not name or len(name) > MAX_NAME_LENGTH:
        return f"invalid company name length ({len(name or '')})"

    for pattern in HEADER_FINGERPRINTS:
        if pattern.search(name):
            return "company name matches a table header"

    if not record.symbol or len(record.symbol) > MAX_SYMBOL_LENGTH:
        return f"invalid symbol {record.symbol!r}"

    if len(_COMPANY_SUFFIX_RE.findall(name)) > MAX_COMPANY_SUFFIXES:
        return "company name holds several concatenated names"

    return None


def is_valid_record(record: RawRecord) -> bool:
    reason = rejection_reason(record)
    if reason is not None:
        logger.warning(f"Rejected record {record.company_name[:50]!r}: {reason}")
        return False
    return True
