"""Lenient parsers for the text fragments scraped from listing pages."""

import re
from datetime import date

from ipo_bot.models.listing import OfferingStatus


PLACEHOLDER_TEXT = {"", "tba", "-", "n/a", "na", "--"}

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_DAY_MONTH_YEAR_RE = re.compile(r"(\d{1,2})(?:st|nd|rd|th)?[\s\-]*([a-zA-Z]+)[\s,\-]*(\d{4})")
_ISO_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_NUMERIC_DATE_RE = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_SIGNED_NUMBER_RE = re.compile(r"-?\s*\d[\d,]*(?:\.\d+)?")
_ISSUE_SIZE_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(cr|crore|crores|lakh|lakhs)?", re.IGNORECASE)


def is_placeholder_text(text: str | None) -> bool:
    """True for missing values and the 'TBA' / '-' / 'N/A' family."""
    return text is None or text.strip().lower() in PLACEHOLDER_TEXT


def _safe_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(text: str | None) -> str | None:
    """Parse '10 Feb 2026', '10-Feb-2026', '10th February, 2026', '2026-02-10' or '10/02/2026'.

    Returns:
        ISO date string (YYYY-MM-DD), or None if the text is not a date
    """
    if is_placeholder_text(text):
        return None

    cleaned = re.sub(r"\s+", " ", text.strip())

    match = _DAY_MONTH_YEAR_RE.search(cleaned)
    if match:
        month = MONTHS.get(match.group(2).lower())
        if month:
            return _safe_date(int(match.group(3)), month, int(match.group(1)))

    match = _ISO_RE.search(cleaned)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _NUMERIC_DATE_RE.search(cleaned)
    if match:
        return _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    return None


def _to_float(token: str) -> float:
    return float(token.replace(",", "").replace(" ", ""))


def parse_price_range(text: str | None) -> tuple[float | None, float | None]:
    """Parse a price band such as '₹100 - ₹120' into (min, max)."""
    if is_placeholder_text(text):
        return None, None

    numbers = [_to_float(n) for n in _NUMBER_RE.findall(text)]
    if not numbers:
        return None, None
    return min(numbers), max(numbers)


def parse_issue_size(text: str | None) -> float | None:
    """Parse an issue size into crores ('1,250.5 Cr', '450 lakhs')."""
    if is_placeholder_text(text):
        return None

    match = _ISSUE_SIZE_RE.search(text)
    if not match:
        return None

    value = _to_float(match.group(1))
    unit = (match.group(2) or "").lower()
    if unit.startswith("lakh"):
        value = value / 100
    return value


def parse_lot_size(text: str | int | None) -> int | None:
    if isinstance(text, int):
        return text
    if is_placeholder_text(text):
        return None
    match = re.search(r"\d[\d,]*", text)
    return int(match.group(0).replace(",", "")) if match else None


def parse_decimal(value: str | float | int | None) -> float | None:
    """Parse a signed number out of a cell ('-12.5', '₹ 1,200', '45.2%')."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if is_placeholder_text(value):
        return None
    match = _SIGNED_NUMBER_RE.search(value)
    return _to_float(match.group(0)) if match else None


def parse_subscription_value(text: str | None) -> float | None:
    """Parse a 'times subscribed' figure such as '12.34x'."""
    if is_placeholder_text(text):
        return None
    match = re.search(r"\d+(?:\.\d+)?", text.replace(",", ""))
    return float(match.group(0)) if match else None


def determine_status(
    open_date: str | None,
    close_date: str | None,
    today: date | None = None,
) -> OfferingStatus:
    """Infer the lifecycle status from the subscription window."""
    today = today or date.today()
    opens = date.fromisoformat(open_date) if open_date else None
    closes = date.fromisoformat(close_date) if close_date else None

    if opens and opens > today:
        return "upcoming"
    if closes and closes < today:
        return "closed"
    if opens and closes and opens <= today <= closes:
        return "open"
    return "upcoming"
