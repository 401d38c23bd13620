"""Normalizers for converting source-specific text into the unified schema."""

from .parsing import (
    determine_status,
    is_placeholder_text,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_lot_size,
    parse_price_range,
    parse_subscription_value,
)
from .scoring import enrich_record, generate_risk_assessment, generate_scores
from .symbols import normalize_symbol

__all__ = [
    "normalize_symbol",
    "determine_status",
    "is_placeholder_text",
    "parse_date",
    "parse_decimal",
    "parse_issue_size",
    "parse_lot_size",
    "parse_price_range",
    "parse_subscription_value",
    "enrich_record",
    "generate_scores",
    "generate_risk_assessment",
]
