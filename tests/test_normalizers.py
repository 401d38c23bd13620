"""Tests for symbol normalization, text parsers and scoring."""

from datetime import date

import pytest

from ipo_bot.models.listing import RawRecord
from ipo_bot.normalizers import (
    determine_status,
    enrich_record,
    generate_risk_assessment,
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_lot_size,
    parse_price_range,
    parse_subscription_value,
)


class TestNormalizeSymbol:
    """Merge-key derivation."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Alpha Tech Ltd", "ALPHA"),
            ("Alpha Technologies Limited", "ALPHA"),
            ("Beta Infra Pvt. Ltd.", "BETA"),
            ("gamma-power & co", "GAMMAPOWERCO"),
            ("ALPHATECH", "ALPHATECH"),
        ],
    )
    def test_known_names(self, name, expected):
        assert normalize_symbol(name) == expected

    def test_truncates_to_fifteen_characters(self):
        assert normalize_symbol("Supercalifragilistic Holdings") == "SUPERCALIFRAGIL"

    @pytest.mark.parametrize(
        "name",
        [
            "Alpha Tech Ltd",
            "Some Company India Private Limited",
            "x-y.z Corp",
            "Averyveryverylongcompanyname Industries Ltd",
            "Tech Ltd",
            "",
        ],
    )
    def test_idempotent(self, name):
        once = normalize_symbol(name)
        assert normalize_symbol(once) == once

    def test_empty_name(self):
        assert normalize_symbol("") == ""


class TestParseDate:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("10 Feb 2026", "2026-02-10"),
            ("10-Feb-2026", "2026-02-10"),
            ("10th February, 2026", "2026-02-10"),
            ("2026-02-10", "2026-02-10"),
            ("10/02/2026", "2026-02-10"),
            ("Tue, Feb 10, 2026", None),
        ],
    )
    def test_formats(self, text, expected):
        assert parse_date(text) == expected

    @pytest.mark.parametrize("text", [None, "", "TBA", "-", "N/A"])
    def test_placeholders(self, text):
        assert parse_date(text) is None

    def test_invalid_calendar_date(self):
        assert parse_date("31 Feb 2026") is None


class TestParseNumbers:
    def test_price_band(self):
        assert parse_price_range("₹100 - ₹120") == (100.0, 120.0)

    def test_single_price(self):
        assert parse_price_range("₹1,250") == (1250.0, 1250.0)

    def test_price_placeholder(self):
        assert parse_price_range("TBA") == (None, None)

    def test_issue_size_crores(self):
        assert parse_issue_size("1,250.5 Cr") == 1250.5

    def test_issue_size_lakhs(self):
        assert parse_issue_size("450 lakhs") == 4.5

    def test_lot_size(self):
        assert parse_lot_size("1,200 Shares") == 1200
        assert parse_lot_size(125) == 125
        assert parse_lot_size("-") is None

    def test_decimal_keeps_sign(self):
        assert parse_decimal("-12.5") == -12.5
        assert parse_decimal("₹ 1,200") == 1200.0
        assert parse_decimal(45) == 45.0
        assert parse_decimal("--") is None

    def test_subscription_value(self):
        assert parse_subscription_value("12.34x") == 12.34
        assert parse_subscription_value("1,024.5") == 1024.5
        assert parse_subscription_value("") is None


class TestDetermineStatus:
    TODAY = date(2026, 2, 10)

    def test_upcoming(self):
        assert determine_status("2026-02-12", "2026-02-14", self.TODAY) == "upcoming"

    def test_open(self):
        assert determine_status("2026-02-09", "2026-02-11", self.TODAY) == "open"

    def test_closed(self):
        assert determine_status("2026-02-01", "2026-02-03", self.TODAY) == "closed"

    def test_unknown_dates(self):
        assert determine_status(None, None, self.TODAY) == "upcoming"


class TestScoring:
    def test_enrich_fills_scores(self):
        record = RawRecord(symbol="ALPHA", company_name="Alpha Ltd", revenue_growth=30, roe=20)
        enriched = enrich_record(record)

        assert enriched.fundamentals_score is not None
        assert 0 <= enriched.overall_score <= 10
        assert enriched.pros
        assert record.fundamentals_score is None

    def test_risk_flags_high_leverage(self):
        record = RawRecord(symbol="BETA", company_name="Beta Ltd", debt_to_equity=2.5)
        assessment = generate_risk_assessment(record)

        assert assessment["red_flags"]
