"""Heuristic scores and risk flags derived from a record's financial fields."""

from typing import Any

from ipo_bot.models.listing import RawRecord


def _clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    return max(low, min(high, value))


def generate_scores(record: RawRecord) -> dict[str, Any]:
    """Fundamentals, valuation and governance scores on a 0-10 scale."""
    fundamentals = 5.0
    if record.revenue_growth:
        fundamentals += min(2.0, record.revenue_growth / 20)
    if record.roe:
        fundamentals += min(2.0, record.roe / 15)
    if record.roce:
        fundamentals += min(1.0, record.roce / 30)

    valuation = 5.0
    if record.pe_ratio and record.sector_pe_median:
        pe_diff = (record.pe_ratio - record.sector_pe_median) / record.sector_pe_median
        valuation += max(-3.0, min(2.0, -pe_diff * 5))
    if record.pb_ratio:
        valuation += min(2.0, max(-1.0, 3 - record.pb_ratio / 2))

    governance = 5.0
    if record.debt_to_equity is not None and record.debt_to_equity < 0.5:
        governance += 2
    if record.pat_margin and record.pat_margin > 10:
        governance += 1

    overall = fundamentals * 0.4 + valuation * 0.35 + governance * 0.25

    return {
        "fundamentals_score": _clamp(fundamentals),
        "valuation_score": _clamp(valuation),
        "governance_score": _clamp(governance),
        "overall_score": _clamp(overall),
    }


def generate_risk_assessment(record: RawRecord) -> dict[str, Any]:
    """Red flags, pros and a coarse risk level."""
    red_flags: list[str] = []
    pros: list[str] = []

    if record.pe_ratio and record.sector_pe_median and record.pe_ratio > record.sector_pe_median * 1.3:
        premium = (record.pe_ratio / record.sector_pe_median - 1) * 100
        red_flags.append(f"P/E ratio {premium:.0f}% above sector median")
    if record.debt_to_equity and record.debt_to_equity > 1:
        red_flags.append(f"High debt-to-equity ratio ({record.debt_to_equity:.2f})")
    if record.revenue_growth is not None and record.revenue_growth < 5:
        red_flags.append("Low revenue growth")

    if record.revenue_growth and record.revenue_growth > 20:
        pros.append(f"Strong revenue growth ({record.revenue_growth:.1f}% CAGR)")
    if record.roe and record.roe > 18:
        pros.append(f"Healthy ROE ({record.roe:.1f}%)")
    if record.debt_to_equity is not None and record.debt_to_equity < 0.5:
        pros.append(f"Low debt levels (D/E: {record.debt_to_equity:.2f})")
    if record.gmp and record.gmp > 0:
        pros.append("Positive GMP indicating market confidence")

    risk_level = None
    if red_flags:
        if len(red_flags) > 3:
            risk_level = "aggressive"
        elif len(red_flags) > 1:
            risk_level = "moderate"
        else:
            risk_level = "conservative"

    return {"red_flags": red_flags, "pros": pros, "risk_level": risk_level}


def enrich_record(record: RawRecord) -> RawRecord:
    """Return a copy of the record with scores and risk assessment filled in."""
    return record.model_copy(update={**generate_scores(record), **generate_risk_assessment(record)})
