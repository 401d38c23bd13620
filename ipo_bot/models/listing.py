"""IPO listing record models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


OfferingStatus = Literal["upcoming", "open", "closed", "listed"]
IssueType = Literal["mainboard", "sme"]
Confidence = Literal["high", "medium", "low"]
Trend = Literal["rising", "falling", "stable"]
RiskLevel = Literal["conservative", "moderate", "aggressive"]


class RawRecord(BaseModel):
    """One offering as reported by a single source.

    This is the unified schema emitted by every source adapter, for all
    three operations. An operation fills in the subset of fields it knows
    and leaves the rest at their placeholders.
    """

    model_config = ConfigDict(frozen=True)

    # Identity
    symbol: str = Field(description="Normalized symbol (e.g., 'ALPHATECH')")
    company_name: str = Field(description="Company name as shown by the source")
    sector: str | None = Field(default=None)
    description: str | None = Field(default=None)

    # Lifecycle dates (YYYY-MM-DD)
    open_date: str | None = Field(default=None)
    close_date: str | None = Field(default=None)
    listing_date: str | None = Field(default=None)

    # Offer details
    price_range: str = Field(default="TBA", description="Price band as displayed (e.g., '₹100-120')")
    price_min: float | None = Field(default=None)
    price_max: float | None = Field(default=None)
    lot_size: int | None = Field(default=None)
    issue_size: str = Field(default="TBA", description="Issue size as displayed")
    issue_size_crores: float | None = Field(default=None)

    status: OfferingStatus = Field(default="upcoming")
    ipo_type: IssueType = Field(default="mainboard")

    # Financial metrics
    revenue_growth: float | None = Field(default=None)
    ebitda_margin: float | None = Field(default=None)
    pat_margin: float | None = Field(default=None)
    roe: float | None = Field(default=None)
    roce: float | None = Field(default=None)
    debt_to_equity: float | None = Field(default=None)

    # Valuation metrics
    pe_ratio: float | None = Field(default=None)
    pb_ratio: float | None = Field(default=None)
    sector_pe_median: float | None = Field(default=None)

    # Demand by investor category (times subscribed)
    subscription_qib: float | None = Field(default=None)
    subscription_nii: float | None = Field(default=None)
    subscription_hni: float | None = Field(default=None)
    subscription_retail: float | None = Field(default=None)
    subscription_total: float | None = Field(default=None)
    applications: int | None = Field(default=None)

    # Grey-market sentiment
    gmp: float | None = Field(default=None, description="Grey-market premium in rupees")
    gmp_percent: float | None = Field(default=None)
    expected_listing: float | None = Field(default=None)

    # Derived scores
    fundamentals_score: float | None = Field(default=None)
    valuation_score: float | None = Field(default=None)
    governance_score: float | None = Field(default=None)
    overall_score: float | None = Field(default=None)
    risk_level: RiskLevel | None = Field(default=None)
    red_flags: list[str] = Field(default_factory=list)
    pros: list[str] = Field(default_factory=list)

    # Post-close schedule
    basis_of_allotment_date: str | None = Field(default=None)
    refunds_initiation_date: str | None = Field(default=None)
    credit_to_demat_date: str | None = Field(default=None)

    external_id: str | None = Field(default=None, description="Source-specific identifier")


class AggregatedEntity(RawRecord):
    """Final, cross-source view of one offering for a single aggregation pass."""

    sources: list[str] = Field(description="Contributing sources in settle order")
    source_count: int = Field(description="Number of contributing sources")
    confidence: Confidence = Field(description="Trust label derived from source agreement")
    trend: Trend | None = Field(default=None, description="GMP trend (sentiment passes only)")
    last_updated: datetime = Field(description="When the entity was assembled")


@dataclass
class MergedEntity:
    """Working unit of one aggregation pass.

    Mutated in place as further sources report the same symbol.
    """

    record: RawRecord
    sources: list[str] = field(default_factory=list)
    gmp_values: list[float] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return len(self.sources)
