"""Chittorgarh adapter (rendered listing page, document demand and GMP pages)."""

import re

from ipo_bot.models.listing import IssueType, RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.normalizers import (
    determine_status,
    enrich_record,
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_price_range,
    parse_subscription_value,
)

from . import html
from .base import SourceAdapter


BASE_URL = "https://www.chittorgarh.com"

URLS = {
    "mainboard": f"{BASE_URL}/report/mainboard-ipo-list-in-india-bse-nse/83/",
    "subscription": f"{BASE_URL}/report/ipo-subscription-status-live-mainboard-sme/21/",
    "gmp": f"{BASE_URL}/report/ipo-grey-market-premium-latest-grey-market-premium-702/",
}

CONTENT_SELECTOR = 'table, .ipo-card, .report-table, [class*="ipo"]'

_DATE_CELL_RE = re.compile(r"\d{1,2}\s*[a-zA-Z]+\s*,?\s*\d{4}")
_PRICE_CELL_RE = re.compile(r"\d+\s*to\s*\d+|\d+-\d+")
_GMP_PERCENT_RE = re.compile(r"\(\s*([+-]?\d+(?:\.\d+)?)\s*%\s*\)")


def parse_listing_row(cells: list[str], ipo_type: IssueType = "mainboard") -> RawRecord:
    """Classify listing cells by their content; column order varies."""
    company_name = cells[0]
    open_date = close_date = None
    price_range = ""
    issue_size = ""
    lot_size = None

    for text in cells[1:]:
        if _DATE_CELL_RE.search(text):
            if open_date is None:
                open_date = parse_date(text)
            elif close_date is None:
                close_date = parse_date(text)
        if "₹" in text or _PRICE_CELL_RE.search(text):
            price_range = text
        lowered = text.lower()
        if "cr" in lowered or "crore" in lowered:
            issue_size = text
        if text.isdigit() and int(text) < 500:
            lot_size = int(text)

    price_min, price_max = parse_price_range(price_range)
    record = RawRecord(
        symbol=normalize_symbol(company_name),
        company_name=company_name,
        open_date=open_date,
        close_date=close_date,
        price_range=price_range or "TBA",
        price_min=price_min,
        price_max=price_max,
        lot_size=lot_size,
        issue_size=issue_size or "TBA",
        issue_size_crores=parse_issue_size(issue_size),
        status=determine_status(open_date, close_date),
        ipo_type=ipo_type,
    )
    return enrich_record(record)


def parse_subscription_row(cells: list[str]) -> RawRecord:
    """Cells: name, QIB, NII, retail, total."""
    nii = parse_subscription_value(cells[2])
    return RawRecord(
        symbol=normalize_symbol(cells[0]),
        company_name=cells[0],
        subscription_qib=parse_subscription_value(cells[1]),
        subscription_nii=nii,
        subscription_hni=nii,
        subscription_retail=parse_subscription_value(cells[3]),
        subscription_total=parse_subscription_value(cells[4]),
    )


def parse_gmp_row(cells: list[str]) -> RawRecord:
    """Cells: name, GMP such as '₹45 (18.5%)', expected listing price."""
    gmp_text = cells[1]
    percent = _GMP_PERCENT_RE.search(gmp_text)
    premium_text = _GMP_PERCENT_RE.sub("", gmp_text)
    return RawRecord(
        symbol=normalize_symbol(cells[0]),
        company_name=cells[0],
        gmp=parse_decimal(premium_text),
        gmp_percent=float(percent.group(1)) if percent else None,
        expected_listing=parse_decimal(cells[2]),
    )


class ChittorgarhAdapter(SourceAdapter):
    """Adapter for chittorgarh.com reports.

    The mainboard list is built client-side and needs a rendered fetch;
    the subscription and GMP reports are served as static tables.
    """

    name = "chittorgarh"
    operations = frozenset({Operation.OFFERINGS, Operation.DEMAND, Operation.SENTIMENT})

    async def _fetch_offerings(self) -> list[RawRecord]:
        url = URLS["mainboard"]
        page = await self.client.fetch_rendered(url, wait_for_selector=CONTENT_SELECTOR, wait_until="networkidle")
        tables = html.find_tables(html.load(page), url)
        records = [parse_listing_row(cells) for cells in html.iter_rows(tables, min_cells=4)]
        self.logger.info(f"Extracted {len(records)} offerings from {len(tables)} tables")
        return records

    async def _fetch_demand(self) -> list[RawRecord]:
        url = URLS["subscription"]
        tables = html.find_tables(html.load(await self.client.fetch_page(url)), url)
        records = [parse_subscription_row(cells) for cells in html.iter_rows(tables, min_cells=5)]
        self.logger.info(f"Found {len(records)} subscription records")
        return records

    async def _fetch_sentiment(self) -> list[RawRecord]:
        url = URLS["gmp"]
        tables = html.find_tables(html.load(await self.client.fetch_page(url)), url)
        records = [parse_gmp_row(cells) for cells in html.iter_rows(tables, min_cells=3)]
        self.logger.info(f"Found {len(records)} GMP records")
        return records
