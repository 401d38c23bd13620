"""Investorgain adapter (structured JSON list plus per-offering GMP detail)."""

import asyncio
from datetime import date
from typing import Any

import httpx

from ipo_bot.models.listing import RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.normalizers import (
    determine_status,
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_lot_size,
    parse_price_range,
)

from .base import SourceAdapter
from .errors import ParseError


API_BASE = "https://webnodejs.investorgain.com/cloud"
GMP_URL = API_BASE + "/ipo/ipo-gmp-read/{id}/true"

HEADERS = {
    "Origin": "https://www.investorgain.com",
    "Referer": "https://www.investorgain.com/",
}

# Most recent offerings only; older rows have no live GMP
MAX_ITEMS = 30
DETAIL_CONCURRENCY = 5


def financial_year(today: date | None = None) -> str:
    """Indian financial year label such as '2025-26' (April to March)."""
    today = today or date.today()
    start = today.year if today.month >= 4 else today.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def list_url(today: date | None = None) -> str:
    today = today or date.today()
    return (
        f"{API_BASE}/new/report/data-read/331/1/2/"
        f"{today.year}/{financial_year(today)}/0/all?search=&v=17-49"
    )


def parse_list_item(item: dict[str, Any], gmp: dict[str, Any] | None = None, today: date | None = None) -> RawRecord:
    """Convert one list row, plus its optional GMP detail, to a RawRecord."""
    name = str(item.get("~ipo_name") or "").strip()
    open_date = parse_date(item.get("~Srt_Open"))
    close_date = parse_date(item.get("~Srt_Close"))
    listing_date = parse_date(item.get("~Str_Listing"))

    status = determine_status(open_date, close_date, today)
    if status == "upcoming" and open_date is None and listing_date:
        status = "closed"

    price_text = str(item.get("Price (₹)") or "").strip()
    price_min, price_max = parse_price_range(price_text)
    size_text = str(item.get("IPO Size (₹ in cr)") or "").strip()
    size_crores = parse_issue_size(size_text)

    premium = parse_decimal((gmp or {}).get("gmp"))
    expected = parse_decimal((gmp or {}).get("est_listing"))
    gmp_percent = premium / price_max * 100 if premium is not None and price_max else None

    return RawRecord(
        symbol=normalize_symbol(name),
        company_name=name,
        open_date=open_date,
        close_date=close_date,
        listing_date=listing_date,
        price_range=price_text or "TBA",
        price_min=price_min,
        price_max=price_max,
        lot_size=parse_lot_size(item.get("Lot")),
        issue_size=f"{size_text} Cr" if size_text else "TBA",
        issue_size_crores=size_crores,
        status=status,
        ipo_type="sme" if "SME" in str(item.get("~IPO_Category") or "").upper() else "mainboard",
        gmp=premium,
        gmp_percent=round(gmp_percent, 2) if gmp_percent is not None else None,
        expected_listing=expected,
        external_id=str(item["~id"]) if item.get("~id") else None,
    )


class InvestorgainAdapter(SourceAdapter):
    """Adapter for the Investorgain report API.

    The list endpoint carries dates, prices and sizes; the premium for each
    row needs one detail request. A failed detail request leaves that row
    without a premium.
    """

    name = "investorgain"
    operations = frozenset({Operation.OFFERINGS, Operation.SENTIMENT})
    probe_operation = Operation.OFFERINGS

    async def _fetch_items(self) -> list[dict[str, Any]]:
        payload = await self.client.fetch_json(list_url(), headers=HEADERS)
        if not isinstance(payload, dict) or not isinstance(payload.get("reportTableData"), list):
            raise ParseError("Response missing 'reportTableData'", str(payload)[:500])
        items = payload["reportTableData"]
        self.logger.info(f"Listed {len(items)} offerings")
        return items[:MAX_ITEMS]

    async def _fetch_gmp(self, item_id: str, limiter: asyncio.Semaphore) -> dict[str, Any] | None:
        async with limiter:
            try:
                payload = await self.client.fetch_json(GMP_URL.format(id=item_id), headers=HEADERS)
            except (httpx.HTTPError, ParseError) as e:
                self.logger.debug(f"GMP detail for {item_id} unavailable: {e}")
                return None
        detail = payload.get("d") if isinstance(payload, dict) else None
        return detail if isinstance(detail, dict) else None

    async def _collect(self) -> list[RawRecord]:
        items = [item for item in await self._fetch_items() if item.get("~id") and item.get("~ipo_name")]
        limiter = asyncio.Semaphore(DETAIL_CONCURRENCY)
        details = await asyncio.gather(*(self._fetch_gmp(str(item["~id"]), limiter) for item in items))
        return [parse_list_item(item, gmp) for item, gmp in zip(items, details)]

    async def _fetch_offerings(self) -> list[RawRecord]:
        return await self._collect()

    async def _fetch_sentiment(self) -> list[RawRecord]:
        records = await self._collect()
        signals = [
            RawRecord(
                symbol=r.symbol,
                company_name=r.company_name,
                gmp=r.gmp,
                gmp_percent=r.gmp_percent,
                expected_listing=r.expected_listing,
            )
            for r in records
            if r.gmp is not None
        ]
        self.logger.info(f"Found {len(signals)} GMP signals")
        return signals
