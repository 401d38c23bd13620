"""NSE exchange adapter (structured JSON API behind a session cookie)."""

import asyncio
from typing import Any

import httpx

from ipo_bot.models.listing import OfferingStatus, RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.normalizers import (
    enrich_record,
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_price_range,
)

from .base import SourceAdapter
from .errors import ParseError


BASE_URL = "https://www.nseindia.com"

URLS = {
    "current": f"{BASE_URL}/api/ipo-current-issue",
    "upcoming": f"{BASE_URL}/api/ipo-upcoming",
}

NSE_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": f"{BASE_URL}/market-data/all-upcoming-issues-ipo",
    "Origin": BASE_URL,
}


def _symbol(item: dict[str, Any]) -> str:
    if item.get("symbol"):
        return str(item["symbol"]).upper()
    return normalize_symbol(item.get("companyName") or "")


def parse_issue(item: dict[str, Any], status: OfferingStatus) -> RawRecord:
    """Convert one NSE issue object to a RawRecord."""
    price_text = item.get("issuePrice") or "TBA"
    price_min, price_max = parse_price_range(price_text)
    issue_size = item.get("issueSizeAmount") or item.get("issueSize") or "TBA"

    record = RawRecord(
        symbol=_symbol(item),
        company_name=item.get("companyName") or "",
        open_date=parse_date(item.get("issueStartDate")),
        close_date=parse_date(item.get("issueEndDate")),
        listing_date=parse_date(item.get("listingDate")),
        price_range=price_text,
        price_min=price_min,
        price_max=price_max,
        issue_size=str(issue_size),
        issue_size_crores=parse_issue_size(str(issue_size)),
        status=status,
        ipo_type="sme" if str(item.get("issueType") or "").upper() == "SME" else "mainboard",
    )
    return enrich_record(record)


def parse_subscription(item: dict[str, Any]) -> RawRecord | None:
    """Demand figures from a current-issue object, if it carries any."""
    total = parse_decimal(item.get("totalSubscription"))
    if not total:
        return None
    nii = parse_decimal(item.get("niiSubscription"))
    return RawRecord(
        symbol=_symbol(item),
        company_name=item.get("companyName") or "",
        subscription_qib=parse_decimal(item.get("qibSubscription")),
        subscription_nii=nii,
        subscription_hni=nii,
        subscription_retail=parse_decimal(item.get("retailSubscription")),
        subscription_total=total,
    )


class NseAdapter(SourceAdapter):
    """Adapter for the NSE public IPO endpoints.

    The API answers 401/403 without the cookies set by the homepage, so
    every operation opens a session first and re-opens it once on an
    authentication failure.
    """

    name = "nse"
    operations = frozenset({Operation.OFFERINGS, Operation.DEMAND})

    async def _init_session(self) -> None:
        self.logger.info("Initializing NSE session")
        try:
            await self.client.fetch_page(BASE_URL, headers={"Referer": BASE_URL})
        except httpx.HTTPStatusError as e:
            # Cookies from an error response are still kept
            self.logger.warning(f"Homepage answered {e.response.status_code}, continuing")
        if not self.client.cookies:
            self.logger.warning("No cookies received from NSE homepage")
        else:
            self.logger.info(f"NSE session initialized with {len(self.client.cookies)} cookies")

    async def _fetch_list(self, url: str) -> list[dict[str, Any]]:
        try:
            payload = await self.client.fetch_json(url, headers=NSE_HEADERS)
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in (401, 403):
                raise
            self.logger.warning(f"Authentication failed for {url}, reinitializing session")
            await self._init_session()
            payload = await self.client.fetch_json(url, headers=NSE_HEADERS)

        if not isinstance(payload, list):
            raise ParseError(f"Expected a JSON list from {url}", str(payload)[:500])
        return payload

    async def _fetch_offerings(self) -> list[RawRecord]:
        await self._init_session()

        current, upcoming = await asyncio.gather(
            self._fetch_list(URLS["current"]),
            self._fetch_list(URLS["upcoming"]),
            return_exceptions=True,
        )
        if isinstance(current, BaseException) and isinstance(upcoming, BaseException):
            raise current

        records: list[RawRecord] = []
        for label, status, outcome in (("current", "open", current), ("upcoming", "upcoming", upcoming)):
            if isinstance(outcome, BaseException):
                self.logger.error(f"Failed to fetch {label} issues: {outcome}")
                continue
            records.extend(parse_issue(item, status) for item in outcome)
            self.logger.info(f"{label.capitalize()} issues: {len(outcome)}")

        return records

    async def _fetch_demand(self) -> list[RawRecord]:
        await self._init_session()
        items = await self._fetch_list(URLS["current"])
        records = [r for r in (parse_subscription(item) for item in items) if r is not None]
        self.logger.info(f"Found {len(records)} subscription records")
        return records
