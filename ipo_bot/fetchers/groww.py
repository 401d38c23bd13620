"""Groww adapter (rendered Next.js page data plus a JSON demand API)."""

import json
from typing import Any

from ipo_bot.models.listing import OfferingStatus, RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.normalizers import (
    normalize_symbol,
    parse_date,
    parse_decimal,
    parse_issue_size,
    parse_lot_size,
    parse_price_range,
)

from . import html
from .base import SourceAdapter
from .errors import ParseError


URLS = {
    "page": "https://groww.in/ipo",
    "api": "https://groww.in/v1/api/stocks_ipo/v1/ipo",
}

PAGE_LISTS: list[tuple[str, OfferingStatus]] = [
    ("openDataList", "open"),
    ("upcomingDataList", "upcoming"),
    ("closedDataList", "closed"),
]


def extract_page_props(page: str) -> dict[str, Any]:
    """Pull `props.pageProps` out of the page's __NEXT_DATA__ script."""
    soup = html.load(page)
    script = soup.find("script", id="__NEXT_DATA__")
    if script is None or not script.string:
        raise ParseError("__NEXT_DATA__ script not found")
    try:
        data = json.loads(script.string)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid __NEXT_DATA__ JSON: {e}", script.string[:500]) from e

    props = (data.get("props") or {}).get("pageProps")
    if not isinstance(props, dict):
        raise ParseError("__NEXT_DATA__ has no props.pageProps")
    return props


def parse_page_item(item: dict[str, Any], status: OfferingStatus) -> RawRecord:
    company_name = item.get("companyName") or item.get("searchId") or ""
    price_range = item.get("priceBand")
    if not price_range and item.get("minPrice"):
        price_range = f"₹{item['minPrice']}-₹{item.get('maxPrice') or item['minPrice']}"
    price_min, price_max = parse_price_range(price_range)
    issue_size = item.get("issueSize")

    return RawRecord(
        symbol=normalize_symbol(company_name),
        company_name=company_name,
        open_date=parse_date(item.get("openingDate") or item.get("openDate")),
        close_date=parse_date(item.get("closingDate") or item.get("closeDate")),
        listing_date=parse_date(item.get("listingDate")),
        price_range=price_range or "TBA",
        price_min=price_min if price_min is not None else parse_decimal(item.get("minPrice")),
        price_max=price_max if price_max is not None else parse_decimal(item.get("maxPrice")),
        lot_size=parse_lot_size(str(item["lotSize"]) if item.get("lotSize") else None),
        issue_size=str(issue_size) if issue_size else "TBA",
        issue_size_crores=parse_issue_size(str(issue_size)) if issue_size else None,
        status=status,
        external_id=item.get("searchId"),
    )


def parse_subscription(ipo: dict[str, Any]) -> RawRecord | None:
    details = ipo.get("subscriptionDetails")
    if not isinstance(details, dict):
        return None
    total = parse_decimal(details.get("totalSubscription"))
    if not total or total <= 0:
        return None

    nii = parse_decimal(details.get("niiSubscription")) or None
    return RawRecord(
        symbol=normalize_symbol(ipo.get("companyName") or ""),
        company_name=ipo.get("companyName") or "",
        subscription_qib=parse_decimal(details.get("qibSubscription")) or None,
        subscription_nii=nii,
        subscription_hni=nii,
        subscription_retail=parse_decimal(details.get("retailSubscription")) or None,
        subscription_total=total,
    )


class GrowwAdapter(SourceAdapter):
    """Adapter for groww.in.

    The IPO page hydrates from an embedded __NEXT_DATA__ payload, read
    after a rendered fetch. Demand figures come from the stocks_ipo API.
    """

    name = "groww"
    operations = frozenset({Operation.OFFERINGS, Operation.DEMAND})

    async def _fetch_offerings(self) -> list[RawRecord]:
        page = await self.client.fetch_rendered(URLS["page"], wait_until="networkidle")
        props = extract_page_props(page)

        records: list[RawRecord] = []
        for key, status in PAGE_LISTS:
            items = props.get(key)
            if not isinstance(items, list):
                self.logger.debug(f"No {key} in page data")
                continue
            records.extend(parse_page_item(item, status) for item in items)

        self.logger.info(f"Found {len(records)} offerings via page data")
        return records

    async def _fetch_demand(self) -> list[RawRecord]:
        payload = await self.client.fetch_json(URLS["api"])
        if not isinstance(payload, dict):
            raise ParseError("Expected JSON object from stocks_ipo API", str(payload)[:500])

        records: list[RawRecord] = []
        for key in ("openIpos", "closedIpos"):
            for ipo in payload.get(key) or []:
                record = parse_subscription(ipo)
                if record is not None:
                    records.append(record)

        self.logger.info(f"Found {len(records)} subscription records")
        return records
