"""IPO alerts adapter with quota-aware pagination."""

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx

from ipo_bot.models.config import FetchConfig, FetchType, IpoAlertsConfig
from ipo_bot.models.listing import RawRecord
from ipo_bot.models.results import FetchResult, Operation
from ipo_bot.normalizers import (
    normalize_symbol,
    parse_date,
    parse_issue_size,
    parse_price_range,
)
from ipo_bot.storage.activity import ActivityLog

from ..base import SourceAdapter
from ..errors import CredentialError, QuotaExhaustedError
from .client import IpoAlertsClient
from .quota import QuotaGate


STATUS_MAP = {
    "open": "open",
    "closed": "closed",
    "listed": "listed",
    "upcoming": "upcoming",
    "announced": "upcoming",
}


@dataclass
class PageProgress:
    """Progress tracking for one paginated status fetch."""

    status: str
    pages_fetched: int = 0
    total_pages: int = 1
    records: list[RawRecord] = field(default_factory=list)
    quota_stopped: bool = False
    start_time: float = field(default_factory=time.time)

    @property
    def duration(self) -> float:
        return time.time() - self.start_time


def _schedule_dates(schedule: list[dict[str, Any]] | None) -> dict[str, str | None]:
    dates: dict[str, str | None] = {}
    for event in schedule or []:
        name = str(event.get("event", "")).lower()
        when = parse_date(event.get("date"))
        if "allotment" in name:
            dates["basis_of_allotment_date"] = when
        elif "refund" in name:
            dates["refunds_initiation_date"] = when
        elif "credit" in name or "demat" in name:
            dates["credit_to_demat_date"] = when
    return dates


def parse_ipo(ipo: dict[str, Any]) -> RawRecord:
    """Convert one API offering object to a RawRecord."""
    name = ipo.get("name") or ""
    price_text = ipo.get("priceRange") or ""
    price_min, price_max = parse_price_range(price_text)
    issue_size = ipo.get("issueSize") or "TBA"

    return RawRecord(
        symbol=normalize_symbol(ipo.get("symbol") or name),
        company_name=name,
        open_date=parse_date(ipo.get("startDate")),
        close_date=parse_date(ipo.get("endDate")),
        listing_date=parse_date(ipo.get("listingDate")),
        price_range=f"₹{price_text}" if price_text else "TBA",
        price_min=price_min,
        price_max=price_max,
        lot_size=ipo.get("minQty") or None,
        issue_size=issue_size,
        issue_size_crores=parse_issue_size(issue_size),
        status=STATUS_MAP.get(str(ipo.get("status") or "").lower(), "upcoming"),
        ipo_type="sme" if str(ipo.get("type") or "").upper() == "SME" else "mainboard",
        external_id=str(ipo.get("slug") or ipo.get("id") or "") or None,
        **_schedule_dates(ipo.get("schedule")),
    )


class IpoAlertsAdapter(SourceAdapter):
    """Adapter for the rate-limited IPO alerts API.

    Offerings are fetched one record per request, so every page costs one
    unit of the daily budget. When the budget runs out mid-pagination the
    pages already fetched are returned as a partial success.
    """

    name = "ipoalerts"
    operations = frozenset({Operation.OFFERINGS})

    # Safety limit
    MAX_PAGES: ClassVar[int] = 100

    def __init__(
        self,
        api_config: IpoAlertsConfig,
        gate: QuotaGate,
        config: FetchConfig | None = None,
        activity: ActivityLog | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config=config, activity=activity, transport=transport)
        self.api_config = api_config
        self.gate = gate
        self.api = IpoAlertsClient(api_config, gate, self.client)
        self._last_status: str | None = None

    async def get_offerings_by_status(self, status: FetchType) -> FetchResult:
        """Unscheduled fetch of one status; still spends quota."""

        async def _fetch() -> list[RawRecord]:
            return await self._collect_status(status)

        return await self._call(Operation.OFFERINGS, _fetch)

    async def get_ipo_details(self, identifier: str) -> FetchResult:
        """Fetch a single offering by slug or id."""

        async def _fetch() -> list[RawRecord]:
            if not self.gate.can_request():
                raise QuotaExhaustedError("Daily limit reached, details not fetched")
            return [parse_ipo(await self.api.query_details(identifier))]

        return await self._call(Operation.OFFERINGS, _fetch)

    async def probe(self) -> FetchResult:
        """Report readiness without spending a request."""

        async def _check() -> list[RawRecord]:
            if not self.api_config.api_key:
                raise CredentialError("IPOALERTS_API_KEY is not configured")
            if not self.gate.can_request():
                raise QuotaExhaustedError(f"Daily limit of {self.gate.config.daily_limit} requests reached")
            return []

        return await self._call(Operation.OFFERINGS, _check)

    async def _fetch_offerings(self) -> list[RawRecord]:
        fetch_type = self.gate.scheduled_fetch_type()
        if fetch_type is None:
            self.logger.info("No scheduled fetch window is open, skipping")
            return []

        self.logger.info(f"Scheduled fetch: {fetch_type}")
        records = await self._collect_status(fetch_type)
        self.gate.mark_completed(fetch_type)
        return records

    async def _collect_status(self, status: FetchType) -> list[RawRecord]:
        # Fail before touching the budget when no key is configured
        if not self.api_config.api_key:
            raise CredentialError("IPOALERTS_API_KEY is not configured")

        progress = PageProgress(status=status)
        self._last_status = status
        page = 1

        while page <= progress.total_pages and page <= self.MAX_PAGES:
            if not self.gate.can_request():
                progress.quota_stopped = True
                break
            try:
                payload = await self.api.query_page(status, page)
            except QuotaExhaustedError:
                # Budget spent by a concurrent caller between check and send
                progress.quota_stopped = True
                break

            meta = payload["meta"]
            try:
                progress.total_pages = int(meta.get("totalPages") or 1)
            except (TypeError, ValueError):
                progress.total_pages = 1

            progress.records.extend(parse_ipo(ipo) for ipo in payload["ipos"])
            progress.pages_fetched += 1
            page += 1

        if progress.quota_stopped:
            self.logger.warning(
                f"Quota exhausted after {progress.pages_fetched}/{progress.total_pages} pages "
                f"of '{status}', returning partial result"
            )

        self.logger.info(
            f"Fetched {len(progress.records)} '{status}' offerings "
            f"from {progress.pages_fetched} pages in {progress.duration:.1f}s"
        )
        return progress.records

    def _activity_metadata(self) -> dict[str, Any] | None:
        quota = self.gate.status()
        return {"status": self._last_status, "daily_usage": quota.used, "remaining": quota.remaining}
