"""IPO Watch adapter (rendered GMP table)."""

import re

from ipo_bot.models.listing import RawRecord
from ipo_bot.models.results import Operation
from ipo_bot.normalizers import normalize_symbol, parse_decimal, parse_price_range

from . import html
from .base import SourceAdapter
from .errors import ParseError


GMP_URL = "https://ipowatch.in/ipo-grey-market-premium-latest-ipo-gmp/"

_IPO_SUFFIX_RE = re.compile(r"\s+IPO$", re.IGNORECASE)


def parse_gmp_row(cells: list[str]) -> RawRecord:
    """Columns: name | GMP | price | gain | review | date | type."""
    company_name = _IPO_SUFFIX_RE.sub("", cells[0]).strip()
    price_text = cells[2]
    price_min, price_max = parse_price_range(price_text)
    kind = cells[6] if len(cells) > 6 else ""

    return RawRecord(
        symbol=normalize_symbol(company_name),
        company_name=company_name,
        price_range=price_text or "TBA",
        price_min=price_min,
        price_max=price_max,
        gmp=parse_decimal(cells[1]),
        gmp_percent=parse_decimal(cells[3]),
        ipo_type="sme" if "SME" in kind.upper() else "mainboard",
    )


class IpoWatchAdapter(SourceAdapter):
    """Adapter for the ipowatch.in grey-market premium table."""

    name = "ipowatch"
    operations = frozenset({Operation.OFFERINGS, Operation.SENTIMENT})
    probe_operation = Operation.SENTIMENT

    async def _fetch_rows(self) -> list[RawRecord]:
        page = await self.client.fetch_rendered(GMP_URL, wait_for_selector="table")
        soup = html.load(page)
        table = soup.find("table")
        if table is None:
            raise ParseError("GMP table not found on IPO Watch")

        records = [parse_gmp_row(cells) for cells in html.iter_rows([table], min_cells=5)]
        self.logger.info(f"Parsed {len(records)} GMP rows")
        return records

    async def _fetch_offerings(self) -> list[RawRecord]:
        return await self._fetch_rows()

    async def _fetch_sentiment(self) -> list[RawRecord]:
        return [
            RawRecord(
                symbol=r.symbol,
                company_name=r.company_name,
                gmp=r.gmp,
                gmp_percent=r.gmp_percent,
            )
            for r in await self._fetch_rows()
            if r.gmp is not None
        ]
