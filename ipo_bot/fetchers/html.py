"""BeautifulSoup helpers for table-shaped listing pages."""

import logging
from collections.abc import Iterator

from bs4 import BeautifulSoup
from bs4.element import Tag

from .errors import ParseError


logger = logging.getLogger(__name__)

HEADER_NAMES = ("company", "ipo name", "issuer")

# A page with no tables but this many scripts was served unrendered
SCRIPT_HEAVY_THRESHOLD = 10


def load(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def cell_text(cell: Tag) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())


def find_tables(soup: BeautifulSoup, url: str) -> list[Tag]:
    """All tables on the page; raises ParseError when there are none."""
    tables = soup.find_all("table")
    if tables:
        return tables

    scripts = len(soup.find_all("script"))
    if scripts > SCRIPT_HEAVY_THRESHOLD:
        raise ParseError(f"{url} is script-rendered, no tables in static markup ({scripts} scripts)")
    raise ParseError(f"No tables found on {url}")


def is_header_name(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in HEADER_NAMES)


def iter_rows(tables: list[Tag], min_cells: int) -> Iterator[list[str]]:
    """Yield the cell texts of data rows with at least `min_cells` cells.

    Rows without <td> cells, with a too-short first cell, or whose first
    cell reads like a column header are skipped.
    """
    for table in tables:
        for row in table.find_all("tr"):
            cells = row.find_all("td")
            if len(cells) < min_cells:
                continue
            texts = [cell_text(c) for c in cells]
            name = texts[0]
            if len(name) < 3 or is_header_name(name):
                continue
            yield texts
