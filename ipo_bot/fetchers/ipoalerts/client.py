"""IPO alerts REST API client."""

import logging
from typing import Any

import httpx

from ipo_bot.models.config import FetchType, IpoAlertsConfig

from ..client import FetchClient
from ..errors import CredentialError, ParseError, QuotaExhaustedError
from .quota import QuotaGate


logger = logging.getLogger(__name__)


class IpoAlertsClient:
    """Client for the quota-limited `/ipos` endpoints.

    Every outbound request, retries included, reserves one unit of the
    daily budget before it is sent.
    """

    def __init__(self, config: IpoAlertsConfig, gate: QuotaGate, fetch: FetchClient):
        self.config = config
        self.gate = gate
        self.fetch = fetch

    def _headers(self) -> dict[str, str]:
        if not self.config.api_key:
            raise CredentialError("IPOALERTS_API_KEY is not configured")
        return {"x-api-key": self.config.api_key, "Content-Type": "application/json"}

    async def _reserve(self) -> None:
        if not await self.gate.acquire():
            raise QuotaExhaustedError(f"Daily limit of {self.gate.config.daily_limit} requests reached")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = self._headers()
        url = f"{self.config.base_url.rstrip('/')}{path}"
        try:
            payload = await self.fetch.fetch_json(url, headers=headers, params=params, before_attempt=self._reserve)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                raise CredentialError(
                    f"API key rejected ({e.response.status_code})", e.response.text[:500]
                ) from e
            raise

        if not isinstance(payload, dict):
            raise ParseError(f"Expected JSON object from {path}, got {type(payload).__name__}")
        return payload

    async def query_page(self, status: FetchType, page: int) -> dict[str, Any]:
        """Fetch one page of offerings with the given status.

        Returns:
            Payload with `meta` (count, countOnPage, totalPages, page, limit)
            and `ipos` keys
        """
        params = {"status": status, "limit": self.config.max_per_request, "page": page}
        payload = await self._get("/ipos", params)

        if not isinstance(payload.get("ipos"), list):
            raise ParseError("Response missing 'ipos' list", str(payload)[:500])
        if not isinstance(payload.get("meta"), dict):
            raise ParseError("Response missing 'meta' object", str(payload)[:500])

        meta = payload["meta"]
        logger.debug(
            f"Page {meta.get('page', page)}/{meta.get('totalPages', '?')}: "
            f"{len(payload['ipos'])} ipos"
        )
        return payload

    async def query_details(self, identifier: str) -> dict[str, Any]:
        """Fetch one offering by slug or id."""
        payload = await self._get(f"/ipos/{identifier}")
        ipo = payload.get("ipo", payload)
        if not isinstance(ipo, dict) or not ipo.get("name"):
            raise ParseError(f"No offering found for '{identifier}'", str(payload)[:500])
        return ipo
