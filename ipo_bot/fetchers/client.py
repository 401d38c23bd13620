"""Fetch primitives shared by all source adapters.

Three strategies sit behind one retry contract:

* structured: HTTP GET returning a JSON payload
* document: HTTP GET returning markup
* rendered: headless Chromium executes the page's scripts first
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import httpx
from playwright.async_api import Browser, Route, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from ipo_bot.models.config import FetchConfig

from .errors import ParseError


T = TypeVar("T")

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
}

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media", "websocket"})

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--mute-audio",
]


def is_transient(exc: BaseException) -> bool:
    """Whether another attempt could plausibly succeed."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, (httpx.TransportError, PlaywrightError))


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class FetchClient:
    """Retrying HTTP and headless-browser client for one source.

    Timeouts apply per attempt. After `retries` failed retries the last
    attempt's error is raised to the caller.
    """

    def __init__(
        self,
        config: FetchConfig,
        name: str = "fetch",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.name = name
        self.logger = logging.getLogger(f"ipo_bot.sources.{name}")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    @property
    def cookies(self) -> httpx.Cookies:
        """Session cookies collected so far; sent with every later request."""
        return self._get_client().cookies

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self.logger.warning(
            f"Retrying after attempt {retry_state.attempt_number}/{self.config.retries + 1} "
            f"in {delay:.1f}s: {exc}"
        )

    async def _with_retries(
        self,
        description: str,
        url: str,
        func: Callable[[], Awaitable[T]],
    ) -> T:
        """Run one fetch attempt function under the shared retry contract."""
        total = self.config.retries + 1
        start_time = time.time()
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(total),
            wait=wait_incrementing(start=self.config.retry_delay, increment=self.config.retry_delay),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                try:
                    result = await func()
                except Exception as e:
                    self.logger.error(f"Failed to fetch {description} {url} (attempt {number}/{total}): {e}")
                    raise
                duration_ms = int((time.time() - start_time) * 1000)
                self.logger.info(f"Fetched {description} {url} (attempt {number}/{total}, {duration_ms}ms)")
        return result

    async def fetch_response(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        description: str = "page",
        before_attempt: Callable[[], Awaitable[None]] | None = None,
    ) -> httpx.Response:
        """HTTP GET with retries; raises for error statuses.

        `before_attempt` runs ahead of every outbound request, retries
        included. Whatever it raises ends the fetch unless it is transient.
        """
        client = self._get_client()

        async def _do_request() -> httpx.Response:
            if before_attempt is not None:
                await before_attempt()
            response = await client.get(url, headers=headers, params=params, timeout=self.config.timeout)
            response.raise_for_status()
            return response

        return await self._with_retries(description, url, _do_request)

    async def fetch_json(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        before_attempt: Callable[[], Awaitable[None]] | None = None,
    ) -> Any:
        """Structured fetch: GET a JSON payload."""
        merged = {"Accept": "application/json, text/plain, */*", **(headers or {})}
        response = await self.fetch_response(
            url, headers=merged, params=params, description="JSON", before_attempt=before_attempt,
        )
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}", response.text[:500]) from e

    async def fetch_page(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> str:
        """Document fetch: GET markup for the caller to parse."""
        response = await self.fetch_response(url, headers=headers, params=params, description="page")
        return response.text

    @asynccontextmanager
    async def _browser_session(self) -> AsyncIterator[Browser]:
        """Launch an isolated browser and always tear it down."""
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True, args=BROWSER_ARGS)
            try:
                yield browser
            finally:
                await browser.close()

    async def fetch_rendered(
        self,
        url: str,
        *,
        wait_for_selector: str | None = None,
        wait_until: str = "domcontentloaded",
    ) -> str:
        """Rendered fetch: load the page in headless Chromium and return its DOM.

        Images, fonts, stylesheets and media are blocked. A selector that
        never appears is logged and the page is returned as rendered so far.
        """
        timeout_ms = self.config.timeout * 1000

        async def _render() -> str:
            async with self._browser_session() as browser:
                context = await browser.new_context(
                    user_agent=DEFAULT_HEADERS["User-Agent"],
                    viewport={"width": 1920, "height": 1080},
                    locale="en-US",
                    extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
                )
                page = await context.new_page()
                await page.route("**/*", _block_heavy_resources)
                await page.goto(url, wait_until=wait_until, timeout=timeout_ms)

                if wait_for_selector:
                    try:
                        await page.wait_for_selector(wait_for_selector, timeout=timeout_ms / 2)
                    except PlaywrightTimeoutError:
                        self.logger.warning(f"Selector '{wait_for_selector}' not found on {url}, continuing anyway")

                return await page.content()

        return await self._with_retries("rendered page", url, _render)
