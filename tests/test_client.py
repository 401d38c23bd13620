"""Tests for the retrying fetch client."""

from contextlib import asynccontextmanager

import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ipo_bot.fetchers import client as client_module
from ipo_bot.fetchers.base import SourceAdapter
from ipo_bot.fetchers.client import FetchClient, is_transient
from ipo_bot.fetchers.errors import ParseError
from ipo_bot.models.config import FetchConfig
from ipo_bot.models.results import Operation


class CountingHandler:
    """MockTransport handler replaying canned responses in order."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        return self.responses[index]


def make_client(config, handler) -> FetchClient:
    return FetchClient(config, name="test", transport=httpx.MockTransport(handler))


class JsonAdapter(SourceAdapter):
    """Offerings adapter backed by a single JSON endpoint."""

    name = "json"
    operations = frozenset({Operation.OFFERINGS})

    async def _fetch_offerings(self):
        await self.client.fetch_json("https://example.test/offerings")
        return []


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_errors_retried(self, fast_config):
        handler = CountingHandler(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"ok": True}),
        )
        async with make_client(fast_config, handler) as client:
            payload = await client.fetch_json("https://example.test/data")

        assert payload == {"ok": True}
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_last_error_raised_after_retries(self, fast_config):
        handler = CountingHandler(httpx.Response(502))
        async with make_client(fast_config, handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_page("https://example.test/page")

        assert len(handler.requests) == fast_config.retries + 1

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self, fast_config):
        handler = CountingHandler(httpx.Response(404))
        async with make_client(fast_config, handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.fetch_page("https://example.test/missing")

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self, fast_config):
        handler = CountingHandler(httpx.Response(200, text="<html>maintenance</html>"))
        async with make_client(fast_config, handler) as client:
            with pytest.raises(ParseError) as exc_info:
                await client.fetch_json("https://example.test/data")

        assert len(handler.requests) == 1
        assert "maintenance" in exc_info.value.response_text

    @pytest.mark.asyncio
    async def test_before_attempt_runs_per_attempt(self, fast_config):
        handler = CountingHandler(httpx.Response(500), httpx.Response(200, json=[]))
        calls = []

        async def before_attempt():
            calls.append(len(handler.requests))

        async with make_client(fast_config, handler) as client:
            await client.fetch_json("https://example.test/data", before_attempt=before_attempt)

        assert calls == [0, 1]

    @pytest.mark.asyncio
    async def test_backoff_grows_with_attempt(self, monkeypatch):
        handler = CountingHandler(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"ok": True}),
        )
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        config = FetchConfig(timeout=5.0, retries=2, retry_delay=0.5)
        async with make_client(config, handler) as client:
            monkeypatch.setattr(client, "_sleep", fake_sleep)
            await client.fetch_json("https://example.test/data")

        assert sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_retries_logged_as_one_activity_entry(self, fast_config, activity):
        handler = CountingHandler(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"ok": True}),
        )
        adapter = JsonAdapter(config=fast_config, activity=activity, transport=httpx.MockTransport(handler))
        async with adapter:
            result = await adapter.get_offerings()

        assert result.success
        assert len(handler.requests) == 3
        entries = activity.entries()
        assert len(entries) == 1
        assert entries[0].status == "success"

    def test_is_transient(self):
        request = httpx.Request("GET", "https://example.test")
        assert is_transient(httpx.HTTPStatusError("", request=request, response=httpx.Response(429)))
        assert is_transient(httpx.ConnectError("refused"))
        assert not is_transient(httpx.HTTPStatusError("", request=request, response=httpx.Response(403)))
        assert not is_transient(ParseError("layout changed"))


class FakePage:
    async def route(self, pattern, handler):
        pass

    async def goto(self, url, wait_until=None, timeout=None):
        raise PlaywrightTimeoutError("navigation timed out")


class FakeContext:
    async def new_page(self):
        return FakePage()


class FakeBrowser:
    def __init__(self, registry):
        self.registry = registry

    async def new_context(self, **kwargs):
        return FakeContext()

    async def close(self):
        self.registry["closed"] += 1


class FakeChromium:
    def __init__(self, registry):
        self.registry = registry

    async def launch(self, **kwargs):
        self.registry["launched"] += 1
        return FakeBrowser(self.registry)


class TestRenderedFetch:
    @pytest.mark.asyncio
    async def test_browser_closed_when_navigation_fails(self, fast_config, monkeypatch):
        registry = {"launched": 0, "closed": 0}

        @asynccontextmanager
        async def fake_async_playwright():
            playwright = type("FakePlaywright", (), {})()
            playwright.chromium = FakeChromium(registry)
            yield playwright

        monkeypatch.setattr(client_module, "async_playwright", fake_async_playwright)

        client = FetchClient(fast_config, name="test")
        with pytest.raises(PlaywrightTimeoutError):
            await client.fetch_rendered("https://example.test/listing")

        assert registry["launched"] == fast_config.retries + 1
        assert registry["closed"] == registry["launched"]
