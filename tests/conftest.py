# File: tests/conftest.py
from __future__ import annotations

from collections import Counter
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web

from site_audit.config import CrawlerConfig, CrawlTarget
from site_audit.errors import SinkUnavailable

PageDef = Union[str, int, Callable[[web.Request], Awaitable[web.StreamResponse]]]


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


@pytest.fixture()
def crawler_config() -> CrawlerConfig:
    """
    Fast crawler settings for tests: short timeouts, near-zero retry delay.
    """
    return CrawlerConfig(
        user_agent="TestAgent/1.0",
        concurrency=5,
        timeout=2.0,
        robots_timeout=1.0,
        retry_attempts=3,
        retry_delay=0.01,
    )


@pytest.fixture()
def make_config(crawler_config) -> Callable[..., CrawlerConfig]:
    """Copy of *crawler_config* with some fields replaced (validated again)."""

    def _make(**changes: Any) -> CrawlerConfig:
        return CrawlerConfig(**{**crawler_config.model_dump(), **changes})

    return _make


@pytest.fixture()
def make_target() -> Callable[..., CrawlTarget]:
    def _make(url: str, check_alt_text: bool = False, search_term: Optional[str] = None) -> CrawlTarget:
        return CrawlTarget(base_url=url, check_alt_text=check_alt_text, search_term=search_term)

    return _make


class FlakySink:
    """Accepts *limit* events, then behaves like a disconnected consumer."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.events: List[Dict[str, Any]] = []
        self.attempts = 0

    async def send(self, event: Dict[str, Any]) -> None:
        self.attempts += 1
        if len(self.events) >= self.limit:
            raise SinkUnavailable("consumer disconnected")
        self.events.append(event)


@pytest.fixture()
def flaky_sink() -> Callable[[int], FlakySink]:
    return FlakySink


@pytest_asyncio.fixture
async def serve_app(unused_tcp_port_factory):
    """Start aiohttp apps on free ports; return their base URLs; clean up afterwards."""
    runners: List[web.AppRunner] = []

    async def _start(app: web.Application) -> str:
        port = unused_tcp_port_factory()
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", port)
        await site.start()
        runners.append(runner)
        return f"http://127.0.0.1:{port}"

    yield _start
    for runner in runners:
        await runner.cleanup()


@pytest_asyncio.fixture
async def start_site(serve_app):
    """
    Serve a small site described as ``{path: page}``.

    page is HTML text (200), an int status (body links to /never), or an
    async handler. Returns ``(base_url, hits)`` where *hits* counts every
    request per path, including unknown paths and robots.txt.
    """

    async def _start(pages: Dict[str, PageDef], robots: Optional[str] = None) -> Tuple[str, Counter]:
        hits: Counter = Counter()

        @web.middleware
        async def count_hits(request, handler):
            hits[request.path] += 1
            return await handler(request)

        def make_handler(page: PageDef):
            async def handler(request: web.Request) -> web.StreamResponse:
                if callable(page):
                    return await page(request)
                if isinstance(page, int):
                    return web.Response(
                        status=page, text='<a href="/never">never</a>', content_type="text/html"
                    )
                return web.Response(text=page, content_type="text/html")

            return handler

        app = web.Application(middlewares=[count_hits])
        for path, page in pages.items():
            app.router.add_get(path, make_handler(page))
        if robots is not None:
            async def handle_robots(_):
                return web.Response(text=robots, content_type="text/plain")

            app.router.add_get("/robots.txt", handle_robots)
        base = await serve_app(app)
        return base, hits

    return _start
