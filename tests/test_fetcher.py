# File: tests/test_fetcher.py
import asyncio

import pytest
from aiohttp import ClientSession, ClientTimeout, web

from site_audit.crawler.fetcher import Fetcher
from site_audit.crawler.models import FetchSuccess, TransportFailure


async def fetch(config, url):
    async with ClientSession(timeout=ClientTimeout(total=config.timeout)) as session:
        return await Fetcher(session, config).fetch(url)


@pytest.mark.asyncio()
async def test_ok_page_has_body(crawler_config, start_site):
    base, _ = await start_site({"/": "<h1>Home</h1>"})
    outcome = await fetch(crawler_config, base + "/")
    assert isinstance(outcome, FetchSuccess)
    assert outcome.status == 200
    assert outcome.is_html
    assert "<h1>Home</h1>" in outcome.body
    assert outcome.attempts == 1


@pytest.mark.asyncio()
async def test_redirect_is_captured_not_followed(crawler_config, start_site):
    async def old(_):
        return web.Response(status=301, headers={"Location": "/new"})

    base, hits = await start_site({"/old": old, "/new": "<p>new</p>"})
    outcome = await fetch(crawler_config, base + "/old")
    assert isinstance(outcome, FetchSuccess)
    assert outcome.status == 301
    assert outcome.is_redirect
    assert outcome.location == "/new"
    assert outcome.body is None
    assert hits["/new"] == 0


@pytest.mark.asyncio()
async def test_server_error_retried_until_exhausted(crawler_config, start_site):
    base, hits = await start_site({"/boom": 500})
    outcome = await fetch(crawler_config, base + "/boom")
    assert isinstance(outcome, FetchSuccess)
    assert outcome.status == 500
    assert outcome.attempts == crawler_config.retry_attempts
    assert hits["/boom"] == crawler_config.retry_attempts


@pytest.mark.asyncio()
async def test_server_error_then_recovery(crawler_config, start_site):
    calls = {"n": 0}

    async def flaky(_):
        calls["n"] += 1
        if calls["n"] == 1:
            return web.Response(status=503)
        return web.Response(text="<h1>Recover</h1>", content_type="text/html")

    base, _ = await start_site({"/flaky": flaky})
    outcome = await fetch(crawler_config, base + "/flaky")
    assert outcome.status == 200
    assert outcome.attempts == 2
    assert calls["n"] == 2


@pytest.mark.asyncio()
async def test_client_error_is_not_retried(crawler_config, start_site):
    base, hits = await start_site({"/": "<p>home</p>"})
    outcome = await fetch(crawler_config, base + "/missing")
    assert outcome.status == 404
    assert outcome.body is None
    assert hits["/missing"] == 1


@pytest.mark.asyncio()
async def test_non_html_body_is_not_read(crawler_config, start_site):
    async def data(_):
        return web.json_response({"a": 1})

    base, _ = await start_site({"/data": data})
    outcome = await fetch(crawler_config, base + "/data")
    assert outcome.status == 200
    assert not outcome.is_html
    assert outcome.body is None


@pytest.mark.asyncio()
async def test_connection_refused_is_transport_failure(crawler_config, unused_tcp_port):
    outcome = await fetch(crawler_config, f"http://127.0.0.1:{unused_tcp_port}/")
    assert isinstance(outcome, TransportFailure)
    assert outcome.reason.startswith("Client")
    assert outcome.attempts == 1


@pytest.mark.asyncio()
async def test_timeout_is_transport_failure_without_retry(make_config, start_site):
    async def slow(_):
        await asyncio.sleep(1.0)
        return web.Response(text="late", content_type="text/html")

    base, hits = await start_site({"/slow": slow})
    outcome = await fetch(make_config(timeout=0.2), base + "/slow")
    assert isinstance(outcome, TransportFailure)
    assert "timed out" in outcome.reason
    assert hits["/slow"] == 1


@pytest.mark.asyncio()
async def test_fetch_once_does_not_retry_server_error(crawler_config, start_site):
    base, hits = await start_site({"/boom": 502})
    async with ClientSession(timeout=ClientTimeout(total=crawler_config.timeout)) as session:
        outcome = await Fetcher(session, crawler_config).fetch_once(base + "/boom")
    assert outcome.status == 502
    assert outcome.attempts == 1
    assert hits["/boom"] == 1
