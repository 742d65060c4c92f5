# File: site_audit/server.py
"""site_audit.server: HTTP-сервис на aiohttp, отдающий ход обхода потоком SSE.

Маршруты:
  POST /api/scrape      {url, checkAltText, searchTerm} -> поток событий обхода
  POST /api/check-list  {urls: [...]}                   -> поток статусов по списку
"""
from __future__ import annotations

import contextlib
import json
from typing import Any

from aiohttp import web

from site_audit.checklist import validate_url_list
from site_audit.config import CrawlerConfig, CrawlTarget
from site_audit.engine import start_check, start_crawl
from site_audit.errors import InvalidInput, SinkUnavailable
from site_audit.logger import logger
from site_audit.reporter import SSESink

__all__ = ["create_app", "run_server", "CONFIG_KEY"]

CONFIG_KEY = web.AppKey("config", CrawlerConfig)

_SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


async def _read_payload(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidInput(f"Request body is not valid JSON: {exc}") from exc


async def _open_stream(request: web.Request) -> web.StreamResponse:
    response = web.StreamResponse(status=200, headers=_SSE_HEADERS)
    await response.prepare(request)
    return response


async def _close_stream(response: web.StreamResponse) -> None:
    # the consumer may already be gone
    with contextlib.suppress(ConnectionError, RuntimeError):
        await response.write_eof()


async def handle_scrape(request: web.Request) -> web.StreamResponse:
    """Обход сайта с потоковой выдачей результатов."""
    try:
        target = CrawlTarget.from_payload(await _read_payload(request))
    except InvalidInput as exc:
        return _bad_request(str(exc))

    response = await _open_stream(request)
    try:
        await start_crawl(target, request.app[CONFIG_KEY], SSESink(response))
    except Exception:
        # start_crawl has already streamed {"error": ...}
        logger.exception("Crawl stream for %s terminated", target.base_url)
    await _close_stream(response)
    return response


async def handle_check_list(request: web.Request) -> web.StreamResponse:
    """Статусы фиксированного списка URL, без обхода."""
    try:
        urls = validate_url_list(await _read_payload(request))
    except InvalidInput as exc:
        return _bad_request(str(exc))

    response = await _open_stream(request)
    sink = SSESink(response)
    try:
        await start_check(urls, request.app[CONFIG_KEY], sink)
    except Exception as exc:
        logger.exception("Check-list stream terminated")
        with contextlib.suppress(SinkUnavailable):
            await sink.send({"error": str(exc) or "An error occurred while processing URLs"})
    await _close_stream(response)
    return response


def create_app(config: CrawlerConfig) -> web.Application:
    app = web.Application()
    app[CONFIG_KEY] = config
    app.router.add_post("/api/scrape", handle_scrape)
    app.router.add_post("/api/check-list", handle_check_list)
    return app


def run_server(config: CrawlerConfig, host: str = "127.0.0.1", port: int = 8080) -> None:
    logger.info("Serving on http://%s:%d", host, port)
    web.run_app(create_app(config), host=host, port=port, print=None)
