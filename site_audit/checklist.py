# === FILE: site_audit/checklist.py ===
"""
Проверка фиксированного списка URL: по одному запросу на адрес,
без очереди обхода и без фильтра области.
"""
from __future__ import annotations

import asyncio
from typing import Any, List, Sequence

from aiohttp import ClientSession, ClientTimeout

from site_audit.config import CrawlerConfig
from site_audit.crawler.fetcher import Fetcher
from site_audit.crawler.models import (
    DIRECT_ACCESS,
    CrawlProgress,
    FetchOutcome,
    PageResult,
    TransportFailure,
)
from site_audit.crawler.urls import normalize_url, resolve_url
from site_audit.errors import InvalidInput, InvalidURL
from site_audit.logger import logger
from site_audit.reporter import ProgressReporter

__all__ = ["check_urls", "validate_url_list"]


def validate_url_list(payload: Any) -> List[str]:
    """Достаёт ``urls`` из тела запроса; бросает InvalidInput, если это не список.

    Пустой список допустим: проверка сразу завершится событием Completed.
    """
    urls = payload.get("urls") if isinstance(payload, dict) else None
    if not isinstance(urls, list):
        raise InvalidInput("URLs array is required")
    return [str(u) for u in urls]


def _to_result(url: str, outcome: FetchOutcome) -> PageResult:
    if isinstance(outcome, TransportFailure):
        return PageResult(url, 0, DIRECT_ACCESS, error=outcome.reason)
    redirect = None
    if outcome.is_redirect and outcome.location:
        try:
            redirect = resolve_url(outcome.location, url)
        except InvalidURL:
            redirect = outcome.location
    return PageResult(url, outcome.status, DIRECT_ACCESS, redirect_url=redirect)


async def check_urls(
    urls: Sequence[str],
    config: CrawlerConfig,
    reporter: ProgressReporter,
) -> List[PageResult]:
    """Проверяет каждый URL и публикует результат; в конце — Completed.

    Запросы идут параллельно (не больше ``config.concurrency``), а
    результаты публикуются в порядке входного списка.
    """
    progress = CrawlProgress(discovered=len(urls), processed=0)
    results: List[PageResult] = []
    async with ClientSession(
        timeout=ClientTimeout(total=config.timeout),
        headers={"User-Agent": config.user_agent},
        raise_for_status=False,
    ) as session:
        fetcher = Fetcher(session, config)

        async def _one(url: str) -> PageResult:
            try:
                normalize_url(url)
            except InvalidURL as exc:
                logger.debug("Skipping %s: %s", url, exc)
                return PageResult(url, 0, DIRECT_ACCESS, error="Invalid URL")
            return _to_result(url, await fetcher.fetch_once(url))

        for result in await asyncio.gather(*(_one(u) for u in urls)):
            progress.processed += 1
            results.append(result)
            await reporter.publish(result, progress)
    await reporter.complete()
    logger.info("Проверено URL: %d", len(results))
    return results
