# File: site_audit/engine.py
"""site_audit.engine: оркестрация запуска обхода и проверки списка URL."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from site_audit.aggregator import CrawlReport, aggregate_results
from site_audit.checklist import check_urls
from site_audit.config import CrawlerConfig, CrawlTarget
from site_audit.crawler.crawler import AsyncCrawler
from site_audit.crawler.models import CrawlProgress
from site_audit.logger import logger
from site_audit.reporter import EventSink, ProgressReporter

__all__ = ["start_crawl", "start_check"]


async def start_crawl(
    target: CrawlTarget,
    config: CrawlerConfig,
    sink: EventSink,
    cancel_event: Optional[asyncio.Event] = None,
) -> CrawlReport:
    """
    Запускает обход и возвращает итоговый CrawlReport.

    События идут в *sink* по мере продвижения. ``config.crawl_timeout``
    и отключение потребителя (при ``cancel_on_disconnect``) выставляют
    *cancel_event*: обход дорабатывает текущую волну и завершается.
    """
    cancel = cancel_event or asyncio.Event()
    reporter = ProgressReporter(
        sink,
        batch_size=config.flush_batch_size,
        on_detach=cancel.set if config.cancel_on_disconnect else None,
    )
    deadline = None
    if config.crawl_timeout is not None:
        deadline = asyncio.get_running_loop().call_later(config.crawl_timeout, cancel.set)
    try:
        async with AsyncCrawler(config, target, reporter, cancel_event=cancel) as crawler:
            results = await crawler.crawl()
            progress = crawler.progress
            interrupted = crawler.interrupted
    except Exception as exc:
        logger.error("Crawl of %s failed: %s", target.base_url, exc)
        await reporter.fail(str(exc) or "An error occurred while crawling")
        raise
    finally:
        if deadline is not None:
            deadline.cancel()
    return aggregate_results(results, progress, cancelled=interrupted)


async def start_check(urls: Sequence[str], config: CrawlerConfig, sink: EventSink) -> CrawlReport:
    """Проверяет список URL без обхода."""
    reporter = ProgressReporter(sink, batch_size=config.flush_batch_size)
    results = await check_urls(urls, config, reporter)
    return aggregate_results(results, CrawlProgress(len(urls), len(results)))

