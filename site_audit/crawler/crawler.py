# === FILE: site_audit/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import contextlib
import time
from collections import deque
from typing import Deque, List, Optional, Set, Tuple

from aiohttp import ClientSession, ClientTimeout

from site_audit.config import CrawlerConfig, CrawlTarget
from site_audit.crawler.analyzer import analyze_page
from site_audit.crawler.fetcher import Fetcher
from site_audit.crawler.models import (
    DIRECT_ACCESS,
    CrawlProgress,
    CrawlState,
    FetchSuccess,
    FrontierItem,
    PageResult,
    TransportFailure,
)
from site_audit.crawler.robots import RobotsPolicy
from site_audit.crawler.urls import is_in_scope, normalize_url, resolve_url, url_origin
from site_audit.errors import InvalidURL
from site_audit.logger import crawl_logger
from site_audit.reporter import ProgressReporter

__all__ = ("AsyncCrawler",)

_Processed = Tuple[PageResult, List[str]]


class AsyncCrawler:
    """Breadth-first crawler of one origin, driven wave by wave.

    The frontier, the visited set and the progress counters belong to the
    controlling coroutine (:meth:`crawl`). Workers only fetch and analyze and
    hand their discovered links back; all mutation happens between waves.
    """

    def __init__(
        self,
        config: CrawlerConfig,
        target: CrawlTarget,
        reporter: ProgressReporter,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        self.config = config
        self.target = target
        self.reporter = reporter
        self.cancel_event = cancel_event or asyncio.Event()
        self.logger = crawl_logger(url_origin(target.base_url))

        self.state = CrawlState.SEEDING
        self.frontier: Deque[FrontierItem] = deque()
        self.visited: Set[str] = set()
        self.progress = CrawlProgress()
        self.results: List[PageResult] = []
        self.waves = 0
        self.interrupted = False
        self._last_wave_ts = 0.0
        self.robots = RobotsPolicy.allow_all()
        self.session: Optional[ClientSession] = None
        self._fetcher: Optional[Fetcher] = None

    async def __aenter__(self) -> AsyncCrawler:
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent},
            raise_for_status=False,
        )
        self._fetcher = Fetcher(self.session, self.config)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    async def crawl(self) -> List[PageResult]:
        if self.session is None or self._fetcher is None:
            raise RuntimeError("Session not initialized; use 'async with AsyncCrawler(...)'")
        self.logger.info("Старт обхода: %s", self.target.base_url)
        start = time.monotonic()

        await self._seed()
        self.state = CrawlState.DRAINING
        delay = self.robots.crawl_delay(self.config.user_agent)
        while self.frontier and not self.cancelled:
            if self.waves:
                await self._wait_for_crawl_delay(delay)
                if self.cancelled:
                    break
            wave = self._next_wave()
            if not wave:
                continue
            self._last_wave_ts = time.monotonic()
            self.waves += 1
            processed = await asyncio.gather(*(self._process(item) for item in wave))
            for item, (result, links) in zip(wave, processed):
                self.progress.processed += 1
                for link in links:
                    self._accept(link, item)
                self.results.append(result)
                await self.reporter.publish(result, self.progress)
            await self.reporter.flush()

        self.interrupted = bool(self.frontier)
        if self.interrupted:
            self.logger.info("Обход отменён, в очереди осталось %d URL", len(self.frontier))
        self.state = CrawlState.COMPLETED
        await self.reporter.complete()

        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц за %.2f с, волн: %d",
            self.progress.processed, duration, self.waves,
        )
        return self.results

    async def _seed(self) -> None:
        seed = normalize_url(self.target.base_url)
        self.visited.add(seed)
        self.frontier.append(FrontierItem(seed, 0, None))
        self.progress = CrawlProgress(discovered=1, processed=0)
        assert self.session is not None
        self.robots = await RobotsPolicy.load(
            self.session,
            self.target.base_url,
            self.config.user_agent,
            timeout=self.config.robots_timeout,
        )
        if self.robots.absent:
            self.logger.debug("robots.txt absent for %s, everything allowed", seed)

    async def _wait_for_crawl_delay(self, crawl_delay: Optional[float]) -> None:
        """Keep waves at least Crawl-delay seconds apart; cancellation cuts the pause short."""
        if not crawl_delay:
            return
        wait = crawl_delay - (time.monotonic() - self._last_wave_ts)
        if wait <= 0:
            return
        self.logger.debug("Crawl-delay: waiting %.2f s before the next wave", wait)
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self.cancel_event.wait(), timeout=wait)

    def _next_wave(self) -> List[FrontierItem]:
        """Pop up to ``concurrency`` items of the front item's depth (FIFO)."""
        wave: List[FrontierItem] = []
        depth = self.frontier[0].depth
        while (
            self.frontier
            and len(wave) < self.config.concurrency
            and self.frontier[0].depth == depth
        ):
            item = self.frontier.popleft()
            if self.config.max_depth is not None and item.depth > self.config.max_depth:
                continue
            wave.append(item)
        return wave

    def _accept(self, link: str, parent: FrontierItem) -> None:
        """Single dedup point: a normalized URL enters the frontier at most once."""
        depth = parent.depth + 1
        if self.config.max_depth is not None and depth > self.config.max_depth:
            return
        if self.config.max_pages is not None and self.progress.discovered >= self.config.max_pages:
            return
        try:
            normalized = normalize_url(link)
        except InvalidURL:
            return
        if normalized in self.visited:
            return
        self.visited.add(normalized)
        self.frontier.append(FrontierItem(normalized, depth, parent.url))
        self.progress.discovered += 1

    async def _process(self, item: FrontierItem) -> _Processed:
        origin = item.referrer or DIRECT_ACCESS
        try:
            return await self._fetch_and_analyze(item, origin)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.exception("Unexpected error while processing %s", item.url)
            return PageResult(item.url, 0, origin, error=f"{exc.__class__.__name__}: {exc}"), []

    async def _fetch_and_analyze(self, item: FrontierItem, origin: str) -> _Processed:
        assert self._fetcher is not None
        outcome = await self._fetcher.fetch(item.url)
        if isinstance(outcome, TransportFailure):
            return PageResult(item.url, 0, origin, error=outcome.reason), []

        assert isinstance(outcome, FetchSuccess)
        if outcome.is_redirect:
            return PageResult(
                item.url, outcome.status, origin, redirect_url=self._redirect_target(outcome)
            ), []
        if outcome.status != 200 or outcome.body is None or not outcome.is_html:
            return PageResult(item.url, outcome.status, origin), []

        analysis = analyze_page(
            outcome.body,
            item.url,
            check_alt_text=self.target.check_alt_text,
            search_term=self.target.search_term,
        )
        links = [
            link for link in analysis.links
            if is_in_scope(link, self.target, self.robots, self.config)
        ]
        result = PageResult(
            item.url,
            outcome.status,
            origin,
            images_without_alt=analysis.images_without_alt or None,
            contains_search_term=analysis.contains_search_term,
        )
        return result, links

    def _redirect_target(self, outcome: FetchSuccess) -> Optional[str]:
        location = outcome.location
        if not location:
            return None
        try:
            return resolve_url(location, outcome.url)
        except InvalidURL:
            return location
