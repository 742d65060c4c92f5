# site_audit/crawler/fetcher.py
"""
Fetcher module: a single HTTP GET with fixed identity, captured redirects,
timeout and a bounded fixed-delay retry on 5xx responses.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiohttp import ClientError, ClientSession

from site_audit.config import CrawlerConfig
from site_audit.crawler.models import FetchOutcome, FetchSuccess, TransportFailure

__all__ = ("Fetcher",)

logger = logging.getLogger("SiteAudit")


class Fetcher:
    """Handles HTTP fetching with a concurrency cap, retries and timeout."""

    def __init__(
        self,
        session: ClientSession,
        config: CrawlerConfig,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> None:
        self.session = session
        self.config = config
        self._semaphore = semaphore or asyncio.Semaphore(config.concurrency)

    async def fetch(self, url: str) -> FetchOutcome:
        """
        GET *url* without following redirects.

        Statuses in [200, 600) come back as FetchSuccess; 5xx is retried up to
        ``retry_attempts`` times in total and the last response is returned.
        Network errors and timeouts come back as TransportFailure, not retried.
        """
        attempts = self.config.retry_attempts
        for attempt in range(1, attempts + 1):
            outcome = await self._attempt(url, attempt)
            if isinstance(outcome, TransportFailure):
                logger.warning("Failed %s: %s", url, outcome.reason)
                return outcome
            if 500 <= outcome.status < 600 and attempt < attempts:
                logger.debug(
                    "Retry %d/%d for %s (HTTP %d) after %.2f s",
                    attempt, attempts - 1, url, outcome.status, self.config.retry_delay,
                )
                await asyncio.sleep(self.config.retry_delay)
                continue
            return outcome
        # unreachable: the last attempt always returns
        raise AssertionError("retry loop exited without an outcome")

    async def fetch_once(self, url: str) -> FetchOutcome:
        """Single GET, no retry; 5xx is returned as is."""
        outcome = await self._attempt(url, 1)
        if isinstance(outcome, TransportFailure):
            logger.warning("Failed %s: %s", url, outcome.reason)
        return outcome

    async def _attempt(self, url: str, attempt: int) -> FetchOutcome:
        try:
            async with self._semaphore:
                async with self.session.get(url, allow_redirects=False) as resp:
                    status = resp.status
                    headers = {k.lower(): v for k, v in resp.headers.items()}
                    ctype = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    body: Optional[str] = None
                    if status == 200 and (not ctype or "html" in ctype):
                        body = await resp.text(errors="replace")
        except asyncio.TimeoutError:
            return TransportFailure(url, f"timed out after {self.config.timeout:g} s", attempt)
        except ClientError as exc:
            reason = f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__
            return TransportFailure(url, reason, attempt)
        return FetchSuccess(
            url=url,
            status=status,
            headers=headers,
            body=body,
            content_type=ctype,
            attempts=attempt,
        )
