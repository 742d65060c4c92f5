"""
Data models for the SiteAudit crawl engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

DIRECT_ACCESS = "Direct Access"


class CrawlState(str, Enum):
    """Lifecycle of one crawl."""

    SEEDING = "seeding"
    DRAINING = "draining"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A unit of work: URL to fetch, its BFS depth and the page that linked to it."""

    url: str
    depth: int
    referrer: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FetchSuccess:
    """An HTTP response in the accepted status range; the body is read for 200 only."""

    url: str
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    content_type: str = ""
    attempts: int = 1

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def is_html(self) -> bool:
        return not self.content_type or "html" in self.content_type


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """DNS, connection or timeout error: no HTTP status was received."""

    url: str
    reason: str
    attempts: int = 1


FetchOutcome = Union[FetchSuccess, TransportFailure]


@dataclass(slots=True)
class PageAnalysis:
    """What the analyzer found in one HTML page."""

    links: List[str] = field(default_factory=list)
    images_without_alt: List[str] = field(default_factory=list)
    contains_search_term: Optional[bool] = None


@dataclass(frozen=True, slots=True)
class PageResult:
    """Outcome of one processed URL, as reported to the consumer."""

    url: str
    status_code: int
    origin: str = DIRECT_ACCESS
    images_without_alt: Optional[List[str]] = None
    contains_search_term: Optional[bool] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, unset optional fields omitted."""
        data: Dict[str, Any] = {
            "url": self.url,
            "statusCode": self.status_code,
            "origin": self.origin,
        }
        if self.images_without_alt is not None:
            data["imagesWithoutAlt"] = list(self.images_without_alt)
        if self.contains_search_term is not None:
            data["containsSearchTerm"] = self.contains_search_term
        if self.redirect_url is not None:
            data["redirectUrl"] = self.redirect_url
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class CrawlProgress:
    """Monotonic counters; mutated only by the crawl controller."""

    discovered: int = 0
    processed: int = 0

    def snapshot(self) -> CrawlProgress:
        return CrawlProgress(self.discovered, self.processed)

    def to_dict(self) -> Dict[str, int]:
        return {"urlsFound": self.discovered, "urlsProcessed": self.processed}
