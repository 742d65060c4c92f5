"""
URL normalization and crawl-scope utilities for SiteAudit.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional
from urllib.parse import SplitResult, urljoin, urlsplit, urlunsplit

from site_audit.errors import InvalidURL

if TYPE_CHECKING:
    from site_audit.config import CrawlerConfig, CrawlTarget
    from site_audit.crawler.robots import RobotsPolicy

__all__ = ("resolve_url", "normalize_url", "url_origin", "is_in_scope")

_SKIP_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def resolve_url(href: str, base: Optional[str] = None) -> str:
    """Resolve *href* against *base*; fragment and query are kept.

    Raises InvalidURL for empty or unparseable input.
    """
    raw = (href or "").strip()
    if not raw:
        raise InvalidURL(href, "empty")
    try:
        absolute = urljoin(base, raw) if base else raw
        # unbalanced IPv6 brackets and non-numeric ports raise here
        _ = urlsplit(absolute).port
    except ValueError as exc:
        raise InvalidURL(raw, str(exc)) from exc
    return absolute


def _netloc(url: str, scheme: str, parts: SplitResult) -> str:
    """Lowercased netloc without the scheme's default port."""
    netloc = parts.netloc.lower()
    try:
        port = parts.port
    except ValueError as exc:
        raise InvalidURL(url, str(exc)) from exc
    if port is not None and port == _DEFAULT_PORTS.get(scheme):
        netloc = netloc.rsplit(":", 1)[0]
    return netloc


def normalize_url(url: str, base: Optional[str] = None) -> str:
    """
    Canonical form used for dedup and scope checks: absolute, lowercase
    scheme and host, default port dropped, fragment and query stripped,
    empty path -> "/".
    """
    absolute = resolve_url(url, base)
    parts = urlsplit(absolute)
    if not parts.scheme or not parts.netloc:
        raise InvalidURL(url, "not an absolute URL")
    scheme = parts.scheme.lower()
    return urlunsplit((scheme, _netloc(url, scheme, parts), parts.path or "/", "", ""))


def url_origin(url: str) -> str:
    """scheme://host[:port] of an absolute URL; the default port is omitted."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise InvalidURL(url, "no origin")
    scheme = parts.scheme.lower()
    return f"{scheme}://{_netloc(url, scheme, parts)}"


def is_in_scope(
    candidate: str,
    target: CrawlTarget,
    robots: Optional[RobotsPolicy],
    config: CrawlerConfig,
) -> bool:
    """Whether *candidate* (an absolute, not yet normalized URL) may enter the frontier."""
    if "#" in candidate or candidate.lower().startswith(_SKIP_SCHEMES):
        return False
    try:
        parts = urlsplit(candidate)
        if parts.query or url_origin(candidate) != url_origin(target.base_url):
            return False
        normalized = normalize_url(candidate)
    except ValueError:
        # InvalidURL is a ValueError as well
        return False

    path = parts.path or "/"
    if any(path.startswith(prefix) for prefix in config.excluded_prefixes):
        return False
    if path.lower().endswith(config.excluded_extensions):
        return False
    if robots is not None and not robots.is_allowed(config.user_agent, normalized):
        return False
    return True
