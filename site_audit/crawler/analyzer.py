"""
Page analysis for SiteAudit: outbound links, images without alt text and
search-term containment.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.crawler.models import PageAnalysis
from site_audit.crawler.urls import resolve_url
from site_audit.errors import InvalidURL

__all__ = ("analyze_page", "extract_links", "images_without_alt")

logger = logging.getLogger("SiteAudit")

_SKIP_SCHEMES = ("mailto:", "javascript:", "tel:")


def extract_links(soup: BeautifulSoup, page_url: str) -> List[str]:
    """Every ``<a href>`` resolved against *page_url*, in document order."""
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href = tag.get("href")
        if not isinstance(href, str):
            continue
        raw = href.strip()
        if not raw or raw.lower().startswith(_SKIP_SCHEMES):
            continue
        try:
            links.append(resolve_url(raw, page_url))
        except InvalidURL as exc:
            logger.debug("Skipping link on %s: %s", page_url, exc)
    return links


def images_without_alt(soup: BeautifulSoup, page_url: str) -> List[str]:
    """Absolute ``src`` of each ``<img>`` whose alt is missing or blank."""
    found: List[str] = []
    for img in soup.find_all("img"):
        if not isinstance(img, Tag):
            continue
        alt = img.get("alt")
        if isinstance(alt, str) and alt.strip():
            continue
        src = img.get("src")
        if not isinstance(src, str) or not src.strip():
            continue
        try:
            found.append(resolve_url(src, page_url))
        except InvalidURL as exc:
            logger.debug("Invalid image URL on %s: %s", page_url, exc)
    return found


def analyze_page(
    body: str,
    page_url: str,
    check_alt_text: bool = False,
    search_term: Optional[str] = None,
) -> PageAnalysis:
    """Analyze a fetched HTML body.

    ``contains_search_term`` is a plain case-sensitive substring test on the
    raw body; it stays None when no term is configured.
    """
    soup = BeautifulSoup(body, "html.parser")
    analysis = PageAnalysis(links=extract_links(soup, page_url))
    if check_alt_text:
        analysis.images_without_alt = images_without_alt(soup, page_url)
    if search_term:
        analysis.contains_search_term = search_term in body
    return analysis
