# File: site_audit/aggregator.py
"""site_audit.aggregator: итоговый отчёт об обходе."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from site_audit.crawler.models import CrawlProgress, PageResult


def status_class(result: PageResult) -> str:
    """'2xx' … '5xx' по коду ответа, 'error' для сетевых ошибок."""
    if result.error is not None and result.status_code == 0:
        return "error"
    return f"{result.status_code // 100}xx"


@dataclass(slots=True)
class CrawlReport:
    """Результаты обхода: страницы, финальные счётчики и флаг отмены."""

    results: List[PageResult] = field(default_factory=list)
    progress: CrawlProgress = field(default_factory=CrawlProgress)
    cancelled: bool = False

    def summary(self) -> Dict[str, Any]:
        by_class: Dict[str, int] = {}
        for r in self.results:
            key = status_class(r)
            by_class[key] = by_class.get(key, 0) + 1
        return {
            "urlsFound": self.progress.discovered,
            "urlsProcessed": self.progress.processed,
            "byStatus": dict(sorted(by_class.items())),
            "pagesWithImagesWithoutAlt": sum(1 for r in self.results if r.images_without_alt),
            "pagesContainingSearchTerm": sum(1 for r in self.results if r.contains_search_term),
            "cancelled": self.cancelled,
        }

    def json(self, *, pretty: bool = False) -> str:
        """JSON-представление отчёта."""
        output = {
            "summary": self.summary(),
            "results": [r.to_dict() for r in self.results],
        }
        return json.dumps(output, ensure_ascii=False, indent=2 if pretty else None)


def aggregate_results(
    results: List[PageResult], progress: CrawlProgress, cancelled: bool = False
) -> CrawlReport:
    """Собирает CrawlReport из результатов движка."""
    return CrawlReport(results=list(results), progress=progress.snapshot(), cancelled=cancelled)
