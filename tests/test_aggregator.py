# File: tests/test_aggregator.py
import json

from site_audit.aggregator import aggregate_results, status_class
from site_audit.crawler.models import CrawlProgress, PageResult


def test_status_classes():
    assert status_class(PageResult("u", 200)) == "2xx"
    assert status_class(PageResult("u", 301, redirect_url="v")) == "3xx"
    assert status_class(PageResult("u", 0, error="timed out")) == "error"


def test_report_summary_and_json():
    results = [
        PageResult("https://ex.com/", 200, images_without_alt=["https://ex.com/a.png"], contains_search_term=True),
        PageResult("https://ex.com/gone", 404, "https://ex.com/"),
        PageResult("https://ex.com/down", 503, "https://ex.com/"),
        PageResult("https://ex.com/hang", 0, "https://ex.com/", error="timed out"),
    ]
    progress = CrawlProgress(4, 4)
    report = aggregate_results(results, progress, cancelled=False)
    progress.processed = 100

    summary = report.summary()
    assert summary["urlsProcessed"] == 4
    assert summary["byStatus"] == {"2xx": 1, "4xx": 1, "5xx": 1, "error": 1}
    assert summary["pagesWithImagesWithoutAlt"] == 1
    assert summary["pagesContainingSearchTerm"] == 1

    data = json.loads(report.json(pretty=True))
    assert data["results"][3] == {
        "url": "https://ex.com/hang",
        "statusCode": 0,
        "origin": "https://ex.com/",
        "error": "timed out",
    }
