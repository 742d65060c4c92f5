# File: tests/test_reporter.py
import pytest

from site_audit.crawler.models import CrawlProgress, PageResult
from site_audit.errors import SinkUnavailable
from site_audit.reporter import (
    CallbackSink,
    CollectingSink,
    ProgressReporter,
    QueueSink,
)


def page(n: int) -> PageResult:
    return PageResult(f"https://ex.com/{n}", 200, "Direct Access")


@pytest.mark.asyncio()
async def test_events_are_buffered_until_flush():
    sink = CollectingSink()
    reporter = ProgressReporter(sink)
    await reporter.publish(page(1), CrawlProgress(3, 1))
    await reporter.publish(page(2), CrawlProgress(3, 2))
    assert sink.events == []
    assert reporter.pending == 2

    await reporter.flush()
    assert [e["urlStatus"]["url"] for e in sink.events] == ["https://ex.com/1", "https://ex.com/2"]
    assert sink.events[1]["progress"] == {"urlsFound": 3, "urlsProcessed": 2}
    assert reporter.pending == 0


@pytest.mark.asyncio()
async def test_progress_snapshot_is_not_aliased():
    sink = CollectingSink()
    reporter = ProgressReporter(sink)
    progress = CrawlProgress(1, 1)
    await reporter.publish(page(1), progress)
    progress.processed = 99
    await reporter.flush()
    assert sink.events[0]["progress"]["urlsProcessed"] == 1


@pytest.mark.asyncio()
async def test_batch_size_flushes_automatically():
    sink = CollectingSink()
    reporter = ProgressReporter(sink, batch_size=2)
    for n in range(3):
        await reporter.publish(page(n), CrawlProgress(3, n + 1))
    assert len(sink.events) == 2
    await reporter.complete()
    assert len(sink.results) == 3
    assert sink.events[-1] == {"status": "Completed"}


@pytest.mark.asyncio()
async def test_completed_emitted_once():
    sink = CollectingSink()
    reporter = ProgressReporter(sink)
    await reporter.complete()
    await reporter.complete()
    assert sink.events == [{"status": "Completed"}]


@pytest.mark.asyncio()
async def test_fail_sends_error_event():
    sink = CollectingSink()
    reporter = ProgressReporter(sink)
    await reporter.fail("boom")
    assert sink.events == [{"error": "boom"}]


@pytest.mark.asyncio()
async def test_unavailable_sink_detaches_without_raising(flaky_sink):
    sink = flaky_sink(1)
    detached = []
    reporter = ProgressReporter(sink, on_detach=lambda: detached.append(True))
    for n in range(3):
        await reporter.publish(page(n), CrawlProgress(3, n + 1))
    await reporter.flush()

    assert reporter.detached
    assert detached == [True]
    assert len(sink.events) == 1
    assert reporter.dropped == 2

    attempts = sink.attempts
    await reporter.publish(page(4), CrawlProgress(4, 4))
    await reporter.complete()
    assert sink.attempts == attempts
    assert reporter.dropped == 3
    assert reporter.last_progress == CrawlProgress(4, 4)


@pytest.mark.asyncio()
async def test_broken_pipe_counts_as_disconnect():
    def broken(_event):
        raise BrokenPipeError("stdout closed")

    reporter = ProgressReporter(CallbackSink(broken))
    await reporter.publish(page(1), CrawlProgress(1, 1))
    await reporter.flush()
    assert reporter.detached


@pytest.mark.asyncio()
async def test_queue_sink_channel():
    sink = QueueSink()
    reporter = ProgressReporter(sink)
    await reporter.publish(page(1), CrawlProgress(1, 1))
    await reporter.complete()
    sink.close()

    received = []
    while (event := await sink.queue.get()) is not None:
        received.append(event)
    assert received[0]["urlStatus"]["statusCode"] == 200
    assert received[-1] == {"status": "Completed"}

    with pytest.raises(SinkUnavailable):
        await sink.send({"status": "Completed"})


@pytest.mark.asyncio()
async def test_async_callback_sink():
    seen = []

    async def consume(event):
        seen.append(event)

    reporter = ProgressReporter(CallbackSink(consume))
    await reporter.complete()
    assert seen == [{"status": "Completed"}]
