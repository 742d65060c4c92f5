# File: site_audit/reporter.py
"""site_audit.reporter: буферизация результатов и передача событий потребителю.

События — JSON-совместимые dict одного из трёх видов::

    {"urlStatus": {...}, "progress": {"urlsFound": N, "urlsProcessed": M}}
    {"status": "Completed"}
    {"error": "..."}

Потребитель (sink) может отвалиться посреди обхода: тогда репортёр
отсоединяется, дальнейшие сбросы ничего не делают, а обход продолжается.
"""
from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from aiohttp import web

from site_audit.crawler.models import CrawlProgress, PageResult
from site_audit.errors import SinkUnavailable
from site_audit.logger import logger

__all__ = [
    "Event",
    "EventSink",
    "QueueSink",
    "CallbackSink",
    "CollectingSink",
    "SSESink",
    "ProgressReporter",
    "result_event",
    "COMPLETED_EVENT",
]

Event = Dict[str, Any]

COMPLETED_EVENT: Event = {"status": "Completed"}


def result_event(result: PageResult, progress: CrawlProgress) -> Event:
    """Событие о странице с текущим снимком счётчиков."""
    return {"urlStatus": result.to_dict(), "progress": progress.to_dict()}


class EventSink(Protocol):
    """Получатель событий. При отключении бросает SinkUnavailable."""

    async def send(self, event: Event) -> None: ...


class QueueSink:
    """Канал asyncio.Queue: обход пишет, отдельная задача-потребитель читает.

    После ``close()`` в очередь кладётся ``None`` — маркер конца потока,
    а последующие ``send`` бросают SinkUnavailable.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[Optional[Event]] = asyncio.Queue(maxsize)
        self.closed = False

    async def send(self, event: Event) -> None:
        if self.closed:
            raise SinkUnavailable("queue sink is closed")
        await self.queue.put(event)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)


class CallbackSink:
    """Передаёт каждое событие функции (обычной или корутине)."""

    def __init__(self, callback: Callable[[Event], Union[None, Awaitable[None]]]) -> None:
        self._callback = callback

    async def send(self, event: Event) -> None:
        res = self._callback(event)
        if inspect.isawaitable(res):
            await res


class CollectingSink:
    """Складывает события в список (CLI --json и тесты)."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    async def send(self, event: Event) -> None:
        self.events.append(event)

    @property
    def results(self) -> List[Dict[str, Any]]:
        return [e["urlStatus"] for e in self.events if "urlStatus" in e]


class SSESink:
    """Пишет события в aiohttp StreamResponse кадрами ``data: {...}\\n\\n``."""

    def __init__(self, response: web.StreamResponse) -> None:
        self.response = response

    async def send(self, event: Event) -> None:
        frame = f"data: {json.dumps(event, ensure_ascii=False)}\n\n".encode("utf-8")
        try:
            await self.response.write(frame)
        except (ConnectionError, RuntimeError) as exc:
            # RuntimeError: aiohttp refuses writes after the payload is closed
            raise SinkUnavailable(f"stream closed: {exc}") from exc


class ProgressReporter:
    """Буфер результатов перед потребителем.

    Сбрасывает буфер по ``flush()`` (раз в волну) или при достижении
    ``batch_size``. Ни один результат не теряется и не дублируется, пока
    sink доступен; после отключения sink события отбрасываются и считаются
    в ``dropped``.
    """

    def __init__(
        self,
        sink: EventSink,
        batch_size: Optional[int] = None,
        on_detach: Optional[Callable[[], None]] = None,
    ) -> None:
        self.sink = sink
        self.batch_size = batch_size
        self._on_detach = on_detach
        self._buffer: List[Event] = []
        self.detached = False
        self.completed = False
        self.sent = 0
        self.dropped = 0
        self.last_progress = CrawlProgress()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def publish(self, result: PageResult, progress: CrawlProgress) -> None:
        self.last_progress = progress.snapshot()
        self._buffer.append(result_event(result, self.last_progress))
        if self.batch_size is not None and len(self._buffer) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        events, self._buffer = self._buffer, []
        if self.detached:
            self.dropped += len(events)
            return
        for i, event in enumerate(events):
            if not await self._send(event):
                self.dropped += len(events) - i
                return

    async def complete(self) -> None:
        """Сбрасывает остаток и один раз отправляет Completed."""
        await self.flush()
        if self.completed:
            return
        self.completed = True
        await self._send(dict(COMPLETED_EVENT))

    async def fail(self, message: str) -> None:
        await self.flush()
        await self._send({"error": message})

    async def _send(self, event: Event) -> bool:
        if self.detached:
            return False
        try:
            await self.sink.send(event)
        except (SinkUnavailable, ConnectionError) as exc:
            self._detach(exc)
            return False
        self.sent += 1
        return True

    def _detach(self, exc: Exception) -> None:
        self.detached = True
        logger.info("Event consumer went away (%s); results are no longer streamed", exc)
        if self._on_detach is not None:
            self._on_detach()
