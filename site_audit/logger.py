# === FILE: site_audit/logger.py ===
"""Logging for **SiteAudit**.

* Everything goes to *stderr* (and optionally a rotating file): stdout of
  ``site-audit crawl`` carries the NDJSON event stream and must stay clean.
* Records of one crawl are tagged with its origin through
  :class:`CrawlLogAdapter`, so parallel crawls in ``site-audit serve`` can
  be told apart::

      log = crawl_logger("https://example.com")
      log.info("wave %d", 3)   # -> "... | [https://example.com] wave 3"

* ``aiohttp.access`` / ``aiohttp.server`` are routed through the same
  handlers when the HTTP service is running.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Final, Iterable, MutableMapping, Tuple, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteAudit"
SERVER_LOGGERS: Final[Tuple[str, ...]] = ("aiohttp.access", "aiohttp.server")

_ROTATE_BYTES: Final[int] = 5 * 1024 * 1024
_ROTATE_BACKUPS: Final[int] = 3
# marks handlers installed here, so reconfiguring never touches foreign ones
_OWNED: Final[str] = "_site_audit_handler"

LevelT = Union[int, str]


def _build_handlers(log_file: str | Path | None, fmt: str) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(
                str(log_file),
                maxBytes=_ROTATE_BYTES,
                backupCount=_ROTATE_BACKUPS,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
    return handlers


def _install(lg: logging.Logger, handlers: Iterable[logging.Handler], level: LevelT) -> None:
    for old in [h for h in lg.handlers if getattr(h, _OWNED, False)]:
        lg.removeHandler(old)
        old.close()
    for handler in handlers:
        lg.addHandler(handler)
    lg.setLevel(level)
    lg.propagate = False


def init_logging(
    level: LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    *,
    server: bool = False,
) -> logging.Logger:
    """(Re)configure the project logger; ``server=True`` also takes over aiohttp's loggers.

    Calling it again replaces only the handlers it installed before.
    """
    handlers = _build_handlers(log_file, log_format)
    lg = logging.getLogger(LOGGER_NAME)
    _install(lg, handlers, level)
    if server:
        for name in SERVER_LOGGERS:
            _install(logging.getLogger(name), handlers, level)
    return lg


class CrawlLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with ``[origin]`` of the crawl it belongs to."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['origin']}] {msg}", kwargs


def crawl_logger(origin: str) -> CrawlLogAdapter:
    return CrawlLogAdapter(logging.getLogger(LOGGER_NAME), {"origin": origin})


logger: logging.Logger = init_logging()

__all__ = [
    "logger",
    "init_logging",
    "crawl_logger",
    "CrawlLogAdapter",
    "LOGGER_NAME",
    "DEFAULT_FORMAT",
    "SERVER_LOGGERS",
]
