# File: site_audit/errors.py
"""site_audit.errors: Иерархия исключений SiteAudit."""

from __future__ import annotations

__all__ = ["SiteAuditError", "InvalidInput", "InvalidURL", "SinkUnavailable"]


class SiteAuditError(Exception):
    """Базовое исключение проекта."""


class InvalidInput(SiteAuditError):
    """Запрос на обход отклонён до старта (нет или битый начальный URL)."""


class InvalidURL(SiteAuditError, ValueError):
    """Ссылку или src нельзя разобрать как URL."""

    def __init__(self, url: str, reason: str = "cannot be parsed") -> None:
        super().__init__(f"Invalid URL {url!r}: {reason}")
        self.url = url


class SinkUnavailable(SiteAuditError):
    """Потребитель потока событий отключился."""
