"""
Модуль для загрузки и валидации конфигурации SiteAudit.
Используется Pydantic для описания схемы и проверки данных.

Два объекта:
  * CrawlerConfig — настройки движка (идентичность, лимиты, ретраи),
    читается из YAML/JSON;
  * CrawlTarget   — неизменяемый запрос на один обход (URL, alt, поиск).
"""
from __future__ import annotations

import json
import os
import errno
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from site_audit.errors import InvalidInput

__all__ = [
    "CrawlerConfig",
    "CrawlTarget",
    "load_config",
    "MANDATORY_EXCLUDED_PREFIXES",
    "MANDATORY_EXCLUDED_EXTENSIONS",
]

MANDATORY_EXCLUDED_PREFIXES: Tuple[str, ...] = ("/inventory",)
MANDATORY_EXCLUDED_EXTENSIONS: Tuple[str, ...] = (".php", ".css", ".js")

_STATIC_EXTENSIONS: Tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".zip", ".rar", ".7z",
    ".mp3", ".mp4", ".webm", ".woff", ".woff2", ".ttf", ".eot", ".map",
)


class CrawlerConfig(BaseModel):
    """Настройки краулера, общие для всех запусков."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field("SiteAuditBot/1.0", min_length=1, description="Заголовок User-Agent.")
    concurrency: int = Field(5, ge=1, le=64, description="Размер волны и число одновременных запросов.")
    max_depth: Optional[int] = Field(None, ge=0, description="Максимальная глубина обхода (None — без лимита).")
    max_pages: Optional[int] = Field(None, ge=1, description="Жесткий лимит по числу найденных страниц.")
    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    robots_timeout: float = Field(5.0, gt=0, description="Таймаут загрузки robots.txt (секунд).")
    retry_attempts: int = Field(3, ge=1, description="Всего попыток при ответе 5xx.")
    retry_delay: float = Field(2.0, ge=0, description="Пауза между попытками (секунд).")
    flush_batch_size: Optional[int] = Field(
        None, ge=1, description="Сбрасывать события каждые N результатов (None — раз в волну)."
    )
    excluded_prefixes: Tuple[str, ...] = Field(
        MANDATORY_EXCLUDED_PREFIXES, description="Префиксы путей, которые не обходим."
    )
    excluded_extensions: Tuple[str, ...] = Field(
        MANDATORY_EXCLUDED_EXTENSIONS + _STATIC_EXTENSIONS,
        description="Расширения файлов, которые не обходим.",
    )
    cancel_on_disconnect: bool = Field(
        True, description="Останавливать обход, если потребитель отключился."
    )
    crawl_timeout: Optional[float] = Field(None, gt=0, description="Таймаут всего обхода (секунд).")

    @field_validator("excluded_prefixes", mode="after")
    def _keep_mandatory_prefixes(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(MANDATORY_EXCLUDED_PREFIXES + tuple(v)))

    @field_validator("excluded_extensions", mode="after")
    def _keep_mandatory_extensions(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        normalized = tuple(e.lower() if e.startswith(".") else f".{e.lower()}" for e in v)
        return tuple(dict.fromkeys(MANDATORY_EXCLUDED_EXTENSIONS + normalized))


class CrawlTarget(BaseModel):
    """Запрос на один обход. Создаётся один раз и не меняется."""
    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., description="Начальный URL, задаёт origin обхода.")
    check_alt_text: bool = Field(False, description="Искать <img> без alt.")
    search_term: Optional[str] = Field(None, description="Подстрока для поиска в теле страниц.")

    @field_validator("base_url", mode="before")
    def _check_url(cls, v: Any) -> Any:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("URL is required")
        v = v.strip()
        try:
            parts = urlsplit(v)
        except ValueError as exc:
            raise ValueError(f"malformed URL: {exc}") from exc
        if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
            raise ValueError("URL must be an absolute http(s) URL")
        return v

    @field_validator("search_term", mode="before")
    def _empty_term_is_none(cls, v: Any) -> Any:
        return v or None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> CrawlTarget:
        """Строит цель из тела запроса ``{url, checkAltText, searchTerm}``.

        Бросает InvalidInput, если ``url`` отсутствует или некорректен.
        """
        if not isinstance(payload, Mapping) or not payload.get("url"):
            raise InvalidInput("URL is required")
        try:
            return cls(
                base_url=payload["url"],
                check_alt_text=payload.get("checkAltText") or False,
                search_term=payload.get("searchTerm"),
            )
        except ValidationError as exc:
            message = exc.errors()[0].get("msg", str(exc))
            raise InvalidInput(message) from exc


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    Без пути берёт configs/default.yaml, а если его нет — значения по умолчанию.
    Явно указанный, но отсутствующий файл — FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.is_file():
            return CrawlerConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return CrawlerConfig(**data)
