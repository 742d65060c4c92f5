#!/usr/bin/env python3
"""
Точка входа SiteAudit для командной строки.

Команды:
  crawl URL   Обойти сайт и вывести события обхода (NDJSON) в stdout
  check URL…  Проверить статусы фиксированного списка URL
  serve       Запустить HTTP-сервис с потоковой выдачей (SSE)
  config      Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Команда crawl опции:
  --alt-text          Искать изображения без alt
  --search TERM       Искать подстроку в теле страниц
  --json PATH         Сохранить JSON-отчёт в файл
  --max-depth N       Ограничить глубину обхода
  --crawl-timeout SEC Таймаут всего обхода (секунд)

Дополнительно:
  --version, -v       Показать версию SiteAudit

Пример:
  site-audit crawl https://example.com --alt-text --search "Contact Us" --json report.json
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

import click

from site_audit import __version__
from site_audit.config import CrawlerConfig, CrawlTarget, load_config
from site_audit.engine import start_check, start_crawl
from site_audit.errors import InvalidInput
from site_audit.logger import DEFAULT_FORMAT, init_logging
from site_audit.report.json_report import render_json
from site_audit.reporter import CallbackSink
from site_audit.server import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _echo_event(event: Dict[str, Any]) -> None:
    click.echo(json.dumps(event, ensure_ascii=False))


def _with_overrides(cfg: CrawlerConfig, **overrides: Any) -> CrawlerConfig:
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return cfg
    return CrawlerConfig(**{**cfg.model_dump(), **changes})


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteAudit, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteAudit CLI."""
    log_options = dict(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format,
    )
    init_logging(**log_options)
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg
    ctx.obj['log_options'] = log_options


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--alt-text', 'check_alt_text', is_flag=True, help='Искать изображения без alt')
@click.option('--search', '-s', 'search_term', default=None, help='Подстрока для поиска (с учётом регистра)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option('--max-depth', 'max_depth', type=click.IntRange(min=0), default=None, help='Максимальная глубина обхода')
@click.option('--crawl-timeout', 'crawl_timeout', type=float, default=None, help='Таймаут всего обхода (секунд)')
@click.pass_context
def crawl(ctx, url, check_alt_text, search_term, json_output, max_depth, crawl_timeout):
    """Обойти сайт начиная с URL и вывести события построчно в JSON."""
    try:
        cfg = _with_overrides(ctx.obj['config'], max_depth=max_depth, crawl_timeout=crawl_timeout)
    except Exception as e:
        print_error(f'Ошибка конфигурации: {e}')
    try:
        target = CrawlTarget.from_payload(
            {"url": url, "checkAltText": check_alt_text, "searchTerm": search_term}
        )
    except InvalidInput as e:
        print_error(f'Некорректный запрос: {e}')

    try:
        report = asyncio.run(start_crawl(target, cfg, CallbackSink(_echo_event)))
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if json_output:
        try:
            results = [r.to_dict() for r in report.results]
            saved = render_json(results, json_output, summary=report.summary())
            click.echo(f'JSON report: {saved}', err=True)
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')


@cli.command('check', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1, required=True)
@click.pass_context
def check(ctx, urls):
    """Проверить статусы списка URL без обхода."""
    cfg = ctx.obj['config']
    try:
        asyncio.run(start_check(list(urls), cfg, CallbackSink(_echo_event)))
    except Exception as e:
        print_error(f'Ошибка при проверке: {e}')


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default='127.0.0.1', show_default=True, help='Адрес для прослушивания')
@click.option('--port', default=8080, show_default=True, type=int, help='Порт')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервис (POST /api/scrape, POST /api/check-list)."""
    init_logging(**ctx.obj['log_options'], server=True)
    run_server(ctx.obj['config'], host=host, port=port)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
