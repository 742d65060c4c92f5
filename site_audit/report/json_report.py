# site_audit/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteAudit.

Сериализация результатов обхода (список dict в формате потока) в файл.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional


def render_json(
    results: List[Dict[str, Any]],
    output_path: Path | str,
    summary: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Сохраняет результаты обхода в формате JSON по указанному пути.

    :param results: список результатов (``PageResult.to_dict()``)
    :param output_path: путь к JSON-файлу
    :param summary: сводка ``CrawlReport.summary()``; без неё пишется просто список
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_audit.report.json_report import render_json
    report_path = render_json(sink.results, 'reports/crawl.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data: Any = results if summary is None else {"summary": summary, "results": results}

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return output
