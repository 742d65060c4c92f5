"""site_audit.report: сохранение результатов обхода в файлы."""

from site_audit.report.json_report import render_json

__all__ = ["render_json"]
