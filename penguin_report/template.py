"""The penguin report template, rendered in-process.

The Quarto document in ``templates/report_template.qmd`` calls into this
module, so both engines clamp, query and lay out rows the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from .datasource import DataSource, ReportTable
from .formatting import fmt_header, format_rows

REPORT_TITLE = "Palmer penguins"
HTML_TEMPLATE = "report.html.j2"

_env: Optional[Environment] = None


@dataclass(frozen=True)
class ReportData:
    title: str
    requested_rows: int
    n_row: int
    total_rows: int
    table: ReportTable
    generated_at: str

    @property
    def headers(self) -> List[str]:
        return [fmt_header(column) for column in self.table.columns]

    @property
    def cells(self) -> List[List[str]]:
        return format_rows(self.table.rows)


def clamp_row_count(n_row: int, total_rows: int) -> int:
    return max(0, min(int(n_row), int(total_rows)))


def build_report(source: DataSource, n_row: int, total_rows: int) -> ReportData:
    limit = clamp_row_count(n_row, total_rows)
    table = source.fetch_rows(limit)
    if len(table.rows) > limit:
        table = ReportTable(columns=table.columns, rows=table.rows[:limit])
    return ReportData(
        title=REPORT_TITLE,
        requested_rows=int(n_row),
        n_row=limit,
        total_rows=total_rows,
        table=table,
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
    )


def get_environment() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=PackageLoader("penguin_report", "templates"),
            autoescape=select_autoescape(["html", "j2"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def render_html(report: ReportData) -> str:
    return get_environment().get_template(HTML_TEMPLATE).render(report=report)


def _markdown_cell(value: str) -> str:
    return value.replace("\\", "\\\\").replace("|", "\\|").replace("\n", " ")


def table_markdown(report: ReportData) -> str:
    """The table as a pipe table, which Quarto can lay out for both HTML and PDF."""
    headers = report.headers or [""]
    lines = [
        "| " + " | ".join(_markdown_cell(h) for h in headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    for row in report.cells:
        lines.append("| " + " | ".join(_markdown_cell(cell) for cell in row) + " |")
    return "\n".join(lines) + "\n"
