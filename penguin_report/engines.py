"""Rendering engines that turn the report template into an output file."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Any, Dict, List, Optional, Protocol

from .config import Settings
from .datasource import BigQueryDataSource, DataSource, DataSourceError
from .template import build_report, render_html

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = {
    "html": "text/html; charset=utf-8",
    "pdf": "application/pdf",
}
STDERR_TAIL_CHARS = 2000


class RenderError(RuntimeError):
    """Raised when the rendering engine fails to produce a document."""


class RenderTimeout(RenderError):
    """Raised when a render exceeds its time budget."""


class DependencyError(RenderError):
    """Raised when a required runtime dependency is missing."""


class RenderEngine(Protocol):
    name: str

    def render(
        self,
        template: str,
        output_path: str,
        params: Dict[str, Any],
        output_format: str = "html",
    ) -> None:
        ...


class QuartoEngine:
    """Runs ``quarto render`` as a child process.

    The template reads its data source settings from the environment, which
    the child inherits.
    """

    name = "quarto"

    def __init__(self, quarto_bin: str = "quarto", timeout_ms: Optional[int] = None) -> None:
        self.quarto_bin = quarto_bin
        self.timeout_ms = timeout_ms

    def build_command(
        self,
        template: str,
        output_path: str,
        params: Dict[str, Any],
        output_format: str = "html",
    ) -> List[str]:
        command = [
            self.quarto_bin,
            "render",
            template,
            "--to",
            output_format,
            "--output",
            os.path.basename(output_path),
            "--output-dir",
            os.path.dirname(os.path.abspath(output_path)),
        ]
        for key, value in params.items():
            command.extend(["-P", f"{key}:{value}"])
        return command

    def render(
        self,
        template: str,
        output_path: str,
        params: Dict[str, Any],
        output_format: str = "html",
    ) -> None:
        command = self.build_command(template, output_path, params, output_format)
        timeout = self.timeout_ms / 1000.0 if self.timeout_ms else None
        logger.debug("Running %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise DependencyError(
                f"Quarto executable {self.quarto_bin!r} not found. Install the Quarto CLI "
                "or set PENGUIN_REPORT_QUARTO_BIN."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise RenderTimeout(f"quarto render exceeded {timeout:.0f}s") from exc

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()[-STDERR_TAIL_CHARS:]
            raise RenderError(f"quarto render exited with status {completed.returncode}: {stderr}")


class BuiltinEngine:
    """Executes the report template in-process."""

    name = "builtin"

    def __init__(self, source: DataSource, total_rows: int) -> None:
        self.source = source
        self.total_rows = total_rows

    def render(
        self,
        template: str,
        output_path: str,
        params: Dict[str, Any],
        output_format: str = "html",
    ) -> None:
        try:
            report = build_report(self.source, int(params["n_row"]), self.total_rows)
        except DataSourceError as exc:
            raise RenderError(str(exc)) from exc

        if output_format == "pdf":
            from .pdf import render_pdf

            body = render_pdf(report)
        elif output_format == "html":
            body = render_html(report).encode("utf-8")
        else:
            raise RenderError(f"Unsupported output format: {output_format!r}")

        with open(output_path, "wb") as handle:
            handle.write(body)


def make_engine(settings: Settings, source: Optional[DataSource] = None) -> RenderEngine:
    if settings.engine == "quarto":
        return QuartoEngine(settings.quarto_bin, timeout_ms=settings.render_timeout_ms)
    if settings.engine == "builtin":
        if source is None:
            source = BigQueryDataSource(settings)
        return BuiltinEngine(source, settings.total_rows)
    raise ValueError(f"Unknown rendering engine: {settings.engine!r}")
