"""Public package API for on-demand penguin reports."""

from __future__ import annotations

from typing import Optional

from .config import Settings


def render_report(n_row: int = 10, output_format: str = "html", settings: Optional[Settings] = None) -> bytes:
    from .engines import make_engine
    from .rendering import render_report as _render_report

    settings = settings or Settings.from_env()
    return _render_report(
        make_engine(settings),
        settings.template,
        n_row,
        output_format,
        settings.output_dir,
    )


def run(settings: Optional[Settings] = None) -> None:
    from .server import run as _run

    _run(settings)


__all__ = ["Settings", "render_report", "run"]
