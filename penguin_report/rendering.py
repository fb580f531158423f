"""Render invoker: runs an engine against the report template and reads back the bytes."""

from __future__ import annotations

import logging
import os
import secrets
import string
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from .engines import OUTPUT_FORMATS, RenderEngine, RenderError

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_LENGTH = 16


class ArtifactReadError(RuntimeError):
    """Raised when the engine reports success but the output file is unusable."""


def new_output_name(extension: str = "html") -> str:
    token = "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))
    return f"{token}.{extension}"


@contextmanager
def scoped_output_file(output_dir: Optional[str] = None, extension: str = "html") -> Iterator[str]:
    """Yield a fresh output path and remove whatever ends up there on exit."""
    directory = output_dir or tempfile.gettempdir()
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, new_output_name(extension))
    while os.path.exists(path):
        path = os.path.join(directory, new_output_name(extension))
    try:
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove rendered file %s: %s", path, exc)


def read_artifact(path: str) -> bytes:
    try:
        with open(path, "rb") as handle:
            body = handle.read()
    except OSError as exc:
        raise ArtifactReadError(f"Rendered file {os.path.basename(path)} is unreadable: {exc}") from exc
    if not body:
        raise ArtifactReadError(f"Rendered file {os.path.basename(path)} is empty")
    return body


def render_report(
    engine: RenderEngine,
    template: str,
    n_row: int,
    output_format: str = "html",
    output_dir: Optional[str] = None,
) -> bytes:
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {output_format!r}")

    template_name = os.path.basename(template)
    with scoped_output_file(output_dir, output_format) as path:
        filename = os.path.basename(path)
        try:
            engine.render(template, path, {"n_row": n_row}, output_format)
        except RenderError:
            logger.error(
                "Render failed: engine=%s template=%s n_row=%s file=%s",
                engine.name,
                template_name,
                n_row,
                filename,
                exc_info=True,
            )
            raise

        try:
            body = read_artifact(path)
        except ArtifactReadError:
            logger.error(
                "Rendered artifact unreadable: engine=%s template=%s n_row=%s file=%s",
                engine.name,
                template_name,
                n_row,
                filename,
                exc_info=True,
            )
            raise

    logger.info(
        "Rendered %s (%d bytes) for n_row=%s with %s",
        filename,
        len(body),
        n_row,
        engine.name,
    )
    return body
