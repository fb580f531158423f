"""Cell formatting helpers shared by the HTML and PDF outputs."""

from __future__ import annotations

import math
from typing import Any, List, Sequence

MISSING = "NA"


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def fmt_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def fmt_cell(value: Any) -> str:
    if is_missing(value):
        return MISSING
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float):
        return fmt_number(value)
    return str(value)


def fmt_header(column: str) -> str:
    """Turn ``bill_length_mm`` into ``bill length (mm)``."""
    parts = column.split("_")
    units = {"mm", "g", "cm", "kg"}
    if len(parts) > 1 and parts[-1] in units:
        return f"{' '.join(parts[:-1])} ({parts[-1]})"
    return " ".join(parts)


def format_rows(rows: Sequence[Sequence[Any]]) -> List[List[str]]:
    return [[fmt_cell(value) for value in row] for row in rows]
