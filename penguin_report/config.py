"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_TEMPLATE = os.path.join(PACKAGE_DIR, "templates", "report_template.qmd")

# Row count of the Palmer penguins dataset uploaded by the seed script.
PENGUINS_TOTAL_ROWS = 344
DEFAULT_N_ROW = 10


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw if raw else default


DEFAULT_MAX_CONCURRENT_RENDERS = max(4, min(32, os.cpu_count() or 4))


@dataclass(frozen=True)
class Settings:
    """Everything the server, engines and data source need at startup."""

    host: str = "0.0.0.0"
    port: int = 8080

    project: str = "ee-proj-123"
    dataset: str = "penguins_data"
    table: str = "penguins"
    total_rows: int = PENGUINS_TOTAL_ROWS
    order_by: Optional[str] = None

    engine: str = "builtin"
    quarto_bin: str = "quarto"
    template: str = DEFAULT_TEMPLATE
    output_dir: str = tempfile.gettempdir()

    max_concurrent_renders: int = DEFAULT_MAX_CONCURRENT_RENDERS
    max_inflight_renders: int = max(100, DEFAULT_MAX_CONCURRENT_RENDERS * 4)
    render_queue_timeout_ms: int = 120000
    render_timeout_ms: int = 300000
    listen_backlog: int = 512

    log_level: str = "INFO"

    @property
    def table_ref(self) -> str:
        return f"{self.project}.{self.dataset}.{self.table}"

    @classmethod
    def from_env(cls) -> "Settings":
        max_concurrent = env_int(
            "PENGUIN_REPORT_MAX_CONCURRENT_RENDERS",
            DEFAULT_MAX_CONCURRENT_RENDERS,
            minimum=1,
        )
        order_by = env_str("PENGUIN_REPORT_ORDER_BY", "")
        return cls(
            host=env_str("PENGUIN_REPORT_HOST", "0.0.0.0"),
            port=env_int("PORT", 8080, minimum=1),
            project=env_str("PENGUIN_REPORT_PROJECT", "ee-proj-123"),
            dataset=env_str("PENGUIN_REPORT_DATASET", "penguins_data"),
            table=env_str("PENGUIN_REPORT_TABLE", "penguins"),
            total_rows=env_int("PENGUIN_REPORT_TOTAL_ROWS", PENGUINS_TOTAL_ROWS, minimum=0),
            order_by=order_by or None,
            engine=env_str("PENGUIN_REPORT_ENGINE", "builtin").lower(),
            quarto_bin=env_str("PENGUIN_REPORT_QUARTO_BIN", "quarto"),
            template=env_str("PENGUIN_REPORT_TEMPLATE", DEFAULT_TEMPLATE),
            output_dir=env_str("PENGUIN_REPORT_OUTPUT_DIR", tempfile.gettempdir()),
            max_concurrent_renders=max_concurrent,
            max_inflight_renders=env_int(
                "PENGUIN_REPORT_MAX_INFLIGHT_RENDERS",
                max(100, max_concurrent * 4),
                minimum=1,
            ),
            render_queue_timeout_ms=env_int(
                "PENGUIN_REPORT_RENDER_QUEUE_TIMEOUT_MS", 120000, minimum=0
            ),
            render_timeout_ms=env_int("PENGUIN_REPORT_RENDER_TIMEOUT_MS", 300000, minimum=1000),
            listen_backlog=env_int("PENGUIN_REPORT_LISTEN_BACKLOG", 512, minimum=1),
            log_level=env_str("PENGUIN_REPORT_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
