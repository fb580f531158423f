"""Module entrypoint for running the report API server."""

from __future__ import annotations

import logging

from .config import Settings, configure_logging
from .server import run


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        run(settings)
    except (OSError, ValueError) as exc:
        logging.getLogger("penguin_report").error("Server failed to start: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
