"""Upload the Palmer penguins dataset to BigQuery.

One-shot setup script: creates the dataset if needed, then replaces the
table contents with the rows shipped by the ``palmerpenguins`` package.

    python -m penguin_report.seed --project ee-proj-123
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import Settings, configure_logging
from .datasource import quote_table_ref

logger = logging.getLogger(__name__)

# (name, BigQuery type) in column order of palmerpenguins.load_penguins()
PENGUINS_SCHEMA = (
    ("species", "STRING"),
    ("island", "STRING"),
    ("bill_length_mm", "FLOAT"),
    ("bill_depth_mm", "FLOAT"),
    ("flipper_length_mm", "INTEGER"),
    ("body_mass_g", "INTEGER"),
    ("sex", "STRING"),
    ("year", "INTEGER"),
)


def penguin_rows(frame: Any) -> List[Dict[str, Any]]:
    """Convert a penguins DataFrame into JSON-ready rows.

    Missing values become ``None`` and integer columns stay integers even
    though pandas stores them as floats when they contain NaN.
    """
    columns = [name for name, _ in PENGUINS_SCHEMA]
    integer_columns = {name: "Int64" for name, kind in PENGUINS_SCHEMA if kind == "INTEGER"}
    frame = frame[columns].astype(integer_columns)
    return json.loads(frame.to_json(orient="records"))


def load_penguins_frame() -> Any:
    from palmerpenguins import load_penguins

    return load_penguins()


def seed_penguins(settings: Settings, client: Any = None, frame: Any = None) -> int:
    from google.cloud import bigquery

    quote_table_ref(settings.project, settings.dataset, settings.table)
    if client is None:
        client = bigquery.Client(project=settings.project)
    if frame is None:
        frame = load_penguins_frame()

    dataset_id = f"{settings.project}.{settings.dataset}"
    client.create_dataset(bigquery.Dataset(dataset_id), exists_ok=True)
    logger.info("Dataset %s ready", dataset_id)

    rows = penguin_rows(frame)
    job_config = bigquery.LoadJobConfig(
        schema=[bigquery.SchemaField(name, kind) for name, kind in PENGUINS_SCHEMA],
        write_disposition=bigquery.WriteDisposition.WRITE_TRUNCATE,
    )
    job = client.load_table_from_json(rows, settings.table_ref, job_config=job_config)
    job.result()
    logger.info("Loaded %d rows into %s", len(rows), settings.table_ref)
    return len(rows)


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload the Palmer penguins dataset to BigQuery.")
    parser.add_argument("--project", default=defaults.project)
    parser.add_argument("--dataset", default=defaults.dataset)
    parser.add_argument("--table", default=defaults.table)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    defaults = Settings.from_env()
    args = build_parser(defaults).parse_args(argv)
    configure_logging(defaults.log_level)
    settings = Settings(project=args.project, dataset=args.dataset, table=args.table)
    seed_penguins(settings)


if __name__ == "__main__":
    main()
