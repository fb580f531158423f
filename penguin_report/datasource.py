"""Read-only access to the penguins table in the warehouse."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from .config import Settings

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PROJECT_ID = re.compile(r"^[a-z][a-z0-9\-]{4,28}[a-z0-9]$")


class DataSourceError(RuntimeError):
    """Raised when the warehouse query cannot be completed."""


@dataclass(frozen=True)
class ReportTable:
    columns: Tuple[str, ...]
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class DataSource(Protocol):
    def fetch_rows(self, limit: int) -> ReportTable:
        ...


def quote_table_ref(project: str, dataset: str, table: str) -> str:
    """Return a backtick-quoted table reference, rejecting unsafe identifiers.

    Table names cannot be bound as query parameters, so they are validated
    instead of interpolated blindly.
    """
    if not _PROJECT_ID.match(project):
        raise ValueError(f"Invalid project id: {project!r}")
    for name in (dataset, table):
        if not _IDENTIFIER.match(name):
            raise ValueError(f"Invalid identifier: {name!r}")
    return f"`{project}.{dataset}.{table}`"


def build_limit_query(table_ref: str, order_by: Optional[str] = None) -> str:
    sql = f"SELECT * FROM {table_ref}"
    if order_by:
        if not _IDENTIFIER.match(order_by):
            raise ValueError(f"Invalid order by column: {order_by!r}")
        sql += f" ORDER BY {order_by}"
    return sql + " LIMIT @n_row"


class BigQueryDataSource:
    """Runs a single bounded ``SELECT`` against a BigQuery table.

    Credentials come from the client library's application default
    credentials; the project, dataset and table come from ``Settings``.
    """

    def __init__(self, settings: Settings, client: Any = None) -> None:
        self.settings = settings
        self.sql = build_limit_query(
            quote_table_ref(settings.project, settings.dataset, settings.table),
            settings.order_by,
        )
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from google.cloud import bigquery

            self._client = bigquery.Client(project=self.settings.project)
        return self._client

    def fetch_rows(self, limit: int) -> ReportTable:
        from google.cloud import bigquery

        job_config = bigquery.QueryJobConfig(
            query_parameters=[bigquery.ScalarQueryParameter("n_row", "INT64", int(limit))]
        )
        try:
            result = self.client.query(self.sql, job_config=job_config).result()
        except Exception as exc:
            logger.error("Query against %s failed: %s", self.settings.table_ref, exc)
            raise DataSourceError(f"Query against {self.settings.table_ref} failed: {exc}") from exc

        columns = tuple(f.name for f in result.schema)
        rows = [tuple(row.values()) for row in result]
        logger.debug("Fetched %d rows from %s", len(rows), self.settings.table_ref)
        return ReportTable(columns=columns, rows=rows)


class StaticDataSource:
    """In-memory table, useful for local runs and tests."""

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self.columns = tuple(columns)
        self.rows = [tuple(row) for row in rows]

    def fetch_rows(self, limit: int) -> ReportTable:
        return ReportTable(columns=self.columns, rows=self.rows[: max(0, int(limit))])
