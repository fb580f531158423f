"""HTTP server entrypoints for report rendering."""

from __future__ import annotations

import errno
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from .config import DEFAULT_N_ROW, Settings
from .datasource import DataSource
from .engines import (
    OUTPUT_FORMATS,
    DependencyError,
    RenderEngine,
    RenderError,
    RenderTimeout,
    make_engine,
)
from .rendering import ArtifactReadError, render_report

logger = logging.getLogger(__name__)

ValidationError = Tuple[int, Dict[str, Any]]

DISCONNECT_ERRNOS = {errno.EPIPE, errno.ECONNRESET, errno.ETIMEDOUT}


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


@dataclass(frozen=True)
class ReportQuery:
    n_row: int = DEFAULT_N_ROW
    output_format: str = "html"


def _parse_row_count(raw: str) -> Optional[int]:
    raw = raw.strip()
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        value = float(raw)
    except ValueError:
        return None
    if not value.is_integer():
        return None
    return int(value)


def _last(params: Dict[str, List[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[-1] if values else None


def validate_report_query(query: str) -> Tuple[Optional[ReportQuery], Optional[ValidationError]]:
    params = parse_qs(query, keep_blank_values=True)

    n_row = DEFAULT_N_ROW
    raw_n_row = _last(params, "n_row")
    if raw_n_row is not None and raw_n_row.strip() != "":
        parsed = _parse_row_count(raw_n_row)
        if parsed is None:
            return None, (
                400,
                {"error": "invalid_parameter", "detail": "'n_row' must be an integer."},
            )
        if parsed < 0:
            return None, (
                400,
                {"error": "invalid_parameter", "detail": "'n_row' must not be negative."},
            )
        n_row = parsed

    output_format = (_last(params, "format") or "html").strip().lower() or "html"
    if output_format not in OUTPUT_FORMATS:
        return None, (
            400,
            {
                "error": "invalid_parameter",
                "detail": f"'format' must be one of: {', '.join(sorted(OUTPUT_FORMATS))}.",
            },
        )

    return ReportQuery(n_row=n_row, output_format=output_format), None


class ReportHandler(BaseHTTPRequestHandler):
    server: "ReportHTTPServer"

    def _write_response(self, status: int, content_type: str, body: bytes) -> bool:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any]) -> bool:
        body = json.dumps(payload).encode("utf-8")
        return self._write_response(status, "application/json", body)

    def _handle_report(self, query: str) -> None:
        report_query, validation_error = validate_report_query(query)
        if report_query is None:
            status, payload = validation_error or (
                400,
                {"error": "invalid_parameter", "detail": "Invalid query string."},
            )
            self._send_json(status, payload)
            return

        settings = self.server.settings
        inflight = self.server.inflight
        acquired = inflight.acquire(timeout=settings.render_queue_timeout_ms / 1000.0)
        if not acquired:
            self._send_json(
                503,
                {
                    "error": "server_busy",
                    "detail": "Render queue is full; retry shortly.",
                    "max_concurrent_renders": settings.max_concurrent_renders,
                    "max_inflight_renders": settings.max_inflight_renders,
                },
            )
            return

        try:
            future = self.server.executor.submit(
                render_report,
                self.server.engine,
                settings.template,
                report_query.n_row,
                report_query.output_format,
                settings.output_dir,
            )
        except RuntimeError as exc:
            inflight.release()
            logger.error("Could not schedule render for n_row=%s: %s", report_query.n_row, exc)
            self._send_json(503, {"error": "server_busy", "detail": str(exc)})
            return
        # the slot stays taken until the render itself ends, even after a 504
        future.add_done_callback(lambda _: inflight.release())

        try:
            body = future.result(timeout=settings.render_timeout_ms / 1000.0)
        except (FutureTimeoutError, RenderTimeout):
            future.cancel()
            self._send_json(
                504,
                {
                    "error": "render_timeout",
                    "detail": f"Render exceeded timeout of {settings.render_timeout_ms} ms.",
                },
            )
            return
        except DependencyError as exc:
            self._send_json(503, {"error": "renderer_unavailable", "detail": str(exc)})
            return
        except ArtifactReadError as exc:
            self._send_json(500, {"error": "artifact_unreadable", "detail": str(exc)})
            return
        except RenderError as exc:
            self._send_json(500, {"error": "render_failed", "detail": str(exc)})
            return
        except Exception as exc:
            logger.exception("Report render failed for n_row=%s", report_query.n_row)
            self._send_json(500, {"error": "render_failed", "detail": str(exc)})
            return

        self._write_response(200, OUTPUT_FORMATS[report_query.output_format], body)

    def do_GET(self) -> None:
        url = urlsplit(self.path)
        if url.path == "/report":
            self._handle_report(url.query)
            return
        if url.path in ("/", "/health", "/healthz", "/ready"):
            self._send_json(200, {"status": "ok"})
            return
        self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})

    def _method_not_allowed(self) -> None:
        self._send_json(405, {"error": "method_not_allowed", "detail": "Only GET is supported."})

    do_POST = _method_not_allowed
    do_PUT = _method_not_allowed
    do_DELETE = _method_not_allowed
    do_PATCH = _method_not_allowed

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class ReportHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, settings: Settings, engine: RenderEngine) -> None:
        self.request_queue_size = settings.listen_backlog
        self.settings = settings
        self.engine = engine
        self.inflight = threading.BoundedSemaphore(settings.max_inflight_renders)
        self.executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent_renders,
            thread_name_prefix="render",
        )
        super().__init__((settings.host, settings.port), ReportHandler)

    def server_close(self) -> None:
        super().server_close()
        self.executor.shutdown(wait=False, cancel_futures=True)


def create_server(settings: Settings, source: Optional[DataSource] = None) -> ReportHTTPServer:
    return ReportHTTPServer(settings, make_engine(settings, source))


def run(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings.from_env()
    server = create_server(settings)
    host, port = server.server_address[:2]
    logger.info(
        "Report API server listening on http://%s:%s (engine=%s, table=%s)",
        host,
        port,
        server.engine.name,
        settings.table_ref,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
