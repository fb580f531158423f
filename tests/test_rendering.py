import os
import re
import tempfile
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import penguin_report
from penguin_report.config import Settings
from penguin_report.datasource import StaticDataSource
from penguin_report.engines import BuiltinEngine, RenderError
from penguin_report.rendering import (
    ArtifactReadError,
    new_output_name,
    render_report,
    scoped_output_file,
)

ROWS = [("Adelie", 2007), ("Adelie", 2008), ("Gentoo", 2007), ("Gentoo", 2009), ("Chinstrap", 2008)]


class RecordingEngine(BuiltinEngine):
    def __init__(self) -> None:
        super().__init__(StaticDataSource(("species", "year"), ROWS), total_rows=len(ROWS))
        self.paths = []
        self.lock = threading.Lock()

    def render(self, template, output_path, params, output_format="html"):
        with self.lock:
            self.paths.append(output_path)
        super().render(template, output_path, params, output_format)


class FailingEngine:
    name = "failing"

    def __init__(self, write_first: bool = False) -> None:
        self.write_first = write_first

    def render(self, template, output_path, params, output_format="html"):
        if self.write_first:
            with open(output_path, "wb") as handle:
                handle.write(b"<html>partial")
        raise RenderError("template error")


class SilentEngine:
    """Claims success without writing anything."""

    name = "silent"

    def render(self, template, output_path, params, output_format="html"):
        return None


class OutputNameTests(unittest.TestCase):
    def test_token_is_sixteen_lowercase_alphanumerics(self) -> None:
        name = new_output_name("html")

        self.assertRegex(name, r"^[a-z0-9]{16}\.html$")

    def test_names_do_not_repeat(self) -> None:
        names = {new_output_name() for _ in range(1000)}

        self.assertEqual(len(names), 1000)

    def test_scoped_output_file_removes_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with scoped_output_file(tmpdir) as path:
                with open(path, "w") as handle:
                    handle.write("x")
            self.assertEqual(os.listdir(tmpdir), [])

    def test_scoped_output_file_removes_file_on_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(KeyError):
                with scoped_output_file(tmpdir) as path:
                    with open(path, "w") as handle:
                        handle.write("x")
                    raise KeyError("boom")
            self.assertEqual(os.listdir(tmpdir), [])


class RenderReportTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmpdir = self._tmp.name

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_returns_bytes_and_cleans_up(self) -> None:
        engine = RecordingEngine()

        body = render_report(engine, "report_template.qmd", 3, output_dir=self.tmpdir)

        self.assertIsInstance(body, bytes)
        self.assertEqual(body.count(b'class="data-row"'), 3)
        self.assertEqual(os.path.dirname(engine.paths[0]), self.tmpdir)
        self.assertEqual(os.listdir(self.tmpdir), [])

    def test_clamps_to_total_rows(self) -> None:
        body = render_report(RecordingEngine(), "report_template.qmd", 1000, output_dir=self.tmpdir)

        self.assertEqual(body.count(b'class="data-row"'), 5)

    def test_render_failure_propagates_and_removes_partial_file(self) -> None:
        with self.assertLogs("penguin_report.rendering", level="ERROR") as logs:
            with self.assertRaises(RenderError):
                render_report(
                    FailingEngine(write_first=True),
                    "report_template.qmd",
                    4,
                    output_dir=self.tmpdir,
                )

        self.assertEqual(os.listdir(self.tmpdir), [])
        self.assertIn("n_row=4", logs.output[0])
        self.assertIn("template=report_template.qmd", logs.output[0])
        self.assertRegex(logs.output[0], r"file=[a-z0-9]{16}\.html")

    def test_missing_artifact_is_a_distinct_failure(self) -> None:
        with self.assertLogs("penguin_report.rendering", level="ERROR") as logs:
            with self.assertRaises(ArtifactReadError):
                render_report(SilentEngine(), "report_template.qmd", 2, output_dir=self.tmpdir)

        self.assertIn("unreadable", logs.output[0])
        self.assertEqual(os.listdir(self.tmpdir), [])

    def test_rejects_unknown_format(self) -> None:
        with self.assertRaises(ValueError):
            render_report(RecordingEngine(), "report_template.qmd", 2, "docx", self.tmpdir)

    def test_concurrent_renders_use_distinct_files(self) -> None:
        engine = RecordingEngine()
        requested = [0, 1, 2, 3, 4, 5, 1000] * 4

        with ThreadPoolExecutor(max_workers=8) as pool:
            bodies = list(
                pool.map(
                    lambda n: render_report(engine, "report_template.qmd", n, output_dir=self.tmpdir),
                    requested,
                )
            )

        for n_row, body in zip(requested, bodies):
            self.assertEqual(body.count(b'class="data-row"'), min(n_row, 5))
        self.assertEqual(len(set(engine.paths)), len(requested))
        for path in engine.paths:
            self.assertTrue(re.match(r"^[a-z0-9]{16}\.html$", os.path.basename(path)))
        self.assertEqual(os.listdir(self.tmpdir), [])


class PackageApiTests(unittest.TestCase):
    def test_render_report_uses_settings(self) -> None:
        source = StaticDataSource(("species", "year"), ROWS)
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = Settings(total_rows=5, output_dir=tmpdir)
            with patch("penguin_report.engines.BigQueryDataSource", return_value=source) as factory:
                body = penguin_report.render_report(2, settings=settings)

            factory.assert_called_once_with(settings)
            self.assertEqual(body.count(b'class="data-row"'), 2)
            self.assertEqual(os.listdir(tmpdir), [])


if __name__ == "__main__":
    unittest.main()
