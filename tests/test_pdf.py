import unittest
from importlib import util as importlib_util

from penguin_report.datasource import StaticDataSource
from penguin_report.template import build_report

FPDF_AVAILABLE = importlib_util.find_spec("fpdf") is not None
if FPDF_AVAILABLE:
    from penguin_report.pdf import PdfReportRenderer, render_pdf


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf is not installed")
class PdfRenderingTests(unittest.TestCase):
    def test_render_pdf_returns_pdf_bytes(self) -> None:
        source = StaticDataSource(
            ("species", "island", "body_mass_g"),
            [("Adelie", "Torgersen", 3750), ("Gentoo", "Biscoe", None)],
        )

        pdf = render_pdf(build_report(source, 2, 344))

        self.assertIsInstance(pdf, bytes)
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertGreater(len(pdf), 100)

    def test_long_tables_span_pages(self) -> None:
        source = StaticDataSource(("n",), [(i,) for i in range(344)])

        renderer = PdfReportRenderer(build_report(source, 344, 344))
        pdf = renderer.render()

        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertGreater(renderer.pdf.page, 1)


if __name__ == "__main__":
    unittest.main()
