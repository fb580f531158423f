"""PDF rendering of the penguin report."""

from __future__ import annotations

from typing import List

from fpdf import FPDF  # type: ignore

from .template import ReportData

PAGE_MARGIN = 36
TITLE_SIZE = 16
META_SIZE = 8
CELL_SIZE = 8
ROW_H = 14
COLOR_HEADER = (244, 244, 244)
COLOR_META = (102, 102, 102)
COLOR_TEXT = (34, 34, 34)


class PdfReportRenderer:
    def __init__(self, report: ReportData) -> None:
        self.report = report
        self.pdf = FPDF(orientation="L", unit="pt", format="letter")
        self.pdf.set_margins(PAGE_MARGIN, PAGE_MARGIN, PAGE_MARGIN)
        self.pdf.set_auto_page_break(True, margin=PAGE_MARGIN)
        self.pdf.add_page()

    def _column_widths(self) -> List[float]:
        count = max(1, len(self.report.headers))
        usable = self.pdf.w - 2 * PAGE_MARGIN
        return [usable / count] * count

    def _draw_title(self) -> None:
        self.pdf.set_text_color(*COLOR_TEXT)
        self.pdf.set_font("Helvetica", "B", TITLE_SIZE)
        self.pdf.cell(0, TITLE_SIZE + 6, self.report.title, new_x="LMARGIN", new_y="NEXT")
        self.pdf.set_text_color(*COLOR_META)
        self.pdf.set_font("Helvetica", "", META_SIZE)
        self.pdf.cell(
            0,
            META_SIZE + 8,
            f"Showing {len(self.report.table.rows)} of {self.report.total_rows} rows. "
            f"Generated {self.report.generated_at}.",
            new_x="LMARGIN",
            new_y="NEXT",
        )
        self.pdf.ln(4)

    def _draw_header_row(self, widths: List[float]) -> None:
        self.pdf.set_text_color(*COLOR_TEXT)
        self.pdf.set_fill_color(*COLOR_HEADER)
        self.pdf.set_font("Helvetica", "B", CELL_SIZE)
        for width, header in zip(widths, self.report.headers):
            self.pdf.cell(width, ROW_H, header, border="B", fill=True)
        self.pdf.ln(ROW_H)

    def _draw_rows(self, widths: List[float]) -> None:
        self.pdf.set_font("Helvetica", "", CELL_SIZE)
        for row in self.report.cells:
            if self.pdf.get_y() + ROW_H > self.pdf.h - PAGE_MARGIN:
                self.pdf.add_page()
                self._draw_header_row(widths)
                self.pdf.set_font("Helvetica", "", CELL_SIZE)
            for width, cell in zip(widths, row):
                self.pdf.cell(width, ROW_H, cell, border="B")
            self.pdf.ln(ROW_H)

    def render(self) -> bytes:
        widths = self._column_widths()
        self._draw_title()
        self._draw_header_row(widths)
        self._draw_rows(widths)

        pdf_blob = self.pdf.output()
        if isinstance(pdf_blob, (bytes, bytearray)):
            return bytes(pdf_blob)
        if isinstance(pdf_blob, str):
            try:
                return pdf_blob.encode("latin-1")
            except UnicodeEncodeError as exc:
                raise RuntimeError("PDF serialization failed due to non-Latin-1 content.") from exc
        raise RuntimeError(f"Unexpected PDF output type: {type(pdf_blob).__name__}")


def render_pdf(report: ReportData) -> bytes:
    return PdfReportRenderer(report).render()
