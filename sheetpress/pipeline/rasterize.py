from __future__ import annotations

import io
from typing import Dict, Mapping, Optional

import fitz  # PyMuPDF
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .. import config
from ..document import Document, Page
from .render_pdf import render_vector_page


def page_size_mm(page: Page) -> tuple[float, float]:
    return page.width * config.PX_TO_MM, page.height * config.PX_TO_MM


class RasterSurface:
    """
    Off-screen drawing surface reused for every row of one export.

    Each row is drawn as a vector page into the same in-memory buffer, then
    rasterised by PyMuPDF at ``dpi``. The PNG is what ends up in the PDF.
    """

    def __init__(self, page: Page, dpi: int = config.EXPORT_DPI) -> None:
        self.page = page
        self.zoom = dpi / config.CSS_DPI
        self._buffer = io.BytesIO()

    def render_row(
        self,
        document: Document,
        row: Dict[str, object],
        images: Mapping[str, bytes] | None = None,
    ) -> bytes:
        self._buffer.seek(0)
        self._buffer.truncate()
        render_vector_page(document, row, self._buffer, images)
        with fitz.open(stream=self._buffer.getvalue(), filetype="pdf") as doc:
            pix = doc.load_page(0).get_pixmap(matrix=fitz.Matrix(self.zoom, self.zoom), alpha=False)
            png = pix.tobytes("png")
        return png

    def close(self) -> None:
        self._buffer.close()


def page_pdf(png: bytes, page: Page, title: Optional[str] = None) -> bytes:
    """One-page PDF sized ``page`` in millimetres with ``png`` stretched over it."""
    width_mm, height_mm = page_size_mm(page)
    size = (width_mm * mm, height_mm * mm)
    out = io.BytesIO()
    canv = canvas.Canvas(out, pagesize=size)
    if title:
        canv.setTitle(title)
    canv.drawImage(ImageReader(io.BytesIO(png)), 0, 0, size[0], size[1])
    canv.showPage()
    canv.save()
    return out.getvalue()
