"""Lay split sheets onto A4 PDF pages for printing."""

import logging
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence, Union

from PyPDF2 import PdfReader
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from config import Config
from models.split_sheet import SplitSheet

log = logging.getLogger(__name__)

DEFAULT_PDF_FILENAME = "tattoo-stencil.pdf"
LABEL_FONT = "Helvetica"
LABEL_FONT_SIZE = 10
LABEL_GRAY = 100 / 255


def _page_size(config: Config):
    return (config.PAPER_WIDTH_MM * mm, config.PAPER_HEIGHT_MM * mm)


def _draw_sheet_page(
    pdf: canvas.Canvas, sheet: SplitSheet, total_pages: int, page_size
) -> None:
    page_width, page_height = page_size

    # Sheets are full-bleed: stretch to the whole page, no margins
    pdf.drawImage(
        ImageReader(BytesIO(sheet.image_bytes)),
        0,
        0,
        width=page_width,
        height=page_height,
    )

    pdf.setFont(LABEL_FONT, LABEL_FONT_SIZE)
    pdf.setFillGray(LABEL_GRAY)
    pdf.drawString(
        page_width - 30 * mm,
        page_height - 10 * mm,
        f"Page {sheet.page_number} of {total_pages}",
    )
    pdf.showPage()


def generate_pdf(
    sheets: Sequence[SplitSheet],
    config: Optional[Config] = None,
    title: str = "Tattoo stencil",
) -> bytes:
    """Lay sheets onto one portrait page each, in page number order."""
    if not sheets:
        raise ValueError("No sheets to print")

    config = config or Config()
    page_size = _page_size(config)
    ordered: List[SplitSheet] = sorted(sheets, key=lambda s: s.page_number)

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=page_size)
    pdf.setTitle(title)
    for sheet in ordered:
        _draw_sheet_page(pdf, sheet, len(ordered), page_size)
    pdf.save()

    log.info(f"Generated {len(ordered)}-page PDF ({buffer.tell()} bytes)")
    return buffer.getvalue()


def generate_single_sheet_pdf(
    sheet: SplitSheet, config: Optional[Config] = None, total_pages: int = 4
) -> bytes:
    config = config or Config()
    page_size = _page_size(config)

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=page_size)
    pdf.setTitle(f"Tattoo stencil page {sheet.page_number}")
    _draw_sheet_page(pdf, sheet, total_pages, page_size)
    pdf.save()
    return buffer.getvalue()


def save_pdf(pdf_bytes: bytes, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(pdf_bytes)
    log.info(f"PDF saved to {path}")
    return path


def count_pages(source: Union[bytes, Path]) -> int:
    """Quick count of pages using PDF metadata"""
    try:
        if isinstance(source, (bytes, bytearray)):
            pdf = PdfReader(BytesIO(source))
        else:
            pdf = PdfReader(str(source))
        return len(pdf.pages)
    except Exception as e:
        log.error(f"Error reading PDF metadata: {e}")
        raise RuntimeError("Failed to read PDF metadata") from e
