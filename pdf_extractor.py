"""
PDF access: glyph runs with page boundaries, metadata and page rendering.
"""
import logging
from typing import Iterable, Optional

import fitz  # PyMuPDF

from models import GlyphRun, InputError

logger = logging.getLogger(__name__)


def open_pdf(pdf_bytes: bytes) -> fitz.Document:
    """
    Open a PDF from an in-memory buffer.

    Raises:
        InputError: if the buffer is empty, unreadable, encrypted or has no pages
    """
    if not pdf_bytes:
        raise InputError("Empty PDF buffer")
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise InputError(f"Unreadable PDF: {e}") from e

    if doc.needs_pass:
        doc.close()
        raise InputError("PDF is password protected")
    if len(doc) == 0:
        doc.close()
        raise InputError("PDF has no pages")
    return doc


def extract_glyph_runs(doc: fitz.Document) -> list[list[GlyphRun]]:
    """
    Extract positioned text fragments, one list per page.

    Runs keep PyMuPDF's extraction order (roughly left-to-right,
    top-to-bottom); x is the span's left edge and y its baseline.

    Args:
        doc: Open PyMuPDF document

    Returns:
        List of per-page GlyphRun lists
    """
    pages: list[list[GlyphRun]] = []

    for page_num in range(len(doc)):
        page = doc[page_num]
        runs: list[GlyphRun] = []
        info = page.get_text("dict")

        for block in info.get("blocks", []):
            if block.get("type", 0) != 0:  # image block
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, y0, x1, y1 = span["bbox"]
                    origin = span.get("origin")
                    baseline = origin[1] if origin else y1
                    runs.append(GlyphRun(
                        text=span.get("text", ""),
                        x=float(x0),
                        y=float(baseline),
                        width=float(x1 - x0)
                    ))

        pages.append(runs)

    logger.debug("Extracted glyph runs from %d pages", len(pages))
    return pages


def get_title(doc: fitz.Document) -> Optional[str]:
    """Title from the PDF metadata, if any."""
    metadata = doc.metadata or {}
    title = (metadata.get("title") or "").strip()
    return title or None


def render_pages(
    doc: fitz.Document,
    page_indices: Iterable[int],
    scale: float = 1.5
) -> list[bytes]:
    """
    Render pages to PNG images at a fixed scale.

    Args:
        doc: Open PyMuPDF document
        page_indices: 0-indexed pages to render, in order
        scale: Zoom factor applied to both axes

    Returns:
        PNG bytes per page, in the order requested
    """
    matrix = fitz.Matrix(scale, scale)
    images = []
    for page_idx in page_indices:
        pix = doc[page_idx].get_pixmap(matrix=matrix, alpha=False)
        images.append(pix.tobytes("png"))
    return images

