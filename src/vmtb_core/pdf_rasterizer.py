# src/vmtb_core/pdf_rasterizer.py
"""
PDF page rasterizer.

Converts a PDF byte stream into one PNG data URL per page at a fixed
upscale factor, up to a page ceiling. Pages are rendered strictly one at
a time so peak memory stays at a single page pixmap.

Failure semantics:
- one page fails     → logged, skipped, processing continues
- no page renders    → PdfRasterizationError
- stream won't open  → PdfRasterizationError

NO STREAMLIT IMPORTS ALLOWED IN THIS MODULE.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import pymupdf

from .config import DEFAULT_REDACTION_CONFIG
from .errors import PdfRasterizationError
from .raster import bytes_to_data_url

logger = logging.getLogger(__name__)

PageRenderer = Callable[["pymupdf.Page", float], bytes]


@dataclass
class RasterizedPdf:
    """Result of rasterizing a PDF."""
    pages: List[str] = field(default_factory=list)  # PNG data URLs, in page order
    total_pages: int = 0                            # pages in the source document
    failed_pages: List[int] = field(default_factory=list)  # 0-based indices skipped

    @property
    def truncated(self) -> bool:
        """True when the page ceiling cut the document short."""
        return self.total_pages > len(self.pages) + len(self.failed_pages)


def render_page_png(page: "pymupdf.Page", scale: float) -> bytes:
    """Render a single page to PNG bytes at `scale` x base resolution."""
    pix = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale))
    return pix.tobytes("png")


def _open(pdf_bytes: bytes) -> "pymupdf.Document":
    try:
        return pymupdf.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise PdfRasterizationError(f"Failed to load PDF file ({exc.__class__.__name__})") from exc


def _finish(result: RasterizedPdf) -> RasterizedPdf:
    if not result.pages:
        raise PdfRasterizationError("Failed to render any PDF pages")
    logger.info(
        "PDF rasterized: %d/%d page(s) rendered, %d skipped",
        len(result.pages), result.total_pages, len(result.failed_pages),
    )
    return result


def rasterize_pdf(
    pdf_bytes: bytes,
    *,
    scale: float = DEFAULT_REDACTION_CONFIG.pdf_scale,
    max_pages: int = DEFAULT_REDACTION_CONFIG.max_pdf_pages,
    renderer: Optional[PageRenderer] = None,
) -> RasterizedPdf:
    """
    Rasterize up to `max_pages` pages of a PDF.

    Args:
        pdf_bytes: Raw PDF stream
        scale: Upscale factor relative to the page's base resolution
        max_pages: Page ceiling
        renderer: Page → PNG bytes function (defaults to render_page_png)

    Returns:
        RasterizedPdf with one data URL per successfully rendered page

    Raises:
        PdfRasterizationError: if the stream cannot be opened or no page renders
    """
    render = renderer or render_page_png
    result = RasterizedPdf()
    with _open(pdf_bytes) as doc:
        result.total_pages = doc.page_count
        for index in range(min(doc.page_count, max_pages)):
            try:
                png = render(doc.load_page(index), scale)
            except Exception as exc:
                result.failed_pages.append(index)
                logger.warning("Error loading PDF page %d: %s", index + 1, exc)
                continue
            result.pages.append(bytes_to_data_url(png, "image/png"))
    return _finish(result)


async def rasterize_pdf_async(
    pdf_bytes: bytes,
    *,
    scale: float = DEFAULT_REDACTION_CONFIG.pdf_scale,
    max_pages: int = DEFAULT_REDACTION_CONFIG.max_pdf_pages,
    renderer: Optional[PageRenderer] = None,
) -> RasterizedPdf:
    """
    Awaitable variant of rasterize_pdf().

    Each page render is awaited before the next one starts; the render
    itself runs in a worker thread so the event loop stays responsive.
    """
    render = renderer or render_page_png
    result = RasterizedPdf()
    doc = await asyncio.to_thread(_open, pdf_bytes)
    try:
        result.total_pages = doc.page_count
        for index in range(min(doc.page_count, max_pages)):
            try:
                page = doc.load_page(index)
                png = await asyncio.to_thread(render, page, scale)
            except Exception as exc:
                result.failed_pages.append(index)
                logger.warning("Error loading PDF page %d: %s", index + 1, exc)
                continue
            result.pages.append(bytes_to_data_url(png, "image/png"))
    finally:
        doc.close()
    return _finish(result)
