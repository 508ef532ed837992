"""
PDF rasterization for OCR.

Renders the first page of a PDF to a JPEG with PyMuPDF. Rendering is
blocking, so callers go through rasterize_first_page() which runs it in
a worker thread.
"""

import asyncio
import logging
import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

RENDER_DPI = 100
MAX_DIMENSION_PX = 1000


class PdfConversionError(Exception):
    """The PDF could not be opened or its first page could not be rendered."""


def _render_scale(page_width_pt: float, page_height_pt: float) -> float:
    """Scale factor for RENDER_DPI, shrunk so the image fits MAX_DIMENSION_PX square."""
    scale = RENDER_DPI / 72.0
    largest = max(page_width_pt, page_height_pt) * scale
    if largest > MAX_DIMENSION_PX:
        scale *= MAX_DIMENSION_PX / largest
    return scale


def render_first_page_jpeg(file_path: str) -> bytes:
    """
    Render page 1 of a PDF to JPEG bytes (synchronous).

    Raises:
        PdfConversionError: If the file is not a readable PDF or has no pages
    """
    try:
        with fitz.open(file_path) as doc:
            if doc.page_count < 1:
                raise PdfConversionError(f"PDF has no pages: {file_path}")
            if doc.needs_pass:
                raise PdfConversionError(f"PDF is password protected: {file_path}")

            page = doc.load_page(0)
            scale = _render_scale(page.rect.width, page.rect.height)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            image_bytes = pix.tobytes("jpeg")
    except PdfConversionError:
        raise
    except Exception as e:
        # PyMuPDF raises a mix of RuntimeError/FileDataError/ValueError
        raise PdfConversionError(f"Failed to render PDF {file_path}: {e}") from e

    if not image_bytes:
        raise PdfConversionError(f"Rendered empty image for {file_path}")

    logger.debug(
        f"Rasterized first page of {file_path}",
        extra={"bytes": len(image_bytes), "width": pix.width, "height": pix.height},
    )
    return image_bytes


async def rasterize_first_page(file_path: str) -> bytes:
    """Render page 1 of a PDF to JPEG bytes without blocking the event loop."""
    return await asyncio.to_thread(render_first_page_jpeg, file_path)
