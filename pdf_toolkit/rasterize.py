"""
rasterize.py - PDF page to pixel surface using PyMuPDF.

Pages are rendered at scale min(1, max_width / native_width): wide pages
are downsampled to the target width, narrow pages are never upscaled.
Everything gets flattened - vectors, fonts, layers, transparency.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import cv2
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .decoder import PageHandle
from .errors import DecodeError, RenderError

logger = logging.getLogger(__name__)


@dataclass
class RasterSurface:
    """Rendered page pixels (H x W x 3, uint8 RGB)."""
    page_index: int
    pixels: np.ndarray
    scale: float

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


def compute_scale(native_width: float, target_max_width_px: int) -> float:
    """Scale factor that fits the page into the target width, never above 1."""
    if native_width <= 0:
        return 1.0
    return min(1.0, target_max_width_px / native_width)


def target_dimensions(native_width: float, native_height: float, scale: float) -> Tuple[int, int]:
    """Surface size for a page rendered at the given scale."""
    return (
        max(1, round(native_width * scale)),
        max(1, round(native_height * scale)),
    )


def render_page(page: PageHandle, target_max_width_px: int) -> RasterSurface:
    """
    Rasterize a single page to an RGB surface.

    Args:
        page: Handle of the page to render
        target_max_width_px: Maximum surface width in pixels

    Returns:
        RasterSurface whose width is round(native_width * scale)

    Raises:
        RenderError: the page could not be rendered
    """
    try:
        fitz_page = page.document.renderer[page.index]
        rect = fitz_page.rect
        scale = compute_scale(rect.width, target_max_width_px)
        width, height = target_dimensions(rect.width, rect.height, scale)

        # MuPDF draws damaged content as blank and only records a warning
        fitz.TOOLS.reset_mupdf_warnings()
        pixmap = fitz_page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        warnings = fitz.TOOLS.mupdf_warnings()

        image = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
            pixmap.height, pixmap.width, pixmap.n
        )
        if pixmap.n == 1:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif pixmap.n == 4:
            image = np.ascontiguousarray(image[:, :, :3])
        del pixmap
    except DecodeError:
        raise
    except Exception as e:
        logger.error(f"Page {page.page_num} failed to render: {e}")
        raise RenderError(page.index, f"Page {page.page_num} failed to render: {e}") from e

    if warnings:
        logger.error(f"Page {page.page_num} is damaged: {warnings}")
        raise RenderError(page.index, f"Page {page.page_num} is damaged: {warnings}")

    # PyMuPDF rounds the pixmap outward; snap to the exact target size
    if (image.shape[1], image.shape[0]) != (width, height):
        logger.debug(
            f"Resampling page {page.page_num} from "
            f"{image.shape[1]}x{image.shape[0]} to {width}x{height}"
        )
        image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    else:
        image = image.copy()  # Copy to own the memory

    logger.debug(
        f"Rasterized page {page.page_num}: {width}x{height} (scale {scale:.3f})"
    )

    return RasterSurface(page_index=page.index, pixels=image, scale=scale)
