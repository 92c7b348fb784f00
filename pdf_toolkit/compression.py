"""
compression.py - Raster surface to image bytes.

Supports:
- JPEG (quality from a 0-1 fraction, one-shot, no size search)
- PNG (lossless, quality ignored)
"""

import io
import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from PIL import Image
import cv2

from .config import PDF_FORMATS
from .errors import InvalidOptionsError
from .rasterize import RasterSurface

logger = logging.getLogger(__name__)

# Saturation threshold for grayscale conversion
# Only convert to grayscale if mean saturation is below this
GRAYSCALE_SATURATION_THRESHOLD = 10  # Out of 255


@dataclass
class EncodedPageImage:
    """Encoded page data ready for PDF embedding."""
    page_index: int
    data: bytes
    width: int
    height: int
    image_format: str
    is_color: bool = True

    @property
    def size(self) -> int:
        return len(self.data)


def quality_to_int(quality_fraction: float) -> int:
    """Map a (0, 1] quality fraction onto Pillow's 1-100 JPEG scale."""
    return max(1, min(100, round(quality_fraction * 100)))


def is_grayscale_image(image: np.ndarray) -> bool:
    """
    Check if image is effectively grayscale based on saturation.

    Only returns True if the entire page has very low saturation.
    """
    if len(image.shape) != 3 or image.shape[2] != 3:
        return True  # Already grayscale

    hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV)
    mean_saturation = np.mean(hsv[:, :, 1])

    is_gray = mean_saturation < GRAYSCALE_SATURATION_THRESHOLD
    logger.debug(f"Mean saturation: {mean_saturation:.1f}, is_grayscale: {is_gray}")

    return is_gray


def compress_jpeg(image: np.ndarray, quality: int, grayscale: bool = False) -> Tuple[bytes, bool]:
    """
    Compress image as JPEG.

    Returns:
        (jpeg_bytes, is_color)
    """
    if len(image.shape) == 2:
        img = Image.fromarray(image)
        is_color = False
    elif grayscale:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        img = Image.fromarray(gray)
        is_color = False
    else:
        img = Image.fromarray(image)
        is_color = True

    buffer = io.BytesIO()
    img.save(
        buffer,
        format="JPEG",
        quality=quality,
        optimize=True,
        subsampling=2  # 4:2:0 chroma subsampling
    )

    return buffer.getvalue(), is_color


def compress_png(image: np.ndarray) -> bytes:
    """Compress image as PNG (lossless)."""
    buffer = io.BytesIO()
    Image.fromarray(image).save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def encode_surface(
    surface: RasterSurface,
    quality_fraction: float,
    image_format: str = "jpeg",
    auto_grayscale: bool = False
) -> EncodedPageImage:
    """
    Encode a rasterized page.

    Args:
        surface: Rendered page
        quality_fraction: Encoder quality in (0, 1]; ignored for PNG
        image_format: "jpeg" or "png"
        auto_grayscale: Write single-channel JPEG for colourless pages

    Returns:
        EncodedPageImage with the same pixel dimensions as the surface
    """
    if image_format not in PDF_FORMATS:
        raise InvalidOptionsError(f"Unsupported page format: {image_format}")

    pixels = surface.pixels

    if image_format == "png":
        data = compress_png(pixels)
        is_color = True
        mode = "png"
    else:
        quality = quality_to_int(quality_fraction)
        grayscale = auto_grayscale and is_grayscale_image(pixels)
        data, is_color = compress_jpeg(pixels, quality, grayscale=grayscale)
        mode = f"q={quality}"

    logger.debug(
        f"Page {surface.page_index + 1}: {len(data):,} bytes | "
        f"{surface.width}x{surface.height} | color={is_color} | {mode}"
    )

    return EncodedPageImage(
        page_index=surface.page_index,
        data=data,
        width=surface.width,
        height=surface.height,
        image_format=image_format,
        is_color=is_color
    )
