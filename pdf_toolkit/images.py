"""
images.py - Resize and re-encode photos and signatures.

The image is scaled to fit inside the requested box, keeping its aspect
ratio and never growing. Missing bounds default to half the source size.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import DEFAULT_LIMITS, ImageReduceOptions, Limits
from .errors import DecodeError, ResourceLimitError

logger = logging.getLogger(__name__)

INPUT_FORMATS = {"JPEG", "PNG", "WEBP"}

EXTENSIONS = {"jpeg": "jpg", "png": "png", "webp": "webp"}
MIME_TYPES = {"jpeg": "image/jpeg", "png": "image/png", "webp": "image/webp"}


@dataclass
class ReducedImage:
    data: bytes
    width: int
    height: int
    image_format: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def filename(self) -> str:
        return f"reduced-image.{EXTENSIONS[self.image_format]}"

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.image_format]


def fit_dimensions(
    width: int,
    height: int,
    target_width: Optional[int],
    target_height: Optional[int]
) -> Tuple[int, int]:
    """
    Output size for an image of width x height fitted into the target box.
    """
    if not target_width or not target_height:
        target_width = round(width * 0.5)
        target_height = round(height * 0.5)

    target_width = min(target_width, width)
    target_height = min(target_height, height)

    scale = min(target_width / width, target_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparency onto white for formats without alpha."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    return img.convert("RGB")


def reduce_image(
    data: bytes,
    options: Optional[ImageReduceOptions] = None,
    limits: Limits = DEFAULT_LIMITS
) -> ReducedImage:
    """
    Resize and re-encode an image.

    Args:
        data: JPEG, PNG or WEBP bytes
        options: Target box, quality (1-100) and output format
        limits: Size limits; only max_image_bytes applies

    Raises:
        DecodeError: not a supported image
        ResourceLimitError: input larger than max_image_bytes
    """
    options = (options or ImageReduceOptions()).validate()

    if limits.max_image_bytes is not None and len(data) > limits.max_image_bytes:
        raise ResourceLimitError(
            f"Image is {len(data):,} bytes, limit is {limits.max_image_bytes:,} bytes"
        )
    if not data:
        raise DecodeError("Image is empty")

    try:
        img = Image.open(io.BytesIO(data))
        source_format = img.format
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError(f"Failed to read image: {e}") from e

    if source_format not in INPUT_FORMATS:
        raise DecodeError(f"Only JPG, PNG and WEBP are supported, got {source_format}")

    img = ImageOps.exif_transpose(img)
    width, height = fit_dimensions(img.width, img.height, options.width, options.height)

    if (width, height) != img.size:
        img = img.resize((width, height), Image.LANCZOS)

    buffer = io.BytesIO()
    if options.image_format == "jpeg":
        _flatten(img).save(buffer, format="JPEG", quality=options.quality, optimize=True)
    elif options.image_format == "webp":
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        img.save(buffer, format="WEBP", quality=options.quality)
    else:
        if img.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
            img = img.convert("RGBA")
        img.save(buffer, format="PNG", optimize=True)

    result = ReducedImage(
        data=buffer.getvalue(),
        width=width,
        height=height,
        image_format=options.image_format
    )
    logger.info(
        f"Reduced {source_format} image to {width}x{height} "
        f"{options.image_format}: {len(data):,} -> {result.size:,} bytes"
    )
    return result
