"""
config.py - Defaults and per-run options.

Defaults mirror what the browser tool shipped with:
- JPEG quality 0.6, pages capped at 1400 px wide
- 100 MB per document, 20 files / 200 MB per merge
- 50 MB per image
"""

from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidOptionsError

DEFAULT_QUALITY = 0.6
DEFAULT_MAX_WIDTH = 1400

PDF_FORMATS = ("jpeg", "png")
IMAGE_FORMATS = ("jpeg", "png", "webp")

MB = 1024 * 1024


@dataclass
class CompressOptions:
    """Options for the raster compression pipeline."""
    quality_fraction: float = DEFAULT_QUALITY
    target_max_width_px: int = DEFAULT_MAX_WIDTH
    image_format: str = "jpeg"
    auto_grayscale: bool = False  # emit 1-channel JPEG for colourless pages

    def validate(self) -> "CompressOptions":
        if not 0 < self.quality_fraction <= 1:
            raise InvalidOptionsError(
                f"quality_fraction must be in (0, 1], got {self.quality_fraction}"
            )
        if (
            isinstance(self.target_max_width_px, bool)
            or not isinstance(self.target_max_width_px, int)
            or self.target_max_width_px <= 0
        ):
            raise InvalidOptionsError(
                f"target_max_width_px must be a positive integer, got {self.target_max_width_px!r}"
            )
        if self.image_format not in PDF_FORMATS:
            raise InvalidOptionsError(f"Unsupported page format: {self.image_format}")
        return self


@dataclass
class MergeOptions:
    """Options for merging; order lists document identifiers."""
    order: Optional[List[str]] = None

    def validate(self) -> "MergeOptions":
        if self.order is not None and len(set(self.order)) != len(self.order):
            raise InvalidOptionsError("Merge order contains duplicate identifiers")
        return self


@dataclass
class ImageReduceOptions:
    """Target bounds for the image reducer. Zero or None means half size."""
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = 80
    image_format: str = "jpeg"

    def validate(self) -> "ImageReduceOptions":
        if not 1 <= self.quality <= 100:
            raise InvalidOptionsError(f"quality must be 1-100, got {self.quality}")
        if self.image_format not in IMAGE_FORMATS:
            raise InvalidOptionsError(f"Unsupported image format: {self.image_format}")
        for value in (self.width, self.height):
            if value is not None and value < 0:
                raise InvalidOptionsError("width and height must not be negative")
        return self


@dataclass(frozen=True)
class Limits:
    """Input size limits. None disables a check."""
    max_input_bytes: Optional[int] = 100 * MB
    max_merge_files: Optional[int] = 20
    max_merge_total_bytes: Optional[int] = 200 * MB
    min_merge_files: int = 2
    max_image_bytes: Optional[int] = 50 * MB


DEFAULT_LIMITS = Limits()
