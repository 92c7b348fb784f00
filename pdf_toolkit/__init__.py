"""
PDF Toolkit - page-wise PDF compression, split and merge.

Compression rasterizes each page to a downscaled JPEG and rebuilds the
document from the images. Split and merge copy pages structurally.
Also includes a small image reducer for resizing photos and signatures.
"""

__version__ = "1.0.0"
__author__ = "PDF Toolkit"

from .config import CompressOptions, ImageReduceOptions, Limits, MergeOptions
from .errors import (
    DecodeError,
    InvalidOptionsError,
    PipelineCancelled,
    RenderError,
    ResourceLimitError,
    SerializeError,
    ToolkitError,
)
from .images import reduce_image
from .pipeline import (
    CancellationToken,
    Pipeline,
    PipelineResult,
    merge_pdfs,
    rasterize_compress,
    run,
    split_pdf,
)

__all__ = [
    "CancellationToken",
    "CompressOptions",
    "DecodeError",
    "ImageReduceOptions",
    "InvalidOptionsError",
    "Limits",
    "MergeOptions",
    "Pipeline",
    "PipelineCancelled",
    "PipelineResult",
    "RenderError",
    "ResourceLimitError",
    "SerializeError",
    "ToolkitError",
    "merge_pdfs",
    "rasterize_compress",
    "reduce_image",
    "run",
    "split_pdf",
]
