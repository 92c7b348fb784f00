"""
errors.py - Exceptions raised by the toolkit.

Library errors (pikepdf, PyMuPDF, Pillow) are wrapped at module
boundaries so callers only ever need to catch ToolkitError.
"""

from typing import Optional


class ToolkitError(Exception):
    """Base class for every toolkit failure."""


class DecodeError(ToolkitError):
    """Input bytes could not be opened as a document or image."""


class RenderError(ToolkitError):
    """A single page failed to rasterize or copy."""

    def __init__(self, page_index: int, message: Optional[str] = None):
        self.page_index = page_index
        super().__init__(message or f"Page {page_index + 1} failed")


class SerializeError(ToolkitError):
    """Output document could not be written."""


class ResourceLimitError(ToolkitError):
    """Input is larger than the configured limits allow."""


class InvalidOptionsError(ToolkitError, ValueError):
    """Options are out of range or inconsistent."""


class PipelineCancelled(ToolkitError):
    """The run was cancelled between pages."""
