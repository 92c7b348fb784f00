"""
decoder.py - Open PDF byte buffers.

Two views of the same bytes:
- pikepdf for structure (page count, page copying)
- PyMuPDF for rendering, opened lazily on first use

Encrypted files are opened with an empty password, which covers the
common owner-password-only case. Anything else is a DecodeError.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import pikepdf
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .errors import DecodeError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


class SourceDocument:
    """
    Immutable wrapper around an input PDF.

    Pages are addressed by zero-based index. Handles returned by
    get_page() are only valid until close() is called.
    """

    def __init__(self, data: bytes, name: str = "document.pdf"):
        self.data = bytes(data)
        self.name = name
        self._pdf: Optional[pikepdf.Pdf] = None
        self._renderer = None
        self._page_count: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def pdf(self) -> pikepdf.Pdf:
        """Structured view, used for page counts and page copies."""
        if self._pdf is None:
            self._pdf = _open_structure(self.data, self.name)
        return self._pdf

    @property
    def renderer(self):
        """PyMuPDF document, opened on first render."""
        if self._renderer is None:
            self._renderer = _open_renderer(self.data, self.name)
        return self._renderer

    @property
    def page_count(self) -> int:
        if self._page_count is None:
            self._page_count = len(self.pdf.pages)
        return self._page_count

    def get_page(self, index: int) -> "PageHandle":
        if not 0 <= index < self.page_count:
            raise IndexError(
                f"Page index {index} out of range for {self.page_count}-page document"
            )
        return PageHandle(self, index)

    def close(self):
        if self._renderer is not None:
            self._renderer.close()
            self._renderer = None
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self):
        return f"SourceDocument({self.name!r}, {self.size:,} bytes)"


@dataclass(frozen=True)
class PageHandle:
    """One page of a SourceDocument."""
    document: SourceDocument
    index: int

    @property
    def page_num(self) -> int:
        return self.index + 1

    @property
    def native_size(self) -> Tuple[float, float]:
        """Width and height in pixels at scale 1.0 (PDF points)."""
        rect = self.document.renderer[self.index].rect
        return rect.width, rect.height


def _open_structure(data: bytes, name: str) -> pikepdf.Pdf:
    try:
        return pikepdf.open(io.BytesIO(data), password="")
    except pikepdf.PasswordError as e:
        raise DecodeError(f"{name} is password protected") from e
    except (pikepdf.PdfError, ValueError) as e:
        raise DecodeError(f"{name} is not a readable PDF: {e}") from e


def _open_renderer(data: bytes, name: str):
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DecodeError(f"{name} could not be opened for rendering: {e}") from e

    if doc.needs_pass and not doc.authenticate(""):
        doc.close()
        raise DecodeError(f"{name} is password protected")
    return doc


def open_document(data: bytes, name: str = "document.pdf") -> SourceDocument:
    """
    Open a PDF held in memory.

    Raises:
        DecodeError: empty input, not a PDF, or encryption that cannot
            be bypassed with an empty password
    """
    if not data:
        raise DecodeError(f"{name} is empty")
    if PDF_MAGIC not in data[:1024]:
        raise DecodeError(f"{name} does not look like a PDF")

    doc = SourceDocument(data, name)
    # Parse eagerly so bad input fails before any pipeline starts
    count = doc.page_count
    logger.debug(f"Opened {name}: {count} pages, {doc.size:,} bytes")
    return doc


def get_page_count(data: bytes) -> int:
    """Get total page count."""
    with open_document(data) as doc:
        return doc.page_count
