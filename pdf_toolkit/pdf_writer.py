"""
pdf_writer.py - Output PDF assembly.

Two kinds of pages:
- image pages: one encoded raster filling a page sized 1 px = 1 pt
  (JPEG as DCTDecode, PNG IDAT as FlateDecode with predictors)
- copied pages: structured pages taken verbatim from a source document

Pages copied from a SourceDocument reference its stream data, so the
source must stay open until serialize() returns.
"""

import io
import logging
import struct
import zlib
from typing import Mapping, Tuple

import numpy as np
import pikepdf
from pikepdf import Pdf, Stream, Dictionary, Name
from PIL import Image

from .compression import EncodedPageImage
from .decoder import SourceDocument
from .errors import RenderError, SerializeError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_CHANNELS = {0: 1, 2: 3}  # colour type -> samples per pixel


class OutputDocument:
    """
    Accumulates pages and serializes them into a new PDF.
    """

    def __init__(self):
        self.pdf = Pdf.new()
        self.image_bytes = 0

    @property
    def page_count(self) -> int:
        return len(self.pdf.pages)

    def _image_stream(self, encoded: EncodedPageImage) -> Stream:
        if encoded.image_format == "jpeg":
            colorspace = Name.DeviceRGB if encoded.is_color else Name.DeviceGray
            image_dict = Dictionary({
                '/Type': Name.XObject,
                '/Subtype': Name.Image,
                '/Width': encoded.width,
                '/Height': encoded.height,
                '/ColorSpace': colorspace,
                '/BitsPerComponent': 8,
                '/Filter': Name.DCTDecode,
            })
            return Stream(self.pdf, encoded.data, image_dict)

        # PNG: IDAT is a zlib stream with per-row filters, i.e. FlateDecode
        # with PNG predictors
        width, height, channels, idat = _parse_png(encoded.data)
        image_dict = Dictionary({
            '/Type': Name.XObject,
            '/Subtype': Name.Image,
            '/Width': width,
            '/Height': height,
            '/ColorSpace': Name.DeviceGray if channels == 1 else Name.DeviceRGB,
            '/BitsPerComponent': 8,
            '/Filter': Name.FlateDecode,
            '/DecodeParms': Dictionary({
                '/Predictor': 15,
                '/Colors': channels,
                '/BitsPerComponent': 8,
                '/Columns': width,
            }),
        })
        return Stream(self.pdf, idat, image_dict)

    def add_image_page(self, encoded: EncodedPageImage):
        """Add a page holding exactly one image, sized to its pixels."""
        width, height = encoded.width, encoded.height

        self.pdf.add_blank_page(page_size=(width, height))
        page = self.pdf.pages[-1]

        xobjects = Dictionary({})
        xobjects['/Im0'] = self.pdf.make_indirect(self._image_stream(encoded))
        page.Resources = Dictionary({'/XObject': xobjects})

        # Draw the image over the whole page
        content = f"""
q
{width} 0 0 {height} 0 0 cm
/Im0 Do
Q
"""
        page.Contents = self.pdf.make_indirect(
            Stream(self.pdf, content.strip().encode("ascii"))
        )

        self.image_bytes += encoded.size
        logger.debug(
            f"Added image page {encoded.page_index + 1}: "
            f"{encoded.size:,} bytes ({width}x{height} {encoded.image_format})"
        )

    def add_copied_page(self, source: SourceDocument, page_index: int):
        """Append a copy of one structured page from source."""
        try:
            page = source.pdf.pages[page_index]
            # Copies are lazy; decode now so a damaged page fails here
            _read_contents(page)
            self.pdf.pages.append(page)
        except IndexError:
            raise
        except Exception as e:
            raise RenderError(
                page_index, f"Could not copy page {page_index + 1} of {source.name}: {e}"
            ) from e
        logger.debug(f"Copied page {page_index + 1} of {source.name}")

    def set_metadata(self, info: Mapping[str, str]):
        """Write document info entries such as /Producer."""
        for key, value in info.items():
            pdf_key = key if key.startswith("/") else f"/{key}"
            self.pdf.docinfo[pdf_key] = str(value)

    def serialize(self) -> bytes:
        """Write the document and return its bytes."""
        buffer = io.BytesIO()
        try:
            self.pdf.save(
                buffer,
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate
            )
        except Exception as e:
            logger.error(f"Failed to serialize {self.page_count}-page document: {e}")
            raise SerializeError(f"Failed to serialize PDF: {e}") from e

        data = buffer.getvalue()
        logger.debug(f"Serialized {self.page_count} pages, {len(data):,} bytes")
        return data

    def close(self):
        self.pdf.close()


def _read_contents(page) -> int:
    """Decode every content stream of a page; return the decoded length."""
    contents = page.obj.get("/Contents")
    if contents is None:
        return 0
    streams = contents if isinstance(contents, pikepdf.Array) else [contents]
    return sum(len(stream.read_bytes()) for stream in streams)


def _parse_png(data: bytes) -> Tuple[int, int, int, bytes]:
    """
    Split a PNG into (width, height, channels, IDAT bytes).

    Only 8-bit gray or RGB, non-interlaced PNGs can be embedded as-is;
    anything else is decoded and deflated as plain samples.
    """
    if data[:8] != PNG_SIGNATURE:
        raise ValueError("Not a PNG image")

    pos = 8
    header = None
    idat = []
    while pos + 8 <= len(data):
        length, kind = struct.unpack(">I4s", data[pos:pos + 8])
        chunk = data[pos + 8:pos + 8 + length]
        if kind == b"IHDR":
            header = struct.unpack(">IIBBBBB", chunk)
        elif kind == b"IDAT":
            idat.append(chunk)
        elif kind == b"IEND":
            break
        pos += 12 + length

    if header is None:
        raise ValueError("PNG has no IHDR chunk")
    width, height, bit_depth, color_type, _, _, interlace = header
    channels = PNG_CHANNELS.get(color_type)

    if bit_depth == 8 and channels is not None and not interlace:
        return width, height, channels, b"".join(idat)

    # Unusual layout: re-pack as 8-bit samples, each row tagged filter 0 (None)
    img = Image.open(io.BytesIO(data))
    if img.mode not in ("L", "RGB"):
        img = img.convert("RGB")
    channels = 1 if img.mode == "L" else 3
    rows = np.asarray(img).reshape(img.height, img.width * channels)
    tagged = np.hstack([np.zeros((img.height, 1), dtype=np.uint8), rows])
    return img.width, img.height, channels, zlib.compress(tagged.tobytes(), level=9)
