from __future__ import annotations

import io
from typing import Callable, Sequence, Tuple

import fitz
import numpy as np
import pikepdf
import pytest
from PIL import Image


def _build_pdf(sizes: Sequence[Tuple[float, float]], label: str = "Page") -> bytes:
    doc = fitz.open()
    for number, (width, height) in enumerate(sizes, start=1):
        page = doc.new_page(width=width, height=height)
        page.insert_text((10, 30), f"{label} {number}", fontsize=18)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    """Build a text PDF with one page per (width, height)."""
    return _build_pdf


@pytest.fixture()
def five_page_pdf() -> bytes:
    return _build_pdf([(200, 200)] * 5)


@pytest.fixture()
def noise_png() -> Callable[[int, int], bytes]:
    def _create(width: int, height: int) -> bytes:
        rng = np.random.default_rng(0)
        pixels = rng.integers(0, 256, (height, width, 3), dtype=np.uint8)
        buffer = io.BytesIO()
        Image.fromarray(pixels).save(buffer, format="PNG")
        return buffer.getvalue()

    return _create


@pytest.fixture()
def image_heavy_pdf(noise_png: Callable[[int, int], bytes]) -> bytes:
    """3 pages: 2000x1000 photo page, then two pages narrower than 1400."""
    doc = fitz.open()
    page = doc.new_page(width=2000, height=1000)
    page.insert_image(page.rect, stream=noise_png(2000, 1000))
    for width, height in [(600, 800), (1000, 500)]:
        page = doc.new_page(width=width, height=height)
        page.insert_image(page.rect, stream=noise_png(width, height))
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture()
def page_texts() -> Callable[[bytes], list]:
    """Text of every page of a PDF, in order."""
    def _read(data: bytes) -> list:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return [page.get_text().strip() for page in doc]

    return _read


@pytest.fixture()
def damaged_page_pdf(five_page_pdf: bytes) -> bytes:
    """five_page_pdf with page 3's content stream replaced by broken deflate data."""
    with pikepdf.open(io.BytesIO(five_page_pdf)) as pdf:
        stream = pdf.make_stream(b"")
        stream.write(b"this was never deflated \x00\x01\x02" * 8, filter=pikepdf.Name.FlateDecode)
        pdf.pages[2].Contents = stream
        buffer = io.BytesIO()
        pdf.save(
            buffer,
            compress_streams=False,
            stream_decode_level=pikepdf.StreamDecodeLevel.none,
        )
    return buffer.getvalue()
