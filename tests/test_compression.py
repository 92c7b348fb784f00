from __future__ import annotations

import numpy as np
import pytest

from pdf_toolkit.compression import encode_surface, is_grayscale_image, quality_to_int
from pdf_toolkit.errors import InvalidOptionsError
from pdf_toolkit.rasterize import RasterSurface


def _surface(pixels: np.ndarray) -> RasterSurface:
    return RasterSurface(page_index=0, pixels=pixels, scale=1.0)


@pytest.fixture()
def noisy_surface() -> RasterSurface:
    rng = np.random.default_rng(1)
    return _surface(rng.integers(0, 256, (120, 160, 3), dtype=np.uint8))


@pytest.mark.parametrize(
    ("fraction", "expected"),
    [(0.6, 60), (1.0, 100), (0.001, 1), (0.857, 86)],
)
def test_quality_to_int(fraction: float, expected: int) -> None:
    assert quality_to_int(fraction) == expected


def test_jpeg_keeps_dimensions(noisy_surface: RasterSurface) -> None:
    encoded = encode_surface(noisy_surface, 0.6)

    assert encoded.data[:2] == b"\xff\xd8"
    assert (encoded.width, encoded.height) == (160, 120)
    assert encoded.image_format == "jpeg"
    assert encoded.is_color


def test_lower_quality_is_smaller(noisy_surface: RasterSurface) -> None:
    high = encode_surface(noisy_surface, 0.95)
    low = encode_surface(noisy_surface, 0.3)

    assert low.size < high.size


def test_png_ignores_quality(noisy_surface: RasterSurface) -> None:
    first = encode_surface(noisy_surface, 0.2, image_format="png")
    second = encode_surface(noisy_surface, 0.9, image_format="png")

    assert first.data.startswith(b"\x89PNG")
    assert first.data == second.data


def test_auto_grayscale_on_colourless_page() -> None:
    gray = np.full((50, 50, 3), 200, dtype=np.uint8)
    assert is_grayscale_image(gray)

    encoded = encode_surface(_surface(gray), 0.6, auto_grayscale=True)
    assert not encoded.is_color


def test_colour_page_stays_colour() -> None:
    red = np.zeros((50, 50, 3), dtype=np.uint8)
    red[:, :, 0] = 255
    assert not is_grayscale_image(red)

    encoded = encode_surface(_surface(red), 0.6, auto_grayscale=True)
    assert encoded.is_color


def test_unknown_format_rejected(noisy_surface: RasterSurface) -> None:
    with pytest.raises(InvalidOptionsError):
        encode_surface(noisy_surface, 0.6, image_format="gif")
