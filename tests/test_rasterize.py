from __future__ import annotations

import pytest

from pdf_toolkit.decoder import open_document
from pdf_toolkit.errors import RenderError
from pdf_toolkit.rasterize import compute_scale, render_page, target_dimensions


@pytest.mark.parametrize(
    ("native", "target", "expected"),
    [
        (2000, 1400, 0.7),
        (1400, 1400, 1.0),
        (500, 1400, 1.0),
        (0, 1400, 1.0),
    ],
)
def test_compute_scale(native: float, target: int, expected: float) -> None:
    assert compute_scale(native, target) == pytest.approx(expected)


def test_target_dimensions_round_and_floor_at_one() -> None:
    assert target_dimensions(2000, 1000, 0.7) == (1400, 700)
    assert target_dimensions(595.3, 841.9, 1.0) == (595, 842)
    assert target_dimensions(10, 1, 0.01) == (1, 1)


def test_wide_page_is_downscaled_to_target(pdf_factory) -> None:
    data = pdf_factory([(2000, 1000)])
    with open_document(data) as doc:
        surface = render_page(doc.get_page(0), 1400)

    assert surface.width == 1400
    assert surface.height == 700
    assert surface.scale == pytest.approx(0.7)
    assert surface.pixels.shape == (700, 1400, 3)


def test_narrow_page_is_never_upscaled(pdf_factory) -> None:
    data = pdf_factory([(500, 300)])
    with open_document(data) as doc:
        surface = render_page(doc.get_page(0), 1400)

    assert (surface.width, surface.height) == (500, 300)
    assert surface.scale == 1.0


def test_rendered_page_has_ink(pdf_factory) -> None:
    data = pdf_factory([(300, 100)])
    with open_document(data) as doc:
        surface = render_page(doc.get_page(0), 1400)

    # white page with black label text
    assert surface.pixels.min() < 128
    assert surface.pixels.max() == 255


def test_damaged_page_raises_render_error(damaged_page_pdf: bytes) -> None:
    with open_document(damaged_page_pdf) as doc:
        assert render_page(doc.get_page(1), 1400).width == 200

        with pytest.raises(RenderError) as excinfo:
            render_page(doc.get_page(2), 1400)

    assert excinfo.value.page_index == 2
