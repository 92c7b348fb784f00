from __future__ import annotations

import pytest

from pdf_toolkit.config import (
    DEFAULT_LIMITS,
    CompressOptions,
    ImageReduceOptions,
    MergeOptions,
)
from pdf_toolkit.errors import InvalidOptionsError


def test_defaults() -> None:
    options = CompressOptions().validate()

    assert options.quality_fraction == 0.6
    assert options.target_max_width_px == 1400
    assert DEFAULT_LIMITS.max_merge_files == 20
    assert DEFAULT_LIMITS.min_merge_files == 2


@pytest.mark.parametrize(
    "options",
    [
        CompressOptions(quality_fraction=0),
        CompressOptions(quality_fraction=1.5),
        CompressOptions(target_max_width_px=-1),
        CompressOptions(target_max_width_px=1400.5),
        CompressOptions(target_max_width_px=True),
        CompressOptions(image_format="tiff"),
        MergeOptions(order=["a", "a"]),
        ImageReduceOptions(quality=101),
        ImageReduceOptions(image_format="bmp"),
        ImageReduceOptions(width=-5),
    ],
)
def test_invalid_options(options) -> None:
    with pytest.raises(InvalidOptionsError):
        options.validate()


def test_invalid_options_is_value_error() -> None:
    with pytest.raises(ValueError):
        CompressOptions(quality_fraction=2).validate()
