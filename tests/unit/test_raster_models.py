"""Tests for PixelWindow, BandBuffer and NdviResult validation."""

from __future__ import annotations

import pytest

from ndvi_oracle.core.exceptions import PipelineError
from ndvi_oracle.models.raster import (
    BandBuffer,
    BufferSource,
    ModelValidationError,
    NdviResult,
    PixelWindow,
)


class TestPixelWindow:
    def test_dimensions(self) -> None:
        window = PixelWindow(min_x=2, min_y=3, max_x=12, max_y=8)
        assert window.window_width == 10
        assert window.window_height == 5
        assert not window.is_empty

    def test_zero_area_valid(self) -> None:
        assert PixelWindow(min_x=5, min_y=5, max_x=5, max_y=9).is_empty

    def test_negative_origin_rejected(self) -> None:
        with pytest.raises(ModelValidationError):
            PixelWindow(min_x=-1, min_y=0, max_x=1, max_y=1)

    def test_inverted_rejected(self) -> None:
        with pytest.raises(ModelValidationError):
            PixelWindow(min_x=5, min_y=0, max_x=4, max_y=1)

    def test_scale_below_one_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="scale_factor"):
            PixelWindow(min_x=0, min_y=0, max_x=1, max_y=1, scale_factor=0.5)

    def test_to_dict(self) -> None:
        d = PixelWindow(min_x=0, min_y=0, max_x=10, max_y=10, effective_width=10).to_dict()
        assert d["window_width"] == 10
        assert d["effective_width"] == 10


class TestBandBuffer:
    def test_within_cap(self) -> None:
        buffer = BandBuffer(url="u", data=b"abc", byte_cap=3)
        assert len(buffer) == 3
        assert buffer.source is BufferSource.WINDOW

    def test_over_cap_rejected(self) -> None:
        with pytest.raises(ModelValidationError, match="byte_cap"):
            BandBuffer(url="u", data=b"abcd", byte_cap=3)

    def test_validation_error_is_pipeline_error(self) -> None:
        with pytest.raises(PipelineError):
            BandBuffer(url="u", data=b"", byte_cap=-1)


class TestNdviResult:
    def test_valid(self) -> None:
        result = NdviResult(image=b"\xff\xd8", content_type="image/jpeg", width=200, height=200)
        assert result.stats.mean == 0.5

    def test_empty_image_rejected(self) -> None:
        with pytest.raises(ModelValidationError):
            NdviResult(image=b"", content_type="image/jpeg", width=1, height=1)

    def test_zero_width_rejected(self) -> None:
        with pytest.raises(ModelValidationError):
            NdviResult(image=b"x", content_type="image/png", width=0, height=1)
