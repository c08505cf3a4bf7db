"""Typed models exchanged between the resolver, fetcher and derivation engine.

- ``PixelWindow``: Clamped pixel rectangle plus its downsampled size
- ``BandBuffer``: Bounded raw bytes for one band download
- ``NdviResult``: Encoded NDVI visualisation plus summary statistics

All models are frozen dataclasses; field invariants are checked in
``__post_init__`` and violations raise ``ModelValidationError``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from ndvi_oracle.core.exceptions import PipelineError
from ndvi_oracle.models.metadata import NdviStats

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ModelValidationError(ValueError, PipelineError):
    """Raised when a domain model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        formatted = f"{model}.{field_name}={value!r}: {message}"
        PipelineError.__init__(self, formatted)


# ---------------------------------------------------------------------------
# Pixel window
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PixelWindow:
    """Pixel-space rectangle of a band covering a geographic bbox.

    Edges are half-open: columns ``min_x..max_x`` and rows ``min_y..max_y``.

    Attributes:
        min_x: First column (0 <= min_x <= max_x).
        min_y: First row (0 <= min_y <= max_y).
        max_x: Column bound (<= raster width).
        max_y: Row bound (<= raster height).
        scale_factor: Uniform downsampling factor (>= 1).
        effective_width: Window width after downsampling.
        effective_height: Window height after downsampling.
    """

    min_x: int
    min_y: int
    max_x: int
    max_y: int
    scale_factor: float = 1.0
    effective_width: int = 0
    effective_height: int = 0

    def __post_init__(self) -> None:
        _check_min("PixelWindow", "min_x", self.min_x, 0)
        _check_min("PixelWindow", "min_y", self.min_y, 0)
        _check_min("PixelWindow", "max_x", self.max_x, self.min_x)
        _check_min("PixelWindow", "max_y", self.max_y, self.min_y)
        _check_min("PixelWindow", "scale_factor", self.scale_factor, 1.0)

    @property
    def window_width(self) -> int:
        return self.max_x - self.min_x

    @property
    def window_height(self) -> int:
        return self.max_y - self.min_y

    @property
    def is_empty(self) -> bool:
        """True when the window covers no pixels (a valid outcome)."""
        return self.window_width == 0 or self.window_height == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
            "window_width": self.window_width,
            "window_height": self.window_height,
            "scale_factor": self.scale_factor,
            "effective_width": self.effective_width,
            "effective_height": self.effective_height,
        }


# ---------------------------------------------------------------------------
# Band buffer
# ---------------------------------------------------------------------------


class BufferSource(enum.Enum):
    """How a ``BandBuffer`` was obtained.

    Values:
        WINDOW: Range-limited download from the asset URL.
        SAMPLE: Deterministic non-network substitute.
    """

    WINDOW = "window"
    SAMPLE = "sample"


@dataclass(frozen=True, slots=True)
class BandBuffer:
    """Raw bytes of a partial band download.

    A buffer shorter than expected is an accepted state, not an error.

    Attributes:
        url: Asset URL the bytes belong to.
        data: The bytes read (``len(data) <= byte_cap``).
        byte_cap: The cap enforced while reading.
        source: Whether the bytes came from the network or the sample.
        truncated: True when reading stopped because the cap was reached.
        status_code: HTTP status of the download (0 for samples).
    """

    url: str
    data: bytes
    byte_cap: int
    source: BufferSource = BufferSource.WINDOW
    truncated: bool = False
    status_code: int = 0

    def __post_init__(self) -> None:
        _check_min("BandBuffer", "byte_cap", self.byte_cap, 0)
        if len(self.data) > self.byte_cap:
            raise ModelValidationError(
                "BandBuffer", "data", len(self.data), f"must be <= byte_cap ({self.byte_cap})"
            )

    def __len__(self) -> int:
        return len(self.data)


# ---------------------------------------------------------------------------
# NDVI result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NdviResult:
    """Encoded NDVI visualisation.

    Attributes:
        image: Encoded raster bytes.
        content_type: MIME type of ``image`` (``image/jpeg`` or ``image/png``).
        width: Raster width in pixels.
        height: Raster height in pixels.
        stats: Summary statistics.  Fixed placeholders, independent of
            the band buffers.
    """

    image: bytes
    content_type: str
    width: int
    height: int
    stats: NdviStats = field(default_factory=NdviStats)

    def __post_init__(self) -> None:
        _check_min("NdviResult", "width", self.width, 1)
        _check_min("NdviResult", "height", self.height, 1)
        if not self.image:
            raise ModelValidationError("NdviResult", "image", b"", "must not be empty")


# ---------------------------------------------------------------------------
# Validation helpers (module-private)
# ---------------------------------------------------------------------------


def _check_min(model: str, field_name: str, value: float | int, lo: float | int) -> None:
    """Raise `ModelValidationError` if *value* is below *lo*."""
    if value < lo:
        raise ModelValidationError(model, field_name, value, f"must be >= {lo}")
