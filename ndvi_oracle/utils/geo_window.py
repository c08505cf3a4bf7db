"""Geo-window resolver: geographic bbox → clamped pixel window.

Maps a bounding box through a band's affine transform into pixel space,
clamps the result to the raster, and derives a downsampled size that
keeps the longest edge within ``max_dim``.

The latitude axis is inverted on purpose: with a north-up raster the
pixel height is negative, so the *minimum* latitude yields the *maximum*
row (``floor``) and the *maximum* latitude the *minimum* row (``ceil``).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from ndvi_oracle.core.config import ConfigError
from ndvi_oracle.models.raster import PixelWindow

logger = logging.getLogger("ndvi_oracle.utils.geo_window")


def resolve_window(
    bbox: Sequence[float],
    transform: Sequence[float],
    shape: Sequence[int],
    max_dim: int,
) -> PixelWindow:
    """Resolve the pixel window of *bbox* in a raster.

    Args:
        bbox: ``(min_x, min_y, max_x, max_y)`` in the transform's CRS.
        transform: Affine coefficients
            ``(pixel_width, rot, x_origin, rot, pixel_height, y_origin)``.
        shape: Raster ``(height, width)`` in pixels.
        max_dim: Largest allowed window edge before downsampling.

    Returns:
        A ``PixelWindow``.  Zero-area windows are valid.

    Raises:
        ConfigError: If the pixel width or height is zero, or the inputs
            have the wrong arity.
    """
    if len(bbox) != 4 or len(transform) < 6 or len(shape) != 2:
        msg = (
            f"resolve_window: expected bbox[4], transform[6], shape[2]; got "
            f"bbox[{len(bbox)}], transform[{len(transform)}], shape[{len(shape)}]"
        )
        raise ConfigError(msg, code="INVALID_GEOMETRY")
    if max_dim <= 0:
        msg = f"resolve_window: max_dim must be > 0, got {max_dim}"
        raise ConfigError(msg, code="INVALID_GEOMETRY")

    pixel_width = transform[0]
    x_origin = transform[2]
    pixel_height = transform[4]
    y_origin = transform[5]

    if pixel_width == 0 or pixel_height == 0:
        msg = (
            f"Degenerate affine transform: pixel_width={pixel_width}, "
            f"pixel_height={pixel_height}"
        )
        raise ConfigError(msg, code="DEGENERATE_TRANSFORM")

    height, width = int(shape[0]), int(shape[1])

    min_x = math.floor((bbox[0] - x_origin) / pixel_width)
    max_x = math.ceil((bbox[2] - x_origin) / pixel_width)
    max_y = math.floor((bbox[1] - y_origin) / pixel_height)
    min_y = math.ceil((bbox[3] - y_origin) / pixel_height)

    min_x = _clamp(min_x, width)
    max_x = _clamp(max_x, width)
    min_y = _clamp(min_y, height)
    max_y = _clamp(max_y, height)

    # An inverted edge pair collapses to an empty window.
    max_x = max(max_x, min_x)
    max_y = max(max_y, min_y)

    window_width = max_x - min_x
    window_height = max_y - min_y

    scale_factor = downsample_factor(window_width, window_height, max_dim)
    effective_width = int(window_width / scale_factor)
    effective_height = int(window_height / scale_factor)

    logger.debug(
        "Window resolved | x=%d-%d | y=%d-%d | size=%dx%d | effective=%dx%d | scale=%.3f",
        min_x,
        max_x,
        min_y,
        max_y,
        window_width,
        window_height,
        effective_width,
        effective_height,
        scale_factor,
    )

    return PixelWindow(
        min_x=min_x,
        min_y=min_y,
        max_x=max_x,
        max_y=max_y,
        scale_factor=scale_factor,
        effective_width=effective_width,
        effective_height=effective_height,
    )


def downsample_factor(window_width: int, window_height: int, max_dim: int) -> float:
    """Return the uniform scale factor keeping both edges within *max_dim*.

    Each axis contributes ``edge / max_dim`` only when it exceeds
    *max_dim*; otherwise 1.0.  The result is never below 1 (no upscaling).
    """
    scale_x = window_width / max_dim if window_width > max_dim else 1.0
    scale_y = window_height / max_dim if window_height > max_dim else 1.0
    return max(scale_x, scale_y)


def _clamp(value: int, upper: int) -> int:
    return max(0, min(value, upper))
