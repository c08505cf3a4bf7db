"""Derive index activity — render the NDVI visualisation.

The current derivation is a deterministic placeholder: the raster is a
red→green gradient over an ``N×N`` grid whose colours depend only on the
grid coordinates, and the statistics are fixed.  The band buffers are
accepted (and logged) but their content does not influence the output,
so identical options always produce byte-identical images.

Per cell ``(gx, gy)``::

    value = (gx / N + gy / N) / 2          # float32
    rgb   = (trunc((1 - value) * 255), trunc(value * 255), 0)

Pixels beyond ``N * (size // N)`` on either axis stay black.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import PermanentError
from ndvi_oracle.models.metadata import NdviStats
from ndvi_oracle.models.raster import BandBuffer, NdviResult

logger = logging.getLogger("ndvi_oracle.activities.derive_index")

_CONTENT_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}


class EncodingError(PermanentError):
    """Raised when the NDVI raster cannot be encoded."""

    default_stage = "derive_index"
    default_code = "RASTER_ENCODING_FAILED"


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Raster size, grid resolution and output encoding.

    Attributes:
        width: Raster width in pixels.
        height: Raster height in pixels.
        grid_size: Cells per axis.
        image_format: ``"jpeg"`` or ``"png"``.
        quality: JPEG quality (1-95).
        png_compress_level: zlib level for PNG output (0-9).
    """

    width: int = constants.DEFAULT_RASTER_SIZE
    height: int = constants.DEFAULT_RASTER_SIZE
    grid_size: int = constants.DEFAULT_GRID_SIZE
    image_format: str = constants.DEFAULT_IMAGE_FORMAT
    quality: int = constants.DEFAULT_IMAGE_QUALITY
    png_compress_level: int = 9

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES.get(self.image_format, "application/octet-stream")


def derive_index(
    red: BandBuffer,
    nir: BandBuffer,
    *,
    options: RenderOptions | None = None,
) -> NdviResult:
    """Render the NDVI visualisation for a red/NIR buffer pair.

    Args:
        red: Red band bytes.
        nir: Near-infrared band bytes.
        options: Render options (defaults if ``None``).

    Returns:
        ``NdviResult`` with the encoded image and fixed statistics.

    Raises:
        EncodingError: If the options are invalid or the encoder fails.
    """
    options = options or RenderOptions()

    logger.info(
        "derive_index started | red=%d bytes | nir=%d bytes | size=%dx%d | grid=%d | format=%s",
        len(red),
        len(nir),
        options.width,
        options.height,
        options.grid_size,
        options.image_format,
    )

    pixels = render_grid(options)
    image = encode_raster(pixels, options)

    logger.info(
        "derive_index completed | image=%d bytes | content_type=%s",
        len(image),
        options.content_type,
    )

    return NdviResult(
        image=image,
        content_type=options.content_type,
        width=options.width,
        height=options.height,
        stats=NdviStats(min=0.0, max=1.0, mean=0.5),
    )


def render_grid(options: RenderOptions) -> np.ndarray:
    """Return the ``(height, width, 3)`` uint8 gradient grid.

    Raises:
        EncodingError: If the dimensions or grid size are not positive.
    """
    width, height, n = options.width, options.height, options.grid_size
    if width <= 0 or height <= 0 or n <= 0:
        msg = f"Invalid render options: size={width}x{height}, grid={n}"
        raise EncodingError(msg)

    cell_w = width // n
    cell_h = height // n

    steps = np.arange(n, dtype=np.float32) / np.float32(n)
    # value[gy, gx]
    value = (steps[np.newaxis, :] + steps[:, np.newaxis]) / np.float32(2.0)
    red = ((np.float32(1.0) - value) * np.float32(255.0)).astype(np.uint8)
    green = (value * np.float32(255.0)).astype(np.uint8)
    cells = np.stack([red, green, np.zeros_like(red)], axis=-1)

    grid = np.repeat(np.repeat(cells, cell_h, axis=0), cell_w, axis=1)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[: grid.shape[0], : grid.shape[1]] = grid
    return pixels


def encode_raster(pixels: np.ndarray, options: RenderOptions) -> bytes:
    """Encode an RGB pixel array as JPEG or PNG.

    Raises:
        EncodingError: On an unknown format or an encoder failure.
    """
    if options.image_format not in _CONTENT_TYPES:
        msg = f"Unsupported image format: {options.image_format!r}"
        raise EncodingError(msg)

    buffer = io.BytesIO()
    try:
        image = Image.fromarray(pixels)
        if options.image_format == "jpeg":
            image.save(buffer, format="JPEG", quality=options.quality)
        else:
            image.save(buffer, format="PNG", compress_level=options.png_compress_level)
    except (OSError, ValueError, TypeError) as exc:
        msg = f"Failed to encode {options.image_format.upper()}: {exc}"
        raise EncodingError(msg) from exc

    return buffer.getvalue()
