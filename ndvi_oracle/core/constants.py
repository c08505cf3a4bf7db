"""Shared oracle constants — single source of truth.

Endpoints, environment variable names, STAC keys and the documented
fallback values used when scene metadata is incomplete.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

DEFAULT_SEARCH_API_URL: str = "https://earth-search.aws.element84.com/v1/search"
"""Public Earth Search STAC item search endpoint."""

DEFAULT_IPFS_ENDPOINT: str = "https://node.lighthouse.storage/api/v0/add"
"""Public IPFS add endpoint used for content-addressed uploads."""

ENV_SEARCH_API_URL: str = "WAVS_ENV_EARTH_SEARCH_API"
ENV_IPFS_ENDPOINT: str = "WAVS_ENV_IPFS_ENDPOINT"
ENV_IPFS_API_KEY: str = "WAVS_ENV_IPFS_API_KEY"

# ---------------------------------------------------------------------------
# STAC keys
# ---------------------------------------------------------------------------

RED_BAND: str = "red"
NIR_BAND: str = "nir"

PROJ_TRANSFORM_KEY: str = "proj:transform"
PROJ_SHAPE_KEY: str = "proj:shape"
DATETIME_KEY: str = "datetime"
CLOUD_COVER_KEY: str = "eo:cloud_cover"
VEGETATION_PCT_KEY: str = "s2:vegetation_percentage"

# ---------------------------------------------------------------------------
# Metadata defaults (Sentinel-2 10 m tile)
# ---------------------------------------------------------------------------

DEFAULT_TRANSFORM: tuple[float, float, float, float, float, float] = (
    10.0,
    0.0,
    499980.0,
    0.0,
    -10.0,
    4200000.0,
)
"""Affine transform (pixel width, rot, x origin, rot, pixel height, y origin)."""

DEFAULT_SHAPE: tuple[int, int] = (10980, 10980)
"""Pixel shape as ``(height, width)``."""

DEFAULT_DATETIME: str = "unknown"
DEFAULT_CLOUD_COVER: float = 0.0
DEFAULT_VEGETATION_PCT: float = 0.0

# ---------------------------------------------------------------------------
# Fetch and render defaults
# ---------------------------------------------------------------------------

DEFAULT_BAND_BYTE_CAP: int = 100_000
DEFAULT_SAMPLE_BYTE_CAP: int = 50_000
DEFAULT_CHUNK_SIZE: int = 4096
DEFAULT_MAX_WINDOW_DIM: int = 500

DEFAULT_GRID_SIZE: int = 20
DEFAULT_RASTER_SIZE: int = 200
DEFAULT_IMAGE_FORMAT: str = "jpeg"
DEFAULT_IMAGE_QUALITY: int = 60

DEFAULT_HTTP_TIMEOUT_S: float = 30.0
