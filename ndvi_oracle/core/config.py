"""Oracle configuration loaded from environment variables.

Every value has a hardcoded default so the oracle runs with an empty
environment.  The two endpoint overrides use the ``WAVS_ENV_`` names the
operator runtime exposes; the fetch/render policy knobs use ``ORACLE_``.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any value is out of
    its valid range, before a single network call is made.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import PipelineError

_STORAGE_BACKENDS = frozenset({"ipfs", "azure_blob"})
_IMAGE_FORMATS = frozenset({"jpeg", "png"})


class ConfigError(PipelineError):
    """Raised when configuration or scene geometry makes the run impossible.

    Covers degenerate affine transforms (zero pixel size) as well as
    invalid environment settings.
    """

    default_stage = "config"
    default_code = "CONFIG_ERROR"


class ConfigValidationError(ConfigError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Immutable oracle configuration.

    Loaded once per invocation and threaded through the pipeline.

    Attributes:
        search_api_url: STAC item search endpoint (POST).
        ipfs_endpoint: IPFS add endpoint for the ``ipfs`` storage backend.
        ipfs_api_key: Bearer token for the IPFS endpoint (empty = anonymous).
        storage_backend: ``ipfs`` or ``azure_blob``.
        storage_container: Blob container for the ``azure_blob`` backend.
        band_byte_cap: Maximum bytes read per band download.
        sample_byte_cap: Size of the deterministic fallback sample.
        chunk_size: Read size per body chunk, in bytes.
        max_window_dim: Largest pixel window edge before downsampling.
        grid_size: Cells per axis in the rendered NDVI grid.
        raster_size: Edge length of the rendered square raster, in pixels.
        image_format: ``jpeg`` or ``png``.
        image_quality: JPEG quality (1-95).
        fetch_fallback: Substitute the sample buffer when a band fetch fails.
        http_timeout_s: Per-request timeout in seconds.
    """

    search_api_url: str = constants.DEFAULT_SEARCH_API_URL
    ipfs_endpoint: str = constants.DEFAULT_IPFS_ENDPOINT
    ipfs_api_key: str = ""
    storage_backend: str = "ipfs"
    storage_container: str = "ndvi-oracle"
    band_byte_cap: int = constants.DEFAULT_BAND_BYTE_CAP
    sample_byte_cap: int = constants.DEFAULT_SAMPLE_BYTE_CAP
    chunk_size: int = constants.DEFAULT_CHUNK_SIZE
    max_window_dim: int = constants.DEFAULT_MAX_WINDOW_DIM
    grid_size: int = constants.DEFAULT_GRID_SIZE
    raster_size: int = constants.DEFAULT_RASTER_SIZE
    image_format: str = constants.DEFAULT_IMAGE_FORMAT
    image_quality: int = constants.DEFAULT_IMAGE_QUALITY
    fetch_fallback: bool = True
    http_timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range, empty,
                not one of the supported choices, or not a number where
                one is expected (e.g. ``ORACLE_CHUNK_SIZE=abc``).
        """
        config = cls(
            search_api_url=os.getenv(
                constants.ENV_SEARCH_API_URL, constants.DEFAULT_SEARCH_API_URL
            ),
            ipfs_endpoint=os.getenv(constants.ENV_IPFS_ENDPOINT, constants.DEFAULT_IPFS_ENDPOINT),
            ipfs_api_key=os.getenv(constants.ENV_IPFS_API_KEY, ""),
            storage_backend=os.getenv("ORACLE_STORAGE_BACKEND", "ipfs").strip().lower(),
            storage_container=os.getenv("ORACLE_STORAGE_CONTAINER", "ndvi-oracle"),
            band_byte_cap=_env_int("ORACLE_BAND_BYTE_CAP", 100000),
            sample_byte_cap=_env_int("ORACLE_SAMPLE_BYTE_CAP", 50000),
            chunk_size=_env_int("ORACLE_CHUNK_SIZE", 4096),
            max_window_dim=_env_int("ORACLE_MAX_WINDOW_DIM", 500),
            grid_size=_env_int("ORACLE_GRID_SIZE", 20),
            raster_size=_env_int("ORACLE_RASTER_SIZE", 200),
            image_format=os.getenv("ORACLE_IMAGE_FORMAT", "jpeg").strip().lower(),
            image_quality=_env_int("ORACLE_IMAGE_QUALITY", 60),
            fetch_fallback=_env_bool("ORACLE_FETCH_FALLBACK", default=True),
            http_timeout_s=_env_float("ORACLE_HTTP_TIMEOUT_S", 30.0),
        )
        _validate(config)
        return config


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigValidationError(key, raw, "must be an integer") from None


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigValidationError(key, raw, "must be a number") from None


def _env_bool(key: str, *, default: bool) -> bool:
    """Parse a boolean environment variable (``1/true/yes/on``)."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate(config: PipelineConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.search_api_url:
        raise ConfigValidationError(
            constants.ENV_SEARCH_API_URL, config.search_api_url, "must not be empty"
        )

    if config.storage_backend not in _STORAGE_BACKENDS:
        raise ConfigValidationError(
            "ORACLE_STORAGE_BACKEND",
            config.storage_backend,
            f"must be one of {', '.join(sorted(_STORAGE_BACKENDS))}",
        )

    if config.storage_backend == "ipfs" and not config.ipfs_endpoint:
        raise ConfigValidationError(
            constants.ENV_IPFS_ENDPOINT, config.ipfs_endpoint, "must not be empty"
        )

    if config.storage_backend == "azure_blob" and not config.storage_container:
        raise ConfigValidationError(
            "ORACLE_STORAGE_CONTAINER", config.storage_container, "must not be empty"
        )

    for key, value in (
        ("ORACLE_BAND_BYTE_CAP", config.band_byte_cap),
        ("ORACLE_SAMPLE_BYTE_CAP", config.sample_byte_cap),
        ("ORACLE_CHUNK_SIZE", config.chunk_size),
        ("ORACLE_MAX_WINDOW_DIM", config.max_window_dim),
        ("ORACLE_GRID_SIZE", config.grid_size),
        ("ORACLE_RASTER_SIZE", config.raster_size),
    ):
        if value <= 0:
            raise ConfigValidationError(key, value, "must be > 0")

    if config.sample_byte_cap > config.band_byte_cap:
        raise ConfigValidationError(
            "ORACLE_SAMPLE_BYTE_CAP",
            config.sample_byte_cap,
            f"must be <= ORACLE_BAND_BYTE_CAP ({config.band_byte_cap})",
        )

    if config.grid_size > config.raster_size:
        raise ConfigValidationError(
            "ORACLE_GRID_SIZE",
            config.grid_size,
            f"must be <= ORACLE_RASTER_SIZE ({config.raster_size})",
        )

    if config.image_format not in _IMAGE_FORMATS:
        raise ConfigValidationError(
            "ORACLE_IMAGE_FORMAT",
            config.image_format,
            f"must be one of {', '.join(sorted(_IMAGE_FORMATS))}",
        )

    if not 1 <= config.image_quality <= 95:
        raise ConfigValidationError(
            "ORACLE_IMAGE_QUALITY", config.image_quality, "must be between 1 and 95"
        )

    if config.http_timeout_s <= 0:
        raise ConfigValidationError(
            "ORACLE_HTTP_TIMEOUT_S", config.http_timeout_s, "must be > 0 (seconds)"
        )
