"""STAC search response models and band asset extraction.

The search response is parsed into typed pydantic models; feature
``properties`` and ``assets`` stay opaque mappings because only a
handful of keys are read from them.

Extraction is deliberately asymmetric:

- A missing band asset or ``href`` is fatal (``MissingAssetError``).
- Missing or malformed ``proj:transform`` / ``proj:shape`` and scene
  properties fall back to documented defaults via ``with_defaults`` and
  ``extract_scene_properties``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import ValidationError

logger = logging.getLogger("ndvi_oracle.models.stac")


class MissingAssetError(ValidationError):
    """Raised when a required band asset (or its ``href``) is absent.

    Attributes:
        band: The band key that could not be resolved (``"red"``/``"nir"``).
    """

    default_stage = "select_feature"
    default_code = "MISSING_ASSET"

    def __init__(self, band: str, message: str = "") -> None:
        self.band = band
        super().__init__(message or f"{band} band not found in feature assets")


# ---------------------------------------------------------------------------
# Search response
# ---------------------------------------------------------------------------


class StacLink(BaseModel):
    """A STAC link object."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    rel: str
    href: str
    link_type: str | None = Field(default=None, alias="type")
    title: str | None = None
    method: str | None = None


class SearchContext(BaseModel):
    """Pagination context returned by the search endpoint."""

    limit: int | None = None
    matched: int | None = None
    returned: int | None = None


class StacFeature(BaseModel):
    """A single STAC item from the search response.

    Attributes:
        id: Item identifier, unique within a response.
        bbox: ``[min_lon, min_lat, max_lon, max_lat]``.
        geometry: GeoJSON geometry (opaque).
        properties: Item properties (opaque).
        assets: Asset key → raw asset document.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    bbox: list[float]
    feature_type: str = Field(default="Feature", alias="type")
    stac_version: str = ""
    stac_extensions: list[str] = Field(default_factory=list)
    collection: str = ""
    geometry: dict[str, Any] | None = None
    properties: dict[str, Any] = Field(default_factory=dict)
    assets: dict[str, Any] = Field(default_factory=dict)
    links: list[StacLink] = Field(default_factory=list)

    @field_validator("bbox")
    @classmethod
    def _bbox_has_four_values(cls, value: list[float]) -> list[float]:
        if len(value) != 4:
            msg = f"bbox must have 4 values, got {len(value)}"
            raise ValueError(msg)
        return value


class StacSearchResponse(BaseModel):
    """A STAC ``FeatureCollection`` returned by item search."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    response_type: str = Field(default="FeatureCollection", alias="type")
    stac_version: str = ""
    stac_extensions: list[str] = Field(default_factory=list)
    context: SearchContext | None = None
    number_matched: int | None = Field(default=None, alias="numberMatched")
    number_returned: int | None = Field(default=None, alias="numberReturned")
    features: list[StacFeature] = Field(default_factory=list)
    links: list[StacLink] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Band assets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BandAsset:
    """A band asset as found in the feature, before defaulting.

    Attributes:
        band: Asset key (``"red"`` or ``"nir"``).
        href: Asset URL.
        transform: Six affine coefficients, or ``None`` if absent/malformed.
        shape: ``(height, width)``, or ``None`` if absent/malformed.
    """

    band: str
    href: str
    transform: tuple[float, ...] | None = None
    shape: tuple[int, int] | None = None


@dataclass(frozen=True, slots=True)
class ResolvedBandAsset:
    """A band asset with transform and shape guaranteed present."""

    band: str
    href: str
    transform: tuple[float, float, float, float, float, float]
    shape: tuple[int, int]
    defaulted: bool = False


def extract_band_asset(feature: StacFeature, band: str) -> BandAsset:
    """Pull the *band* asset out of *feature*.

    Raises:
        MissingAssetError: If the asset is absent or has no string ``href``.
    """
    asset = feature.assets.get(band)
    if not isinstance(asset, dict):
        raise MissingAssetError(band)

    href = asset.get("href")
    if not isinstance(href, str) or not href:
        raise MissingAssetError(band, f"{band} band URL not found")

    return BandAsset(
        band=band,
        href=href,
        transform=_parse_transform(asset.get(constants.PROJ_TRANSFORM_KEY)),
        shape=_parse_shape(asset.get(constants.PROJ_SHAPE_KEY)),
    )


def with_defaults(asset: BandAsset) -> ResolvedBandAsset:
    """Resolve optional geo metadata to the Sentinel-2 10 m defaults.

    Pure function: a missing transform or shape is replaced by
    ``DEFAULT_TRANSFORM`` / ``DEFAULT_SHAPE``.
    """
    transform = asset.transform
    shape = asset.shape
    defaulted = transform is None or shape is None
    if transform is None:
        transform = constants.DEFAULT_TRANSFORM
    if shape is None:
        shape = constants.DEFAULT_SHAPE
    return ResolvedBandAsset(
        band=asset.band,
        href=asset.href,
        transform=transform,  # type: ignore[arg-type]
        shape=shape,
        defaulted=defaulted,
    )


# ---------------------------------------------------------------------------
# Scene properties
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SceneProperties:
    """Scene-level provenance read from feature properties."""

    datetime: str = constants.DEFAULT_DATETIME
    cloud_cover: float = constants.DEFAULT_CLOUD_COVER
    vegetation_percentage: float = constants.DEFAULT_VEGETATION_PCT


def extract_scene_properties(feature: StacFeature) -> SceneProperties:
    """Read datetime, cloud cover and vegetation percentage, defaulting silently."""
    props = feature.properties
    dt = props.get(constants.DATETIME_KEY)
    return SceneProperties(
        datetime=dt if isinstance(dt, str) else constants.DEFAULT_DATETIME,
        cloud_cover=_as_float(props.get(constants.CLOUD_COVER_KEY), constants.DEFAULT_CLOUD_COVER),
        vegetation_percentage=_as_float(
            props.get(constants.VEGETATION_PCT_KEY), constants.DEFAULT_VEGETATION_PCT
        ),
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_float(value: object, default: float) -> float:
    return float(value) if _is_number(value) else default  # type: ignore[arg-type]


def _parse_transform(raw: object) -> tuple[float, ...] | None:
    """Return the first six affine coefficients, or ``None``.

    STAC allows a 9-element transform (a full 3x3 matrix); only the
    first six coefficients are meaningful here.
    """
    if not isinstance(raw, list):
        return None
    values = [float(v) for v in raw if _is_number(v)]
    if len(values) < 6:
        if raw:
            logger.warning("Ignoring malformed proj:transform: %r", raw)
        return None
    return tuple(values[:6])


def _parse_shape(raw: object) -> tuple[int, int] | None:
    """Return ``(height, width)`` or ``None``."""
    if not isinstance(raw, list):
        return None
    values = [int(v) for v in raw if isinstance(v, int) and not isinstance(v, bool)]
    if len(values) != 2 or min(values) < 0:
        if raw:
            logger.warning("Ignoring malformed proj:shape: %r", raw)
        return None
    return values[0], values[1]
