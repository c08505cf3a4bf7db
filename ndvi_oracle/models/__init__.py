"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- StacFeature / StacSearchResponse: Catalog search results
- BandAsset: Red/NIR asset URL with optional geo metadata
- PixelWindow: Raster window resolved from a bounding box
- BandBuffer: Bounded bytes downloaded for one band
- NdviResult: Encoded NDVI image plus statistics
- NdviResultMetadata / OracleResult: Published provenance and final output
"""

from ndvi_oracle.models.metadata import (
    NdviMetadata,
    NdviResultMetadata,
    NdviStats,
    OracleResult,
)
from ndvi_oracle.models.raster import (
    BandBuffer,
    BufferSource,
    ModelValidationError,
    NdviResult,
    PixelWindow,
)
from ndvi_oracle.models.stac import (
    BandAsset,
    MissingAssetError,
    ResolvedBandAsset,
    StacFeature,
    StacSearchResponse,
)

__all__ = [
    "BandAsset",
    "BandBuffer",
    "BufferSource",
    "MissingAssetError",
    "ModelValidationError",
    "NdviMetadata",
    "NdviResult",
    "NdviResultMetadata",
    "NdviStats",
    "OracleResult",
    "PixelWindow",
    "ResolvedBandAsset",
    "StacFeature",
    "StacSearchResponse",
]
