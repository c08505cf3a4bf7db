"""Pydantic provenance models published alongside the NDVI image.

The metadata document is the audit trail for one oracle run: which scene
was used, when it was captured, which band assets were read, and where
the rendered image lives.  ``OracleResult`` is the compact record handed
back to the trigger codec.

Published JSON shape::

    {
      "metadata": {
        "id": "...", "datetime": "...", "bbox": [...],
        "cloud_cover": 0.0, "vegetation_percentage": 0.0,
        "ndvi_stats": {"min": 0.0, "max": 1.0, "mean": 0.5},
        "source_red_band": "...", "source_nir_band": "..."
      },
      "ndvi_image_uri": "ipfs://..."
    }
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ndvi_oracle.core.exceptions import SerializationError


class NdviStats(BaseModel):
    """Summary statistics of the NDVI raster.

    The values are fixed placeholders (``0.0 / 1.0 / 0.5``) and do not
    reflect the band buffers.
    """

    model_config = ConfigDict(frozen=True)

    min: float = 0.0
    max: float = 1.0
    mean: float = 0.5


class NdviMetadata(BaseModel):
    """Scene provenance for one NDVI render.

    Attributes:
        id: STAC feature identifier.
        datetime: Acquisition timestamp, or ``"unknown"``.
        bbox: Feature bounding box ``[min_lon, min_lat, max_lon, max_lat]``.
        cloud_cover: ``eo:cloud_cover`` percentage (0.0 when absent).
        vegetation_percentage: ``s2:vegetation_percentage`` (0.0 when absent).
        ndvi_stats: Summary statistics of the render.
        source_red_band: Red band asset URL.
        source_nir_band: NIR band asset URL.
    """

    id: str
    datetime: str
    bbox: list[float] = Field(default_factory=list)
    cloud_cover: float = 0.0
    vegetation_percentage: float = 0.0
    ndvi_stats: NdviStats = Field(default_factory=NdviStats)
    source_red_band: str
    source_nir_band: str


class NdviResultMetadata(BaseModel):
    """Metadata document uploaded after the image, embedding its URI."""

    metadata: NdviMetadata
    ndvi_image_uri: str

    def to_json_bytes(self) -> bytes:
        """Serialise to compact UTF-8 JSON.

        Raises:
            SerializationError: If the document cannot be encoded.
        """
        try:
            return self.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            msg = f"Failed to serialize metadata: {exc}"
            raise SerializationError(msg) from exc


class OracleResult(BaseModel):
    """Final oracle output: where the metadata lives and which scene it describes."""

    model_config = ConfigDict(frozen=True)

    metadata_uri: str
    feature_id: str

    def to_json_bytes(self) -> bytes:
        """Serialise to compact UTF-8 JSON.

        Raises:
            SerializationError: If the result cannot be encoded.
        """
        try:
            return self.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as exc:
            msg = f"Failed to serialize oracle result: {exc}"
            raise SerializationError(msg) from exc

    @classmethod
    def from_json_bytes(cls, raw: bytes | str) -> OracleResult:
        """Parse a serialised result.

        Raises:
            SerializationError: If *raw* is not a valid result document.
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            msg = f"Failed to parse oracle result: {exc}"
            raise SerializationError(msg) from exc
