"""Publish artifacts activity — upload the image, then its metadata.

Ordering is the contract: the metadata document embeds the image URI,
so the image upload must succeed before the metadata is built.  If the
image upload fails nothing else is uploaded; if the metadata upload
fails the image is left orphaned (content-addressed, so harmless).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ndvi_oracle.models.metadata import NdviMetadata, NdviResultMetadata
from ndvi_oracle.models.stac import extract_scene_properties

if TYPE_CHECKING:
    from ndvi_oracle.models.raster import NdviResult
    from ndvi_oracle.models.stac import StacFeature
    from ndvi_oracle.storage.base import StorageUploader

logger = logging.getLogger("ndvi_oracle.activities.publish_artifacts")

METADATA_CONTENT_TYPE = "application/json"


@dataclass(frozen=True, slots=True)
class PublishedArtifacts:
    """URIs of the two uploaded artifacts."""

    image_uri: str
    metadata_uri: str


def build_metadata(
    feature: StacFeature,
    result: NdviResult,
    *,
    red_href: str,
    nir_href: str,
    image_uri: str,
) -> NdviResultMetadata:
    """Assemble the provenance document for *feature*.

    Missing scene properties fall back to ``"unknown"`` / ``0.0``.
    """
    scene = extract_scene_properties(feature)
    return NdviResultMetadata(
        metadata=NdviMetadata(
            id=feature.id,
            datetime=scene.datetime,
            bbox=list(feature.bbox),
            cloud_cover=scene.cloud_cover,
            vegetation_percentage=scene.vegetation_percentage,
            ndvi_stats=result.stats,
            source_red_band=red_href,
            source_nir_band=nir_href,
        ),
        ndvi_image_uri=image_uri,
    )


async def publish_artifacts(
    feature: StacFeature,
    result: NdviResult,
    uploader: StorageUploader,
    *,
    red_href: str,
    nir_href: str,
) -> PublishedArtifacts:
    """Upload the NDVI image and its metadata document, in that order.

    Args:
        feature: The selected STAC feature.
        result: Rendered NDVI image and statistics.
        uploader: Storage backend.
        red_href: Source URL of the red band.
        nir_href: Source URL of the NIR band.

    Returns:
        ``PublishedArtifacts`` with both URIs.

    Raises:
        UploadError: If either upload fails.
        SerializationError: If the metadata cannot be encoded.
    """
    logger.info(
        "publish_artifacts started | feature=%s | backend=%s | image=%d bytes",
        feature.id,
        uploader.name,
        len(result.image),
    )

    image_uri = await uploader.upload(result.content_type, result.image)

    document = build_metadata(
        feature,
        result,
        red_href=red_href,
        nir_href=nir_href,
        image_uri=image_uri,
    )
    metadata_uri = await uploader.upload(METADATA_CONTENT_TYPE, document.to_json_bytes())

    logger.info(
        "publish_artifacts completed | feature=%s | image_uri=%s | metadata_uri=%s",
        feature.id,
        image_uri,
        metadata_uri,
    )
    return PublishedArtifacts(image_uri=image_uri, metadata_uri=metadata_uri)
