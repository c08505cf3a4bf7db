"""Oracle pipeline: STAC query in, published NDVI provenance out.

Stages, in order:

1. ``QUERY_SUBMITTED``   — query validated and posted to the search API
2. ``FEATURE_SELECTED``  — first feature picked, red and NIR assets extracted
3. ``BANDS_FETCHED``     — both bands downloaded concurrently (bounded)
4. ``INDEX_DERIVED``     — NDVI image rendered and encoded
5. ``ARTIFACT_UPLOADED`` — image stored, URI known
6. ``METADATA_UPLOADED`` — metadata stored, embedding the image URI
7. ``DONE``              — ``OracleResult`` returned

Any failure aborts the run with the stage's ``PipelineError``; there is
no retry loop and no partial result.  Both band assets are extracted
and both pixel windows resolved before any download starts, so a missing
band or a degenerate transform never costs network I/O.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

import httpx

from ndvi_oracle.activities.derive_index import RenderOptions, derive_index
from ndvi_oracle.activities.fetch_band import (
    BandFetchResult,
    FetchPolicy,
    download_band,
    resolve_band_window,
)
from ndvi_oracle.activities.publish_artifacts import publish_artifacts
from ndvi_oracle.activities.search_catalog import parse_query, search_catalog, select_feature
from ndvi_oracle.core import constants
from ndvi_oracle.core.config import PipelineConfig
from ndvi_oracle.core.exceptions import PipelineError
from ndvi_oracle.core.trigger import build_trigger_response, decode_trigger_event
from ndvi_oracle.models.metadata import OracleResult
from ndvi_oracle.models.stac import extract_band_asset, with_defaults
from ndvi_oracle.storage.base import UploaderConfig
from ndvi_oracle.storage.factory import IPFS, get_uploader

if TYPE_CHECKING:
    from ndvi_oracle.storage.base import StorageUploader

logger = logging.getLogger("ndvi_oracle.orchestrators.oracle_pipeline")


class PipelineStage(enum.Enum):
    """Progress markers for one oracle run."""

    QUERY_SUBMITTED = "query_submitted"
    FEATURE_SELECTED = "feature_selected"
    BANDS_FETCHED = "bands_fetched"
    INDEX_DERIVED = "index_derived"
    ARTIFACT_UPLOADED = "artifact_uploaded"
    METADATA_UPLOADED = "metadata_uploaded"
    DONE = "done"


# ---------------------------------------------------------------------------
# Config → stage options
# ---------------------------------------------------------------------------


def fetch_policy_from_config(config: PipelineConfig) -> FetchPolicy:
    return FetchPolicy(
        byte_cap=config.band_byte_cap,
        sample_byte_cap=config.sample_byte_cap,
        chunk_size=config.chunk_size,
        max_window_dim=config.max_window_dim,
        fallback_on_failure=config.fetch_fallback,
        timeout_s=config.http_timeout_s,
    )


def render_options_from_config(config: PipelineConfig) -> RenderOptions:
    return RenderOptions(
        width=config.raster_size,
        height=config.raster_size,
        grid_size=config.grid_size,
        image_format=config.image_format,
        quality=config.image_quality,
    )


def uploader_config_from_config(config: PipelineConfig) -> UploaderConfig:
    return UploaderConfig(
        name=config.storage_backend,
        endpoint=config.ipfs_endpoint,
        api_key=config.ipfs_api_key,
        container=config.storage_container,
        timeout_s=config.http_timeout_s,
    )


def build_uploader(config: PipelineConfig, client: httpx.AsyncClient) -> StorageUploader:
    """Create the configured storage backend, sharing *client* where it speaks HTTP."""
    backend_kwargs: dict[str, Any] = {}
    if config.storage_backend == IPFS:
        backend_kwargs["client"] = client
    return get_uploader(
        config.storage_backend,
        uploader_config_from_config(config),
        **backend_kwargs,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


async def run_pipeline(
    query_bytes: bytes | str,
    config: PipelineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    uploader: StorageUploader | None = None,
) -> OracleResult:
    """Run the oracle for one STAC query.

    Args:
        query_bytes: JSON-encoded STAC search body.
        config: Pipeline configuration (defaults if ``None``).
        client: Shared HTTP client for search, band fetches and IPFS
            uploads; a short-lived one is created when ``None``.
        uploader: Storage backend; built from *config* when ``None``.

    Returns:
        ``OracleResult`` with the metadata URI and the feature id.

    Raises:
        PipelineError: Subclass identifying the failing stage.
    """
    config = config or PipelineConfig()

    if client is None:
        async with httpx.AsyncClient(
            timeout=config.http_timeout_s, follow_redirects=True
        ) as owned:
            return await _run(query_bytes, config, owned, uploader)
    return await _run(query_bytes, config, client, uploader)


async def _run(
    query_bytes: bytes | str,
    config: PipelineConfig,
    client: httpx.AsyncClient,
    uploader: StorageUploader | None,
) -> OracleResult:
    query = parse_query(query_bytes)
    response = await search_catalog(
        query,
        api_url=config.search_api_url,
        client=client,
        timeout_s=config.http_timeout_s,
    )
    _log_stage(PipelineStage.QUERY_SUBMITTED, features=len(response.features))

    feature = select_feature(response)
    red_asset = with_defaults(extract_band_asset(feature, constants.RED_BAND))
    nir_asset = with_defaults(extract_band_asset(feature, constants.NIR_BAND))
    for asset in (red_asset, nir_asset):
        if asset.defaulted:
            logger.warning(
                "Band geo metadata missing, using Sentinel-2 defaults | band=%s | feature=%s",
                asset.band,
                feature.id,
            )
    _log_stage(
        PipelineStage.FEATURE_SELECTED,
        feature=feature.id,
        red=red_asset.href,
        nir=nir_asset.href,
        defaulted_geo=red_asset.defaulted or nir_asset.defaulted,
    )

    policy = fetch_policy_from_config(config)
    # Both windows resolve before either download starts.
    red_window = resolve_band_window(red_asset, feature.bbox, policy)
    nir_window = resolve_band_window(nir_asset, feature.bbox, policy)
    red, nir = await _download_pair(
        download_band(red_asset, red_window, client=client, policy=policy),
        download_band(nir_asset, nir_window, client=client, policy=policy),
    )
    _log_stage(
        PipelineStage.BANDS_FETCHED,
        red_bytes=len(red.buffer),
        nir_bytes=len(nir.buffer),
        fallback=red.used_fallback or nir.used_fallback,
    )

    ndvi = derive_index(red.buffer, nir.buffer, options=render_options_from_config(config))
    _log_stage(PipelineStage.INDEX_DERIVED, image_bytes=len(ndvi.image))

    uploader = uploader or build_uploader(config, client)
    published = await publish_artifacts(
        feature,
        ndvi,
        uploader,
        red_href=red_asset.href,
        nir_href=nir_asset.href,
    )
    _log_stage(PipelineStage.ARTIFACT_UPLOADED, image_uri=published.image_uri)
    _log_stage(PipelineStage.METADATA_UPLOADED, metadata_uri=published.metadata_uri)

    result = OracleResult(metadata_uri=published.metadata_uri, feature_id=feature.id)
    _log_stage(PipelineStage.DONE, feature=result.feature_id)
    return result


async def process_trigger(
    raw: bytes | str | dict[str, Any],
    config: PipelineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    uploader: StorageUploader | None = None,
) -> bytes:
    """Decode a trigger envelope, run the pipeline, and encode the reply.

    Returns:
        Chain-wrapped output for ``chain`` destinations, the raw
        ``OracleResult`` JSON for ``cli``.

    Raises:
        PipelineError: Subclass identifying the failing stage.
    """
    event = decode_trigger_event(raw)
    logger.info(
        "Oracle run started | trigger_id=%d | destination=%s | query=%d bytes",
        event.trigger_id,
        event.destination.value,
        len(event.payload),
    )
    try:
        result = await run_pipeline(event.payload, config, client=client, uploader=uploader)
    except PipelineError as exc:
        exc.correlation_id = exc.correlation_id or str(event.trigger_id)
        logger.error(
            "Oracle run failed | trigger_id=%d | stage=%s | code=%s | error=%s",
            event.trigger_id,
            exc.stage,
            exc.code,
            exc,
        )
        raise
    return build_trigger_response(event, result.to_json_bytes())


def run_oracle(
    raw: bytes | str | dict[str, Any],
    config: PipelineConfig | None = None,
) -> bytes:
    """Synchronous entry point for hosts without an event loop."""
    return asyncio.run(process_trigger(raw, config))


async def _download_pair(
    red: Awaitable[BandFetchResult],
    nir: Awaitable[BandFetchResult],
) -> tuple[BandFetchResult, BandFetchResult]:
    """Run both downloads to completion, then raise the first failure."""
    results = await asyncio.gather(red, nir, return_exceptions=True)
    for outcome in results:
        if isinstance(outcome, BaseException):
            raise outcome
    return results[0], results[1]  # type: ignore[return-value]


def _log_stage(stage: PipelineStage, **fields: object) -> None:
    detail = " | ".join(f"{key}={value}" for key, value in fields.items())
    logger.info("Pipeline stage reached | stage=%s | %s", stage.value, detail)
