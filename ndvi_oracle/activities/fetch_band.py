"""Fetch band activity — bounded, range-limited band downloads.

Resolves the pixel window a scene's bbox covers in a band raster, then
downloads at most ``byte_cap`` bytes of the band asset.  The byte cap is
enforced on every read, including against servers that ignore the
``Range`` header and stream the whole file.

Two interchangeable strategies implement ``BandFetchStrategy``:

- ``WindowedRangeFetch`` — HTTP GET with a ``Range`` header, read in
  ``chunk_size`` chunks until end of stream or the cap.
- ``SampleFetch`` — a deterministic, non-network byte pattern.  Used as
  the fallback when the windowed download fails; it cannot fail.

``fetch_with_fallback`` selects between them based on whether the first
one raises.  There are no retries beyond that single substitution.
"""

from __future__ import annotations

import abc
import hashlib
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from ndvi_oracle import __version__
from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import TransientError
from ndvi_oracle.models.raster import BandBuffer, BufferSource, PixelWindow
from ndvi_oracle.models.stac import ResolvedBandAsset
from ndvi_oracle.utils.geo_window import resolve_window

logger = logging.getLogger("ndvi_oracle.activities.fetch_band")

USER_AGENT = f"ndvi-oracle/{__version__} (band-window-fetcher)"


class FetchError(TransientError):
    """Raised when a band download fails.

    Attributes:
        url: The asset URL that failed.
        status_code: HTTP status, or 0 for transport failures.
    """

    default_stage = "fetch_band"
    default_code = "BAND_FETCH_FAILED"

    def __init__(self, url: str, message: str, *, status_code: int = 0) -> None:
        self.url = url
        self.status_code = status_code
        retryable = status_code == 0 or status_code == 429 or status_code >= 500
        super().__init__(message, retryable=retryable)


@dataclass(frozen=True, slots=True)
class FetchPolicy:
    """Byte budget and fallback policy for band downloads.

    Attributes:
        byte_cap: Maximum bytes read per band.
        sample_byte_cap: Size of the fallback sample buffer.
        chunk_size: Read size per body chunk.
        max_window_dim: Largest pixel window edge before downsampling.
        fallback_on_failure: Substitute the sample when the download fails.
        timeout_s: Per-request timeout in seconds.
    """

    byte_cap: int = constants.DEFAULT_BAND_BYTE_CAP
    sample_byte_cap: int = constants.DEFAULT_SAMPLE_BYTE_CAP
    chunk_size: int = constants.DEFAULT_CHUNK_SIZE
    max_window_dim: int = constants.DEFAULT_MAX_WINDOW_DIM
    fallback_on_failure: bool = True
    timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S


@dataclass(frozen=True, slots=True)
class BandFetchResult:
    """Window and bytes for one band."""

    band: str
    window: PixelWindow
    buffer: BandBuffer

    @property
    def used_fallback(self) -> bool:
        return self.buffer.source is BufferSource.SAMPLE


# ---------------------------------------------------------------------------
# Primitive fetchers
# ---------------------------------------------------------------------------


async def fetch_band_window(
    url: str,
    byte_cap: int,
    chunk_size: int,
    *,
    client: httpx.AsyncClient | None = None,
    timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S,
) -> BandBuffer:
    """Download at most *byte_cap* bytes of *url*.

    Sends ``Accept: */*``, ``Range: bytes=0-{byte_cap - 1}`` and the
    oracle's ``User-Agent``.  Any 2xx status (including ``206 Partial
    Content``) is success.

    Args:
        url: Band asset URL.
        byte_cap: Hard limit on bytes accumulated.
        chunk_size: Bytes requested per body read.
        client: Shared ``httpx.AsyncClient``; a short-lived one is created
            when ``None``.
        timeout_s: Timeout for the short-lived client.

    Returns:
        A ``BandBuffer`` holding whatever was read.  A short buffer is not
        an error.

    Raises:
        FetchError: On a non-2xx status or a transport failure.
        ValueError: If *byte_cap* or *chunk_size* is not positive.
    """
    if byte_cap <= 0 or chunk_size <= 0:
        msg = f"byte_cap and chunk_size must be > 0 (got {byte_cap}, {chunk_size})"
        raise ValueError(msg)

    if client is None:
        async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as owned:
            return await _read_capped(owned, url, byte_cap, chunk_size)
    return await _read_capped(client, url, byte_cap, chunk_size)


def fetch_band_sample(url: str, byte_cap: int) -> BandBuffer:
    """Return a deterministic, non-network stand-in for a band download.

    The pattern is the SHA-256 digest of *url* repeated to exactly
    *byte_cap* bytes, so the same URL always yields the same buffer.
    """
    size = max(byte_cap, 0)
    seed = hashlib.sha256(url.encode("utf-8", errors="replace")).digest()
    data = (seed * math.ceil(size / len(seed)))[:size] if size else b""
    return BandBuffer(url=url, data=data, byte_cap=size, source=BufferSource.SAMPLE)


async def _read_capped(
    client: httpx.AsyncClient,
    url: str,
    byte_cap: int,
    chunk_size: int,
) -> BandBuffer:
    headers = {
        "Accept": "*/*",
        "Range": f"bytes=0-{byte_cap - 1}",
        "User-Agent": USER_AGENT,
    }
    body = bytearray()
    truncated = False
    chunks = 0
    status = 0

    try:
        async with client.stream("GET", url, headers=headers) as response:
            status = response.status_code
            if not response.is_success:
                msg = f"Failed to download band. Status: {status}"
                raise FetchError(url, msg, status_code=status)

            async for chunk in response.aiter_bytes(chunk_size):
                chunks += 1
                remaining = byte_cap - len(body)
                if len(chunk) > remaining:
                    body.extend(chunk[:remaining])
                    truncated = True
                    break
                body.extend(chunk)
    except FetchError:
        raise
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        # InvalidURL and a host-less URL are raised while building the request.
        msg = f"Failed to download band from {url}: {exc}"
        raise FetchError(url, msg) from exc

    logger.debug(
        "Band body read | url=%s | status=%d | chunks=%d | bytes=%d",
        url,
        status,
        chunks,
        len(body),
    )

    if truncated:
        logger.info(
            "Reached byte limit, truncating download | url=%s | cap=%d bytes",
            url,
            byte_cap,
        )

    return BandBuffer(
        url=url,
        data=bytes(body),
        byte_cap=byte_cap,
        source=BufferSource.WINDOW,
        truncated=truncated,
        status_code=status,
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class BandFetchStrategy(abc.ABC):
    """Interface for obtaining the bytes of one band."""

    #: Short name used in logs.
    name: str = ""

    @abc.abstractmethod
    async def fetch(self, url: str) -> BandBuffer:
        """Return a bounded buffer for *url*."""


class WindowedRangeFetch(BandFetchStrategy):
    """Range-limited network download."""

    name = "window"

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        *,
        byte_cap: int = constants.DEFAULT_BAND_BYTE_CAP,
        chunk_size: int = constants.DEFAULT_CHUNK_SIZE,
        timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._byte_cap = byte_cap
        self._chunk_size = chunk_size
        self._timeout_s = timeout_s

    async def fetch(self, url: str) -> BandBuffer:
        return await fetch_band_window(
            url,
            self._byte_cap,
            self._chunk_size,
            client=self._client,
            timeout_s=self._timeout_s,
        )


class SampleFetch(BandFetchStrategy):
    """Deterministic non-network sample; never fails."""

    name = "sample"

    def __init__(self, byte_cap: int = constants.DEFAULT_SAMPLE_BYTE_CAP) -> None:
        self._byte_cap = byte_cap

    async def fetch(self, url: str) -> BandBuffer:
        return fetch_band_sample(url, self._byte_cap)


async def fetch_with_fallback(
    url: str,
    primary: BandFetchStrategy,
    fallback: BandFetchStrategy | None = None,
    *,
    band: str = "",
) -> BandBuffer:
    """Fetch with *primary*, substituting *fallback* if it raises ``FetchError``.

    Raises:
        FetchError: If *primary* fails and no *fallback* is given.
    """
    try:
        return await primary.fetch(url)
    except FetchError as exc:
        if fallback is None:
            raise
        logger.warning(
            "Band fetch failed, using %s fallback | band=%s | url=%s | status=%d | error=%s",
            fallback.name,
            band,
            url,
            exc.status_code,
            exc,
        )
        return await fallback.fetch(url)


# ---------------------------------------------------------------------------
# Activity entry point
# ---------------------------------------------------------------------------


def resolve_band_window(
    asset: ResolvedBandAsset,
    bbox: Sequence[float],
    policy: FetchPolicy | None = None,
) -> PixelWindow:
    """Resolve the pixel window *bbox* covers in *asset*.

    Raises:
        ConfigError: If the transform is degenerate.
    """
    policy = policy or FetchPolicy()
    window = resolve_window(bbox, asset.transform, asset.shape, policy.max_window_dim)
    logger.info(
        "Band window resolved | band=%s | url=%s | window=x%d-%d,y%d-%d | "
        "size=%dx%d | effective=%dx%d | scale=%.3f",
        asset.band,
        asset.href,
        window.min_x,
        window.max_x,
        window.min_y,
        window.max_y,
        window.window_width,
        window.window_height,
        window.effective_width,
        window.effective_height,
        window.scale_factor,
    )
    return window


async def download_band(
    asset: ResolvedBandAsset,
    window: PixelWindow,
    *,
    client: httpx.AsyncClient | None = None,
    policy: FetchPolicy | None = None,
) -> BandFetchResult:
    """Download the bounded bytes of *asset* for an already resolved *window*.

    The download reads from the start of the asset; the window only sizes
    the work downstream.

    Raises:
        FetchError: If the download fails and fallback is disabled.
    """
    policy = policy or FetchPolicy()
    primary = WindowedRangeFetch(
        client,
        byte_cap=policy.byte_cap,
        chunk_size=policy.chunk_size,
        timeout_s=policy.timeout_s,
    )
    fallback = SampleFetch(policy.sample_byte_cap) if policy.fallback_on_failure else None
    buffer = await fetch_with_fallback(asset.href, primary, fallback, band=asset.band)

    logger.info(
        "fetch_band completed | band=%s | source=%s | bytes=%d | truncated=%s",
        asset.band,
        buffer.source.value,
        len(buffer),
        buffer.truncated,
    )
    return BandFetchResult(band=asset.band, window=window, buffer=buffer)


async def fetch_band(
    asset: ResolvedBandAsset,
    bbox: Sequence[float],
    *,
    client: httpx.AsyncClient | None = None,
    policy: FetchPolicy | None = None,
) -> BandFetchResult:
    """Resolve the pixel window for *asset* and download its bounded bytes.

    The window is resolved first so a degenerate transform fails before
    any network traffic.  Callers fetching several bands should resolve
    every window with ``resolve_band_window`` before starting any
    ``download_band``.

    Args:
        asset: Band asset with transform and shape resolved.
        bbox: Scene bounding box.
        client: Shared HTTP client.
        policy: Byte budget and fallback policy (defaults if ``None``).

    Returns:
        ``BandFetchResult`` with the window and buffer.

    Raises:
        ConfigError: If the transform is degenerate.
        FetchError: If the download fails and fallback is disabled.
    """
    window = resolve_band_window(asset, bbox, policy)
    return await download_band(asset, window, client=client, policy=policy)
