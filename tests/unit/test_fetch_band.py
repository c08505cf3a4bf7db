"""Tests for the bounded band fetcher.

Network calls go through ``httpx.MockTransport``; nothing leaves the
process.

Covers:
- Byte cap enforced against servers that ignore ``Range``
- Request headers (Accept, Range, User-Agent)
- 200 and 206 accepted; anything else → FetchError
- Deterministic sample fallback and the strategy selection
- ``fetch_band`` resolves the window before downloading
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable

import httpx
import pytest

from ndvi_oracle.activities.fetch_band import (
    USER_AGENT,
    BandFetchStrategy,
    FetchError,
    FetchPolicy,
    SampleFetch,
    WindowedRangeFetch,
    fetch_band,
    fetch_band_sample,
    fetch_band_window,
    fetch_with_fallback,
)
from ndvi_oracle.core.config import ConfigError
from ndvi_oracle.models.raster import BandBuffer, BufferSource
from ndvi_oracle.models.stac import ResolvedBandAsset

BAND_URL = "https://example.test/B04.tif"
S2_TRANSFORM = (10.0, 0.0, 499980.0, 0.0, -10.0, 4200000.0)
S2_BBOX = [499980.0, 4190000.0, 500080.0, 4190100.0]


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _fetch(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    byte_cap: int = 1000,
    chunk_size: int = 64,
) -> BandBuffer:
    async def go() -> BandBuffer:
        async with _client(handler) as client:
            return await fetch_band_window(BAND_URL, byte_cap, chunk_size, client=client)

    return asyncio.run(go())


def _asset(band: str = "red", href: str = BAND_URL) -> ResolvedBandAsset:
    return ResolvedBandAsset(band=band, href=href, transform=S2_TRANSFORM, shape=(10980, 10980))


class TestByteCap:
    """The accumulator never exceeds ``byte_cap``."""

    def test_upstream_ten_times_cap_truncated_to_cap(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(200, content=b"\x07" * 10_000), byte_cap=1000)
        assert len(buffer) == 1000
        assert buffer.truncated is True
        assert buffer.byte_cap == 1000

    def test_cap_not_multiple_of_chunk(self) -> None:
        buffer = _fetch(
            lambda r: httpx.Response(200, content=bytes(range(256)) * 40),
            byte_cap=1000,
            chunk_size=300,
        )
        assert len(buffer) == 1000
        assert buffer.data == (bytes(range(256)) * 40)[:1000]

    def test_short_body_is_not_an_error(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(200, content=b"abc"), byte_cap=1000)
        assert buffer.data == b"abc"
        assert buffer.truncated is False
        assert buffer.source is BufferSource.WINDOW

    def test_body_exactly_cap_is_not_truncated(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(200, content=b"\x01" * 128), byte_cap=128)
        assert len(buffer) == 128
        assert buffer.truncated is False

    def test_body_one_past_cap_is_truncated(self) -> None:
        buffer = _fetch(
            lambda r: httpx.Response(200, content=b"\x01" * 129), byte_cap=128, chunk_size=64
        )
        assert len(buffer) == 128
        assert buffer.truncated is True

    def test_empty_body(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(200, content=b""))
        assert len(buffer) == 0
        assert buffer.truncated is False

    def test_non_positive_cap_rejected(self) -> None:
        with pytest.raises(ValueError, match="byte_cap"):
            _fetch(lambda r: httpx.Response(200), byte_cap=0)


class TestRequest:
    """Outgoing request shape."""

    def test_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(206, content=b"x" * 10)

        _fetch(handler, byte_cap=5000)
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "GET"
        assert request.headers["Accept"] == "*/*"
        assert request.headers["Range"] == "bytes=0-4999"
        assert request.headers["User-Agent"] == USER_AGENT

    def test_206_is_success(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(206, content=b"partial"))
        assert buffer.data == b"partial"
        assert buffer.status_code == 206

    def test_200_is_success(self) -> None:
        buffer = _fetch(lambda r: httpx.Response(200, content=b"whole"))
        assert buffer.status_code == 200


class TestFetchErrors:
    """Non-success statuses and transport errors."""

    def test_404_raises_fetch_error(self) -> None:
        with pytest.raises(FetchError) as exc_info:
            _fetch(lambda r: httpx.Response(404))
        assert exc_info.value.status_code == 404
        assert exc_info.value.url == BAND_URL
        assert "Status: 404" in str(exc_info.value)
        assert exc_info.value.retryable is False

    def test_503_is_retryable(self) -> None:
        with pytest.raises(FetchError) as exc_info:
            _fetch(lambda r: httpx.Response(503))
        assert exc_info.value.retryable is True

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            _fetch(handler)
        assert exc_info.value.status_code == 0
        assert exc_info.value.stage == "fetch_band"

    def test_invalid_port_raises_fetch_error(self) -> None:
        url = "https://host:abc/x"

        async def go() -> BandBuffer:
            async with _client(lambda r: httpx.Response(200)) as client:
                return await fetch_band_window(url, 100, 10, client=client)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(go())
        assert exc_info.value.url == url
        assert exc_info.value.status_code == 0


class TestSample:
    """Deterministic non-network fallback buffer."""

    def test_sized_to_cap(self) -> None:
        buffer = fetch_band_sample(BAND_URL, 50_000)
        assert len(buffer) == 50_000
        assert buffer.source is BufferSource.SAMPLE

    def test_deterministic_per_url(self) -> None:
        assert fetch_band_sample(BAND_URL, 100).data == fetch_band_sample(BAND_URL, 100).data
        assert fetch_band_sample(BAND_URL, 100).data != fetch_band_sample("other", 100).data

    def test_pattern_is_url_digest(self) -> None:
        digest = hashlib.sha256(BAND_URL.encode()).digest()
        assert fetch_band_sample(BAND_URL, 32).data == digest
        assert fetch_band_sample(BAND_URL, 40).data == digest + digest[:8]

    def test_zero_cap(self) -> None:
        assert len(fetch_band_sample(BAND_URL, 0)) == 0


class _FailingStrategy(BandFetchStrategy):
    name = "failing"

    def __init__(self) -> None:
        self.calls = 0

    async def fetch(self, url: str) -> BandBuffer:
        self.calls += 1
        raise FetchError(url, "Failed to download band. Status: 500", status_code=500)


class TestFallback:
    """Strategy selection on failure of the first."""

    def test_fallback_used_on_fetch_error(self) -> None:
        primary = _FailingStrategy()
        buffer = asyncio.run(fetch_with_fallback(BAND_URL, primary, SampleFetch(128), band="red"))
        assert primary.calls == 1
        assert buffer.source is BufferSource.SAMPLE
        assert len(buffer) == 128

    def test_no_fallback_propagates(self) -> None:
        with pytest.raises(FetchError):
            asyncio.run(fetch_with_fallback(BAND_URL, _FailingStrategy(), None))

    def test_primary_success_skips_fallback(self) -> None:
        async def go() -> BandBuffer:
            async with _client(lambda r: httpx.Response(200, content=b"ok")) as client:
                primary = WindowedRangeFetch(client, byte_cap=10, chunk_size=4)
                return await fetch_with_fallback(BAND_URL, primary, SampleFetch(128))

        buffer = asyncio.run(go())
        assert buffer.data == b"ok"
        assert buffer.source is BufferSource.WINDOW


class TestFetchBand:
    """Activity entry point."""

    def _run(self, handler: Callable[[httpx.Request], httpx.Response], policy: FetchPolicy):
        async def go():
            async with _client(handler) as client:
                return await fetch_band(_asset(), S2_BBOX, client=client, policy=policy)

        return asyncio.run(go())

    def test_window_and_buffer(self) -> None:
        result = self._run(
            lambda r: httpx.Response(206, content=b"z" * 500),
            FetchPolicy(byte_cap=100, chunk_size=16),
        )
        assert result.band == "red"
        assert result.window.window_width == 10
        assert result.window.window_height == 10
        assert len(result.buffer) == 100
        assert result.used_fallback is False

    def test_failure_falls_back_to_sample(self) -> None:
        result = self._run(
            lambda r: httpx.Response(403),
            FetchPolicy(byte_cap=100, sample_byte_cap=40),
        )
        assert result.used_fallback is True
        assert len(result.buffer) == 40

    def test_invalid_port_falls_back_to_sample(self) -> None:
        async def go():
            async with _client(lambda r: httpx.Response(200)) as client:
                return await fetch_band(
                    _asset(href="https://host:abc/x"),
                    S2_BBOX,
                    client=client,
                    policy=FetchPolicy(sample_byte_cap=40),
                )

        result = asyncio.run(go())
        assert result.used_fallback is True
        assert result.buffer.data == fetch_band_sample("https://host:abc/x", 40).data

    def test_failure_without_fallback_raises(self) -> None:
        with pytest.raises(FetchError):
            self._run(lambda r: httpx.Response(403), FetchPolicy(fallback_on_failure=False))

    def test_degenerate_transform_fails_before_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        asset = ResolvedBandAsset(
            band="nir", href=BAND_URL, transform=(0.0, 0, 0, 0, -10.0, 0), shape=(10, 10)
        )

        async def go() -> None:
            async with _client(handler) as client:
                await fetch_band(asset, S2_BBOX, client=client)

        with pytest.raises(ConfigError):
            asyncio.run(go())
        assert calls == []
