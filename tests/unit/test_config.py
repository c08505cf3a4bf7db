"""Tests for pipeline configuration.

Covers:
- Default values (public endpoints, byte caps, render options)
- Loading from environment variables
- Type coercion (string env vars → numeric/bool fields)
- Fail-fast range validation
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from ndvi_oracle.core.config import ConfigError, ConfigValidationError, PipelineConfig


class TestPipelineConfigDefaults:
    """Verify default configuration values."""

    def test_default_endpoints(self) -> None:
        cfg = PipelineConfig()
        assert cfg.search_api_url == "https://earth-search.aws.element84.com/v1/search"
        assert cfg.ipfs_endpoint == "https://node.lighthouse.storage/api/v0/add"
        assert cfg.ipfs_api_key == ""

    def test_default_storage(self) -> None:
        cfg = PipelineConfig()
        assert cfg.storage_backend == "ipfs"
        assert cfg.storage_container == "ndvi-oracle"

    def test_default_byte_caps(self) -> None:
        cfg = PipelineConfig()
        assert cfg.band_byte_cap == 100_000
        assert cfg.sample_byte_cap == 50_000
        assert cfg.chunk_size == 4096
        assert cfg.max_window_dim == 500

    def test_default_render(self) -> None:
        cfg = PipelineConfig()
        assert cfg.grid_size == 20
        assert cfg.raster_size == 200
        assert cfg.image_format == "jpeg"
        assert cfg.image_quality == 60

    def test_default_fallback_enabled(self) -> None:
        assert PipelineConfig().fetch_fallback is True


class TestPipelineConfigFromEnv:
    """Verify loading configuration from environment variables."""

    def test_loads_from_environment(self) -> None:
        env = {
            "WAVS_ENV_EARTH_SEARCH_API": "https://stac.example.test/search",
            "WAVS_ENV_IPFS_ENDPOINT": "https://ipfs.example.test/api/v0/add",
            "WAVS_ENV_IPFS_API_KEY": "secret",
            "ORACLE_BAND_BYTE_CAP": "200000",
            "ORACLE_SAMPLE_BYTE_CAP": "1000",
            "ORACLE_GRID_SIZE": "10",
            "ORACLE_IMAGE_FORMAT": "PNG",
            "ORACLE_FETCH_FALLBACK": "false",
            "ORACLE_HTTP_TIMEOUT_S": "12.5",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = PipelineConfig.from_env()
        assert cfg.search_api_url == "https://stac.example.test/search"
        assert cfg.ipfs_endpoint == "https://ipfs.example.test/api/v0/add"
        assert cfg.ipfs_api_key == "secret"
        assert cfg.band_byte_cap == 200_000
        assert cfg.sample_byte_cap == 1000
        assert cfg.grid_size == 10
        assert cfg.image_format == "png"
        assert cfg.fetch_fallback is False
        assert cfg.http_timeout_s == 12.5

    def test_defaults_when_env_missing(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = PipelineConfig.from_env()
        assert cfg == PipelineConfig()

    @pytest.mark.parametrize("raw", ["1", "true", "YES", "on"])
    def test_truthy_fallback_flag(self, raw: str) -> None:
        with patch.dict(os.environ, {"ORACLE_FETCH_FALLBACK": raw}, clear=True):
            assert PipelineConfig.from_env().fetch_fallback is True

    def test_blank_fallback_flag_uses_default(self) -> None:
        with patch.dict(os.environ, {"ORACLE_FETCH_FALLBACK": "  "}, clear=True):
            assert PipelineConfig.from_env().fetch_fallback is True

    def test_frozen_immutability(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.chunk_size = 1  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("key", "value"),
        [("ORACLE_CHUNK_SIZE", "abc"), ("ORACLE_HTTP_TIMEOUT_S", "soon")],
    )
    def test_non_numeric_value(self, key: str, value: str) -> None:
        with (
            patch.dict(os.environ, {key: value}, clear=True),
            pytest.raises(ConfigValidationError) as exc_info,
        ):
            PipelineConfig.from_env()
        assert exc_info.value.key == key
        assert exc_info.value.value == value
        assert exc_info.value.category == "permanent"

    def test_blank_numeric_uses_default(self) -> None:
        with patch.dict(os.environ, {"ORACLE_CHUNK_SIZE": "  "}, clear=True):
            assert PipelineConfig.from_env().chunk_size == 4096


class TestConfigValidation:
    """Fail-fast validation of loaded values."""

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("ORACLE_BAND_BYTE_CAP", "0"),
            ("ORACLE_CHUNK_SIZE", "-1"),
            ("ORACLE_MAX_WINDOW_DIM", "0"),
            ("ORACLE_GRID_SIZE", "0"),
            ("ORACLE_RASTER_SIZE", "0"),
            ("ORACLE_IMAGE_QUALITY", "0"),
            ("ORACLE_IMAGE_QUALITY", "96"),
            ("ORACLE_HTTP_TIMEOUT_S", "0"),
            ("ORACLE_IMAGE_FORMAT", "gif"),
            ("ORACLE_STORAGE_BACKEND", "s3"),
            ("WAVS_ENV_EARTH_SEARCH_API", ""),
            ("WAVS_ENV_IPFS_ENDPOINT", ""),
        ],
    )
    def test_invalid_value_rejected(self, key: str, value: str) -> None:
        with (
            patch.dict(os.environ, {key: value}, clear=True),
            pytest.raises(ConfigValidationError) as exc_info,
        ):
            PipelineConfig.from_env()
        assert exc_info.value.key == key

    def test_sample_cap_above_band_cap(self) -> None:
        env = {"ORACLE_BAND_BYTE_CAP": "100", "ORACLE_SAMPLE_BYTE_CAP": "101"}
        with (
            patch.dict(os.environ, env, clear=True),
            pytest.raises(ConfigValidationError, match="ORACLE_SAMPLE_BYTE_CAP"),
        ):
            PipelineConfig.from_env()

    def test_grid_larger_than_raster(self) -> None:
        env = {"ORACLE_GRID_SIZE": "300"}
        with (
            patch.dict(os.environ, env, clear=True),
            pytest.raises(ConfigValidationError, match="ORACLE_GRID_SIZE"),
        ):
            PipelineConfig.from_env()

    def test_azure_backend_accepted(self) -> None:
        with patch.dict(os.environ, {"ORACLE_STORAGE_BACKEND": "Azure_Blob"}, clear=True):
            assert PipelineConfig.from_env().storage_backend == "azure_blob"

    def test_validation_error_is_config_error(self) -> None:
        with (
            patch.dict(os.environ, {"ORACLE_CHUNK_SIZE": "0"}, clear=True),
            pytest.raises(ConfigError) as exc_info,
        ):
            PipelineConfig.from_env()
        assert exc_info.value.code == "CONFIG_VALIDATION_FAILED"
        assert exc_info.value.stage == "config"
