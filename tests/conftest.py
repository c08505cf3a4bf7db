"""Shared pytest fixtures for the NDVI Oracle test suite."""

from __future__ import annotations

import copy
import json
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Sample STAC documents
# ---------------------------------------------------------------------------

RED_HREF = "https://sentinel-cogs.s3.us-west-2.amazonaws.com/T10TEM/B04.tif"
NIR_HREF = "https://sentinel-cogs.s3.us-west-2.amazonaws.com/T10TEM/B08.tif"

SAMPLE_FEATURE: dict[str, Any] = {
    "type": "Feature",
    "stac_version": "1.0.0",
    "id": "S2B_10TEM_20240615_0_L2A",
    "collection": "sentinel-2-l2a",
    "bbox": [-120.5, 46.0, -120.0, 46.5],
    "geometry": None,
    "properties": {
        "datetime": "2024-06-15T18:39:09Z",
        "eo:cloud_cover": 3.25,
        "s2:vegetation_percentage": 41.7,
    },
    "assets": {
        "red": {
            "href": RED_HREF,
            "type": "image/tiff; application=geotiff; profile=cloud-optimized",
            "proj:transform": [10, 0, 499980, 0, -10, 4200000],
            "proj:shape": [10980, 10980],
        },
        "nir": {
            "href": NIR_HREF,
            "type": "image/tiff; application=geotiff; profile=cloud-optimized",
            "proj:transform": [10, 0, 499980, 0, -10, 4200000],
            "proj:shape": [10980, 10980],
        },
    },
    "links": [],
}

SAMPLE_QUERY: dict[str, Any] = {
    "collections": ["sentinel-2-l2a"],
    "bbox": [-120.5, 46.0, -120.0, 46.5],
    "datetime": "2024-06-01T00:00:00Z/2024-06-30T23:59:59Z",
    "limit": 1,
}


def make_search_response(*features: dict[str, Any]) -> dict[str, Any]:
    """Wrap *features* in a FeatureCollection search response."""
    return {
        "type": "FeatureCollection",
        "features": list(features),
        "numberMatched": len(features),
        "numberReturned": len(features),
        "links": [],
    }


@pytest.fixture()
def sample_feature() -> dict[str, Any]:
    """A Sentinel-2 L2A feature with red and NIR assets (deep copy)."""
    return copy.deepcopy(SAMPLE_FEATURE)


@pytest.fixture()
def sample_query() -> dict[str, Any]:
    """A STAC search body."""
    return copy.deepcopy(SAMPLE_QUERY)


@pytest.fixture()
def sample_query_bytes() -> bytes:
    """The STAC search body, JSON-encoded."""
    return json.dumps(SAMPLE_QUERY).encode("utf-8")


@pytest.fixture()
def search_response(sample_feature: dict[str, Any]) -> dict[str, Any]:
    """A search response containing the sample feature."""
    return make_search_response(sample_feature)
