"""Search catalog activity — submit the STAC query and pick the scene.

The caller's query is treated as an opaque JSON object: it is validated
for syntax only and POSTed verbatim to the configured item search
endpoint.  The response is parsed into ``StacSearchResponse``; the first
feature is always the one processed (no ranking).

Failures here are immediately fatal.  There is no retry for the search
API.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import pydantic

from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import PermanentError, TransientError, ValidationError
from ndvi_oracle.models.stac import StacFeature, StacSearchResponse

logger = logging.getLogger("ndvi_oracle.activities.search_catalog")


class InvalidQueryError(ValidationError):
    """Raised when the STAC query is not a JSON object."""

    default_stage = "search_catalog"
    default_code = "INVALID_QUERY"


class SearchApiError(TransientError):
    """Raised when the search endpoint fails or returns an unusable body.

    Attributes:
        status_code: HTTP status, or 0 for transport/parse failures.
    """

    default_stage = "search_catalog"
    default_code = "SEARCH_API_FAILED"

    def __init__(self, message: str, *, status_code: int = 0, code: str = "") -> None:
        self.status_code = status_code
        super().__init__(message, code=code)


class NoFeaturesFoundError(PermanentError):
    """Raised when the search matched no features."""

    default_stage = "search_catalog"
    default_code = "NO_FEATURES_FOUND"

    def __init__(self, message: str = "No features found for the given query") -> None:
        super().__init__(message)


def parse_query(raw: bytes | str) -> dict[str, Any]:
    """Parse and validate the raw STAC query.

    Raises:
        InvalidQueryError: If *raw* is not UTF-8 JSON or not a JSON object.
    """
    if isinstance(raw, bytes | bytearray):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"STAC query is not UTF-8: {exc}"
            raise InvalidQueryError(msg) from exc
    try:
        query = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as exc:
        msg = f"Invalid STAC query JSON: {exc}"
        raise InvalidQueryError(msg) from exc
    if not isinstance(query, dict):
        msg = f"STAC query must be a JSON object, got {type(query).__name__}"
        raise InvalidQueryError(msg)
    return query


async def search_catalog(
    query: dict[str, Any],
    *,
    api_url: str = constants.DEFAULT_SEARCH_API_URL,
    client: httpx.AsyncClient | None = None,
    timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S,
) -> StacSearchResponse:
    """POST *query* to the item search endpoint and parse the response.

    Args:
        query: STAC search body (already validated by ``parse_query``).
        api_url: Item search endpoint.
        client: Shared ``httpx.AsyncClient``; a short-lived one is created
            when ``None``.
        timeout_s: Timeout for the short-lived client.

    Returns:
        The parsed ``StacSearchResponse``.

    Raises:
        SearchApiError: On transport failure, non-2xx status, or an
            unparseable response body.
    """
    logger.info("search_catalog started | endpoint=%s", api_url)

    if client is None:
        async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as owned:
            payload = await _post_search(owned, api_url, query)
    else:
        payload = await _post_search(client, api_url, query)

    try:
        result = StacSearchResponse.model_validate(payload)
    except pydantic.ValidationError as exc:
        msg = f"STAC search response did not match the expected schema: {exc}"
        raise SearchApiError(msg, code="SEARCH_RESPONSE_INVALID") from exc

    logger.info(
        "search_catalog completed | features=%d | matched=%s",
        len(result.features),
        result.number_matched,
    )
    return result


def select_feature(response: StacSearchResponse) -> StacFeature:
    """Return the first feature of *response*.

    Raises:
        NoFeaturesFoundError: If the response has no features.
    """
    if not response.features:
        raise NoFeaturesFoundError
    feature = response.features[0]
    logger.info("Processing feature | id=%s | collection=%s", feature.id, feature.collection)
    return feature


async def _post_search(
    client: httpx.AsyncClient,
    api_url: str,
    query: dict[str, Any],
) -> object:
    try:
        response = await client.post(
            api_url,
            json=query,
            headers={"Accept": "application/geo+json, application/json"},
        )
    except httpx.HTTPError as exc:
        msg = f"STAC search request failed: {exc}"
        raise SearchApiError(msg) from exc

    if not response.is_success:
        msg = f"STAC search failed with status {response.status_code}: {response.text[:200]}"
        raise SearchApiError(msg, status_code=response.status_code)

    try:
        return response.json()
    except ValueError as exc:
        msg = f"STAC search response is not valid JSON: {exc}"
        raise SearchApiError(msg, status_code=response.status_code) from exc
