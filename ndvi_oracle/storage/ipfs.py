"""IPFS uploader (HTTP ``/api/v0/add``).

Posts the artifact as a multipart ``file`` field to an IPFS add endpoint
(Lighthouse by default) and returns ``ipfs://<cid>`` from the ``Hash``
field of the JSON response.

Configuration:
    The endpoint defaults to ``https://node.lighthouse.storage/api/v0/add``.
    Override via ``WAVS_ENV_IPFS_ENDPOINT``; set ``WAVS_ENV_IPFS_API_KEY``
    when the endpoint requires a bearer token.
"""

from __future__ import annotations

import logging

import httpx

from ndvi_oracle.core import constants
from ndvi_oracle.storage.base import (
    StorageUploader,
    UploaderConfig,
    UploadError,
    extension_for,
)

logger = logging.getLogger("ndvi_oracle.storage.ipfs")


class IpfsUploader(StorageUploader):
    """Upload artifacts through an IPFS HTTP add endpoint."""

    def __init__(
        self,
        config: UploaderConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config)
        self._endpoint = config.endpoint or constants.DEFAULT_IPFS_ENDPOINT
        self._client = client

    async def upload(self, content_type: str, data: bytes) -> str:
        """Add *data* to IPFS and return its ``ipfs://`` URI.

        Raises:
            UploadError: On transport failure, non-2xx status, or a
                response without a ``Hash``.
        """
        if self._client is None:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_s, follow_redirects=True
            ) as owned:
                cid = await self._add(owned, content_type, data)
        else:
            cid = await self._add(self._client, content_type, data)

        uri = f"ipfs://{cid}"
        logger.info(
            "Uploaded to IPFS | uri=%s | content_type=%s | size=%d bytes",
            uri,
            content_type,
            len(data),
        )
        return uri

    async def _add(self, client: httpx.AsyncClient, content_type: str, data: bytes) -> str:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        files = {"file": (f"artifact{extension_for(content_type)}", data, content_type)}

        try:
            response = await client.post(self._endpoint, files=files, headers=headers)
        except httpx.HTTPError as exc:
            msg = f"IPFS upload request failed: {exc}"
            raise UploadError(self.name, msg) from exc

        if not response.is_success:
            msg = f"IPFS upload failed with status {response.status_code}: {response.text[:200]}"
            retryable = response.status_code == 429 or response.status_code >= 500
            raise UploadError(self.name, msg, retryable=retryable)

        try:
            body = response.json()
        except ValueError as exc:
            msg = f"IPFS upload response is not valid JSON: {exc}"
            raise UploadError(self.name, msg, retryable=False) from exc

        cid = body.get("Hash") if isinstance(body, dict) else None
        if not isinstance(cid, str) or not cid:
            msg = f"IPFS upload response has no Hash: {body!r}"
            raise UploadError(self.name, msg, retryable=False)
        return cid
