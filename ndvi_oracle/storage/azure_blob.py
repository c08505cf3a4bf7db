"""Azure Blob Storage uploader (content-addressed blob names).

Stores each artifact as ``<sha256><ext>`` in the configured container,
so the blob URL is a function of the content and repeated uploads of
the same bytes overwrite the same blob.

The client is created from the ``AzureWebJobsStorage`` connection string
unless one is injected.  The SDK is synchronous; uploads run in a worker
thread so the pipeline's event loop is not blocked.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from typing import TYPE_CHECKING

from ndvi_oracle.storage.base import (
    StorageUploader,
    UploaderConfig,
    UploadError,
    extension_for,
)

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient

logger = logging.getLogger("ndvi_oracle.storage.azure_blob")


class AzureBlobUploader(StorageUploader):
    """Upload artifacts to an Azure Blob Storage container."""

    def __init__(
        self,
        config: UploaderConfig,
        blob_service_client: BlobServiceClient | None = None,
    ) -> None:
        super().__init__(config)
        self._blob_service_client = blob_service_client

    async def upload(self, content_type: str, data: bytes) -> str:
        """Upload *data* and return the blob URL.

        Raises:
            UploadError: If the client cannot be created or the upload fails.
        """
        blob_name = content_address(data, content_type)
        return await asyncio.to_thread(self._upload_sync, blob_name, content_type, data)

    def _upload_sync(self, blob_name: str, content_type: str, data: bytes) -> str:
        try:
            from azure.storage.blob import ContentSettings

            service = self._blob_service_client or _client_from_env()
            blob_client = service.get_blob_client(container=self.config.container, blob=blob_name)
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
            url = str(blob_client.url)
        except UploadError:
            raise
        except Exception as exc:
            msg = f"Failed to upload {blob_name} to container {self.config.container}: {exc}"
            raise UploadError(self.name, msg) from exc

        logger.info(
            "Uploaded to blob storage | container=%s | blob=%s | size=%d bytes",
            self.config.container,
            blob_name,
            len(data),
        )
        return url


def content_address(data: bytes, content_type: str) -> str:
    """Return the content-addressed blob name for *data*."""
    return f"{hashlib.sha256(data).hexdigest()}{extension_for(content_type)}"


def _client_from_env() -> BlobServiceClient:
    from azure.storage.blob import BlobServiceClient

    connection_string = os.environ.get("AzureWebJobsStorage", "")  # noqa: SIM112
    if not connection_string:
        msg = "AzureWebJobsStorage environment variable is not set"
        raise UploadError("azure_blob", msg, retryable=False)
    return BlobServiceClient.from_connection_string(connection_string)
