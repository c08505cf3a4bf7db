"""StorageUploader abstract base class.

Defines the upload contract the pipeline uses to publish artifacts.  The
orchestrator only ever calls ``upload(content_type, data)`` and receives
a URI; it never knows which backend is behind it.

Each concrete backend (``IpfsUploader``, ``AzureBlobUploader``) is
content-addressed: uploading the same bytes twice yields the same URI.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass

from ndvi_oracle.core import constants
from ndvi_oracle.core.exceptions import PipelineError, TransientError

#: File extension per content type, used for upload names.
CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "application/json": ".json",
}


@dataclass(frozen=True, slots=True)
class UploaderConfig:
    """Configuration for a storage backend.

    Attributes:
        name: Backend identifier (must match the uploader registry key).
        endpoint: Upload endpoint URL (``ipfs``).
        api_key: Bearer token for the endpoint (empty = anonymous).
        container: Blob container (``azure_blob``).
        timeout_s: Per-request timeout in seconds.
    """

    name: str
    endpoint: str = ""
    api_key: str = ""
    container: str = ""
    timeout_s: float = constants.DEFAULT_HTTP_TIMEOUT_S


class StorageUploader(abc.ABC):
    """Abstract base class for storage backends."""

    def __init__(self, config: UploaderConfig) -> None:
        self._config = config

    @property
    def name(self) -> str:
        """Return the backend name from configuration."""
        return self._config.name

    @property
    def config(self) -> UploaderConfig:
        """Return the backend configuration (read-only)."""
        return self._config

    @abc.abstractmethod
    async def upload(self, content_type: str, data: bytes) -> str:
        """Store *data* and return its URI.

        Raises:
            UploadError: If the backend rejects or fails the upload.
        """


def extension_for(content_type: str) -> str:
    """Return the file extension for *content_type* (``.bin`` if unknown)."""
    return CONTENT_TYPE_EXTENSIONS.get(content_type, ".bin")


# ---------------------------------------------------------------------------
# Storage exceptions
# ---------------------------------------------------------------------------


class StorageError(PipelineError):
    """Base exception for storage backend errors.

    Attributes:
        backend: Name of the backend that raised the error.
    """

    default_stage = "publish_artifacts"
    default_code = "STORAGE_ERROR"

    def __init__(self, backend: str, message: str, *, retryable: bool = False) -> None:
        self.backend = backend
        super().__init__(message, retryable=retryable)

    def __str__(self) -> str:
        return f"[{self.backend}] {self.message}"


class UploadError(StorageError, TransientError):
    """Raised when an artifact upload fails."""

    default_code = "UPLOAD_FAILED"

    def __init__(self, backend: str, message: str, *, retryable: bool = True) -> None:
        super().__init__(backend, message, retryable=retryable)
