"""Content-addressed storage backends.

Implements the upload collaborator behind a Strategy interface:
- StorageUploader: Abstract base class defining ``upload``
- IpfsUploader: IPFS HTTP add endpoint (default)
- AzureBlobUploader: Azure Blob Storage, blobs named by content hash

The active backend is selected via configuration.
"""

from ndvi_oracle.storage.base import (
    StorageError,
    StorageUploader,
    UploaderConfig,
    UploadError,
)
from ndvi_oracle.storage.factory import (
    AZURE_BLOB,
    IPFS,
    get_uploader,
    list_uploaders,
    register_uploader,
)

__all__ = [
    "AZURE_BLOB",
    "IPFS",
    "StorageError",
    "StorageUploader",
    "UploadError",
    "UploaderConfig",
    "get_uploader",
    "list_uploaders",
    "register_uploader",
]
