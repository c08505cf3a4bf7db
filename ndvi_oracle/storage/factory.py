"""Uploader factory — selects the active storage backend by name.

The factory maintains a registry of known backends.  Built-in backends
are registered lazily so that the Azure SDK is only imported when the
``azure_blob`` backend is selected.

Usage::

    from ndvi_oracle.storage.factory import get_uploader

    uploader = get_uploader("ipfs", UploaderConfig(name="ipfs"))
    uri = await uploader.upload("image/jpeg", data)

The backend name is read from ``ORACLE_STORAGE_BACKEND`` via
``PipelineConfig.storage_backend``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ndvi_oracle.storage.base import StorageError, StorageUploader, UploaderConfig

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("ndvi_oracle.storage.factory")

IPFS = "ipfs"
AZURE_BLOB = "azure_blob"

# Backend name → zero-argument loader returning the uploader *class*.
_UPLOADER_REGISTRY: dict[str, Callable[[], type[StorageUploader]]] = {}


def _register_builtin_uploaders() -> None:
    def _ipfs() -> type[StorageUploader]:
        from ndvi_oracle.storage.ipfs import IpfsUploader

        return IpfsUploader

    def _azure_blob() -> type[StorageUploader]:
        from ndvi_oracle.storage.azure_blob import AzureBlobUploader

        return AzureBlobUploader

    _UPLOADER_REGISTRY[IPFS] = _ipfs
    _UPLOADER_REGISTRY[AZURE_BLOB] = _azure_blob


def _ensure_registry() -> None:
    """Initialise the uploader registry once (idempotent)."""
    if not _UPLOADER_REGISTRY:
        _register_builtin_uploaders()


def register_uploader(
    name: str,
    loader: Callable[[], type[StorageUploader]],
) -> None:
    """Register a custom storage backend.

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Uploader name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _UPLOADER_REGISTRY[name] = loader
    logger.debug("Registered storage uploader: %s", name)


def get_uploader(
    name: str,
    config: UploaderConfig | None = None,
    **backend_kwargs: Any,
) -> StorageUploader:
    """Create and return a storage uploader.

    Args:
        name: Backend identifier (``"ipfs"``, ``"azure_blob"``).
        config: Optional ``UploaderConfig``; defaults to one carrying
            just the backend name.
        **backend_kwargs: Passed to the uploader constructor (e.g. an
            ``httpx.AsyncClient`` as ``client``).

    Raises:
        StorageError: If the backend is unknown or the config name
            does not match.
    """
    _ensure_registry()

    loader = _UPLOADER_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_UPLOADER_REGISTRY))
        msg = f"Unknown storage backend: {name!r}. Available: {available}"
        raise StorageError(name, msg)

    if config is None:
        config = UploaderConfig(name=name)
    elif config.name != name:
        msg = f"UploaderConfig.name {config.name!r} does not match requested backend {name!r}"
        raise StorageError(name, msg)

    uploader_cls = loader()
    logger.info("Creating storage uploader: %s", name)
    return uploader_cls(config, **backend_kwargs)  # type: ignore[call-arg]


def list_uploaders() -> list[str]:
    """Return the names of all registered storage backends."""
    _ensure_registry()
    return sorted(_UPLOADER_REGISTRY)
