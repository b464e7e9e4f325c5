"""Factory for creating ObjectStore implementations from configuration."""

from __future__ import annotations

import typing as typ

from cadence.storage.errors import ObjectStoreConfigError
from cadence.storage.filesystem import FilesystemObjectStore
from cadence.storage.memory import InMemoryObjectStore

if typ.TYPE_CHECKING:
    from cadence.config import AppConfig
    from cadence.storage.protocol import ObjectStore

_VALID_BACKENDS = frozenset({"filesystem", "azure", "memory"})


def create_object_store(config: AppConfig) -> ObjectStore:
    """Create the object store selected by ``config.storage_backend``.

    Returns
    -------
    ObjectStore
        Filesystem, Azure Blob or in-memory store.

    Raises
    ------
    ObjectStoreConfigError
        If the backend name is unknown or the Azure settings are missing.

    Examples
    --------
    >>> from cadence.config import AppConfig
    >>> store = create_object_store(AppConfig(storage_backend="memory"))
    >>> isinstance(store, InMemoryObjectStore)
    True

    """
    backend = config.storage_backend.strip().lower()
    if backend not in _VALID_BACKENDS:
        raise ObjectStoreConfigError.invalid_backend(
            config.storage_backend, _VALID_BACKENDS
        )

    if backend == "memory":
        return InMemoryObjectStore()
    if backend == "filesystem":
        return FilesystemObjectStore(config.storage_path)

    if not config.azure_connection_string:
        raise ObjectStoreConfigError.missing_setting(
            "CADENCE_AZURE_STORAGE_CONNECTION_STRING"
        )
    if not config.azure_container:
        raise ObjectStoreConfigError.missing_setting("CADENCE_AZURE_STORAGE_CONTAINER")

    from cadence.storage.azure_blob import AzureBlobObjectStore

    return AzureBlobObjectStore.from_connection_string(
        config.azure_connection_string, config.azure_container
    )
