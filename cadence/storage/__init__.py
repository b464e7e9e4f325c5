"""Object storage port, adapters and deterministic key layout."""

from cadence.storage.buffered import BufferedObjectStore
from cadence.storage.errors import ObjectStoreConfigError, ObjectStoreError
from cadence.storage.factory import create_object_store
from cadence.storage.filesystem import FilesystemObjectStore
from cadence.storage.memory import InMemoryObjectStore
from cadence.storage.protocol import ObjectStore, StoredArtifact

__all__ = [
    "BufferedObjectStore",
    "FilesystemObjectStore",
    "InMemoryObjectStore",
    "ObjectStore",
    "ObjectStoreConfigError",
    "ObjectStoreError",
    "StoredArtifact",
    "create_object_store",
]
