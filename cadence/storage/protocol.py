"""ObjectStore protocol for persisting report artifacts and indexes.

This module defines the port through which every persisted document is read
and written. Adapters implement it for the local filesystem, Azure Blob
Storage and process memory; :class:`cadence.storage.buffered.BufferedObjectStore`
wraps any of them to stage writes until a rerun succeeds.

The protocol is ``runtime_checkable`` to support ``isinstance`` checks for
dependency injection and testing scenarios.

Usage
-----
>>> from cadence.storage.memory import InMemoryObjectStore
>>> isinstance(InMemoryObjectStore(), ObjectStore)
True

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

JSON_CONTENT_TYPE = "application/json"
MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"


@dc.dataclass(frozen=True, slots=True)
class StoredArtifact:
    """Location of an object after a successful ``put``.

    Attributes
    ----------
    key
        POSIX-style object key.
    uri
        Backend-specific locator (file path, blob URL, ``memory://`` URI).
    size
        Body size in bytes when encoded as UTF-8.

    """

    key: str
    uri: str
    size: int


def body_size(body: str) -> int:
    """Return the UTF-8 encoded size of ``body`` in bytes."""
    return len(body.encode("utf-8"))


@typ.runtime_checkable
class ObjectStore(typ.Protocol):
    """Key-value store of UTF-8 text documents addressed by POSIX keys."""

    async def put(
        self, key: str, body: str, content_type: str | None = None
    ) -> StoredArtifact:
        """Write ``body`` at ``key``, replacing any existing object."""
        ...

    async def get(self, key: str) -> str | None:
        """Return the object at ``key`` or ``None`` when it does not exist."""
        ...

    async def exists(self, key: str) -> bool:
        """Return whether an object exists at ``key``."""
        ...

    async def list(self, prefix: str) -> list[str]:
        """Return the sorted keys of every object under ``prefix``."""
        ...

    async def delete(self, key: str) -> None:
        """Remove the object at ``key``; deleting a missing key is a no-op."""
        ...

    def uri_for(self, key: str) -> str:
        """Return the URI ``put`` reports for ``key``, without touching storage."""
        ...
