"""In-process object store used by tests and dry runs."""

from __future__ import annotations

import dataclasses as dc

from cadence.storage.protocol import StoredArtifact, body_size


@dc.dataclass(slots=True)
class _Entry:
    body: str
    content_type: str | None


class InMemoryObjectStore:
    """Keep objects in a dictionary keyed by object key.

    Attributes
    ----------
    puts
        Number of ``put`` calls served, used by tests to assert that an
        operation performed no writes.

    """

    def __init__(self) -> None:
        """Initialise an empty store."""
        self._objects: dict[str, _Entry] = {}
        self.puts = 0

    async def put(
        self, key: str, body: str, content_type: str | None = None
    ) -> StoredArtifact:
        """Store ``body`` at ``key``."""
        self._objects[key] = _Entry(body=body, content_type=content_type)
        self.puts += 1
        return StoredArtifact(key=key, uri=self.uri_for(key), size=body_size(body))

    def uri_for(self, key: str) -> str:
        """Return the ``memory://`` URI of ``key``."""
        return f"memory://{key}"

    async def get(self, key: str) -> str | None:
        """Return the body at ``key`` or ``None``."""
        entry = self._objects.get(key)
        return entry.body if entry is not None else None

    async def exists(self, key: str) -> bool:
        """Return whether ``key`` is stored."""
        return key in self._objects

    async def list(self, prefix: str) -> list[str]:
        """Return sorted keys starting with ``prefix``."""
        return sorted(key for key in self._objects if key.startswith(prefix))

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        self._objects.pop(key, None)

    def content_type(self, key: str) -> str | None:
        """Return the content type recorded for ``key``."""
        entry = self._objects.get(key)
        return entry.content_type if entry is not None else None

    def snapshot(self) -> dict[str, str]:
        """Return a copy of every stored body keyed by object key."""
        return {key: entry.body for key, entry in self._objects.items()}
