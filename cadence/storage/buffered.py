"""Staging wrapper that applies writes only when explicitly committed.

:class:`BufferedObjectStore` presents the :class:`ObjectStore` interface but
keeps every ``put`` and ``delete`` in memory. Reads see the staged state
layered over the wrapped store. A rerun executes against the buffer and
either commits it after success or discards it, so a failed rerun leaves the
wrapped store untouched.

Usage
-----
>>> buffer = BufferedObjectStore(store)
>>> await buffer.put("a/manifest.json", "{}")
>>> await store.exists("a/manifest.json")
False
>>> written = await buffer.commit()
>>> sorted(written)
['a/manifest.json']

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from cadence.storage.protocol import StoredArtifact, body_size

if typ.TYPE_CHECKING:
    from cadence.storage.protocol import ObjectStore


@dc.dataclass(frozen=True, slots=True)
class _PendingWrite:
    body: str
    content_type: str | None


class BufferedObjectStore:
    """Buffer writes and deletes over a wrapped :class:`ObjectStore`.

    Parameters
    ----------
    base
        Store that receives the buffered operations on :meth:`commit`.

    """

    def __init__(self, base: ObjectStore) -> None:
        """Initialise an empty buffer over ``base``."""
        self._base = base
        self._writes: dict[str, _PendingWrite] = {}
        self._deletes: set[str] = set()

    @property
    def base(self) -> ObjectStore:
        """Return the wrapped store."""
        return self._base

    async def put(
        self, key: str, body: str, content_type: str | None = None
    ) -> StoredArtifact:
        """Stage a write.

        The returned URI is the one the wrapped store reports for ``key``, so
        records built during a buffered run already carry the location the
        object has after :meth:`commit`.
        """
        self._writes[key] = _PendingWrite(body=body, content_type=content_type)
        self._deletes.discard(key)
        return StoredArtifact(key=key, uri=self.uri_for(key), size=body_size(body))

    def uri_for(self, key: str) -> str:
        """Return the wrapped store's URI for ``key``."""
        return self._base.uri_for(key)

    async def get(self, key: str) -> str | None:
        """Return the staged body, ``None`` if staged for delete, else the base."""
        pending = self._writes.get(key)
        if pending is not None:
            return pending.body
        if key in self._deletes:
            return None
        return await self._base.get(key)

    async def exists(self, key: str) -> bool:
        """Return whether ``key`` exists once staged operations are applied."""
        if key in self._writes:
            return True
        if key in self._deletes:
            return False
        return await self._base.exists(key)

    async def list(self, prefix: str) -> list[str]:
        """Return base keys merged with staged writes minus staged deletes."""
        keys = set(await self._base.list(prefix))
        keys.update(key for key in self._writes if key.startswith(prefix))
        keys.difference_update(key for key in self._deletes if key.startswith(prefix))
        return sorted(keys)

    async def delete(self, key: str) -> None:
        """Stage a delete, cancelling any staged write to the same key."""
        self._writes.pop(key, None)
        self._deletes.add(key)

    async def commit(self) -> dict[str, StoredArtifact]:
        """Apply staged deletes, then staged writes, to the wrapped store.

        Returns
        -------
        dict[str, StoredArtifact]
            Final stored location of every written key.

        """
        written: dict[str, StoredArtifact] = {}
        for key in sorted(self._deletes):
            await self._base.delete(key)
        for key, pending in self._writes.items():
            written[key] = await self._base.put(key, pending.body, pending.content_type)
        self.discard()
        return written

    def discard(self) -> None:
        """Drop every staged operation without touching the wrapped store."""
        self._writes.clear()
        self._deletes.clear()

    def pending_keys(self) -> list[str]:
        """Return keys with a staged write, in staging order."""
        return list(self._writes)

    def pending_deletes(self) -> list[str]:
        """Return keys staged for deletion, sorted."""
        return sorted(self._deletes)
