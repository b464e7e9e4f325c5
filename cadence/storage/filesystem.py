r"""Filesystem adapter for the ObjectStore protocol.

Objects are stored as UTF-8 files below a base directory, one file per key,
with the key's forward-slash segments mapped onto subdirectories::

    {base_path}/reports/org/acme/daily/2024-11-03T00-00Z/manifest.json

Usage
-----
>>> import asyncio
>>> from pathlib import Path
>>> store = FilesystemObjectStore(Path("/var/lib/cadence"))
>>> asyncio.run(store.put("reports/org/acme/jobs.json", "{}"))

"""

from __future__ import annotations

import asyncio
import typing as typ
from pathlib import Path, PurePosixPath

from cadence.storage.errors import ObjectStoreError
from cadence.storage.protocol import StoredArtifact, body_size

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class FilesystemObjectStore:
    """Store objects as files below a base directory.

    Parameters
    ----------
    base_path
        Root directory. Subdirectories are created on demand.

    """

    def __init__(self, base_path: Path) -> None:
        """Initialise the store with a base directory path."""
        self._base_path = base_path

    @property
    def base_path(self) -> Path:
        """Return the root directory of the store."""
        return self._base_path

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise ObjectStoreError.invalid_key(key)
        return self._base_path.joinpath(*parts)

    def uri_for(self, key: str) -> str:
        """Return the path of the file backing ``key``."""
        return str(self._path_for(key))

    async def put(
        self, key: str, body: str, content_type: str | None = None
    ) -> StoredArtifact:
        """Write ``body`` to the file for ``key``.

        ``content_type`` is accepted for interface parity and not persisted.
        """
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, body, "utf-8")
        except OSError as exc:
            raise ObjectStoreError.operation_failed("put", key, str(exc)) from exc
        return StoredArtifact(key=key, uri=str(path), size=body_size(body))

    async def get(self, key: str) -> str | None:
        """Return the file contents for ``key`` or ``None`` when missing."""
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_text, "utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ObjectStoreError.operation_failed("get", key, str(exc)) from exc

    async def exists(self, key: str) -> bool:
        """Return whether a regular file exists for ``key``."""
        return await asyncio.to_thread(self._path_for(key).is_file)

    def _walk(self, prefix: str) -> list[str]:
        if not self._base_path.is_dir():
            return []
        keys: cabc.Iterator[str] = (
            path.relative_to(self._base_path).as_posix()
            for path in self._base_path.rglob("*")
            if path.is_file()
        )
        return sorted(key for key in keys if key.startswith(prefix))

    async def list(self, prefix: str) -> list[str]:
        """Return sorted keys of every file whose key starts with ``prefix``."""
        try:
            return await asyncio.to_thread(self._walk, prefix)
        except OSError as exc:
            raise ObjectStoreError.operation_failed("list", prefix, str(exc)) from exc

    async def delete(self, key: str) -> None:
        """Remove the file for ``key``; missing files are ignored."""
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise ObjectStoreError.operation_failed("delete", key, str(exc)) from exc
