"""Azure Blob Storage adapter for the ObjectStore protocol.

Each object key maps one-to-one onto a blob name inside a single container.
The adapter uses the asynchronous ``azure.storage.blob.aio`` client so store
calls never block the event loop.

Usage
-----
>>> store = AzureBlobObjectStore.from_connection_string(
...     "DefaultEndpointsProtocol=https;AccountName=...", "reports"
... )
>>> artifact = await store.put("reports/org/acme/jobs.json", "{}")
>>> await store.aclose()

"""

from __future__ import annotations

import typing as typ

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from cadence.logging import get_logger, log_debug
from cadence.storage.errors import ObjectStoreError
from cadence.storage.protocol import StoredArtifact, body_size

if typ.TYPE_CHECKING:
    from azure.storage.blob.aio import ContainerClient

logger = get_logger(__name__)


class AzureBlobObjectStore:
    """Store objects as block blobs in one Azure Storage container.

    Parameters
    ----------
    container_client
        Async container client. The store closes it in :meth:`aclose` only
        when it was created by :meth:`from_connection_string`.

    """

    def __init__(
        self,
        container_client: ContainerClient,
        *,
        service_client: BlobServiceClient | None = None,
    ) -> None:
        """Initialise the store around an existing container client."""
        self._container = container_client
        self._service = service_client

    @classmethod
    def from_connection_string(
        cls, connection_string: str, container: str
    ) -> AzureBlobObjectStore:
        """Create a store that owns its service client."""
        service = BlobServiceClient.from_connection_string(connection_string)
        log_debug(logger, "BlobServiceClient created for container %s", container)
        return cls(service.get_container_client(container), service_client=service)

    async def aclose(self) -> None:
        """Close the underlying service client when this store owns it."""
        if self._service is not None:
            await self._service.close()

    def uri_for(self, key: str) -> str:
        """Return the blob URL of ``key``; no request is made."""
        return self._container.get_blob_client(key).url

    async def put(
        self, key: str, body: str, content_type: str | None = None
    ) -> StoredArtifact:
        """Upload ``body`` as the blob ``key``, overwriting any existing blob."""
        blob = self._container.get_blob_client(key)
        settings = ContentSettings(content_type=content_type) if content_type else None
        try:
            await blob.upload_blob(
                body.encode("utf-8"), overwrite=True, content_settings=settings
            )
        except AzureError as exc:
            raise ObjectStoreError.operation_failed("put", key, str(exc)) from exc
        return StoredArtifact(key=key, uri=blob.url, size=body_size(body))

    async def get(self, key: str) -> str | None:
        """Download the blob ``key`` as text, or ``None`` when it is absent."""
        blob = self._container.get_blob_client(key)
        try:
            downloader = await blob.download_blob()
            data = await downloader.readall()
        except ResourceNotFoundError:
            return None
        except AzureError as exc:
            raise ObjectStoreError.operation_failed("get", key, str(exc)) from exc
        return data.decode("utf-8")

    async def exists(self, key: str) -> bool:
        """Return whether the blob ``key`` exists."""
        try:
            return await self._container.get_blob_client(key).exists()
        except AzureError as exc:
            raise ObjectStoreError.operation_failed("exists", key, str(exc)) from exc

    async def list(self, prefix: str) -> list[str]:
        """Return sorted blob names starting with ``prefix``."""
        try:
            names = [
                item.name
                async for item in self._container.list_blobs(name_starts_with=prefix)
            ]
        except AzureError as exc:
            raise ObjectStoreError.operation_failed("list", prefix, str(exc)) from exc
        return sorted(names)

    async def delete(self, key: str) -> None:
        """Delete the blob ``key``; a missing blob is ignored."""
        try:
            await self._container.delete_blob(key)
        except ResourceNotFoundError:
            return
        except AzureError as exc:
            raise ObjectStoreError.operation_failed("delete", key, str(exc)) from exc
