"""Unit tests for object store adapters, the staging buffer and the factory."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from cadence.config import AppConfig
from cadence.storage.buffered import BufferedObjectStore
from cadence.storage.errors import ObjectStoreConfigError, ObjectStoreError
from cadence.storage.factory import create_object_store
from cadence.storage.filesystem import FilesystemObjectStore
from cadence.storage.keys import (
    index_base_key,
    jobs_registry_key,
    latest_key,
    manifest_key,
    month_index_key,
    month_key,
    month_keys_between,
    output_key,
    periods_from_keys,
    report_base_key,
    summary_key,
)
from cadence.storage.memory import InMemoryObjectStore

if typ.TYPE_CHECKING:
    from pathlib import Path


class TestKeys:
    """Tests for deterministic key derivation."""

    def test_report_keys(self) -> None:
        """Artifact keys live under the slot's base key."""
        base = report_base_key("reports", "org", "acme", "daily", "2024-11-03T00-00Z")

        assert base == "reports/org/acme/daily/2024-11-03T00-00Z"
        assert manifest_key(base) == f"{base}/manifest.json"
        assert summary_key(base) == f"{base}/summary.json"
        assert output_key(base, "markdown") == f"{base}/output.md"
        assert output_key(base, "json") == f"{base}/output.json"

    def test_index_keys(self) -> None:
        """Index documents live under the ``_index`` segment."""
        base = index_base_key("reports", "org", "acme", "daily")

        assert base == "reports/_index/org/acme/daily"
        assert month_index_key(base, "2024-11") == f"{base}/2024-11.json"
        assert latest_key(base) == f"{base}/latest.json"
        assert jobs_registry_key("reports", "org", "acme") == (
            "reports/_index/org/acme/jobs.json"
        )

    def test_month_key_uses_local_calendar(self) -> None:
        """The period of an instant is its month in the job's zone."""
        instant = dt.datetime(2024, 11, 1, 2, tzinfo=dt.UTC)

        assert month_key(instant, "UTC") == "2024-11"
        assert month_key(instant, "America/New_York") == "2024-10"

    def test_month_keys_between(self) -> None:
        """Every month touched by a range is listed once, sorted."""
        months = month_keys_between(
            dt.datetime(2024, 10, 28, tzinfo=dt.UTC),
            dt.datetime(2024, 12, 1, tzinfo=dt.UTC),
            "UTC",
        )
        assert months == ["2024-10", "2024-11", "2024-12"]

    def test_periods_from_keys_ignores_other_documents(self) -> None:
        """Only monthly index files contribute periods."""
        keys = [
            "reports/_index/org/acme/daily/2024-11.json",
            "reports/_index/org/acme/daily/latest.json",
            "reports/_index/org/acme/daily/2024-10.json",
        ]
        assert periods_from_keys(keys) == ["2024-10", "2024-11"]


class TestInMemoryObjectStore:
    """Tests for the in-memory adapter."""

    @pytest.mark.asyncio
    async def test_put_get_list_delete(self) -> None:
        """The adapter honours every protocol operation."""
        store = InMemoryObjectStore()

        artifact = await store.put("a/b.json", "{}", "application/json")
        await store.put("a/c.md", "# hi")
        await store.put("z/d.md", "x")

        assert artifact.size == 2
        assert artifact.uri == "memory://a/b.json"
        assert await store.get("a/b.json") == "{}"
        assert store.content_type("a/b.json") == "application/json"
        assert await store.list("a/") == ["a/b.json", "a/c.md"]
        await store.delete("a/b.json")
        await store.delete("missing")
        assert not await store.exists("a/b.json")
        assert await store.get("a/b.json") is None


class TestFilesystemObjectStore:
    """Tests for the filesystem adapter."""

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        """Keys map onto nested files below the base path."""
        store = FilesystemObjectStore(tmp_path)

        artifact = await store.put("reports/org/acme/jobs.json", '{"ok": true}')

        assert (tmp_path / "reports" / "org" / "acme" / "jobs.json").is_file()
        assert artifact.size == len('{"ok": true}')
        assert await store.get("reports/org/acme/jobs.json") == '{"ok": true}'
        assert await store.exists("reports/org/acme/jobs.json")

    @pytest.mark.asyncio
    async def test_list_and_delete(self, tmp_path: Path) -> None:
        """Listing filters by prefix and delete ignores missing keys."""
        store = FilesystemObjectStore(tmp_path)
        for key in ("r/a/1.json", "r/a/2.json", "r/b/1.json"):
            await store.put(key, "{}")

        assert await store.list("r/a/") == ["r/a/1.json", "r/a/2.json"]
        await store.delete("r/a/1.json")
        await store.delete("r/a/1.json")
        assert await store.list("r/") == ["r/a/2.json", "r/b/1.json"]

    @pytest.mark.asyncio
    async def test_missing_base_path_lists_nothing(self, tmp_path: Path) -> None:
        """A store whose root does not exist yet is empty."""
        store = FilesystemObjectStore(tmp_path / "absent")

        assert await store.list("") == []
        assert await store.get("x.json") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../escape.json", "/etc/passwd", ""])
    async def test_rejects_escaping_keys(self, tmp_path: Path, key: str) -> None:
        """Keys that would leave the base directory are refused."""
        store = FilesystemObjectStore(tmp_path)

        with pytest.raises(ObjectStoreError, match="Invalid object key"):
            await store.put(key, "{}")


class TestBufferedObjectStore:
    """Tests for the staging buffer used by reruns."""

    @pytest.mark.asyncio
    async def test_writes_are_invisible_until_commit(self) -> None:
        """Staged writes only reach the base store on commit."""
        base = InMemoryObjectStore()
        buffer = BufferedObjectStore(base)

        await buffer.put("a/manifest.json", "{}")

        assert await buffer.get("a/manifest.json") == "{}"
        assert not await base.exists("a/manifest.json")
        assert buffer.pending_keys() == ["a/manifest.json"]

        written = await buffer.commit()

        assert sorted(written) == ["a/manifest.json"]
        assert await base.get("a/manifest.json") == "{}"
        assert buffer.pending_keys() == []

    @pytest.mark.asyncio
    async def test_discard_leaves_base_untouched(self) -> None:
        """Discarding a buffer drops its writes and deletes."""
        base = InMemoryObjectStore()
        await base.put("a/manifest.json", "old")
        buffer = BufferedObjectStore(base)

        await buffer.put("a/manifest.json", "new")
        await buffer.delete("a/output.md")
        buffer.discard()

        assert await base.get("a/manifest.json") == "old"
        assert base.puts == 1

    @pytest.mark.asyncio
    async def test_staged_deletes_shadow_base(self) -> None:
        """Reads and listings reflect staged deletes."""
        base = InMemoryObjectStore()
        await base.put("a/1", "x")
        await base.put("a/2", "y")
        buffer = BufferedObjectStore(base)

        await buffer.delete("a/1")
        await buffer.put("a/3", "z")

        assert await buffer.get("a/1") is None
        assert not await buffer.exists("a/1")
        assert await buffer.list("a/") == ["a/2", "a/3"]
        assert buffer.pending_deletes() == ["a/1"]

        await buffer.commit()

        assert await base.list("a/") == ["a/2", "a/3"]

    @pytest.mark.asyncio
    async def test_put_after_delete_cancels_delete(self) -> None:
        """A later write to a staged delete keeps the key."""
        buffer = BufferedObjectStore(InMemoryObjectStore())

        await buffer.delete("a/1")
        await buffer.put("a/1", "x")

        assert buffer.pending_deletes() == []
        assert await buffer.exists("a/1")

    @pytest.mark.asyncio
    async def test_staged_uri_is_final_location(self, tmp_path: Path) -> None:
        """Staged writes report the URI the object has after commit."""
        base = FilesystemObjectStore(tmp_path)
        buffer = BufferedObjectStore(base)

        staged = await buffer.put("a/output.md", "# Hi")
        written = await buffer.commit()

        assert staged.uri == str(tmp_path / "a" / "output.md")
        assert written["a/output.md"] == staged


class TestCreateObjectStore:
    """Tests for the backend factory."""

    def test_memory_backend(self) -> None:
        """The memory backend builds an in-memory store."""
        store = create_object_store(AppConfig(storage_backend="memory"))
        assert isinstance(store, InMemoryObjectStore)

    def test_filesystem_backend(self, tmp_path: Path) -> None:
        """The filesystem backend roots the store at ``storage_path``."""
        store = create_object_store(
            AppConfig(storage_backend="Filesystem", storage_path=tmp_path)
        )
        assert isinstance(store, FilesystemObjectStore)
        assert store.base_path == tmp_path

    def test_unknown_backend(self) -> None:
        """Unknown backend names list the valid options."""
        with pytest.raises(ObjectStoreConfigError, match="Valid options are"):
            create_object_store(AppConfig(storage_backend="s3"))

    def test_azure_requires_connection_settings(self) -> None:
        """The Azure backend refuses to start without its settings."""
        with pytest.raises(
            ObjectStoreConfigError,
            match="CADENCE_AZURE_STORAGE_CONNECTION_STRING",
        ):
            create_object_store(AppConfig(storage_backend="azure"))

    def test_azure_requires_container(self) -> None:
        """A connection string alone is not enough."""
        config = AppConfig(
            storage_backend="azure",
            azure_connection_string="UseDevelopmentStorage=true",
        )
        with pytest.raises(
            ObjectStoreConfigError, match="CADENCE_AZURE_STORAGE_CONTAINER"
        ):
            create_object_store(config)
