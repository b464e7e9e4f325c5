"""Monthly index files, the latest pointer and the job registry.

Monthly index files hold one :class:`IndexItem` per manifest key, sorted by
window start. The latest pointer is a materialised view that can always be
rebuilt from the monthly files by :func:`recompute_latest`. Every mutation is
a read-modify-write of one document; callers that mutate the same document
concurrently serialise through :class:`IndexMutex`.

Usage
-----
>>> mutex = IndexMutex()
>>> async with mutex.hold(index_key):
...     await update_index(store, index_key, "2024-11", item)

"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import typing as typ

import msgspec

from cadence.common.time import parse_iso, to_iso_z
from cadence.logging import get_logger, log_debug, log_info
from cadence.records.codec import encode_record, load_record
from cadence.records.models import (
    IndexItem,
    JobsRegistry,
    LatestPointer,
    MonthlyIndexFile,
)
from cadence.storage.keys import (
    latest_key,
    month_index_key,
    month_keys_between,
    periods_from_keys,
)
from cadence.storage.protocol import JSON_CONTENT_TYPE

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.records.models import JobRegistryEntry, OwnerType
    from cadence.storage.protocol import ObjectStore, StoredArtifact

logger = get_logger(__name__)


class IndexMutex:
    """Registry of per-key :class:`asyncio.Lock` objects.

    One lock exists per index document key, so mutations of different monthly
    files proceed concurrently while mutations of the same file are
    serialised.
    """

    def __init__(self) -> None:
        """Initialise an empty lock registry."""
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        """Return the lock guarding ``key``, creating it on first use."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @contextlib.asynccontextmanager
    async def hold(self, *keys: str) -> typ.AsyncIterator[None]:
        """Hold the locks for ``keys``, acquired in sorted order."""
        async with contextlib.AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self.lock_for(key))
            yield


@dc.dataclass(frozen=True, slots=True)
class RemovalResult:
    """Outcome of :func:`remove_index_item_by_slot`.

    Attributes
    ----------
    removed
        The removed item, or ``None`` when no item matched.
    remaining
        Items left in the monthly file.

    """

    removed: IndexItem | None
    remaining: int


def _sort_items(items: cabc.Iterable[IndexItem]) -> tuple[IndexItem, ...]:
    return tuple(sorted(items, key=lambda item: (item.window.start, item.slot_key)))


async def load_index_file(store: ObjectStore, key: str) -> MonthlyIndexFile | None:
    """Return the monthly index file at ``key``; ``None`` when absent or invalid."""
    return await load_record(store, key, MonthlyIndexFile)


async def write_index_file(
    store: ObjectStore, key: str, index_file: MonthlyIndexFile
) -> StoredArtifact:
    """Write ``index_file`` at ``key``."""
    return await store.put(key, encode_record(index_file), JSON_CONTENT_TYPE)


async def update_index(
    store: ObjectStore, index_key: str, period: str, item: IndexItem
) -> bool:
    """Merge ``item`` into the monthly index file at ``index_key``.

    At most one item per ``manifest_key`` is kept. Merging an item identical
    to the stored one performs no write. An item for the same manifest key
    with different content (a later attempt at the same slot) replaces the
    stored one in place rather than being ignored, so a slot that failed and
    then succeeded is not left listed as failed; DESIGN.md records this under
    "Repeated index writes". Items are re-sorted by window start.

    Parameters
    ----------
    store
        Object store holding the index.
    index_key
        Key of the monthly index file.
    period
        ``YYYY-MM`` period the file covers; used when creating the file.
    item
        Item to merge.

    Returns
    -------
    bool
        ``True`` when the file was written.

    """
    existing = await load_index_file(store, index_key)
    items = list(existing.items) if existing is not None else []

    position = next(
        (i for i, entry in enumerate(items) if entry.manifest_key == item.manifest_key),
        None,
    )
    if position is not None:
        if items[position] == item:
            log_debug(logger, "Index %s already holds %s", index_key, item.slot_key)
            return False
        items[position] = item
    else:
        items.append(item)

    index_file = MonthlyIndexFile(
        owner=item.owner,
        owner_type=item.owner_type,
        job_id=item.job_id,
        period=existing.period if existing is not None else period,
        items=_sort_items(items),
    )
    await write_index_file(store, index_key, index_file)
    return True


async def write_latest(
    store: ObjectStore, pointer_key: str, item: IndexItem
) -> StoredArtifact:
    """Overwrite the latest pointer at ``pointer_key`` with ``item``."""
    pointer = LatestPointer(
        owner=item.owner,
        owner_type=item.owner_type,
        job_id=item.job_id,
        latest=item,
    )
    return await store.put(pointer_key, encode_record(pointer), JSON_CONTENT_TYPE)


async def load_latest(store: ObjectStore, index_base: str) -> IndexItem | None:
    """Return the item referenced by a job's latest pointer, if any."""
    pointer = await load_record(store, latest_key(index_base), LatestPointer)
    return pointer.latest if pointer is not None else None


async def list_index_periods(store: ObjectStore, index_base: str) -> list[str]:
    """Return the sorted ``YYYY-MM`` periods that have a monthly index file."""
    return periods_from_keys(await store.list(f"{index_base}/"))


async def load_all_index_items(
    store: ObjectStore, index_base: str
) -> list[IndexItem]:
    """Return every item across a job's monthly index files, sorted."""
    items: list[IndexItem] = []
    for period in await list_index_periods(store, index_base):
        index_file = await load_index_file(store, month_index_key(index_base, period))
        if index_file is not None:
            items.extend(index_file.items)
    return list(_sort_items(items))


async def remove_index_item_by_slot(
    store: ObjectStore, index_key: str, slot_key: str
) -> RemovalResult:
    """Remove the item for ``slot_key`` from the monthly file at ``index_key``.

    The file is deleted rather than left empty when its last item is removed.
    """
    index_file = await load_index_file(store, index_key)
    if index_file is None:
        return RemovalResult(removed=None, remaining=0)

    removed = next(
        (item for item in index_file.items if item.slot_key == slot_key), None
    )
    if removed is None:
        return RemovalResult(removed=None, remaining=len(index_file.items))

    remaining = tuple(item for item in index_file.items if item.slot_key != slot_key)
    if remaining:
        await write_index_file(
            store, index_key, msgspec.structs.replace(index_file, items=remaining)
        )
    else:
        await store.delete(index_key)
    log_info(logger, "Removed %s from %s", slot_key, index_key)
    return RemovalResult(removed=removed, remaining=len(remaining))


async def recompute_latest(store: ObjectStore, index_base: str) -> IndexItem | None:
    """Rebuild a job's latest pointer from its monthly index files.

    The item with the greatest slot key across every monthly file becomes
    the new pointer. When no items remain the pointer is deleted.

    Returns
    -------
    IndexItem | None
        The new latest item, or ``None`` when the pointer was deleted.

    """
    items = await load_all_index_items(store, index_base)
    pointer_key = latest_key(index_base)
    if not items:
        await store.delete(pointer_key)
        return None
    latest = max(items, key=lambda item: item.slot_key)
    await write_latest(store, pointer_key, latest)
    return latest


def overlaps_window(item: IndexItem, start: dt.datetime, end: dt.datetime) -> bool:
    """Return whether ``item``'s window intersects ``[start, end)``."""
    item_start = parse_iso(item.window.start)
    item_end = parse_iso(item.window.end)
    return item_start < end and item_end > start


async def load_index_items_for_range(
    store: ObjectStore,
    index_base: str,
    start: dt.datetime,
    end: dt.datetime,
    time_zone: str,
) -> list[IndexItem]:
    """Return a job's items whose windows overlap ``[start, end)``, sorted."""
    items: list[IndexItem] = []
    for period in month_keys_between(start, end, time_zone):
        index_file = await load_index_file(store, month_index_key(index_base, period))
        if index_file is None:
            continue
        items.extend(
            item for item in index_file.items if overlaps_window(item, start, end)
        )
    return list(_sort_items(items))


async def load_jobs_registry(store: ObjectStore, key: str) -> JobsRegistry | None:
    """Return the job registry at ``key``; ``None`` when absent or invalid."""
    return await load_record(store, key, JobsRegistry)


async def upsert_job_registry(  # noqa: PLR0913
    store: ObjectStore,
    key: str,
    *,
    owner: str,
    owner_type: OwnerType,
    entry: JobRegistryEntry,
    now: dt.datetime,
    status: str | None = None,
    slot_key: str | None = None,
) -> JobsRegistry:
    """Insert or refresh one job's registry entry and bump its run count.

    Parameters
    ----------
    store
        Object store holding the registry.
    key
        Registry document key.
    owner
        Owner login.
    owner_type
        Owner account kind.
    entry
        Current job metadata; its run totals are ignored.
    now
        Run instant stamped as ``lastRunAt`` and ``updatedAt``.
    status
        Outcome of the run being recorded.
    slot_key
        Slot the run processed.

    Returns
    -------
    JobsRegistry
        The registry as written.

    """
    registry = await load_jobs_registry(store, key)
    jobs = {job.id: job for job in registry.jobs} if registry is not None else {}
    previous = jobs.get(entry.id)
    stamp = to_iso_z(now)
    jobs[entry.id] = msgspec.structs.replace(
        entry,
        total_runs=(previous.total_runs if previous is not None else 0) + 1,
        last_run_at=stamp,
        last_status=status,
        last_slot_key=slot_key,
    )
    updated = JobsRegistry(
        owner=owner,
        owner_type=owner_type,
        updated_at=stamp,
        jobs=tuple(jobs[job_id] for job_id in sorted(jobs)),
    )
    await store.put(key, encode_record(updated), JSON_CONTENT_TYPE)
    return updated
