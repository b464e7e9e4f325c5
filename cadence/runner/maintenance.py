"""Manual rerun and deletion of a single slot.

A rerun replaces a slot's records only when the new attempt succeeds: the
run writes into a :class:`BufferedObjectStore` that is committed on success
and discarded otherwise. A deletion removes a slot's artifacts and its index
entry and repairs the latest pointer.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from cadence.common.time import parse_iso
from cadence.logging import get_logger, log_info, log_warning
from cadence.records.codec import load_record
from cadence.records.index import (
    load_latest,
    recompute_latest,
    remove_index_item_by_slot,
)
from cadence.records.models import Manifest
from cadence.runner.models import RunStatus
from cadence.scheduling.slots import parse_slot_key, resolve_slot
from cadence.storage.buffered import BufferedObjectStore
from cadence.storage.keys import latest_key, manifest_key, month_index_key, month_key

if typ.TYPE_CHECKING:
    import datetime as dt

    from cadence.jobs.models import JobDefinition
    from cadence.records.models import IndexItem
    from cadence.runner.models import SlotRunResult
    from cadence.runner.orchestrator import RunOrchestrator
    from cadence.scheduling.models import Slot

logger = get_logger(__name__)


async def rerun_slot(
    orchestrator: RunOrchestrator,
    job: JobDefinition,
    slot: Slot,
    *,
    notify: bool = True,
) -> SlotRunResult:
    """Re-run ``job`` for ``slot``, replacing its records only on success.

    The keys under the slot's report base are snapshotted, the job runs
    against a buffered store with failure recording disabled, and the buffer
    is committed only when the run succeeds. Keys from the previous run that
    the new run did not write (for example an output in another format) are
    then deleted. Any other outcome discards the buffer and leaves the store
    exactly as it was.

    Idempotency is ignored: a rerun always processes the slot.

    Parameters
    ----------
    orchestrator
        Orchestrator bound to the real store.
    job
        Job to re-run.
    slot
        Slot to re-run.
    notify
        Whether the rerun sends a notification.

    Returns
    -------
    SlotRunResult
        Result of the buffered run.

    """
    store = orchestrator.store
    base = orchestrator.report_base(job, slot.slot_key)
    previous_keys = set(await store.list(f"{base}/"))

    buffer = BufferedObjectStore(store)
    forced = msgspec.structs.replace(job, idempotent=False)
    result = await orchestrator.with_store(buffer).run_slot(
        forced, slot, notify=notify, record_failure=False
    )
    if result.status is not RunStatus.SUCCESS:
        buffer.discard()
        log_warning(
            logger,
            "Rerun of %s slot %s ended %s; previous run kept",
            job.id,
            slot.slot_key,
            result.status,
        )
        return result

    async with orchestrator.deps.index_mutex.hold(*buffer.pending_keys()):
        committed = await buffer.commit()
    stale = sorted(previous_keys - committed.keys())
    for key in stale:
        await store.delete(key)
    log_info(
        logger,
        "Rerun of %s slot %s committed %d keys, removed %d stale",
        job.id,
        slot.slot_key,
        len(committed),
        len(stale),
    )
    return result


@dc.dataclass(frozen=True, slots=True)
class SlotDeletion:
    """Outcome of :func:`delete_slot`.

    Attributes
    ----------
    slot_key
        Slot that was deleted.
    deleted_keys
        Artifact and record keys removed from the store.
    removed
        Index item removed from its monthly file, if one existed.
    latest
        Latest item after the deletion; ``None`` when no run remains.

    """

    slot_key: str
    deleted_keys: tuple[str, ...]
    removed: IndexItem | None
    latest: IndexItem | None


async def _window_start(
    orchestrator: RunOrchestrator, job: JobDefinition, slot_key: str, base: str
) -> dt.datetime:
    """Return the window start of a slot from its manifest or its key."""
    manifest = await load_record(orchestrator.store, manifest_key(base), Manifest)
    if manifest is not None:
        return parse_iso(manifest.window.start)
    slot = resolve_slot(
        parse_slot_key(slot_key),
        job.effective_schedule,
        orchestrator.config.time_zone,
    )
    return slot.window.start


async def delete_slot(
    orchestrator: RunOrchestrator, job: JobDefinition, slot_key: str
) -> SlotDeletion:
    """Delete every record of ``job`` for ``slot_key`` and repair the index.

    The monthly index file is located from the manifest's window start, or
    from the window of the slot ending at ``slot_key`` when the manifest is
    gone. The latest pointer is recomputed when it referenced the deleted
    slot.

    Raises
    ------
    SlotResolutionError
        If ``slot_key`` is malformed and no manifest exists for it.

    """
    store = orchestrator.store
    time_zone = orchestrator.config.time_zone
    base = orchestrator.report_base(job, slot_key)
    window_start = await _window_start(orchestrator, job, slot_key, base)

    keys = tuple(sorted(await store.list(f"{base}/")))
    for key in keys:
        await store.delete(key)

    index_base = orchestrator.index_base(job)
    index_key = month_index_key(index_base, month_key(window_start, time_zone))
    pointer_key = latest_key(index_base)
    async with orchestrator.deps.index_mutex.hold(index_key, pointer_key):
        removal = await remove_index_item_by_slot(store, index_key, slot_key)
        latest = await load_latest(store, index_base)
        if latest is None or latest.slot_key == slot_key:
            latest = await recompute_latest(store, index_base)

    log_info(
        logger,
        "Deleted %s slot %s: %d keys, index entry %s",
        job.id,
        slot_key,
        len(keys),
        "removed" if removal.removed is not None else "absent",
    )
    return SlotDeletion(
        slot_key=slot_key,
        deleted_keys=keys,
        removed=removal.removed,
        latest=latest,
    )
