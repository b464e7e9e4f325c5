"""Persisted run records and the index maintainer.

Public API
----------
Manifest, Summary, IndexItem, MonthlyIndexFile, LatestPointer, JobsRegistry
    Persisted record structures.
build_manifest, build_failed_manifest, build_summary, build_index_item
    Pure builders for the records of one slot run.
update_index, write_latest, remove_index_item_by_slot, recompute_latest
    Index maintenance operations.
IndexMutex
    Per-key lock registry serialising index read-modify-writes.

"""

from cadence.records.builder import (
    ManifestContext,
    build_failed_manifest,
    build_index_item,
    build_manifest,
    build_summary,
    window_size,
)
from cadence.records.index import (
    IndexMutex,
    RemovalResult,
    load_index_items_for_range,
    load_latest,
    recompute_latest,
    remove_index_item_by_slot,
    update_index,
    write_latest,
)
from cadence.records.models import (
    IndexItem,
    JobsRegistry,
    LatestPointer,
    Manifest,
    MonthlyIndexFile,
    OwnerType,
    RecordStatus,
    Summary,
)

__all__ = [
    "IndexItem",
    "IndexMutex",
    "JobsRegistry",
    "LatestPointer",
    "Manifest",
    "ManifestContext",
    "MonthlyIndexFile",
    "OwnerType",
    "RecordStatus",
    "RemovalResult",
    "Summary",
    "build_failed_manifest",
    "build_index_item",
    "build_manifest",
    "build_summary",
    "load_index_items_for_range",
    "load_latest",
    "recompute_latest",
    "remove_index_item_by_slot",
    "update_index",
    "window_size",
    "write_latest",
]
