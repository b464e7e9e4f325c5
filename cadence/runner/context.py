"""Collaborators shared by every slot run."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from cadence.common.time import utcnow
from cadence.records.index import IndexMutex
from cadence.runner.observability import RunEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.activity.protocol import ActivitySource
    from cadence.generation.protocol import ReportGenerator
    from cadence.notify.protocol import Notifier
    from cadence.storage.protocol import ObjectStore


@dc.dataclass(frozen=True, slots=True)
class RunDependencies:
    """Collaborators the orchestrator reads from and writes to.

    Groups the store and the outer-world ports into a single parameter
    object so processors and maintenance operations share one signature.

    Attributes
    ----------
    store
        Object store holding every record and artifact.
    activity_source
        Source of repository activity; required by pipeline and stats jobs.
    generator
        Report generator; required by pipeline and aggregate jobs.
    notifier
        Optional notifier told about each written artifact.
    index_mutex
        Per-key locks serialising monthly index and latest pointer writes.
    events
        Structured run event logger.
    clock
        Source of the current instant, injectable for tests.

    """

    store: ObjectStore
    activity_source: ActivitySource | None = None
    generator: ReportGenerator | None = None
    notifier: Notifier | None = None
    index_mutex: IndexMutex = dc.field(default_factory=IndexMutex)
    events: RunEventLogger = dc.field(default_factory=RunEventLogger)
    clock: cabc.Callable[[], dt.datetime] = utcnow

    def with_store(self, store: ObjectStore) -> RunDependencies:
        """Return a copy writing to ``store``, sharing every other collaborator."""
        return dc.replace(self, store=store)

