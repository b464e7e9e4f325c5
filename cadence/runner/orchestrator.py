"""Run jobs against their slots and persist every record of a run.

The orchestrator drives one (job, slot) pair through the run states::

    Pending -> FetchingData -> Generating -> Writing -> Indexing -> Success
                                                                -> Failed
    Pending -> Skipped (idempotent hit, empty window, missing source job,
                        not due)

Usage
-----
>>> from cadence.config import AppConfig
>>> from cadence.generation import MockReportGenerator
>>> from cadence.runner import RunDependencies, RunOrchestrator
>>> from cadence.storage import InMemoryObjectStore
>>>
>>> deps = RunDependencies(
...     store=InMemoryObjectStore(),
...     activity_source=source,
...     generator=MockReportGenerator(),
... )
>>> orchestrator = RunOrchestrator(deps, AppConfig())
>>> result = await orchestrator.run_job_with_schedule(job)

"""

from __future__ import annotations

import asyncio
import time
import typing as typ

from cadence.common.time import parse_iso, to_iso_z
from cadence.logging import (
    format_log_message,
    get_logger,
    log_exception,
    log_info,
    log_warning,
)
from cadence.notify.models import NotificationWindow, RunNotification
from cadence.records.builder import (
    ManifestContext,
    build_failed_manifest,
    build_index_item,
    build_manifest,
    build_summary,
)
from cadence.records.codec import encode_record
from cadence.records.index import (
    load_latest,
    update_index,
    upsert_job_registry,
    write_latest,
)
from cadence.records.models import JobRegistryEntry, OutputDescriptor
from cadence.runner.models import JobRunResult, RunStatus, SkipReason, SlotRunResult
from cadence.runner.processors import processor_for
from cadence.scheduling.decision import get_schedule_decision
from cadence.scheduling.slots import list_slots
from cadence.storage.keys import (
    index_base_key,
    jobs_registry_key,
    latest_key,
    manifest_key,
    month_index_key,
    month_key,
    output_key,
    report_base_key,
    summary_key,
)
from cadence.storage.protocol import (
    JSON_CONTENT_TYPE,
    MARKDOWN_CONTENT_TYPE,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.config import AppConfig
    from cadence.jobs.models import JobDefinition
    from cadence.records.models import Manifest
    from cadence.runner.context import RunDependencies
    from cadence.runner.processors import ProcessorOutcome, ReportArtifact
    from cadence.scheduling.models import Slot
    from cadence.storage.protocol import ObjectStore, StoredArtifact

logger = get_logger(__name__)


def _elapsed_ms(started_at: float) -> int:
    return int((time.monotonic() - started_at) * 1000)


def _content_type(artifact: ReportArtifact) -> str:
    return JSON_CONTENT_TYPE if artifact.format == "json" else MARKDOWN_CONTENT_TYPE


class RunOrchestrator:
    """Run jobs slot by slot and write their artifacts, records and indexes.

    Errors raised while processing a slot are caught here and turned into a
    failed :class:`SlotRunResult`, so sibling slots and sibling jobs keep
    running.
    """

    def __init__(self, deps: RunDependencies, config: AppConfig) -> None:
        """Configure the orchestrator.

        Parameters
        ----------
        deps
            Store, activity source, generator, notifier and run event logger.
        config
            Application configuration supplying the key prefix, time zone,
            retry policy and slot concurrency.

        """
        self._deps = deps
        self._config = config

    @property
    def deps(self) -> RunDependencies:
        """Return the collaborators this orchestrator runs with."""
        return self._deps

    @property
    def config(self) -> AppConfig:
        """Return the application configuration."""
        return self._config

    @property
    def store(self) -> ObjectStore:
        """Return the object store runs write to."""
        return self._deps.store

    def with_store(self, store: ObjectStore) -> RunOrchestrator:
        """Return an orchestrator writing to ``store`` with the same setup."""
        return RunOrchestrator(self._deps.with_store(store), self._config)

    def report_base(self, job: JobDefinition, slot_key: str) -> str:
        """Return the key prefix of ``job``'s artifacts for ``slot_key``."""
        return report_base_key(
            job.prefix(self._config.prefix),
            job.scope.owner_type,
            job.scope.owner,
            job.id,
            slot_key,
        )

    def index_base(self, job: JobDefinition) -> str:
        """Return the key prefix of ``job``'s monthly indexes."""
        return index_base_key(
            job.prefix(self._config.prefix),
            job.scope.owner_type,
            job.scope.owner,
            job.id,
        )

    def _manifest_context(self, job: JobDefinition, slot: Slot) -> ManifestContext:
        return ManifestContext(
            job=job.ref,
            owner=job.scope.owner,
            owner_type=job.scope.owner_type,
            slot=slot,
            time_zone=self._config.time_zone,
            data_profile=job.data_profile,
        )

    async def run_slot(
        self,
        job: JobDefinition,
        slot: Slot,
        *,
        notify: bool = True,
        record_failure: bool = True,
    ) -> SlotRunResult:
        """Run ``job`` for one ``slot``.

        Parameters
        ----------
        job
            Job to run.
        slot
            Slot to produce the report for.
        notify
            Whether to notify about the written artifact; ignored when the
            job disables notifications or no notifier is configured.
        record_failure
            Whether a failure writes a failed manifest, summary and index
            entry. Reruns disable this so a failed attempt leaves the
            previous run untouched.

        Returns
        -------
        SlotRunResult
            The slot's terminal state. Exceptions never propagate.

        """
        events = self._deps.events
        events.log_slot_started(job_id=job.id, slot_key=slot.slot_key)
        started_at = time.monotonic()
        base = self.report_base(job, slot.slot_key)
        context = self._manifest_context(job, slot)
        try:
            if job.idempotent and await self.store.exists(manifest_key(base)):
                return self._skipped(job, slot, SkipReason.IDEMPOTENT, started_at)

            processor = processor_for(job.mode)
            outcome = await processor(job, slot, self._deps, self._config)
            if outcome.skip_reason is not None:
                return self._skipped(job, slot, outcome.skip_reason, started_at)

            result = await self._persist(
                job, context, base, outcome, started_at=started_at, notify=notify
            )
        except Exception as exc:  # noqa: BLE001
            duration_ms = _elapsed_ms(started_at)
            message = str(exc) or type(exc).__name__
            events.log_slot_failed(
                job_id=job.id,
                slot_key=slot.slot_key,
                error=exc,
                duration_ms=duration_ms,
            )
            if record_failure:
                await self._record_failure(
                    job, context, base, error=message, duration_ms=duration_ms
                )
            return SlotRunResult(
                slot=slot,
                status=RunStatus.FAILED,
                error=message,
                duration_ms=duration_ms,
            )
        events.log_slot_completed(job_id=job.id, result=result)
        return result

    def _skipped(
        self,
        job: JobDefinition,
        slot: Slot,
        reason: SkipReason,
        started_at: float,
    ) -> SlotRunResult:
        result = SlotRunResult(
            slot=slot,
            status=RunStatus.SKIPPED,
            reason=reason,
            duration_ms=_elapsed_ms(started_at),
        )
        self._deps.events.log_slot_skipped(job_id=job.id, result=result)
        return result

    async def _write_output(
        self, base: str, artifact: ReportArtifact
    ) -> OutputDescriptor:
        key = output_key(base, artifact.format)
        stored = await self.store.put(key, artifact.text, _content_type(artifact))
        return OutputDescriptor(
            format=artifact.format, key=stored.key, uri=stored.uri, size=stored.size
        )

    async def _persist(  # noqa: PLR0913
        self,
        job: JobDefinition,
        context: ManifestContext,
        base: str,
        outcome: ProcessorOutcome,
        *,
        started_at: float,
        notify: bool,
    ) -> SlotRunResult:
        """Write output, notify, then manifest, summary, index and latest."""
        output = None
        if outcome.artifact is not None:
            output = await self._write_output(base, outcome.artifact)
            if notify and job.notify:
                await self._notify(job, context.slot, output, outcome.artifact)

        manifest = build_manifest(
            context,
            repos=outcome.repos,
            empty=outcome.empty,
            duration_ms=_elapsed_ms(started_at),
            now=self._deps.clock(),
            llm=outcome.llm,
            source=outcome.source,
            metrics=outcome.metrics,
            output=output,
            aliases=job.scope.author_aliases,
        )
        stored = await self._write_records(job, base, manifest)
        return SlotRunResult(
            slot=context.slot,
            status=RunStatus.SUCCESS,
            duration_ms=manifest.duration_ms,
            manifest_key=stored.key,
            output_uri=output.uri if output is not None else None,
        )

    async def _write_records(
        self, job: JobDefinition, base: str, manifest: Manifest
    ) -> StoredArtifact:
        """Write the manifest, its summary, the month index and latest pointer."""
        key = manifest_key(base)
        stored = await self.store.put(key, encode_record(manifest), JSON_CONTENT_TYPE)
        summary = build_summary(manifest, key)
        await self.store.put(
            summary_key(base), encode_record(summary), JSON_CONTENT_TYPE
        )

        item = build_index_item(manifest, key)
        index_base = self.index_base(job)
        period = month_key(parse_iso(manifest.window.start), self._config.time_zone)
        index_key = month_index_key(index_base, period)
        pointer_key = latest_key(index_base)
        async with self._deps.index_mutex.hold(index_key, pointer_key):
            await update_index(self.store, index_key, period, item)
            current = await load_latest(self.store, index_base)
            # Backfill and reruns of older slots never move the pointer back.
            if current is None or current.slot_key <= item.slot_key:
                await write_latest(self.store, pointer_key, item)
        await self._upsert_registry(job, manifest)
        return stored

    async def _upsert_registry(self, job: JobDefinition, manifest: Manifest) -> None:
        entry = JobRegistryEntry(
            id=job.id,
            name=job.name,
            mode=job.mode,
            total_runs=0,
            description=job.description,
            schedule=job.schedule,
            version=job.version,
        )
        registry_key = jobs_registry_key(
            job.prefix(self._config.prefix), job.scope.owner_type, job.scope.owner
        )
        async with self._deps.index_mutex.hold(registry_key):
            await upsert_job_registry(
                self.store,
                registry_key,
                owner=job.scope.owner,
                owner_type=job.scope.owner_type,
                entry=entry,
                now=self._deps.clock(),
                status=manifest.status,
                slot_key=manifest.slot_key,
            )

    async def _notify(
        self,
        job: JobDefinition,
        slot: Slot,
        output: OutputDescriptor,
        artifact: ReportArtifact,
    ) -> None:
        """Send a run notification; failures are logged and never fail the run."""
        notifier = self._deps.notifier
        if notifier is None:
            return
        payload = RunNotification(
            owner=job.scope.owner,
            owner_type=job.scope.owner_type,
            job_id=job.id,
            job_name=job.name,
            slot_key=slot.slot_key,
            window=NotificationWindow(
                start=to_iso_z(slot.window.start), end=to_iso_z(slot.window.end)
            ),
            artifact=output,
            created_at=to_iso_z(self._deps.clock()),
        )
        try:
            await notifier.send(payload, artifact.text)
        except Exception as exc:  # noqa: BLE001
            log_warning(
                logger,
                "Notification for %s slot %s failed: %s",
                job.id,
                slot.slot_key,
                exc,
            )

    async def _record_failure(
        self,
        job: JobDefinition,
        context: ManifestContext,
        base: str,
        *,
        error: str,
        duration_ms: int,
    ) -> None:
        """Write a failed manifest so the slot is never missing from the index."""
        manifest = build_failed_manifest(
            context, error=error, duration_ms=duration_ms, now=self._deps.clock()
        )
        try:
            await self._write_records(job, base, manifest)
        except Exception as exc:  # noqa: BLE001
            log_exception(
                logger,
                format_log_message(
                    "Could not record failure of %s slot %s",
                    job.id,
                    context.slot.slot_key,
                ),
                exc,
            )

    async def run_slots(
        self,
        job: JobDefinition,
        slots: cabc.Sequence[Slot],
        *,
        notify: bool = True,
        record_failure: bool = True,
    ) -> tuple[SlotRunResult, ...]:
        """Run ``slots`` of ``job``, at most ``max_concurrent_slots`` at once.

        Results are returned in the order of ``slots``.
        """
        limit = max(1, self._config.max_concurrent_slots)
        if limit == 1:
            return tuple(
                [
                    await self.run_slot(
                        job, slot, notify=notify, record_failure=record_failure
                    )
                    for slot in slots
                ]
            )

        semaphore = asyncio.Semaphore(limit)

        async def bounded(slot: Slot) -> SlotRunResult:
            async with semaphore:
                return await self.run_slot(
                    job, slot, notify=notify, record_failure=record_failure
                )

        return tuple(await asyncio.gather(*(bounded(slot) for slot in slots)))

    async def run_job_with_schedule(
        self,
        job: JobDefinition,
        *,
        now: dt.datetime | None = None,
        run_scheduled_only: bool = True,
        notify: bool = True,
        record_failure: bool = True,
    ) -> JobRunResult:
        """Run ``job``'s current slot and its backfill slots.

        Parameters
        ----------
        job
            Job to run.
        now
            Reference instant; defaults to the dependency clock.
        run_scheduled_only
            When set, a scheduled job whose current slot already ran is
            skipped with reason ``not_due``.
        notify
            Whether slot runs send notifications.
        record_failure
            Whether failed slots write failure records.

        Returns
        -------
        JobRunResult
            Per-slot results; ``failed`` when any slot failed.

        """
        instant = now if now is not None else self._deps.clock()
        events = self._deps.events
        time_zone = self._config.time_zone
        if run_scheduled_only and job.schedule is not None:
            decision = await get_schedule_decision(
                self.store, self.index_base(job), job.schedule, instant, time_zone
            )
            if not decision.due:
                events.log_job_not_due(
                    job_id=job.id,
                    slot_key=decision.slot_key,
                    last_slot_key=decision.last_slot_key,
                )
                return JobRunResult(
                    job_id=job.id, status=RunStatus.SKIPPED, reason=SkipReason.NOT_DUE
                )

        slots = list_slots(
            instant, job.effective_schedule, time_zone, job.backfill_slots
        )
        events.log_job_started(job_id=job.id, mode=job.mode, slot_count=len(slots))
        results = await self.run_slots(
            job, slots, notify=notify, record_failure=record_failure
        )
        failed = any(result.status is RunStatus.FAILED for result in results)
        job_result = JobRunResult(
            job_id=job.id,
            status=RunStatus.FAILED if failed else RunStatus.SUCCESS,
            slots=results,
        )
        events.log_job_completed(job_result)
        return job_result

    async def run_jobs(
        self,
        jobs: cabc.Iterable[JobDefinition],
        *,
        now: dt.datetime | None = None,
        run_scheduled_only: bool = True,
        notify: bool = True,
    ) -> list[JobRunResult]:
        """Run every job in ``jobs`` in turn at the same reference instant."""
        instant = now if now is not None else self._deps.clock()
        results = []
        for job in jobs:
            results.append(
                await self.run_job_with_schedule(
                    job,
                    now=instant,
                    run_scheduled_only=run_scheduled_only,
                    notify=notify,
                )
            )
        log_info(
            logger,
            "Ran %d jobs; %d failed",
            len(results),
            sum(1 for result in results if result.status is RunStatus.FAILED),
        )
        return results
