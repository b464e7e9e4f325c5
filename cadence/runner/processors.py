"""Per-mode processors turning one slot of a job into a report artifact.

Each processor gathers its input, applies the job's filters and empty
policy, and returns a :class:`ProcessorOutcome`. Processors never write to
the store; the orchestrator persists their outcome in a fixed order.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import pathlib
import typing as typ

import httpx
import msgspec

from cadence.activity.context import ContextClient, enrich_repos_with_context
from cadence.activity.errors import ActivitySourceError
from cadence.activity.filters import (
    apply_author_filters,
    apply_commit_budget,
    apply_redactions,
    apply_repo_caps,
    build_empty_report,
    is_empty_activity,
    split_inactive,
    summarize_activity,
)
from cadence.activity.stats import collect_activity_stats, encode_stats, is_empty_stats
from cadence.common.text import truncate_utf8, utf8_size
from cadence.common.time import parse_iso, to_iso_z
from cadence.generation.errors import (
    ReportGeneratorAPIError,
    ReportOutputValidationError,
)
from cadence.generation.models import (
    AggregateItem,
    AggregateRequest,
    OutputFormat,
    ReportRequest,
    ReportWindow,
)
from cadence.generation.prompts import template_instructions
from cadence.jobs.models import JobMode, OnEmptyPolicy
from cadence.logging import get_logger, log_debug, log_info, log_warning
from cadence.records.builder import index_window
from cadence.records.codec import load_record
from cadence.records.index import load_index_items_for_range
from cadence.records.metrics import aggregate_metrics, compute_metrics
from cadence.records.models import LLMUsage, Manifest, RecordStatus, SourceRef
from cadence.retry import with_retry
from cadence.runner.errors import RunError
from cadence.runner.models import SkipReason
from cadence.scheduling.slots import resolve_time_zone
from cadence.storage.keys import index_base_key

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cadence.activity.models import ActivityScope, RepoActivity
    from cadence.config import AppConfig
    from cadence.generation.models import GeneratedReport
    from cadence.generation.protocol import ReportGenerator
    from cadence.jobs.models import JobDefinition
    from cadence.records.models import IndexItem, ReportMetrics
    from cadence.runner.context import RunDependencies
    from cadence.scheduling.models import Slot

logger = get_logger(__name__)

FETCH_RETRY_ON: tuple[type[Exception], ...] = (
    ActivitySourceError,
    httpx.TransportError,
)
GENERATE_RETRY_ON: tuple[type[Exception], ...] = (
    ReportGeneratorAPIError,
    ReportOutputValidationError,
)


@dc.dataclass(frozen=True, slots=True)
class ReportArtifact:
    """Text of an output artifact and its format."""

    text: str
    format: OutputFormat


@dc.dataclass(frozen=True, slots=True)
class ProcessorOutcome:
    """Result of processing one slot, ready to be persisted.

    Attributes
    ----------
    empty
        Whether the window had no activity.
    repos
        Filtered activity; recorded in the manifest's rollups.
    artifact
        Output to write; ``None`` for ``manifest-only`` empty runs.
    llm
        Model usage reported by the generator.
    source
        Source job reference of aggregate runs.
    metrics
        Computed activity metrics.
    skip_reason
        Set when the slot must be skipped without writing anything.

    """

    empty: bool
    repos: tuple[RepoActivity, ...] = ()
    artifact: ReportArtifact | None = None
    llm: LLMUsage | None = None
    source: SourceRef | None = None
    metrics: ReportMetrics | None = None
    skip_reason: SkipReason | None = None

    @classmethod
    def skipped(cls, reason: SkipReason) -> ProcessorOutcome:
        """Return an outcome that skips the slot."""
        return cls(empty=True, skip_reason=reason)


class Processor(typ.Protocol):
    """Callable producing the outcome of one slot of a job."""

    async def __call__(
        self,
        job: JobDefinition,
        slot: Slot,
        deps: RunDependencies,
        config: AppConfig,
    ) -> ProcessorOutcome:
        """Process ``slot`` of ``job``."""
        ...


def empty_outcome(
    job: JobDefinition,
    output_format: OutputFormat,
    *,
    repos: cabc.Sequence[RepoActivity] = (),
    source: SourceRef | None = None,
    metrics: ReportMetrics | None = None,
) -> ProcessorOutcome:
    """Apply the job's ``onEmpty`` policy to a window without activity."""
    match job.on_empty:
        case OnEmptyPolicy.SKIP:
            return ProcessorOutcome.skipped(SkipReason.EMPTY)
        case OnEmptyPolicy.PLACEHOLDER:
            artifact = ReportArtifact(
                text=build_empty_report(output_format, job.template or job.id),
                format=output_format,
            )
        case _:
            artifact = None
    return ProcessorOutcome(
        empty=True,
        repos=tuple(repos),
        artifact=artifact,
        source=source,
        metrics=metrics,
    )


async def resolve_prompt(job: JobDefinition) -> str | None:
    """Return the prompt of ``job``: its prompt file, inline prompt or template.

    An unreadable prompt file is logged and the next source is used.
    """
    if job.prompt_file:
        path = pathlib.Path(job.prompt_file)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as exc:
            log_warning(
                logger, "Cannot read prompt file %s for %s: %s", path, job.id, exc
            )
    if job.prompt:
        return job.prompt
    return template_instructions(job.template)


def report_window(slot: Slot) -> ReportWindow:
    """Return the prompt-facing window of ``slot``."""
    return ReportWindow(
        start=to_iso_z(slot.window.start), end=to_iso_z(slot.window.end)
    )


def _require[T](collaborator: T | None, name: str, job: JobDefinition) -> T:
    if collaborator is None:
        raise RunError.missing_collaborator(name, job.mode)
    return collaborator


async def _generate(
    generator: ReportGenerator,
    request: ReportRequest | AggregateRequest,
    config: AppConfig,
) -> tuple[ReportArtifact, LLMUsage]:
    report: GeneratedReport = await with_retry(
        lambda: generator.generate(request),
        config.retry_policy,
        retry_on=GENERATE_RETRY_ON,
    )
    usage = report.usage
    llm = LLMUsage(
        model=report.model,
        input_tokens=usage.input_tokens if usage is not None else None,
        output_tokens=usage.output_tokens if usage is not None else None,
    )
    return ReportArtifact(text=report.text, format=report.format), llm


async def enrich_context_for(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
    repos: cabc.Sequence[RepoActivity],
) -> list[RepoActivity]:
    """Run the job's context providers over ``repos``.

    Activity sources without GitHub read access leave ``repos`` unchanged.
    """
    source = deps.activity_source
    if not repos or not isinstance(source, ContextClient):
        return list(repos)
    enriched, results = await enrich_repos_with_context(
        source,
        job.scope.owner,
        repos,
        config.retry_policy,
        allowlist=job.context_providers,
        settings=config.context,
    )
    deps.events.log_context_providers(
        job_id=job.id, slot_key=slot.slot_key, results=results
    )
    return enriched


async def fetch_filtered_activity(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
    scope: ActivityScope | None = None,
    *,
    enrich_context: bool = False,
) -> tuple[list[RepoActivity], int]:
    """Fetch a slot's activity and apply the job's caps and filters.

    With ``enrich_context`` the job's context providers run over the
    filtered repositories before paths are redacted.

    Returns
    -------
    tuple[list[RepoActivity], int]
        Repositories to report on and the number of inactive repositories
        that were left out.

    """
    source = _require(deps.activity_source, "activity source", job)
    fetch_scope = scope if scope is not None else job.activity_scope()
    result = await with_retry(
        lambda: source.fetch(fetch_scope, slot.window),
        config.retry_policy,
        retry_on=FETCH_RETRY_ON,
    )
    log_debug(
        logger,
        "Fetched %d of %d repositories for %s (rate limit remaining %s)",
        result.meta.filtered_repos,
        result.meta.total_repos,
        job.id,
        result.rate_limit.remaining,
    )
    repos = apply_repo_caps(
        result.repos,
        max_repos=job.max_repos,
        max_commits_per_repo=job.max_commits_per_repo,
    )
    repos = apply_commit_budget(repos, job.max_total_commits)
    repos = apply_author_filters(repos, job.author_filter)
    repos, inactive = split_inactive(
        repos, include_inactive=job.include_inactive_repos
    )
    if enrich_context:
        repos = await enrich_context_for(job, slot, deps, config, repos)
    return apply_redactions(repos, job.redact_paths), inactive


async def process_pipeline(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
) -> ProcessorOutcome:
    """Fetch activity, filter it and generate a report."""
    repos, inactive = await fetch_filtered_activity(
        job, slot, deps, config, enrich_context=True
    )
    metrics = compute_metrics(
        repos,
        top_contributors=job.metrics.top_contributors,
        top_repos=job.metrics.top_repos,
        aliases=job.scope.author_aliases,
    )
    if is_empty_activity(summarize_activity(repos)):
        return empty_outcome(job, job.output_format, repos=repos, metrics=metrics)

    generator = _require(deps.generator, "report generator", job)
    request = ReportRequest(
        owner=job.scope.owner,
        owner_type=job.scope.owner_type,
        window=report_window(slot),
        repos=tuple(repos),
        output_format=job.output_format,
        inactive_repo_count=None if job.include_inactive_repos else inactive,
        prompt_template=await resolve_prompt(job),
        max_tokens_hint=job.max_tokens_hint,
    )
    artifact, llm = await _generate(generator, request, config)
    return ProcessorOutcome(
        empty=False, repos=tuple(repos), artifact=artifact, llm=llm, metrics=metrics
    )


@dc.dataclass(slots=True)
class _AggregateInputs:
    items: list[AggregateItem] = dc.field(default_factory=list)
    metrics: list[ReportMetrics] = dc.field(default_factory=list)
    total_bytes: int = 0


async def _load_source_manifest(
    deps: RunDependencies, item: IndexItem
) -> Manifest | None:
    manifest = await load_record(deps.store, item.manifest_key, Manifest)
    if manifest is None or manifest.status is not RecordStatus.SUCCESS:
        return None
    if manifest.output is None:
        return None
    return manifest


async def collect_aggregate_inputs(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
    source_job_id: str,
) -> _AggregateInputs:
    """Load the outputs of ``source_job_id`` whose windows overlap ``slot``.

    Failed runs and runs without an output are ignored. Each output is cut
    to ``maxBytesPerItem``; collection stops once ``maxTotalBytes`` would be
    exceeded.
    """
    caps = job.aggregation
    zone = resolve_time_zone(config.time_zone)
    index_base = index_base_key(
        job.prefix(config.prefix),
        job.scope.owner_type,
        job.scope.owner,
        source_job_id,
    )
    entries = await load_index_items_for_range(
        deps.store, index_base, slot.window.start, slot.window.end, config.time_zone
    )
    inputs = _AggregateInputs()
    for entry in entries:
        manifest = await _load_source_manifest(deps, entry)
        if manifest is None or manifest.output is None:
            continue
        content = await deps.store.get(manifest.output.key)
        if content is None:
            log_warning(
                logger,
                "Output %s of %s is missing; leaving it out of %s",
                manifest.output.key,
                entry.slot_key,
                job.id,
            )
            continue
        content = truncate_utf8(content, caps.max_bytes_per_item)
        size = utf8_size(content)
        if caps.max_total_bytes is not None and (
            inputs.total_bytes + size > caps.max_total_bytes
        ):
            log_info(
                logger,
                "Byte cap reached for %s after %d items",
                job.id,
                len(inputs.items),
            )
            break
        inputs.total_bytes += size
        local_start = parse_iso(manifest.window.start).astimezone(zone)
        inputs.items.append(
            AggregateItem(
                date=local_start.date().isoformat(),
                manifest_key=entry.manifest_key,
                content=content,
            )
        )
        if manifest.metrics is not None:
            inputs.metrics.append(manifest.metrics)
    return inputs


async def process_aggregate(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
) -> ProcessorOutcome:
    """Roll up the outputs of another job over the slot's window."""
    source_job_id = job.aggregation.source_job_id
    if not source_job_id:
        return ProcessorOutcome.skipped(SkipReason.MISSING_SOURCE_JOB_ID)

    inputs = await collect_aggregate_inputs(job, slot, deps, config, source_job_id)
    metrics = aggregate_metrics(
        inputs.metrics,
        top_contributors=job.metrics.top_contributors,
        top_repos=job.metrics.top_repos,
    )
    source = SourceRef(job_id=source_job_id, item_count=len(inputs.items))
    if not inputs.items:
        return empty_outcome(job, job.output_format, source=source, metrics=metrics)

    generator = _require(deps.generator, "report generator", job)
    request = AggregateRequest(
        owner=job.scope.owner,
        owner_type=job.scope.owner_type,
        window=report_window(slot),
        time_zone=config.time_zone,
        job_id=job.id,
        job_name=job.name,
        source_job_id=source_job_id,
        items=tuple(inputs.items),
        output_format=job.output_format,
        metrics=metrics,
        prompt_template=await resolve_prompt(job),
        max_tokens_hint=job.max_tokens_hint,
    )
    artifact, llm = await _generate(generator, request, config)
    return ProcessorOutcome(
        empty=False, artifact=artifact, llm=llm, source=source, metrics=metrics
    )


async def process_stats(
    job: JobDefinition,
    slot: Slot,
    deps: RunDependencies,
    config: AppConfig,
) -> ProcessorOutcome:
    """Fetch detailed activity and render deterministic JSON statistics."""
    scope = msgspec.structs.replace(
        job.activity_scope(), include_commit_details=True
    )
    repos, _ = await fetch_filtered_activity(job, slot, deps, config, scope)
    metrics = compute_metrics(
        repos,
        top_contributors=job.metrics.top_contributors,
        top_repos=job.metrics.top_repos,
        aliases=job.scope.author_aliases,
    )
    payload = collect_activity_stats(
        repos,
        owner=job.scope.owner,
        owner_type=job.scope.owner_type,
        window=index_window(slot),
        time_zone=config.time_zone,
        now=deps.clock(),
        aliases=job.scope.author_aliases,
    )
    if is_empty_stats(payload):
        return empty_outcome(job, OutputFormat.JSON, repos=repos, metrics=metrics)
    return ProcessorOutcome(
        empty=False,
        repos=tuple(repos),
        artifact=ReportArtifact(text=encode_stats(payload), format=OutputFormat.JSON),
        metrics=metrics,
    )


PROCESSORS: dict[JobMode, Processor] = {
    JobMode.PIPELINE: process_pipeline,
    JobMode.AGGREGATE: process_aggregate,
    JobMode.STATS: process_stats,
}


def processor_for(mode: JobMode) -> Processor:
    """Return the processor of job ``mode``."""
    try:
        return PROCESSORS[mode]
    except KeyError as exc:
        raise RunError.unknown_mode(mode) from exc
