"""Build manifests, summaries and index items for one slot run.

Builders are pure: they take the run's inputs and the generation instant and
return records. Persistence and ordering of writes belong to the run
orchestrator.
"""

from __future__ import annotations

import collections
import dataclasses as dc
import typing as typ

from cadence.common.time import to_iso_z
from cadence.records.models import (
    ContributorStats,
    IndexItem,
    IndexWindow,
    Manifest,
    ManifestStats,
    RecordStatus,
    RepoStats,
    Summary,
)
from cadence.scheduling.models import SlotType

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.activity.models import RepoActivity
    from cadence.records.models import (
        JobRef,
        LLMUsage,
        OutputDescriptor,
        OwnerType,
        ReportMetrics,
        SourceRef,
    )
    from cadence.scheduling.models import Slot

_SECONDS_PER_DAY = 86_400
_WEEK_DAYS = 7


def window_size(
    slot_type: SlotType, start: dt.datetime, end: dt.datetime
) -> tuple[int, int | None]:
    """Return the nominal ``(days, hours)`` of a slot window.

    Hourly windows are ``(0, 1)``; daily and weekly windows report their
    calendar length regardless of DST. Monthly and yearly windows report the
    rounded number of elapsed days, at least one.
    """
    match slot_type:
        case SlotType.HOURLY:
            return (0, 1)
        case SlotType.DAILY:
            return (1, None)
        case SlotType.WEEKLY:
            return (_WEEK_DAYS, None)
    elapsed = (end - start).total_seconds() / _SECONDS_PER_DAY
    return (max(1, round(elapsed)), None)


def index_window(slot: Slot) -> IndexWindow:
    """Return the persisted window of ``slot`` stamped with its size."""
    days, hours = window_size(slot.slot_type, slot.window.start, slot.window.end)
    return IndexWindow(
        start=to_iso_z(slot.window.start),
        end=to_iso_z(slot.window.end),
        days=days,
        hours=hours,
    )


def summarize_repos(repos: cabc.Iterable[RepoActivity]) -> tuple[RepoStats, ...]:
    """Return per-repository commit, pull request and issue counts."""
    return tuple(
        RepoStats(
            name=repo.repo.name,
            commits=len(repo.commits),
            prs=len(repo.pull_requests),
            issues=len(repo.issues),
        )
        for repo in repos
    )


def total_stats(repos: cabc.Sequence[RepoStats]) -> ManifestStats:
    """Return activity totals across ``repos``."""
    return ManifestStats(
        repos=len(repos),
        commits=sum(repo.commits for repo in repos),
        prs=sum(repo.prs for repo in repos),
        issues=sum(repo.issues for repo in repos),
    )


def contributor_rollup(
    repos: cabc.Iterable[RepoActivity],
    aliases: cabc.Mapping[str, str] | None = None,
) -> tuple[ContributorStats, ...]:
    """Return commit counts per author, busiest first then by name.

    ``aliases`` maps raw author names onto a canonical login before counting.
    """
    alias_map = aliases or {}
    counts: collections.Counter[str] = collections.Counter()
    for repo in repos:
        for commit in repo.commits:
            author = commit.author.strip()
            counts[alias_map.get(author, author)] += 1
    ranked = sorted(counts.items(), key=lambda entry: (-entry[1], entry[0]))
    return tuple(
        ContributorStats(author=author, commits=commits) for author, commits in ranked
    )


@dc.dataclass(frozen=True, slots=True)
class ManifestContext:
    """Identity shared by every record written for one (job, slot) run.

    Attributes
    ----------
    job
        Identity of the job that ran.
    owner
        Owner login.
    owner_type
        Owner account kind.
    slot
        Slot being processed.
    time_zone
        IANA zone the job's schedule is expressed in.
    data_profile
        Tag describing how much context was gathered for the run.

    """

    job: JobRef
    owner: str
    owner_type: OwnerType
    slot: Slot
    time_zone: str
    data_profile: str = "standard"


def build_manifest(  # noqa: PLR0913
    context: ManifestContext,
    *,
    repos: cabc.Sequence[RepoActivity],
    empty: bool,
    duration_ms: int,
    now: dt.datetime,
    llm: LLMUsage | None = None,
    source: SourceRef | None = None,
    metrics: ReportMetrics | None = None,
    output: OutputDescriptor | None = None,
    aliases: cabc.Mapping[str, str] | None = None,
) -> Manifest:
    """Build the manifest of a successful run.

    Parameters
    ----------
    context
        Job and slot identity.
    repos
        Filtered activity the report was generated from; empty for
        aggregate runs.
    empty
        Whether the window had no activity.
    duration_ms
        Wall time of the run so far.
    now
        Generation instant stamped as ``generatedAt``.
    llm
        Model usage reported by the generator.
    source
        Source job reference for aggregate runs.
    metrics
        Computed activity metrics.
    output
        Output artifact descriptor; ``None`` for ``manifest-only`` runs.
    aliases
        Author alias map applied to the contributor rollup.

    Returns
    -------
    Manifest
        Manifest with ``status=success``.

    """
    repo_stats = summarize_repos(repos)
    return Manifest(
        job=context.job,
        status=RecordStatus.SUCCESS,
        owner=context.owner,
        owner_type=context.owner_type,
        slot_key=context.slot.slot_key,
        slot_type=context.slot.slot_type,
        scheduled_at=to_iso_z(context.slot.scheduled_at),
        window=index_window(context.slot),
        timezone=context.time_zone,
        empty=empty,
        generated_at=to_iso_z(now),
        duration_ms=duration_ms,
        data_profile=context.data_profile,
        repos=repo_stats,
        contributors=contributor_rollup(repos, aliases),
        stats=total_stats(repo_stats),
        llm=llm,
        source=source,
        metrics=metrics,
        output=output,
    )


def build_failed_manifest(
    context: ManifestContext,
    *,
    error: str,
    duration_ms: int,
    now: dt.datetime,
) -> Manifest:
    """Build the manifest of a failed run: empty, no output, zeroed stats."""
    return Manifest(
        job=context.job,
        status=RecordStatus.FAILED,
        error=error,
        owner=context.owner,
        owner_type=context.owner_type,
        slot_key=context.slot.slot_key,
        slot_type=context.slot.slot_type,
        scheduled_at=to_iso_z(context.slot.scheduled_at),
        window=index_window(context.slot),
        timezone=context.time_zone,
        empty=True,
        generated_at=to_iso_z(now),
        duration_ms=duration_ms,
        data_profile=context.data_profile,
        repos=(),
        contributors=(),
        stats=ManifestStats(repos=0, commits=0, prs=0, issues=0),
    )


def output_size(manifest: Manifest) -> int:
    """Return the size of the manifest's output artifact, ``0`` without one."""
    return manifest.output.size if manifest.output is not None else 0


def build_summary(manifest: Manifest, manifest_key: str) -> Summary:
    """Project ``manifest`` onto the listing fields plus ``outputSize``."""
    return Summary(
        manifest_key=manifest_key,
        job=manifest.job,
        status=manifest.status,
        error=manifest.error,
        owner=manifest.owner,
        owner_type=manifest.owner_type,
        slot_key=manifest.slot_key,
        slot_type=manifest.slot_type,
        scheduled_at=manifest.scheduled_at,
        window=manifest.window,
        timezone=manifest.timezone,
        empty=manifest.empty,
        generated_at=manifest.generated_at,
        duration_ms=manifest.duration_ms,
        data_profile=manifest.data_profile,
        output_size=output_size(manifest),
        stats=manifest.stats,
        llm=manifest.llm,
        source=manifest.source,
        metrics=manifest.metrics.totals if manifest.metrics is not None else None,
        output=manifest.output,
    )


def build_index_item(manifest: Manifest, manifest_key: str) -> IndexItem:
    """Return the monthly index entry describing ``manifest``."""
    return IndexItem(
        owner=manifest.owner,
        owner_type=manifest.owner_type,
        job_id=manifest.job.id,
        slot_key=manifest.slot_key,
        slot_type=manifest.slot_type,
        scheduled_at=manifest.scheduled_at,
        window=manifest.window,
        status=manifest.status,
        empty=manifest.empty,
        output_size=output_size(manifest),
        manifest_key=manifest_key,
        duration_ms=manifest.duration_ms,
        metrics=manifest.metrics.totals if manifest.metrics is not None else None,
        llm=manifest.llm,
    )
