"""Persisted record structures: manifests, summaries, indexes and registry.

Every record is encoded as UTF-8 JSON with camelCase field names. Instants are
stored as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` strings so that lexical comparison
matches chronological order and rewriting an unchanged record is
byte-identical.
"""

from __future__ import annotations

import enum

import msgspec

from cadence.scheduling.models import Schedule, SlotType  # noqa: TC001


class OwnerType(enum.StrEnum):
    """Kind of GitHub account that owns a job's reports."""

    USER = "user"
    ORG = "org"


class RecordStatus(enum.StrEnum):
    """Outcome recorded in a manifest or index item."""

    SUCCESS = "success"
    FAILED = "failed"


class _Record(
    msgspec.Struct, kw_only=True, frozen=True, rename="camel", omit_defaults=True
):
    """Base for persisted records; optional fields are omitted when unset."""


class IndexWindow(_Record):
    """Activity window stamped with its nominal size.

    Attributes
    ----------
    start
        Window start instant (inclusive).
    end
        Window end instant (exclusive); equals the slot's scheduled time.
    days
        Nominal length in days (``0`` for hourly slots).
    hours
        Nominal length in hours, set for hourly slots only.

    """

    start: str
    end: str
    days: int
    hours: int | None = None


class LLMUsage(_Record):
    """Model identifier and token counts reported by a generator."""

    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None


class RepoStats(_Record):
    """Per-repository activity counts."""

    name: str
    commits: int
    prs: int
    issues: int


class ContributorStats(_Record):
    """Per-author commit count."""

    author: str
    commits: int


class ManifestStats(_Record):
    """Activity totals across every repository in a run."""

    repos: int
    commits: int
    prs: int
    issues: int


class ReportMetricsTotals(_Record):
    """Aggregate activity metrics carried on index items."""

    repos: int
    commits: int
    additions: int
    deletions: int
    prs_opened: int
    prs_merged: int
    prs_closed: int
    issues_opened: int
    issues_closed: int
    contributors: int


class ReportMetrics(_Record):
    """Metric totals with top-N leader boards."""

    totals: ReportMetricsTotals
    top_contributors: tuple[ContributorStats, ...] = ()
    top_repos: tuple[RepoStats, ...] = ()


class SourceRef(_Record):
    """Reference to the source job an aggregate report was built from."""

    job_id: str
    item_count: int


class OutputDescriptor(_Record):
    """Location and size of a run's output artifact."""

    format: str
    key: str
    uri: str
    size: int


class JobRef(_Record):
    """Identity of the job that produced a manifest."""

    id: str
    name: str
    mode: str
    version: str | None = None


class IndexItem(_Record):
    """One run attempt recorded in a monthly index file.

    Attributes
    ----------
    manifest_key
        Key of the manifest this item describes; at most one item per
        manifest key exists in a monthly index file.
    output_size
        Output artifact size in bytes, ``0`` when no output was written.

    """

    owner: str
    owner_type: OwnerType
    job_id: str
    slot_key: str
    slot_type: SlotType
    scheduled_at: str
    window: IndexWindow
    status: RecordStatus
    empty: bool
    output_size: int
    manifest_key: str
    duration_ms: int | None = None
    metrics: ReportMetricsTotals | None = None
    llm: LLMUsage | None = None


class MonthlyIndexFile(_Record):
    """Index of every run whose window starts in one local calendar month."""

    owner: str
    owner_type: OwnerType
    job_id: str
    period: str
    items: tuple[IndexItem, ...]


class LatestPointer(_Record):
    """Materialised view of a job's chronologically latest index item."""

    owner: str
    owner_type: OwnerType
    job_id: str
    latest: IndexItem


class Manifest(_Record):
    """Durable record of one job run against one slot.

    A manifest is written for successful runs, for ``manifest-only`` empty
    runs and, when failures are recorded, for failed runs. It is overwritten
    when the slot is rerun.
    """

    job: JobRef
    status: RecordStatus
    owner: str
    owner_type: OwnerType
    slot_key: str
    slot_type: SlotType
    scheduled_at: str
    window: IndexWindow
    timezone: str
    empty: bool
    generated_at: str
    duration_ms: int
    data_profile: str
    repos: tuple[RepoStats, ...]
    contributors: tuple[ContributorStats, ...]
    stats: ManifestStats
    error: str | None = None
    llm: LLMUsage | None = None
    source: SourceRef | None = None
    metrics: ReportMetrics | None = None
    output: OutputDescriptor | None = None


class Summary(_Record):
    """Listing projection of a :class:`Manifest` without per-repo detail."""

    manifest_key: str
    job: JobRef
    status: RecordStatus
    owner: str
    owner_type: OwnerType
    slot_key: str
    slot_type: SlotType
    scheduled_at: str
    window: IndexWindow
    timezone: str
    empty: bool
    generated_at: str
    duration_ms: int
    data_profile: str
    output_size: int
    stats: ManifestStats
    error: str | None = None
    llm: LLMUsage | None = None
    source: SourceRef | None = None
    metrics: ReportMetricsTotals | None = None
    output: OutputDescriptor | None = None


class JobRegistryEntry(_Record):
    """Denormalised job metadata with running totals."""

    id: str
    name: str
    mode: str
    total_runs: int
    description: str | None = None
    schedule: Schedule | None = None
    version: str | None = None
    last_run_at: str | None = None
    last_status: str | None = None
    last_slot_key: str | None = None


class JobsRegistry(_Record):
    """Every job that has run for one owner."""

    owner: str
    owner_type: OwnerType
    updated_at: str
    jobs: tuple[JobRegistryEntry, ...]
