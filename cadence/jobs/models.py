"""Typed job definitions.

Job files are YAML documents with camelCase keys, the same casing used by
every persisted record::

    jobs:
      - id: daily-digest
        name: Daily digest
        scope:
          owner: octo-org
          ownerType: org
        schedule:
          type: daily
          hour: 6
        onEmpty: placeholder
"""

from __future__ import annotations

import enum

import msgspec

from cadence.activity.filters import AuthorFilter
from cadence.activity.models import ActivityScope
from cadence.generation.models import OutputFormat
from cadence.records.metrics import DEFAULT_TOP_N
from cadence.records.models import JobRef, OwnerType
from cadence.scheduling.models import Schedule, SlotType

DEFAULT_SCHEDULE = Schedule(type=SlotType.DAILY)


class JobMode(enum.StrEnum):
    """How a job produces its artifact."""

    PIPELINE = "pipeline"
    AGGREGATE = "aggregate"
    STATS = "stats"


class OnEmptyPolicy(enum.StrEnum):
    """What a run does when its window has no activity."""

    SKIP = "skip"
    MANIFEST_ONLY = "manifest-only"
    PLACEHOLDER = "placeholder"


class DataProfile(enum.StrEnum):
    """How much activity detail a pipeline run fetches."""

    STANDARD = "standard"
    DETAILED = "detailed"


class _Config(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Base for job configuration structs."""


class JobScope(_Config):
    """Owner and repository selection of a job.

    Attributes
    ----------
    owner
        GitHub user or organisation login.
    owner_type
        ``user`` or ``org``.
    allowlist
        Repository names to include; empty includes every repository.
    blocklist
        Repository names to exclude.
    include_private
        Whether private repositories are reported on.
    authors
        Authors whose activity is kept; empty keeps everyone not excluded.
    exclude_authors
        Authors whose activity is dropped.
    author_aliases
        Map of raw author names onto canonical names.

    """

    owner: str
    owner_type: OwnerType = OwnerType.USER
    allowlist: tuple[str, ...] = ()
    blocklist: tuple[str, ...] = ()
    include_private: bool = False
    authors: tuple[str, ...] = ()
    exclude_authors: tuple[str, ...] = ()
    author_aliases: dict[str, str] = msgspec.field(default_factory=dict)


class AggregationConfig(_Config):
    """Source selection and byte caps of an aggregate job."""

    source_job_id: str | None = None
    max_bytes_per_item: int | None = None
    max_total_bytes: int | None = None


class MetricsConfig(_Config):
    """Leader board sizes of computed metrics."""

    top_contributors: int = DEFAULT_TOP_N
    top_repos: int = DEFAULT_TOP_N


class JobDefinition(_Config):
    """One recurring reporting job.

    Attributes
    ----------
    id
        Slug identifying the job inside its owner's key space.
    name
        Human-readable job name.
    scope
        Owner and repository selection.
    mode
        ``pipeline``, ``aggregate`` or ``stats``.
    schedule
        When slots end. Jobs without a schedule are always due and run on
        the default daily schedule.
    backfill_slots
        Earlier slots processed with the current one; counts slots, not
        days.
    idempotent
        Skip slots whose manifest already exists.
    on_empty
        Behaviour for windows without activity.
    output_format
        ``markdown`` or ``json``.
    template
        Named report template whose instructions become the prompt.
    prompt
        Inline prompt replacing the template.
    prompt_file
        Path of a file whose text replaces the prompt.
    notify
        Whether runs of this job send notifications.
    context_providers
        Context providers run for pipeline reports; unset runs every enabled
        provider and an empty list runs none.

    """

    id: str
    name: str
    scope: JobScope
    mode: JobMode = JobMode.PIPELINE
    description: str | None = None
    version: str | None = None
    schedule: Schedule | None = None
    backfill_slots: int = 0
    idempotent: bool = False
    on_empty: OnEmptyPolicy = OnEmptyPolicy.MANIFEST_ONLY
    output_format: OutputFormat = OutputFormat.MARKDOWN
    output_prefix: str | None = None
    template: str | None = None
    prompt: str | None = None
    prompt_file: str | None = None
    data_profile: DataProfile = DataProfile.STANDARD
    include_inactive_repos: bool = False
    max_repos: int | None = None
    max_commits_per_repo: int | None = None
    max_total_commits: int | None = None
    max_tokens_hint: int | None = None
    redact_paths: tuple[str, ...] = ()
    context_providers: tuple[str, ...] | None = None
    notify: bool = True
    aggregation: AggregationConfig = msgspec.field(default_factory=AggregationConfig)
    metrics: MetricsConfig = msgspec.field(default_factory=MetricsConfig)

    @property
    def effective_schedule(self) -> Schedule:
        """Return the job's schedule, defaulting to daily at 00:00 local."""
        return self.schedule if self.schedule is not None else DEFAULT_SCHEDULE

    @property
    def ref(self) -> JobRef:
        """Return the identity stamped on the job's manifests."""
        return JobRef(id=self.id, name=self.name, mode=self.mode, version=self.version)

    @property
    def author_filter(self) -> AuthorFilter:
        """Return the author filter configured in the job's scope."""
        return AuthorFilter(
            include=self.scope.authors,
            exclude=self.scope.exclude_authors,
            aliases=self.scope.author_aliases,
        )

    def activity_scope(self) -> ActivityScope:
        """Return the activity source scope of the job."""
        return ActivityScope(
            owner=self.scope.owner,
            owner_type=self.scope.owner_type,
            allowlist=self.scope.allowlist,
            blocklist=self.scope.blocklist,
            include_private=self.scope.include_private,
            include_commit_details=self.data_profile is DataProfile.DETAILED,
        )

    def prefix(self, default: str) -> str:
        """Return the key prefix of the job's records."""
        return (self.output_prefix or default).strip("/")


class JobsFile(_Config):
    """Top-level structure of a jobs YAML file."""

    jobs: tuple[JobDefinition, ...]
