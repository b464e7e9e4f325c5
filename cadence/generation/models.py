"""Request and result structures exchanged with a :class:`ReportGenerator`."""

from __future__ import annotations

import enum

import msgspec

from cadence.activity.models import RepoActivity  # noqa: TC001
from cadence.records.models import OwnerType, ReportMetrics  # noqa: TC001


class OutputFormat(enum.StrEnum):
    """Format of a generated report artifact."""

    MARKDOWN = "markdown"
    JSON = "json"


class ReportWindow(msgspec.Struct, kw_only=True, frozen=True):
    """Activity window rendered into prompts as ISO-8601 UTC strings."""

    start: str
    end: str


class ReportRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Input for a report over one window of repository activity.

    Attributes
    ----------
    owner
        Owner login the activity belongs to.
    owner_type
        Owner account kind.
    window
        Activity window.
    repos
        Filtered repository activity.
    output_format
        Requested artifact format.
    inactive_repo_count
        Number of repositories without activity left out of ``repos``;
        ``None`` when inactive repositories are included.
    prompt_template
        Instructions replacing the default system prompt.
    max_tokens_hint
        Soft limit on report length passed to the model.

    """

    owner: str
    owner_type: OwnerType
    window: ReportWindow
    repos: tuple[RepoActivity, ...]
    output_format: OutputFormat = OutputFormat.MARKDOWN
    inactive_repo_count: int | None = None
    prompt_template: str | None = None
    max_tokens_hint: int | None = None


class AggregateItem(msgspec.Struct, kw_only=True, frozen=True):
    """One source report included in a roll-up."""

    date: str
    manifest_key: str
    content: str


class AggregateRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Input for a roll-up report over the outputs of a source job."""

    owner: str
    owner_type: OwnerType
    window: ReportWindow
    time_zone: str
    job_id: str
    job_name: str
    source_job_id: str
    items: tuple[AggregateItem, ...]
    output_format: OutputFormat = OutputFormat.MARKDOWN
    metrics: ReportMetrics | None = None
    prompt_template: str | None = None
    max_tokens_hint: int | None = None


class TokenUsage(msgspec.Struct, kw_only=True, frozen=True):
    """Token counts reported by a model invocation."""

    input_tokens: int | None = None
    output_tokens: int | None = None


class GeneratedReport(msgspec.Struct, kw_only=True, frozen=True):
    """Text produced by a generator, with its format and usage."""

    text: str
    format: OutputFormat
    model: str
    usage: TokenUsage | None = None
