"""Validation rules for job definitions."""

from __future__ import annotations

import re
import typing as typ

from cadence.activity.context import PROVIDERS
from cadence.generation.prompts import TEMPLATES
from cadence.jobs.models import JobMode

if typ.TYPE_CHECKING:
    from cadence.jobs.models import JobDefinition
    from cadence.scheduling.models import Schedule

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
OWNER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

_SCHEDULE_RANGES: dict[str, tuple[int, int]] = {
    "minute": (0, 59),
    "hour": (0, 23),
    "weekday": (0, 6),
    "day_of_month": (1, 31),
    "month": (1, 12),
}
_POSITIVE_LIMITS = (
    "max_repos",
    "max_commits_per_repo",
    "max_total_commits",
    "max_tokens_hint",
)


class JobConfigError(ValueError):
    """Raised when a jobs file fails to parse or validate."""

    def __init__(self, issues: list[str]) -> None:
        """Capture validation issues whilst preserving the aggregated message."""
        message = "\n".join(issues)
        super().__init__(message)
        self.issues = issues

    @classmethod
    def unknown_jobs(cls, job_ids: typ.Iterable[str]) -> JobConfigError:
        """Return an error for selected job ids missing from the file."""
        return cls([f"unknown job '{job_id}'" for job_id in job_ids])


def validate_schedule(schedule: Schedule, label: str, issues: list[str]) -> None:
    """Append an issue for each schedule field outside its range."""
    for field, (low, high) in _SCHEDULE_RANGES.items():
        value = getattr(schedule, field)
        if value is not None and not low <= value <= high:
            issues.append(f"{label}.schedule.{field} must be between {low} and {high}")


def _validate_job(job: JobDefinition, issues: list[str]) -> None:
    label = f"job {job.id}"
    if not SLUG_PATTERN.match(job.id):
        issues.append(f"job.id '{job.id}' must be a lowercase slug")
    if not job.name.strip():
        issues.append(f"{label} is missing a name")
    if not OWNER_PATTERN.match(job.scope.owner):
        issues.append(f"{label}.scope.owner '{job.scope.owner}' is not a GitHub login")
    if job.schedule is not None:
        validate_schedule(job.schedule, label, issues)
    if job.backfill_slots < 0:
        issues.append(f"{label}.backfillSlots must be >= 0")
    for field in _POSITIVE_LIMITS:
        value = getattr(job, field)
        if value is not None and value < 1:
            issues.append(f"{label}.{field} must be a positive integer")
    if job.template is not None and job.template not in TEMPLATES:
        issues.append(f"{label} references unknown template '{job.template}'")
    if job.prompt is not None and job.prompt_file is not None:
        issues.append(f"{label} sets both prompt and promptFile")
    for name in job.context_providers or ():
        if name not in PROVIDERS:
            issues.append(f"{label} references unknown context provider '{name}'")
    if job.mode is JobMode.AGGREGATE and job.aggregation.source_job_id == job.id:
        issues.append(f"{label} cannot aggregate its own output")


def validate_jobs(jobs: typ.Sequence[JobDefinition]) -> tuple[JobDefinition, ...]:
    """Validate job definitions, returning them when all checks pass."""
    issues: list[str] = []
    if not jobs:
        issues.append("jobs file must define at least one job")

    seen: set[tuple[str, str, str]] = set()
    for job in jobs:
        _validate_job(job, issues)
        identity = (job.scope.owner_type.value, job.scope.owner, job.id)
        if identity in seen:
            issues.append(
                f"duplicate job '{job.id}' for {job.scope.owner_type} {job.scope.owner}"
            )
        seen.add(identity)

    if issues:
        raise JobConfigError(issues)
    return tuple(jobs)
