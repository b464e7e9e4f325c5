"""YAML loader for job definition files."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .models import JobDefinition, JobsFile
from .validation import JobConfigError, validate_jobs

if typ.TYPE_CHECKING:
    import collections.abc as cabc

YAML_VERSION = (1, 2)
DEFAULT_JOBS_FILE = "jobs.yaml"


def load_jobs(path: Path | str) -> tuple[JobDefinition, ...]:
    """Parse and validate a YAML jobs file.

    Raises
    ------
    JobConfigError
        If the file cannot be read or parsed, does not match the job schema,
        or fails validation.

    """
    yaml = _yaml()
    path_obj = Path(path)

    try:
        loaded = yaml.load(path_obj.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise JobConfigError([f"failed to parse YAML: {exc}"]) from exc

    if loaded is None:
        raise JobConfigError(["jobs file is empty"])

    try:
        jobs_file = msgspec.convert(loaded, type=JobsFile)
    except msgspec.ValidationError as exc:
        raise JobConfigError([f"schema validation failed: {exc}"]) from exc

    return validate_jobs(jobs_file.jobs)


def select_jobs(
    jobs: cabc.Sequence[JobDefinition], job_ids: cabc.Sequence[str] | None
) -> tuple[JobDefinition, ...]:
    """Return the jobs named in ``job_ids``, or every job when none are named.

    Raises
    ------
    JobConfigError
        If a named job is not defined.

    """
    if not job_ids:
        return tuple(jobs)
    by_id = {job.id: job for job in jobs}
    missing = [job_id for job_id in job_ids if job_id not in by_id]
    if missing:
        raise JobConfigError.unknown_jobs(missing)
    wanted = set(job_ids)
    return tuple(job for job in jobs if job.id in wanted)


def find_job(jobs: cabc.Sequence[JobDefinition], job_id: str) -> JobDefinition:
    """Return the job with ``job_id``."""
    return select_jobs(jobs, [job_id])[0]


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
