"""Job definitions and their YAML loader."""

from __future__ import annotations

from .loader import DEFAULT_JOBS_FILE, find_job, load_jobs, select_jobs
from .models import (
    DEFAULT_SCHEDULE,
    AggregationConfig,
    DataProfile,
    JobDefinition,
    JobMode,
    JobScope,
    JobsFile,
    MetricsConfig,
    OnEmptyPolicy,
)
from .validation import JobConfigError, validate_jobs

__all__ = [
    "DEFAULT_JOBS_FILE",
    "DEFAULT_SCHEDULE",
    "AggregationConfig",
    "DataProfile",
    "JobConfigError",
    "JobDefinition",
    "JobMode",
    "JobScope",
    "JobsFile",
    "MetricsConfig",
    "OnEmptyPolicy",
    "find_job",
    "load_jobs",
    "select_jobs",
    "validate_jobs",
]
