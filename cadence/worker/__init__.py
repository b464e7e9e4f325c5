"""Background execution of scheduled jobs with Dramatiq."""

from __future__ import annotations

from .actor import run_scheduled_jobs, run_scheduled_jobs_job

__all__ = ["run_scheduled_jobs", "run_scheduled_jobs_job"]
