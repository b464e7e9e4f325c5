"""Dramatiq actor running every due job on a schedule.

A cron-like trigger enqueues :func:`run_scheduled_jobs_job` periodically. Each
invocation loads the jobs file, asks the schedule decision engine which jobs
are due and runs their slots. Failures of individual slots are recorded in
the store and reported in the actor's result; they never fail the message.

Usage
-----
>>> run_scheduled_jobs_job.send("jobs.yaml")
>>> run_scheduled_jobs_job.send("jobs.yaml", as_of_iso="2024-11-03T10:00:00Z")

"""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import dramatiq

from cadence.config import AppConfig
from cadence.jobs.loader import load_jobs
from cadence.logging import get_logger, log_info
from cadence.runtime import open_orchestrator
from cadence.worker._broker import install_broker

if typ.TYPE_CHECKING:
    from cadence.jobs.models import JobDefinition
    from cadence.runner.models import JobRunResult

logger = get_logger(__name__)

broker = install_broker()


def _parse_as_of_iso(as_of_iso: str | None) -> dt.datetime | None:
    """Parse an ISO timestamp string, requiring timezone information.

    Raises
    ------
    ValueError
        If the timestamp lacks timezone information.

    """
    if as_of_iso is None:
        return None
    parsed = dt.datetime.fromisoformat(as_of_iso)
    if parsed.tzinfo is None:
        msg = (
            f"as_of_iso must include timezone information, got naive datetime: "
            f"{as_of_iso!r}. Use ISO format with offset (e.g., '2024-11-03T10:00:00Z' "
            f"or '2024-11-03T10:00:00+00:00')."
        )
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)


def summarize_results(results: typ.Iterable[JobRunResult]) -> dict[str, str]:
    """Map each job id to its batch status, as returned by the actor."""
    return {result.job_id: str(result.status) for result in results}


async def run_scheduled_jobs(
    config: AppConfig,
    jobs: typ.Sequence[JobDefinition],
    as_of: dt.datetime | None = None,
) -> list[JobRunResult]:
    """Run every due job in ``jobs`` at ``as_of`` (default now)."""
    async with open_orchestrator(config) as orchestrator:
        return await orchestrator.run_jobs(jobs, now=as_of)


@dramatiq.actor(broker=broker)
def run_scheduled_jobs_job(
    jobs_file: str,
    *,
    as_of_iso: str | None = None,
) -> dict[str, str]:
    """Dramatiq actor running every job whose current slot has not run yet.

    Parameters
    ----------
    jobs_file
        Path of the YAML jobs file.
    as_of_iso
        Optional ISO timestamp to evaluate schedules at. Must include
        timezone information (e.g., '2024-11-03T10:00:00Z').

    Returns
    -------
    dict[str, str]
        Status of each job: ``success``, ``failed`` or ``skipped``.

    Raises
    ------
    ValueError
        If as_of_iso is provided without timezone information.
    JobConfigError
        If the jobs file cannot be loaded or is invalid.

    """
    as_of = _parse_as_of_iso(as_of_iso)
    config = AppConfig.from_env()
    jobs = load_jobs(jobs_file)
    results = asyncio.run(run_scheduled_jobs(config, jobs, as_of))
    summary = summarize_results(results)
    log_info(logger, "Scheduled run of %s finished: %s", jobs_file, summary)
    return summary
