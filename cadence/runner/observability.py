"""Emit structured observability events for job and slot runs.

Usage
-----
>>> events = RunEventLogger()
>>> events.log_slot_started(job_id="daily-digest", slot_key="2026-01-10T00-00Z")

"""

from __future__ import annotations

import enum
import typing as typ

from cadence.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cadence.activity.context import ProviderResult
    from cadence.runner.models import JobRunResult, SlotRunResult

logger = get_logger(__name__)


class RunEventType(enum.StrEnum):
    """Structured log event types for job and slot runs."""

    JOB_STARTED = "run.job.started"
    JOB_COMPLETED = "run.job.completed"
    JOB_NOT_DUE = "run.job.not_due"
    SLOT_STARTED = "run.slot.started"
    SLOT_COMPLETED = "run.slot.completed"
    SLOT_SKIPPED = "run.slot.skipped"
    SLOT_FAILED = "run.slot.failed"
    CONTEXT_PROVIDERS = "run.context.providers"


class RunEventLogger:
    """Emit structured run events via femtologging."""

    def log_job_started(self, *, job_id: str, mode: str, slot_count: int) -> None:
        """Log the start of a batch run of ``job_id`` over ``slot_count`` slots."""
        log_info(
            logger,
            "[%s] job_id=%s mode=%s slots=%d",
            RunEventType.JOB_STARTED,
            job_id,
            mode,
            slot_count,
        )

    def log_job_not_due(
        self, *, job_id: str, slot_key: str, last_slot_key: str | None
    ) -> None:
        """Log a scheduled job skipped because its current slot already ran."""
        log_info(
            logger,
            "[%s] job_id=%s slot_key=%s last_slot_key=%s",
            RunEventType.JOB_NOT_DUE,
            job_id,
            slot_key,
            last_slot_key,
        )

    def log_job_completed(self, result: JobRunResult) -> None:
        """Log the aggregate outcome of a batch run."""
        log_info(
            logger,
            "[%s] job_id=%s status=%s slots=%d failed=%d",
            RunEventType.JOB_COMPLETED,
            result.job_id,
            result.status,
            len(result.slots),
            len(result.failed_slots),
        )

    def log_slot_started(self, *, job_id: str, slot_key: str) -> None:
        """Log the start of one slot run."""
        log_info(
            logger,
            "[%s] job_id=%s slot_key=%s",
            RunEventType.SLOT_STARTED,
            job_id,
            slot_key,
        )

    def log_slot_completed(self, *, job_id: str, result: SlotRunResult) -> None:
        """Log a successful slot run with its duration and artifact."""
        log_info(
            logger,
            "[%s] job_id=%s slot_key=%s duration_ms=%s output_uri=%s",
            RunEventType.SLOT_COMPLETED,
            job_id,
            result.slot_key,
            result.duration_ms,
            result.output_uri,
        )

    def log_slot_skipped(self, *, job_id: str, result: SlotRunResult) -> None:
        """Log a skipped slot run with its reason."""
        log_info(
            logger,
            "[%s] job_id=%s slot_key=%s reason=%s",
            RunEventType.SLOT_SKIPPED,
            job_id,
            result.slot_key,
            result.reason,
        )

    def log_context_providers(
        self,
        *,
        job_id: str,
        slot_key: str,
        results: cabc.Sequence[ProviderResult],
    ) -> None:
        """Log which context providers ran for a slot and which failed."""
        log_info(
            logger,
            "[%s] job_id=%s slot_key=%s ok=%s failed=%s",
            RunEventType.CONTEXT_PROVIDERS,
            job_id,
            slot_key,
            ",".join(result.name for result in results if result.ok) or "-",
            ",".join(result.name for result in results if not result.ok) or "-",
        )

    def log_slot_failed(
        self, *, job_id: str, slot_key: str, error: BaseException, duration_ms: int
    ) -> None:
        """Log a failed slot run with error details.

        Parameters
        ----------
        job_id
            Job that failed.
        slot_key
            Slot the job failed for.
        error
            Exception caught at the orchestrator boundary.
        duration_ms
            Elapsed runtime between slot start and failure.

        """
        log_error(
            logger,
            "[%s] job_id=%s slot_key=%s duration_ms=%d error_type=%s error_message=%s",
            RunEventType.SLOT_FAILED,
            job_id,
            slot_key,
            duration_ms,
            type(error).__name__,
            str(error),
            exc_info=error,
        )
