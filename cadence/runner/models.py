"""Results returned by the run orchestrator."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

if typ.TYPE_CHECKING:
    from cadence.scheduling.models import Slot


class RunStatus(enum.StrEnum):
    """Terminal state of a slot or job run."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SkipReason(enum.StrEnum):
    """Why a slot or job was skipped."""

    IDEMPOTENT = "idempotent"
    EMPTY = "empty"
    MISSING_SOURCE_JOB_ID = "missing_source_job_id"
    NOT_DUE = "not_due"


@dc.dataclass(frozen=True, slots=True)
class SlotRunResult:
    """Outcome of running one job against one slot.

    Attributes
    ----------
    slot
        Slot that was processed.
    status
        Terminal state.
    reason
        Skip reason for ``skipped`` results.
    error
        Error message for ``failed`` results.
    duration_ms
        Wall time of the run.
    manifest_key
        Key of the manifest written, if any.
    output_uri
        URI of the output artifact written, if any.

    """

    slot: Slot
    status: RunStatus
    reason: SkipReason | None = None
    error: str | None = None
    duration_ms: int | None = None
    manifest_key: str | None = None
    output_uri: str | None = None

    @property
    def slot_key(self) -> str:
        """Return the key of the processed slot."""
        return self.slot.slot_key


@dc.dataclass(frozen=True, slots=True)
class JobRunResult:
    """Outcome of running one job across its listed slots."""

    job_id: str
    status: RunStatus
    slots: tuple[SlotRunResult, ...] = ()
    reason: SkipReason | None = None

    @property
    def failed_slots(self) -> tuple[SlotRunResult, ...]:
        """Return the slot results that failed."""
        return tuple(r for r in self.slots if r.status is RunStatus.FAILED)
