"""Run orchestration: processing slots and persisting their records."""

from __future__ import annotations

from .context import RunDependencies
from .errors import RunError
from .maintenance import SlotDeletion, delete_slot, rerun_slot
from .models import JobRunResult, RunStatus, SkipReason, SlotRunResult
from .observability import RunEventLogger, RunEventType
from .orchestrator import RunOrchestrator
from .processors import ProcessorOutcome, ReportArtifact, processor_for

__all__ = [
    "JobRunResult",
    "ProcessorOutcome",
    "ReportArtifact",
    "RunDependencies",
    "RunError",
    "RunEventLogger",
    "RunEventType",
    "RunOrchestrator",
    "RunStatus",
    "SkipReason",
    "SlotDeletion",
    "SlotRunResult",
    "delete_slot",
    "processor_for",
    "rerun_slot",
]
