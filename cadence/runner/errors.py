"""Run orchestration errors."""

from __future__ import annotations


class RunError(RuntimeError):
    """Raised when a job cannot be run with the collaborators supplied."""

    @classmethod
    def missing_collaborator(cls, collaborator: str, mode: str) -> RunError:
        """Return an error for a job mode whose collaborator was not wired."""
        return cls(f"No {collaborator} is configured for {mode} jobs")

    @classmethod
    def unknown_mode(cls, mode: str) -> RunError:
        """Return an error for a job mode without a processor."""
        return cls(f"No processor for job mode {mode!r}")
