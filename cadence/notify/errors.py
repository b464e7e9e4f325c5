"""Notification errors."""

from __future__ import annotations


class NotifierError(RuntimeError):
    """Raised when a run notification cannot be delivered."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, body: str) -> NotifierError:
        """Return an error for a non-2xx webhook response."""
        return cls(f"Webhook failed: {status_code} {body}", status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> NotifierError:
        """Return an error for transport failures."""
        return cls(f"Webhook network error: {detail}")
