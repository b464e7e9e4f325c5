"""Activity source errors."""

from __future__ import annotations


class ActivitySourceError(RuntimeError):
    """Base class for failures fetching repository activity."""


class GitHubAPIError(ActivitySourceError):
    """Raised when GitHub returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, path: str) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        message = f"GitHub REST HTTP {status_code} for {path}"
        return cls(message, status_code=status_code)

    @classmethod
    def unexpected_payload(cls, path: str) -> GitHubAPIError:
        """Return an error for a response body of an unexpected shape."""
        return cls(f"GitHub REST response for {path} has an unexpected shape")


class GitHubConfigError(ActivitySourceError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")

    @classmethod
    def invalid_page_settings(cls, per_page: int, max_pages: int) -> GitHubConfigError:
        """Return an error for non-positive pagination settings."""
        return cls(
            f"GitHub per_page and max_pages must be positive, got {per_page} and "
            f"{max_pages}"
        )
