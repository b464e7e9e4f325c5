"""Custom exceptions for report generation."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

# Content preview length for error messages
_CONTENT_PREVIEW_LIMIT = 100


def _preview(content: str) -> str:
    if len(content) > _CONTENT_PREVIEW_LIMIT:
        return content[:_CONTENT_PREVIEW_LIMIT] + "..."
    return content


class ReportGeneratorError(Exception):
    """Base exception for all report generator errors.

    This provides a single catch point for generation failures regardless
    of backend.
    """


class ReportGeneratorAPIError(ReportGeneratorError):
    """Raised when a model API returns an error or an unusable response.

    Attributes
    ----------
    status_code
        HTTP status code from the API response, if available.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise the error with message and optional status code.

        Parameters
        ----------
        message
            Human-readable error description.
        status_code
            HTTP status code from the API response.

        """
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> ReportGeneratorAPIError:
        """Create error for HTTP error responses."""
        return cls(f"Model API HTTP error {status_code}", status_code=status_code)

    @classmethod
    def rate_limited(cls, retry_after: int | None = None) -> ReportGeneratorAPIError:
        """Create error for rate limit (429) responses.

        Parameters
        ----------
        retry_after
            Seconds to wait before retrying, from Retry-After header.

        Returns
        -------
        ReportGeneratorAPIError
            Error indicating rate limiting.

        """
        msg = "Model API rate limited"
        if retry_after is not None:
            msg = f"{msg}, retry after {retry_after}s"
        return cls(msg, status_code=429)

    @classmethod
    def timeout(cls) -> ReportGeneratorAPIError:
        """Create error for request timeouts."""
        return cls("Model API request timed out")

    @classmethod
    def network_error(cls, detail: str) -> ReportGeneratorAPIError:
        """Create error for network failures (DNS, connection, TLS)."""
        return cls(f"Model API network error: {detail}")

    @classmethod
    def missing_field(cls, field: str) -> ReportGeneratorAPIError:
        """Create error for a response missing an expected field."""
        return cls(f"Model API response missing expected field: {field}")

    @classmethod
    def invalid_body(cls, content: str) -> ReportGeneratorAPIError:
        """Create error for a response body that is not JSON."""
        return cls(f"Model API response is not JSON: {_preview(content)}")


class ReportOutputValidationError(ReportGeneratorError):
    """Raised when generated output does not match the requested format."""

    @classmethod
    def invalid_json(cls, content: str) -> ReportOutputValidationError:
        """Create error for JSON output that fails to parse.

        Parameters
        ----------
        content
            The content that failed to parse as JSON.

        Returns
        -------
        ReportOutputValidationError
            Error with truncated content preview.

        """
        return cls(f"Generated output is not valid JSON: {_preview(content)}")

    @classmethod
    def empty_output(cls) -> ReportOutputValidationError:
        """Create error for a blank generated report."""
        return cls("Generated output is empty")


class ReportGeneratorConfigError(ReportGeneratorError):
    """Raised when report generator configuration is invalid."""

    @classmethod
    def missing_api_key(cls) -> ReportGeneratorConfigError:
        """Create error for missing API key environment variable."""
        return cls("CADENCE_OPENAI_API_KEY environment variable is required")

    @classmethod
    def empty_api_key(cls) -> ReportGeneratorConfigError:
        """Create error for empty API key."""
        return cls("Model API key must be non-empty")

    @classmethod
    def invalid_backend(
        cls, name: str, valid_backends: cabc.Iterable[str]
    ) -> ReportGeneratorConfigError:
        """Create error for unrecognised backend name.

        Parameters
        ----------
        name
            The invalid backend name that was provided.
        valid_backends
            Iterable of valid backend names.

        Returns
        -------
        ReportGeneratorConfigError
            Error listing valid backend options.

        """
        valid_backends_str = ", ".join(f"'{b}'" for b in sorted(valid_backends))
        message = (
            f"Invalid report generator backend '{name}'. "
            f"Valid options are: {valid_backends_str}"
        )
        return cls(message)

    @classmethod
    def invalid_parameter(
        cls, parameter_name: str, value: str, constraint: str
    ) -> ReportGeneratorConfigError:
        """Create error for an invalid configuration parameter value."""
        return cls(f"Invalid {parameter_name} '{value}'. {constraint}")

    @classmethod
    def invalid_temperature(cls, value: str) -> ReportGeneratorConfigError:
        """Create error for invalid temperature value."""
        return cls.invalid_parameter(
            "temperature", value, "Must be a float between 0.0 and 2.0"
        )

    @classmethod
    def invalid_max_tokens(cls, value: str) -> ReportGeneratorConfigError:
        """Create error for invalid max_tokens value."""
        return cls.invalid_parameter("max_tokens", value, "Must be a positive integer")

    @classmethod
    def invalid_timeout(cls, value: str) -> ReportGeneratorConfigError:
        """Create error for invalid request timeout value."""
        return cls.invalid_parameter("timeout_s", value, "Must be a positive number")
