"""Application configuration loaded from ``CADENCE_*`` environment variables.

Configuration is an explicit, immutable value passed to every component that
needs it; nothing reads the environment after start-up.

Usage
-----
Create a configuration with defaults:

>>> config = AppConfig()
>>> config.prefix
'reports'

Or load from environment variables:

>>> import os
>>> os.environ["CADENCE_TIMEZONE"] = "Europe/London"
>>> AppConfig.from_env().time_zone
'Europe/London'

"""

from __future__ import annotations

import dataclasses as dc
import os
from pathlib import Path

from cadence.activity.context import ContextSettings
from cadence.retry import RetryPolicy
from cadence.scheduling.slots import resolve_time_zone

_DEFAULT_GITHUB_API_URL = "https://api.github.com"


@dc.dataclass(frozen=True, slots=True)
class AppConfig:
    """Runtime settings shared by the CLI, the actor and the orchestrator.

    Attributes
    ----------
    prefix
        Key prefix under which every report and index is stored.
    time_zone
        IANA zone that schedules and monthly index periods are expressed in.
    storage_backend
        ``filesystem``, ``azure`` or ``memory``.
    storage_path
        Root directory for the filesystem backend.
    azure_connection_string
        Connection string for the Azure Blob backend.
    azure_container
        Container name for the Azure Blob backend.
    retry_count
        Additional attempts made for failed collaborator calls.
    retry_backoff_ms
        Base backoff in milliseconds, doubled on each retry.
    github_token
        Token used by the GitHub activity source.
    github_api_url
        Base URL of the GitHub REST API.
    github_per_page
        Page size for GitHub list endpoints.
    github_max_pages
        Maximum pages fetched per GitHub list endpoint.
    generator_backend
        ``mock`` or ``openai``.
    webhook_url
        Destination of run notifications; notifications are disabled when
        unset.
    webhook_secret
        Shared secret used to sign webhook payloads.
    log_level
        femtologging level name.
    max_concurrent_slots
        Upper bound on slots of one job processed concurrently.
    context
        Switches and limits of the repository context providers.

    """

    prefix: str = "reports"
    time_zone: str = "UTC"
    storage_backend: str = "filesystem"
    storage_path: Path = Path("out")
    azure_connection_string: str | None = None
    azure_container: str | None = None
    retry_count: int = 2
    retry_backoff_ms: int = 500
    github_token: str | None = None
    github_api_url: str = _DEFAULT_GITHUB_API_URL
    github_per_page: int = 100
    github_max_pages: int = 5
    generator_backend: str = "mock"
    webhook_url: str | None = None
    webhook_secret: str | None = None
    log_level: str = "INFO"
    max_concurrent_slots: int = 1
    context: ContextSettings = dc.field(default_factory=ContextSettings)

    @property
    def retry_policy(self) -> RetryPolicy:
        """Return the retry policy applied at collaborator boundaries."""
        return RetryPolicy(retries=self.retry_count, backoff_ms=self.retry_backoff_ms)

    @staticmethod
    def _parse_int(env_var: str, default: int, *, minimum: int) -> int:
        """Read an integer env var no smaller than ``minimum``."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < minimum:
            qualifier = "positive" if minimum == 1 else f"at least {minimum}"
            msg = f"{env_var} must be {qualifier}, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def _parse_positive_int(cls, env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        return cls._parse_int(env_var, default, minimum=1)

    @staticmethod
    def _optional(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "")
        return raw.strip() or None

    @classmethod
    def from_env(cls) -> AppConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``CADENCE_OUTPUT_PREFIX``: key prefix (default ``reports``).
        - ``CADENCE_TIMEZONE``: IANA zone (default ``UTC``).
        - ``CADENCE_STORAGE_BACKEND``: ``filesystem``, ``azure`` or ``memory``.
        - ``CADENCE_STORAGE_PATH``: filesystem backend root (default ``out``).
        - ``CADENCE_AZURE_STORAGE_CONNECTION_STRING`` and
          ``CADENCE_AZURE_STORAGE_CONTAINER``: Azure Blob backend settings.
        - ``CADENCE_RETRY_COUNT``: non-negative integer (default 2).
        - ``CADENCE_RETRY_BACKOFF_MS``: positive integer (default 500).
        - ``CADENCE_GITHUB_TOKEN`` (falling back to ``GITHUB_TOKEN``),
          ``CADENCE_GITHUB_API_URL``, ``CADENCE_GITHUB_PER_PAGE`` and
          ``CADENCE_GITHUB_MAX_PAGES``.
        - ``CADENCE_GENERATOR_BACKEND``: ``mock`` or ``openai``.
        - ``CADENCE_WEBHOOK_URL`` and ``CADENCE_WEBHOOK_SECRET``.
        - ``CADENCE_LOG_LEVEL``: femtologging level name.
        - ``CADENCE_MAX_CONCURRENT_SLOTS``: positive integer (default 1).
        - ``CADENCE_CONTEXT_*``: context provider settings, see
          :meth:`ContextSettings.from_env`.

        Returns
        -------
        AppConfig
            Configuration instance with values from environment or defaults.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or out of range, or the time
            zone is unknown.

        """
        time_zone = cls._optional("CADENCE_TIMEZONE") or "UTC"
        resolve_time_zone(time_zone)

        storage_path = Path(cls._optional("CADENCE_STORAGE_PATH") or "out")

        return cls(
            prefix=(cls._optional("CADENCE_OUTPUT_PREFIX") or "reports").strip("/"),
            time_zone=time_zone,
            storage_backend=(
                cls._optional("CADENCE_STORAGE_BACKEND") or "filesystem"
            ).lower(),
            storage_path=storage_path,
            azure_connection_string=cls._optional(
                "CADENCE_AZURE_STORAGE_CONNECTION_STRING"
            ),
            azure_container=cls._optional("CADENCE_AZURE_STORAGE_CONTAINER"),
            retry_count=cls._parse_int("CADENCE_RETRY_COUNT", 2, minimum=0),
            retry_backoff_ms=cls._parse_positive_int("CADENCE_RETRY_BACKOFF_MS", 500),
            github_token=(
                cls._optional("CADENCE_GITHUB_TOKEN") or cls._optional("GITHUB_TOKEN")
            ),
            github_api_url=(
                cls._optional("CADENCE_GITHUB_API_URL") or _DEFAULT_GITHUB_API_URL
            ),
            github_per_page=cls._parse_positive_int("CADENCE_GITHUB_PER_PAGE", 100),
            github_max_pages=cls._parse_positive_int("CADENCE_GITHUB_MAX_PAGES", 5),
            generator_backend=(
                cls._optional("CADENCE_GENERATOR_BACKEND") or "mock"
            ).lower(),
            webhook_url=cls._optional("CADENCE_WEBHOOK_URL"),
            webhook_secret=cls._optional("CADENCE_WEBHOOK_SECRET"),
            log_level=cls._optional("CADENCE_LOG_LEVEL") or "INFO",
            max_concurrent_slots=cls._parse_positive_int(
                "CADENCE_MAX_CONCURRENT_SLOTS", 1
            ),
            context=ContextSettings.from_env(),
        )
