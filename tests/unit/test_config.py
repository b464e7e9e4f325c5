"""Unit tests for AppConfig and the retry policy."""

from __future__ import annotations

from pathlib import Path

import pytest

from cadence.config import AppConfig
from cadence.retry import RetryPolicy, with_retry
from cadence.scheduling import SlotResolutionError


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self) -> None:
        """Defaults match the documented configuration."""
        config = AppConfig()

        assert config.prefix == "reports"
        assert config.time_zone == "UTC"
        assert config.storage_backend == "filesystem"
        assert config.storage_path == Path("out")
        assert config.retry_policy == RetryPolicy(retries=2, backoff_ms=500)

    def test_from_env_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        """An empty environment yields the defaults."""
        del clean_env
        assert AppConfig.from_env() == AppConfig()

    def test_from_env_reads_variables(self, clean_env: pytest.MonkeyPatch) -> None:
        """Each variable overrides its field."""
        clean_env.setenv("CADENCE_OUTPUT_PREFIX", "/digests/")
        clean_env.setenv("CADENCE_TIMEZONE", "Europe/London")
        clean_env.setenv("CADENCE_STORAGE_BACKEND", "MEMORY")
        clean_env.setenv("CADENCE_STORAGE_PATH", "/var/lib/cadence")
        clean_env.setenv("CADENCE_RETRY_COUNT", "0")
        clean_env.setenv("CADENCE_GENERATOR_BACKEND", "OpenAI")
        clean_env.setenv("CADENCE_WEBHOOK_URL", "https://hooks.example/run")
        clean_env.setenv("CADENCE_MAX_CONCURRENT_SLOTS", "4")
        clean_env.setenv("CADENCE_CONTEXT_INCLUDE_DIFF_SNIPPETS", "yes")

        config = AppConfig.from_env()

        assert config.prefix == "digests", "Expected slashes to be stripped."
        assert config.time_zone == "Europe/London"
        assert config.storage_backend == "memory"
        assert config.storage_path == Path("/var/lib/cadence")
        assert config.retry_count == 0
        assert config.generator_backend == "openai"
        assert config.webhook_url == "https://hooks.example/run"
        assert config.max_concurrent_slots == 4
        assert config.context.include_diff_snippets

    def test_github_token_falls_back_to_generic_variable(
        self, clean_env: pytest.MonkeyPatch
    ) -> None:
        """``GITHUB_TOKEN`` is used when no cadence token is set."""
        clean_env.setenv("GITHUB_TOKEN", "ghp_generic")
        assert AppConfig.from_env().github_token == "ghp_generic"

        clean_env.setenv("CADENCE_GITHUB_TOKEN", "ghp_cadence")
        assert AppConfig.from_env().github_token == "ghp_cadence"

    @pytest.mark.parametrize(
        ("name", "value", "message"),
        [
            pytest.param(
                "CADENCE_RETRY_COUNT", "-1", "at least 0", id="negative-retries"
            ),
            pytest.param(
                "CADENCE_RETRY_BACKOFF_MS", "0", "must be positive", id="zero-backoff"
            ),
            pytest.param(
                "CADENCE_MAX_CONCURRENT_SLOTS",
                "many",
                "must be an integer",
                id="not-a-number",
            ),
        ],
    )
    def test_from_env_rejects_bad_numbers(
        self, clean_env: pytest.MonkeyPatch, name: str, value: str, message: str
    ) -> None:
        """Malformed or out-of-range numbers are rejected."""
        clean_env.setenv(name, value)

        with pytest.raises(ValueError, match=message):
            AppConfig.from_env()

    def test_from_env_rejects_unknown_time_zone(
        self, clean_env: pytest.MonkeyPatch
    ) -> None:
        """Unknown zones fail at start-up rather than at the first run."""
        clean_env.setenv("CADENCE_TIMEZONE", "Atlantis/Central")

        with pytest.raises(SlotResolutionError, match="Unknown time zone"):
            AppConfig.from_env()


class TestRetry:
    """Tests for with_retry."""

    def test_delay_doubles(self) -> None:
        """Backoff doubles with each attempt."""
        policy = RetryPolicy(retries=3, backoff_ms=500)
        assert [policy.delay_for(n) for n in range(3)] == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        """Failures within the budget are retried after backing off."""
        attempts: list[int] = []
        delays: list[float] = []

        async def flaky() -> str:
            attempts.append(len(attempts))
            if len(attempts) < 3:
                msg = "transient"
                raise ConnectionError(msg)
            return "ok"

        async def fake_sleep(delay: float) -> None:
            delays.append(delay)

        result = await with_retry(
            flaky, RetryPolicy(retries=2, backoff_ms=100), sleep=fake_sleep
        )

        assert result == "ok"
        assert len(attempts) == 3
        assert delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self) -> None:
        """The last error propagates once the budget is spent."""
        calls = 0

        async def broken() -> None:
            nonlocal calls
            calls += 1
            msg = f"attempt {calls}"
            raise ConnectionError(msg)

        async def fake_sleep(delay: float) -> None:
            del delay

        with pytest.raises(ConnectionError, match="attempt 2"):
            await with_retry(
                broken, RetryPolicy(retries=1, backoff_ms=1), sleep=fake_sleep
            )

    @pytest.mark.asyncio
    async def test_non_retryable_errors_propagate_immediately(self) -> None:
        """Errors outside ``retry_on`` are not retried."""
        calls = 0

        async def invalid() -> None:
            nonlocal calls
            calls += 1
            msg = "bad input"
            raise ValueError(msg)

        with pytest.raises(ValueError, match="bad input"):
            await with_retry(
                invalid, RetryPolicy(retries=5), retry_on=(ConnectionError,)
            )
        assert calls == 1
