"""Unit tests for assembling the orchestrator from configuration."""

from __future__ import annotations

import pytest

from cadence.activity.github import GitHubActivitySource
from cadence.config import AppConfig
from cadence.generation import MockReportGenerator, ReportGeneratorConfigError
from cadence.notify import WebhookNotifier
from cadence.runtime import open_orchestrator
from cadence.storage.errors import ObjectStoreConfigError
from cadence.storage.memory import InMemoryObjectStore


class TestOpenOrchestrator:
    """Tests for open_orchestrator."""

    @pytest.mark.asyncio
    async def test_minimal_configuration(self) -> None:
        """Without a token or webhook only store and generator are wired."""
        config = AppConfig(storage_backend="memory")

        async with open_orchestrator(config) as orchestrator:
            deps = orchestrator.deps

        assert isinstance(deps.store, InMemoryObjectStore)
        assert isinstance(deps.generator, MockReportGenerator)
        assert deps.activity_source is None
        assert deps.notifier is None
        assert orchestrator.config is config

    @pytest.mark.asyncio
    async def test_full_configuration(self) -> None:
        """A token and webhook URL add the GitHub source and notifier."""
        config = AppConfig(
            storage_backend="memory",
            github_token="ghp_example",
            webhook_url="https://hooks.example/run",
        )

        async with open_orchestrator(config) as orchestrator:
            deps = orchestrator.deps
            assert isinstance(deps.activity_source, GitHubActivitySource)
            assert isinstance(deps.notifier, WebhookNotifier)

    @pytest.mark.asyncio
    async def test_unknown_storage_backend(self) -> None:
        """Storage misconfiguration surfaces before any run."""
        with pytest.raises(ObjectStoreConfigError):
            async with open_orchestrator(AppConfig(storage_backend="tape")):
                pass

    @pytest.mark.asyncio
    async def test_unknown_generator_backend(self) -> None:
        """Generator misconfiguration surfaces before any run."""
        config = AppConfig(storage_backend="memory", generator_backend="oracle")

        with pytest.raises(ReportGeneratorConfigError):
            async with open_orchestrator(config):
                pass
