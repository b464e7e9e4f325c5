"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import os
import typing as typ
from pathlib import Path

import pytest

from cadence.generation.mock import MockReportGenerator
from cadence.storage.memory import InMemoryObjectStore
from tests.helpers.activity import StaticActivitySource, repo_activity
from tests.helpers.activity import commit as make_commit
from tests.helpers.runs import make_orchestrator

if typ.TYPE_CHECKING:
    from cadence.runner.orchestrator import RunOrchestrator

_ENV_PREFIX = "CADENCE_"


def _find_repo_root(start: Path) -> Path:
    for parent in (start, *start.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """Return the repository root directory."""
    return _find_repo_root(Path(__file__).resolve())


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every configuration variable from the environment."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIX):
            monkeypatch.delenv(name)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return monkeypatch


@pytest.fixture
def store() -> InMemoryObjectStore:
    """Return an empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def activity_source() -> StaticActivitySource:
    """Return a source reporting one commit in ``widgets``."""
    return StaticActivitySource([repo_activity("widgets", commits=[make_commit()])])


@pytest.fixture
def orchestrator(
    store: InMemoryObjectStore, activity_source: StaticActivitySource
) -> RunOrchestrator:
    """Return an orchestrator over ``store`` with the mock generator."""
    return make_orchestrator(
        store, source=activity_source, generator=MockReportGenerator()
    )
