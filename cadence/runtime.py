"""Assemble the run orchestrator from application configuration.

Both the command-line interface and the Dramatiq actor build their
collaborators here, so a run behaves the same however it is started:

- the object store selected by ``CADENCE_STORAGE_BACKEND``;
- the GitHub activity source when ``CADENCE_GITHUB_TOKEN`` is set;
- the report generator selected by ``CADENCE_GENERATOR_BACKEND``;
- the webhook notifier when ``CADENCE_WEBHOOK_URL`` is set.
"""

from __future__ import annotations

import contextlib
import typing as typ

from cadence.activity.github import GitHubActivitySource, GitHubRESTConfig
from cadence.generation.factory import create_report_generator
from cadence.logging import get_logger, log_info, log_warning
from cadence.notify import create_notifier
from cadence.runner.context import RunDependencies
from cadence.runner.orchestrator import RunOrchestrator
from cadence.storage.factory import create_object_store

if typ.TYPE_CHECKING:
    from cadence.activity.protocol import ActivitySource
    from cadence.config import AppConfig

logger = get_logger(__name__)


class _Closable(typ.Protocol):
    async def aclose(self) -> None: ...


def _activity_source(config: AppConfig) -> ActivitySource | None:
    if not config.github_token:
        log_warning(
            logger,
            "CADENCE_GITHUB_TOKEN is not set; pipeline and stats jobs will fail",
        )
        return None
    return GitHubActivitySource(GitHubRESTConfig.from_app_config(config))


@contextlib.asynccontextmanager
async def open_orchestrator(
    config: AppConfig,
) -> typ.AsyncIterator[RunOrchestrator]:
    """Yield an orchestrator wired from ``config``, closing clients on exit.

    Raises
    ------
    ObjectStoreConfigError
        If the storage backend is unknown or incompletely configured.
    ReportGeneratorConfigError
        If the generator backend is unknown or incompletely configured.

    """
    deps = RunDependencies(
        store=create_object_store(config),
        activity_source=_activity_source(config),
        generator=create_report_generator(config),
        notifier=create_notifier(config),
    )
    log_info(
        logger,
        "Runtime ready: storage=%s generator=%s notifier=%s",
        config.storage_backend,
        config.generator_backend,
        "webhook" if deps.notifier is not None else "none",
    )
    try:
        yield RunOrchestrator(deps, config)
    finally:
        closables = (deps.activity_source, deps.generator, deps.notifier, deps.store)
        for collaborator in closables:
            if collaborator is not None and hasattr(collaborator, "aclose"):
                await typ.cast("_Closable", collaborator).aclose()
