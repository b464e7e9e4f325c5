"""Command-line interface for running and inspecting reporting jobs.

Usage::

    cadence run daily-digest --at 2024-11-03
    cadence rerun daily-digest --at 2024-11-03 --no-notify
    cadence delete daily-digest 2024-11-03T00-00Z --yes
    cadence tick
    cadence list runs daily-digest
    cadence show daily-digest 2024-11-03T00-00Z
    cadence stats daily-digest

Configuration is read from ``CADENCE_*`` environment variables and jobs from
the YAML file named by ``--jobs-file`` or ``CADENCE_JOBS_FILE``.
"""

from __future__ import annotations

import asyncio
import sys
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter

from cadence import __version__
from cadence.common.time import utcnow
from cadence.config import AppConfig
from cadence.generation.errors import ReportGeneratorConfigError
from cadence.jobs.loader import DEFAULT_JOBS_FILE, find_job, load_jobs, select_jobs
from cadence.jobs.validation import JobConfigError
from cadence.logging import configure_logging, get_logger, log_warning
from cadence.records.codec import load_record
from cadence.records.index import (
    list_index_periods,
    load_all_index_items,
    load_jobs_registry,
)
from cadence.records.metrics import summarize_index_items
from cadence.records.models import Manifest
from cadence.runner.maintenance import delete_slot, rerun_slot
from cadence.runner.models import RunStatus
from cadence.runtime import open_orchestrator
from cadence.scheduling.at import parse_at, resolve_slot_for_at
from cadence.scheduling.errors import SlotResolutionError
from cadence.scheduling.slots import resolve_slot
from cadence.storage.errors import ObjectStoreError
from cadence.storage.factory import create_object_store
from cadence.storage.keys import (
    INDEX_SEGMENT,
    JOBS_REGISTRY_FILENAME,
    index_base_key,
    jobs_registry_key,
    manifest_key,
    report_base_key,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.jobs.models import JobDefinition
    from cadence.records.models import IndexItem, JobRegistryEntry
    from cadence.runner.models import JobRunResult, SlotRunResult
    from cadence.scheduling.models import Slot
    from cadence.storage.protocol import ObjectStore

logger = get_logger(__name__)

PREVIEW_MAX_LINES = 20
PREVIEW_MAX_CHARS = 4000
DEFAULT_RUN_LIMIT = 20
_REGISTRY_KEY_MIN_PARTS = 4

app = App(
    name="cadence",
    help="Slot-scheduled activity reports with idempotent indexing.",
    version=__version__,
)
list_app = App(name="list", help="List owners, jobs, runs and index periods.")
app.command(list_app)

type _Entries = dict[str, JobRegistryEntry]

JobsFileOption = typ.Annotated[Path, Parameter(env_var="CADENCE_JOBS_FILE")]


def _configure() -> AppConfig:
    """Load configuration from the environment and configure logging."""
    config = AppConfig.from_env()
    level, invalid = configure_logging(config.log_level)
    if invalid:
        log_warning(
            logger, "Invalid CADENCE_LOG_LEVEL %r; using %s", config.log_level, level
        )
    return config


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def target_slot(job: JobDefinition, at: str | None, config: AppConfig) -> Slot:
    """Return the slot a manual command addresses.

    Without ``at`` this is the current slot. Otherwise ``at`` is an ISO
    instant with a zone, a local date-time, or a date; a date alone selects
    the slot whose window covers that local day for daily schedules.
    """
    schedule = job.effective_schedule
    if at is None:
        return resolve_slot(utcnow(), schedule, config.time_zone)
    return resolve_slot_for_at(at, schedule, config.time_zone)


def format_slot_result(result: SlotRunResult) -> str:
    """Render one slot result as a single status line."""
    parts = [f"{result.slot_key}: {result.status}"]
    if result.reason is not None:
        parts.append(f"reason={result.reason}")
    if result.duration_ms is not None:
        parts.append(f"duration_ms={result.duration_ms}")
    if result.output_uri is not None:
        parts.append(f"output={result.output_uri}")
    if result.error is not None:
        parts.append(f"error={result.error}")
    return " ".join(parts)


def format_job_result(result: JobRunResult) -> list[str]:
    """Render a batch result as a header line plus one line per slot."""
    header = f"{result.job_id}: {result.status}"
    if result.reason is not None:
        header = f"{header} ({result.reason})"
    return [header, *(f"  {format_slot_result(slot)}" for slot in result.slots)]


def preview(text: str) -> str:
    """Return the head of ``text``, truncated by line count and length."""
    lines = text.splitlines()
    head = "\n".join(lines[:PREVIEW_MAX_LINES])
    truncated = len(lines) > PREVIEW_MAX_LINES
    if len(head) > PREVIEW_MAX_CHARS:
        head = head[:PREVIEW_MAX_CHARS]
        truncated = True
    return f"{head}\n..." if truncated else head


def format_index_item(item: IndexItem) -> str:
    """Render one index item as a listing row."""
    flags = " empty" if item.empty else ""
    duration = f" {item.duration_ms}ms" if item.duration_ms is not None else ""
    return (
        f"{item.slot_key}  {item.status}{flags}  {item.output_size}B{duration}  "
        f"{item.manifest_key}"
    )


async def _run_async(
    config: AppConfig, job: JobDefinition, slot: Slot, *, notify: bool, rerun: bool
) -> SlotRunResult:
    async with open_orchestrator(config) as orchestrator:
        if rerun:
            return await rerun_slot(orchestrator, job, slot, notify=notify)
        return await orchestrator.run_slot(job, slot, notify=notify)


def _run_command(
    job_id: str, at: str | None, jobs_file: Path, *, notify: bool, rerun: bool
) -> int:
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
        slot = target_slot(job, at, config)
    except (JobConfigError, SlotResolutionError) as exc:
        return _fail(str(exc))
    result = asyncio.run(_run_async(config, job, slot, notify=notify, rerun=rerun))
    print(format_slot_result(result))
    return 1 if result.status is RunStatus.FAILED else 0


@app.command
def run(
    job_id: str,
    *,
    at: str | None = None,
    notify: bool = True,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """Run one slot of a job, recording a failed manifest when it fails.

    Args:
        job_id: Job to run.
        at: Instant, local date-time or date selecting the slot.
        notify: Send a notification for the written artifact.
        jobs_file: YAML file declaring the jobs.

    Returns:
        Exit code (0 for success or skip, 1 for failure).

    """
    return _run_command(job_id, at, jobs_file, notify=notify, rerun=False)


@app.command
def rerun(
    job_id: str,
    *,
    at: str | None = None,
    notify: bool = True,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """Re-run one slot, replacing the previous run only when this one succeeds.

    Args:
        job_id: Job to re-run.
        at: Instant, local date-time or date selecting the slot.
        notify: Send a notification for the written artifact.
        jobs_file: YAML file declaring the jobs.

    Returns:
        Exit code (0 for success, 1 for failure).

    """
    return _run_command(job_id, at, jobs_file, notify=notify, rerun=True)


@app.command
def delete(
    job_id: str,
    slot_key: str,
    *,
    yes: bool = False,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """Delete a slot's artifacts and index entry and repair the latest pointer.

    Args:
        job_id: Job owning the slot.
        slot_key: Slot key such as ``2024-11-03T00-00Z``.
        yes: Confirm the deletion.
        jobs_file: YAML file declaring the jobs.

    Returns:
        Exit code (0 for success, 1 when refused or invalid).

    """
    if not yes:
        return _fail(f"Refusing to delete {job_id} slot {slot_key} without --yes")
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
    except JobConfigError as exc:
        return _fail(str(exc))

    async def execute() -> int:
        async with open_orchestrator(config) as orchestrator:
            deletion = await delete_slot(orchestrator, job, slot_key)
        print(f"Deleted {len(deletion.deleted_keys)} keys for {job_id} {slot_key}")
        latest = deletion.latest.slot_key if deletion.latest is not None else "none"
        print(f"Latest slot: {latest}")
        return 0

    try:
        return asyncio.run(execute())
    except SlotResolutionError as exc:
        return _fail(str(exc))


@app.command
def tick(
    *,
    job: list[str] | None = None,
    at: str | None = None,
    force: bool = False,
    notify: bool = True,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """Run every due job once, as a scheduler would.

    Args:
        job: Restrict the tick to these job ids.
        at: ISO instant with zone to tick at instead of now.
        force: Run jobs even when their current slot already ran.
        notify: Send notifications for written artifacts.
        jobs_file: YAML file declaring the jobs.

    Returns:
        Exit code (0 once every job has been attempted, 1 for invalid input).

    """
    config = _configure()
    try:
        jobs = select_jobs(load_jobs(jobs_file), job)
        now = parse_tick_instant(at, config)
    except (JobConfigError, SlotResolutionError) as exc:
        return _fail(str(exc))

    async def execute() -> list[JobRunResult]:
        async with open_orchestrator(config) as orchestrator:
            return await orchestrator.run_jobs(
                jobs, now=now, run_scheduled_only=not force, notify=notify
            )

    for result in asyncio.run(execute()):
        print("\n".join(format_job_result(result)))
    return 0


def parse_tick_instant(at: str | None, config: AppConfig) -> dt.datetime:
    """Return the instant a tick runs at: ``at`` when given, else now."""
    return parse_at(at, config.time_zone) if at is not None else utcnow()


async def _owners(store: ObjectStore, prefix: str) -> list[tuple[str, str]]:
    keys = await store.list(f"{prefix}/{INDEX_SEGMENT}/")
    owners: set[tuple[str, str]] = set()
    for key in keys:
        parts = key.split("/")
        is_registry = parts[-1] == JOBS_REGISTRY_FILENAME
        if is_registry and len(parts) >= _REGISTRY_KEY_MIN_PARTS:
            owners.add((parts[-3], parts[-2]))
    return sorted(owners)


def _with_store[T](
    config: AppConfig, body: cabc.Callable[[ObjectStore], cabc.Awaitable[T]]
) -> T:
    async def execute() -> T:
        store = create_object_store(config)
        try:
            return await body(store)
        finally:
            close = getattr(store, "aclose", None)
            if close is not None:
                await close()

    return asyncio.run(execute())


@list_app.command(name="owners")
def list_owners() -> int:
    """List owners that have a job registry."""
    config = _configure()
    found = _with_store(config, lambda store: _owners(store, config.prefix))
    for owner_type, owner in found:
        print(f"{owner_type}/{owner}")
    return 0


@list_app.command(name="jobs")
def list_jobs(*, jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE)) -> int:
    """List configured jobs with their run totals."""
    config = _configure()
    try:
        defined = load_jobs(jobs_file)
    except JobConfigError as exc:
        return _fail(str(exc))

    async def registries(store: ObjectStore) -> dict[tuple[str, str], _Entries]:
        found: dict[tuple[str, str], _Entries] = {}
        for job in defined:
            owner = (job.scope.owner_type, job.scope.owner)
            if owner in found:
                continue
            key = jobs_registry_key(
                job.prefix(config.prefix), job.scope.owner_type, job.scope.owner
            )
            registry = await load_jobs_registry(store, key)
            found[owner] = (
                {entry.id: entry for entry in registry.jobs} if registry else {}
            )
        return found

    known = _with_store(config, registries)
    for job in defined:
        entry = known[(job.scope.owner_type, job.scope.owner)].get(job.id)
        schedule = job.schedule.type if job.schedule is not None else "unscheduled"
        runs = entry.total_runs if entry is not None else 0
        last = entry.last_slot_key if entry is not None else "-"
        print(
            f"{job.id}  {job.mode}  {schedule}  "
            f"{job.scope.owner_type}/{job.scope.owner}  runs={runs}  last={last}"
        )
    return 0


def _index_base(job: JobDefinition, config: AppConfig) -> str:
    return index_base_key(
        job.prefix(config.prefix), job.scope.owner_type, job.scope.owner, job.id
    )


@list_app.command(name="runs")
def list_runs(
    job_id: str,
    *,
    limit: int = DEFAULT_RUN_LIMIT,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """List a job's recorded runs, newest first."""
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
    except JobConfigError as exc:
        return _fail(str(exc))
    items = _with_store(
        config, lambda store: load_all_index_items(store, _index_base(job, config))
    )
    for item in list(reversed(items))[:limit]:
        print(format_index_item(item))
    return 0


@list_app.command(name="periods")
def list_periods(
    job_id: str, *, jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE)
) -> int:
    """List the ``YYYY-MM`` periods holding a job's index files."""
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
    except JobConfigError as exc:
        return _fail(str(exc))
    found = _with_store(
        config, lambda store: list_index_periods(store, _index_base(job, config))
    )
    for period in found:
        print(period)
    return 0


@app.command
def show(
    job_id: str,
    slot_key: str,
    *,
    full: bool = False,
    jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE),
) -> int:
    """Show a run's manifest summary and a preview of its output.

    Args:
        job_id: Job owning the slot.
        slot_key: Slot key such as ``2024-11-03T00-00Z``.
        full: Print the whole output instead of a preview.
        jobs_file: YAML file declaring the jobs.

    Returns:
        Exit code (0 when the run exists, 1 otherwise).

    """
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
    except JobConfigError as exc:
        return _fail(str(exc))
    base = report_base_key(
        job.prefix(config.prefix),
        job.scope.owner_type,
        job.scope.owner,
        job.id,
        slot_key,
    )

    async def load(store: ObjectStore) -> tuple[Manifest | None, str | None]:
        manifest = await load_record(store, manifest_key(base), Manifest)
        if manifest is None or manifest.output is None:
            return manifest, None
        return manifest, await store.get(manifest.output.key)

    manifest, content = _with_store(config, load)
    if manifest is None:
        return _fail(f"No run of {job_id} recorded for slot {slot_key}")

    print(f"Job: {manifest.job.id} ({manifest.job.mode})")
    window = manifest.window
    print(f"Slot: {manifest.slot_key} [{window.start} .. {window.end})")
    error = f" ({manifest.error})" if manifest.error else ""
    print(f"Status: {manifest.status}{error}")
    print(
        f"Stats: repos={manifest.stats.repos} commits={manifest.stats.commits} "
        f"prs={manifest.stats.prs} issues={manifest.stats.issues}"
    )
    if manifest.llm is not None:
        print(
            f"Model: {manifest.llm.model} input={manifest.llm.input_tokens} "
            f"output={manifest.llm.output_tokens}"
        )
    if content is not None:
        print()
        print(content if full else preview(content))
    return 0


@app.command
def stats(
    job_id: str, *, jobs_file: JobsFileOption = Path(DEFAULT_JOBS_FILE)
) -> int:
    """Summarise a job's recorded runs: counts, durations and model usage."""
    config = _configure()
    try:
        job = find_job(load_jobs(jobs_file), job_id)
    except JobConfigError as exc:
        return _fail(str(exc))
    items = _with_store(
        config, lambda store: load_all_index_items(store, _index_base(job, config))
    )
    summary = summarize_index_items(items)
    print(
        f"Runs: {summary.total} "
        f"(success={summary.succeeded} failed={summary.failed})"
    )
    print(f"Empty: {summary.empty}")
    print(f"Output bytes: {summary.output_bytes}")
    if summary.avg_duration_ms is not None:
        print(
            f"Duration ms: avg={summary.avg_duration_ms:.0f} "
            f"p95={summary.p95_duration_ms} max={summary.max_duration_ms}"
        )
    print(f"Tokens: input={summary.input_tokens} output={summary.output_tokens}")
    for model, count in summary.models.items():
        print(f"Model {model}: {count} runs")
    return 0


def main() -> int:
    """Entry point for the ``cadence`` console script."""
    try:
        return app()
    except (ObjectStoreError, ReportGeneratorConfigError) as exc:
        return _fail(f"Configuration error: {exc}")
