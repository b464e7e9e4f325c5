"""Behavioural coverage for replace-on-success reruns."""

from __future__ import annotations

import asyncio
import typing as typ

from pytest_bdd import given, parsers, scenario, then, when

from cadence.generation import MockReportGenerator, OutputFormat
from cadence.generation.errors import ReportGeneratorAPIError
from cadence.runner import RunStatus, rerun_slot
from cadence.scheduling.slots import parse_slot_key, resolve_slot
from tests.helpers.activity import FailingGenerator
from tests.helpers.runs import DAILY, make_job, make_orchestrator

if typ.TYPE_CHECKING:
    from cadence.runner.models import SlotRunResult
    from cadence.scheduling.models import Slot
    from cadence.storage.memory import InMemoryObjectStore
    from tests.helpers.activity import StaticActivitySource


class RerunContext(typ.TypedDict, total=False):
    """Mutable context shared between steps."""

    store: InMemoryObjectStore
    source: StaticActivitySource
    slot: Slot
    manifest_key: str
    manifest_before: str | None
    snapshot_before: dict[str, str]
    result: SlotRunResult


@scenario(
    "../rerun_safety.feature", "A rerun failing during generation changes nothing"
)
def test_failed_rerun_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../rerun_safety.feature",
    "A successful rerun in another format replaces the output",
)
def test_successful_rerun_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@given(
    parsers.parse('the daily job ran successfully for slot "{slot_key}"'),
    target_fixture="rerun_context",
)
def given_successful_run(
    store: InMemoryObjectStore, activity_source: StaticActivitySource, slot_key: str
) -> RerunContext:
    """Run the daily job once for ``slot_key``."""
    slot = resolve_slot(parse_slot_key(slot_key), DAILY, "UTC")
    orchestrator = make_orchestrator(
        store, source=activity_source, generator=MockReportGenerator()
    )
    result = asyncio.run(orchestrator.run_slot(make_job(), slot))
    assert result.status is RunStatus.SUCCESS
    assert result.manifest_key is not None
    return {
        "store": store,
        "source": activity_source,
        "slot": slot,
        "manifest_key": result.manifest_key,
        "manifest_before": store.snapshot()[result.manifest_key],
        "snapshot_before": store.snapshot(),
    }


@when("the slot is rerun with a generator that fails")
def when_rerun_fails(rerun_context: RerunContext) -> None:
    """Rerun against a generator raising an API error."""
    orchestrator = make_orchestrator(
        rerun_context["store"],
        source=rerun_context["source"],
        generator=FailingGenerator(ReportGeneratorAPIError.http_error(500)),
    )
    rerun_context["result"] = asyncio.run(
        rerun_slot(orchestrator, make_job(), rerun_context["slot"])
    )


@when("the slot is rerun with JSON output")
def when_rerun_json(rerun_context: RerunContext) -> None:
    """Rerun with the job switched to JSON output."""
    orchestrator = make_orchestrator(
        rerun_context["store"],
        source=rerun_context["source"],
        generator=MockReportGenerator(),
    )
    job = make_job(output_format=OutputFormat.JSON)
    rerun_context["result"] = asyncio.run(
        rerun_slot(orchestrator, job, rerun_context["slot"])
    )


@then("the rerun reports a failure")
def then_rerun_failed(rerun_context: RerunContext) -> None:
    """Check the rerun result is a failure."""
    result = rerun_context["result"]
    assert result.status is RunStatus.FAILED
    assert result.error == "Model API HTTP error 500"


@then("the rerun succeeds")
def then_rerun_succeeded(rerun_context: RerunContext) -> None:
    """Check the rerun result is a success."""
    assert rerun_context["result"].status is RunStatus.SUCCESS


@then("the manifest is byte-identical to the one before the rerun")
def then_manifest_unchanged(rerun_context: RerunContext) -> None:
    """Compare the stored manifest text with the one read before."""
    after = asyncio.run(rerun_context["store"].get(rerun_context["manifest_key"]))
    assert after == rerun_context["manifest_before"]


@then("every stored record is unchanged")
def then_store_unchanged(rerun_context: RerunContext) -> None:
    """Compare every stored key with the snapshot taken before."""
    assert rerun_context["store"].snapshot() == rerun_context["snapshot_before"]


@then(parsers.parse('the slot output is "{filename}"'))
def then_slot_output(rerun_context: RerunContext, filename: str) -> None:
    """Check the slot holds exactly one output artifact named ``filename``."""
    base = rerun_context["manifest_key"].rsplit("/", 1)[0]
    outputs = sorted(
        key.rsplit("/", 1)[1]
        for key in rerun_context["store"].snapshot()
        if key.startswith(f"{base}/output.")
    )
    assert outputs == [filename], "Expected the previous output to be removed."
