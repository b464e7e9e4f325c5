"""Behavioural coverage for monthly indexes and the latest pointer."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

from pytest_bdd import given, parsers, scenario, then, when

from cadence.records.index import load_index_file, load_latest, update_index
from cadence.runner import RunStatus, delete_slot
from cadence.scheduling.slots import parse_slot_key
from cadence.storage.keys import month_index_key
from tests.helpers.runs import index_item, make_job

if typ.TYPE_CHECKING:
    from cadence.runner.orchestrator import RunOrchestrator
    from cadence.storage.memory import InMemoryObjectStore

INDEX_BASE = "reports/_index/org/acme/daily"


class IndexContext(typ.TypedDict, total=False):
    """Mutable context shared between steps."""

    store: InMemoryObjectStore
    orchestrator: RunOrchestrator
    writes: list[bool]


@scenario("../index_maintenance.feature", "Indexing the same run twice keeps one entry")
def test_index_twice_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario(
    "../index_maintenance.feature", "Deleting the latest slot moves the pointer back"
)
def test_delete_latest_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@scenario("../index_maintenance.feature", "Deleting the only slot removes the pointer")
def test_delete_only_scenario() -> None:
    """Wrapper for pytest-bdd scenario."""


@given("an empty store", target_fixture="index_context")
def given_empty_store(store: InMemoryObjectStore) -> IndexContext:
    """Start from a store without records."""
    return {"store": store}


@given(
    parsers.parse('the daily job ran for {count:d} slots ending "{slot_key}"'),
    target_fixture="index_context",
)
def given_job_ran(
    store: InMemoryObjectStore,
    orchestrator: RunOrchestrator,
    count: int,
    slot_key: str,
) -> IndexContext:
    """Run the daily job for ``count`` consecutive slots."""
    job = make_job(backfill_slots=count)
    now = parse_slot_key(slot_key) + dt.timedelta(hours=1)
    result = asyncio.run(orchestrator.run_job_with_schedule(job, now=now))
    assert result.status is RunStatus.SUCCESS
    assert len(result.slots) == count
    return {"store": store, "orchestrator": orchestrator}


@when(parsers.parse('the run for slot "{slot_key}" is indexed twice'))
def when_indexed_twice(index_context: IndexContext, slot_key: str) -> None:
    """Merge the same index item into its monthly file twice."""
    item = index_item(slot_key)
    key = month_index_key(INDEX_BASE, "2024-11")

    async def _index() -> list[bool]:
        store = index_context["store"]
        return [await update_index(store, key, "2024-11", item) for _ in range(2)]

    index_context["writes"] = asyncio.run(_index())


@when(parsers.parse('slot "{slot_key}" is deleted'))
def when_slot_deleted(index_context: IndexContext, slot_key: str) -> None:
    """Delete every record of the daily job for ``slot_key``."""
    asyncio.run(delete_slot(index_context["orchestrator"], make_job(), slot_key))


@then(parsers.parse('the monthly index "{period}" holds {count:d} item'))
def then_index_holds(index_context: IndexContext, period: str, count: int) -> None:
    """Check the number of items in the monthly index file."""
    index_file = asyncio.run(
        load_index_file(index_context["store"], month_index_key(INDEX_BASE, period))
    )
    assert index_file is not None
    assert len(index_file.items) == count


@then("the second update reports no change")
def then_second_update_noop(index_context: IndexContext) -> None:
    """Check only the first merge wrote the file."""
    assert index_context["writes"] == [True, False]


@then(parsers.parse('the latest pointer is slot "{slot_key}"'))
def then_latest_is(index_context: IndexContext, slot_key: str) -> None:
    """Check the slot the latest pointer references."""
    latest = asyncio.run(load_latest(index_context["store"], INDEX_BASE))
    assert latest is not None
    assert latest.slot_key == slot_key


@then("no latest pointer remains")
def then_no_latest(index_context: IndexContext) -> None:
    """Check the latest pointer was removed."""
    assert asyncio.run(load_latest(index_context["store"], INDEX_BASE)) is None
