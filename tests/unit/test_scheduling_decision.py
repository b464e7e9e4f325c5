"""Unit tests for ``--at`` parsing and the due-decision engine."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from cadence.records.index import write_latest
from cadence.scheduling import (
    Schedule,
    SlotResolutionError,
    SlotType,
    parse_at,
    resolve_slot_for_at,
)
from cadence.scheduling.decision import (
    UNSCHEDULED_SLOT_KEY,
    get_schedule_decision,
    is_due,
)
from cadence.storage.keys import latest_key
from tests.helpers.runs import index_item

if typ.TYPE_CHECKING:
    from cadence.storage.memory import InMemoryObjectStore

DAILY = Schedule(type=SlotType.DAILY)
NOW = dt.datetime(2024, 11, 3, 10, tzinfo=dt.UTC)
INDEX_BASE = "reports/_index/org/acme/daily"


class TestParseAt:
    """Tests for parse_at."""

    @pytest.mark.parametrize(
        ("value", "time_zone", "expected"),
        [
            ("2026-01-10T05:00:00Z", "Europe/Berlin", dt.datetime(2026, 1, 10, 5)),
            ("2026-01-10T05:00+02:00", "UTC", dt.datetime(2026, 1, 10, 3)),
            ("2026-01-10T05:00", "Europe/Berlin", dt.datetime(2026, 1, 10, 4)),
            ("2026-01-10 05:00:30", "UTC", dt.datetime(2026, 1, 10, 5, 0, 30)),
            ("2026-01-10", "America/New_York", dt.datetime(2026, 1, 10, 5)),
        ],
        ids=["zulu", "offset", "local", "local-seconds", "date"],
    )
    def test_accepted_forms(
        self, value: str, time_zone: str, expected: dt.datetime
    ) -> None:
        """Every accepted form resolves to the expected UTC instant."""
        assert parse_at(value, time_zone) == expected.replace(tzinfo=dt.UTC), (
            f"Unexpected instant for {value!r} in {time_zone}."
        )

    @pytest.mark.parametrize("value", ["yesterday", "2026-13-01", "2026-01-10T25:00"])
    def test_rejects_garbage(self, value: str) -> None:
        """Unparseable values raise a resolution error."""
        with pytest.raises(SlotResolutionError, match="Invalid --at value"):
            parse_at(value, "UTC")


class TestResolveSlotForAt:
    """Tests for resolve_slot_for_at."""

    def test_date_selects_the_day_being_reported_on(self) -> None:
        """For daily schedules a date names the day inside the window."""
        slot = resolve_slot_for_at("2024-11-02", DAILY, "UTC")

        assert slot.slot_key == "2024-11-03T00-00Z"
        assert slot.window.start == dt.datetime(2024, 11, 2, tzinfo=dt.UTC)

    def test_date_uses_schedule_time_on_following_day(self) -> None:
        """The selected daily slot ends at the schedule hour of the next day."""
        schedule = Schedule(type=SlotType.DAILY, hour=6)

        slot = resolve_slot_for_at("2024-11-02", schedule, "UTC")

        assert slot.slot_key == "2024-11-03T06-00Z"

    def test_instant_selects_slot_containing_it(self) -> None:
        """An instant selects the most recent slot ending at or before it."""
        schedule = Schedule(type=SlotType.WEEKLY, weekday=1, hour=9)

        slot = resolve_slot_for_at("2024-11-06T14:00:00Z", schedule, "UTC")

        assert slot.slot_key == "2024-11-04T09-00Z"


class TestIsDue:
    """Tests for the pure due check."""

    def test_due_without_previous_run(self) -> None:
        """A job that never ran is due."""
        decision = is_due(DAILY, NOW, "UTC", None)

        assert decision.due is True
        assert decision.slot_key == "2024-11-03T00-00Z"
        assert decision.next_slot_key == decision.slot_key

    def test_not_due_when_latest_matches_current_slot(self) -> None:
        """A job whose latest run is the current slot is not due."""
        decision = is_due(DAILY, NOW, "UTC", "2024-11-03T00-00Z")

        assert decision.due is False
        assert decision.last_slot_key == "2024-11-03T00-00Z"

    def test_due_when_latest_is_older(self) -> None:
        """A job whose latest run predates the current slot is due."""
        assert is_due(DAILY, NOW, "UTC", "2024-11-02T00-00Z").due is True

    def test_unscheduled_job_is_always_due(self) -> None:
        """Jobs without a schedule are due with the unscheduled key."""
        decision = is_due(None, NOW, "UTC", "2024-11-03T00-00Z")

        assert decision.due is True
        assert decision.slot_key == UNSCHEDULED_SLOT_KEY


class TestGetScheduleDecision:
    """Tests for the store-backed due check."""

    @pytest.mark.asyncio
    async def test_reads_latest_pointer(self, store: InMemoryObjectStore) -> None:
        """The latest pointer's slot key drives the decision."""
        await write_latest(
            store, latest_key(INDEX_BASE), index_item("2024-11-03T00-00Z")
        )

        decision = await get_schedule_decision(store, INDEX_BASE, DAILY, NOW, "UTC")

        assert decision.due is False
        assert decision.last_slot_key == "2024-11-03T00-00Z"

    @pytest.mark.asyncio
    async def test_due_when_pointer_missing(self, store: InMemoryObjectStore) -> None:
        """A missing pointer means the job is due."""
        decision = await get_schedule_decision(store, INDEX_BASE, DAILY, NOW, "UTC")

        assert decision.due is True
        assert decision.last_slot_key is None
