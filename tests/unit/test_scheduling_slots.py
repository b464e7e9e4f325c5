"""Unit tests for deterministic slot resolution."""

from __future__ import annotations

import datetime as dt

import pytest

from cadence.scheduling import (
    Schedule,
    SlotResolutionError,
    SlotType,
    format_slot_key,
    list_slots,
    parse_slot_key,
    resolve_slot_end,
)
from cadence.scheduling.slots import resolve_slot, resolve_slot_key, resolve_time_zone

NEW_YORK = "America/New_York"


def _utc(*parts: int) -> dt.datetime:
    return dt.datetime(*parts, tzinfo=dt.UTC)


class TestSlotKeys:
    """Tests for the canonical slot key format."""

    def test_format_slot_key_uses_utc(self) -> None:
        """Aware instants in other zones are keyed by their UTC value."""
        berlin = dt.datetime(
            2024, 11, 3, 1, 0, tzinfo=resolve_time_zone("Europe/Berlin")
        )
        assert format_slot_key(berlin) == "2024-11-03T00-00Z", (
            "Expected the key to use the UTC wall clock."
        )

    def test_parse_slot_key_inverts_format(self) -> None:
        """A canonical key parses back to its instant."""
        assert parse_slot_key("2024-11-03T09-30Z") == _utc(2024, 11, 3, 9, 30)

    @pytest.mark.parametrize(
        "value",
        ["2024-11-03T09:30Z", "2024-11-03", "2024-02-30T00-00Z", ""],
    )
    def test_parse_slot_key_rejects_malformed_keys(self, value: str) -> None:
        """Keys outside the canonical format are rejected."""
        with pytest.raises(SlotResolutionError, match="Invalid slot key"):
            parse_slot_key(value)

    def test_unknown_time_zone_is_rejected(self) -> None:
        """Zone names that cannot be loaded raise a resolution error."""
        with pytest.raises(SlotResolutionError, match="Unknown time zone"):
            resolve_slot_key(
                _utc(2024, 11, 3), Schedule(type=SlotType.DAILY), "Mars/Olympus"
            )

    def test_naive_now_is_rejected(self) -> None:
        """Naive reference instants are refused."""
        with pytest.raises(ValueError, match="timezone aware"):
            resolve_slot_key(
                dt.datetime(2024, 11, 3),  # noqa: DTZ001
                Schedule(type=SlotType.DAILY),
                "UTC",
            )


class TestResolveSlot:
    """Tests for resolving the current slot."""

    def test_daily_slot_in_utc(self) -> None:
        """A daily slot ends at the most recent local midnight."""
        slot = resolve_slot(
            _utc(2024, 11, 3, 10), Schedule(type=SlotType.DAILY), "UTC"
        )

        assert slot.slot_key == "2024-11-03T00-00Z"
        assert slot.window.start == _utc(2024, 11, 2)
        assert slot.window.end == _utc(2024, 11, 3)
        assert slot.scheduled_at == slot.window.end, (
            "Expected the slot end to equal the scheduled instant."
        )

    def test_weekly_slot_resolves_previous_monday(self) -> None:
        """A Wednesday resolves to the slot ending on the Monday before."""
        schedule = Schedule(type=SlotType.WEEKLY, weekday=1, hour=9)

        slot = resolve_slot(_utc(2024, 11, 6, 14), schedule, "UTC")

        assert slot.slot_key == "2024-11-04T09-00Z"
        assert slot.window.start == _utc(2024, 10, 28, 9)
        assert slot.slot_type is SlotType.WEEKLY

    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (_utc(2024, 11, 4, 8), "2024-10-28T09-00Z"),
            (_utc(2024, 11, 4, 9), "2024-11-04T09-00Z"),
        ],
        ids=["before-boundary", "on-boundary"],
    )
    def test_weekly_slot_on_the_scheduled_day(
        self, now: dt.datetime, expected: str
    ) -> None:
        """An instant exactly on the boundary resolves to that boundary."""
        schedule = Schedule(type=SlotType.WEEKLY, weekday=1, hour=9)
        assert resolve_slot_key(now, schedule, "UTC") == expected

    def test_hourly_slot_with_minute_offset(self) -> None:
        """Hourly slots end at the configured minute of the hour."""
        schedule = Schedule(type=SlotType.HOURLY, minute=30)

        slot = resolve_slot(_utc(2024, 11, 3, 10, 15), schedule, "UTC")

        assert slot.slot_key == "2024-11-03T09-30Z"
        assert slot.window.duration == dt.timedelta(hours=1)

    def test_monthly_day_is_clamped_to_month_length(self) -> None:
        """Day 31 resolves to the last day of a shorter month."""
        schedule = Schedule(type=SlotType.MONTHLY, day_of_month=31)

        slot = resolve_slot(_utc(2024, 3, 15), schedule, "UTC")

        assert slot.slot_key == "2024-02-29T00-00Z"
        assert slot.window.start == _utc(2024, 1, 31), (
            "Expected the window to start on the anchored day of January."
        )

    def test_yearly_slot(self) -> None:
        """Yearly slots end on the configured month and day."""
        schedule = Schedule(type=SlotType.YEARLY, month=7, day_of_month=1)

        slot = resolve_slot(_utc(2024, 3, 15), schedule, "UTC")

        assert slot.slot_key == "2023-07-01T00-00Z"
        assert slot.window.start == _utc(2022, 7, 1)

    def test_daily_slot_in_local_time_zone(self) -> None:
        """Slot boundaries are local midnights converted to UTC."""
        slot = resolve_slot(
            _utc(2024, 7, 2, 12), Schedule(type=SlotType.DAILY), NEW_YORK
        )

        assert slot.slot_key == "2024-07-02T04-00Z"
        assert slot.window.duration == dt.timedelta(hours=24)


class TestDaylightSavingTransitions:
    """Windows keep their local meaning across DST changes."""

    def test_spring_forward_window_is_23_hours(self) -> None:
        """The local day of the spring transition spans 23 UTC hours."""
        slot = resolve_slot(
            _utc(2024, 3, 11, 12), Schedule(type=SlotType.DAILY), NEW_YORK
        )

        assert slot.slot_key == "2024-03-11T04-00Z"
        assert slot.window.start == _utc(2024, 3, 10, 5)
        assert slot.window.duration == dt.timedelta(hours=23)

    def test_fall_back_window_is_25_hours(self) -> None:
        """The local day of the autumn transition spans 25 UTC hours."""
        slot = resolve_slot(
            _utc(2024, 11, 4, 12), Schedule(type=SlotType.DAILY), NEW_YORK
        )

        assert slot.slot_key == "2024-11-04T05-00Z"
        assert slot.window.start == _utc(2024, 11, 3, 4)
        assert slot.window.duration == dt.timedelta(hours=25)

    def test_gap_time_uses_pre_transition_offset(self) -> None:
        """A slot end inside the spring gap resolves with standard time."""
        schedule = Schedule(type=SlotType.DAILY, hour=2, minute=30)

        key = resolve_slot_key(_utc(2024, 3, 10, 12), schedule, NEW_YORK)

        assert key == "2024-03-10T07-30Z"


class TestListSlots:
    """Tests for backfill slot listing."""

    def test_backfill_lists_newest_first(self) -> None:
        """Backfill counts slots and lists them newest first."""
        slots = list_slots(
            _utc(2024, 11, 3, 10), Schedule(type=SlotType.DAILY), "UTC", 3
        )

        assert [slot.slot_key for slot in slots] == [
            "2024-11-03T00-00Z",
            "2024-11-02T00-00Z",
            "2024-11-01T00-00Z",
        ]

    @pytest.mark.parametrize("backfill", [0, 1])
    def test_at_least_the_current_slot_is_listed(self, backfill: int) -> None:
        """Zero or one backfill slot yields only the current slot."""
        slots = list_slots(
            _utc(2024, 11, 3, 10), Schedule(type=SlotType.DAILY), "UTC", backfill
        )
        assert len(slots) == 1, f"Expected one slot for backfill={backfill}."

    def test_monthly_backfill_does_not_drift(self) -> None:
        """Crossing a short month keeps the day-of-month anchor."""
        schedule = Schedule(type=SlotType.MONTHLY, day_of_month=31)

        slots = list_slots(_utc(2024, 3, 15), schedule, "UTC", 3)

        assert [slot.slot_key for slot in slots] == [
            "2024-02-29T00-00Z",
            "2024-01-31T00-00Z",
            "2023-12-31T00-00Z",
        ]

    def test_adjacent_windows_are_contiguous(self) -> None:
        """Each slot's window starts where the previous slot ended."""
        schedule = Schedule(type=SlotType.WEEKLY, weekday=1, hour=9)

        newer, older = list_slots(_utc(2024, 11, 6, 14), schedule, NEW_YORK, 2)

        assert newer.window.start == older.window.end


def test_resolve_slot_end_returns_local_fields() -> None:
    """The slot end is reported as wall-clock fields in the job's zone."""
    fields = resolve_slot_end(
        _utc(2024, 7, 2, 12), Schedule(type=SlotType.DAILY, hour=6), NEW_YORK
    )

    assert (fields.year, fields.month, fields.day) == (2024, 7, 2)
    assert (fields.hour, fields.minute) == (6, 0)
    assert fields.weekday == 2, "Expected 2024-07-02 to be a Tuesday."
