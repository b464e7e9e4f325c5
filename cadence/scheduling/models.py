"""Schedule and slot structures.

A :class:`Schedule` is part of a job definition and is decoded from YAML or
JSON. A :class:`Slot` is always derived from a schedule, an instant and a
time zone; it is never stored as its own document.
"""

from __future__ import annotations

import calendar
import dataclasses as dc
import datetime as dt
import enum

import msgspec


class SlotType(enum.StrEnum):
    """Granularity of a report slot."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Schedule(
    msgspec.Struct, kw_only=True, frozen=True, rename="camel", omit_defaults=True
):
    """When a job's slots end, expressed in the job's local time zone.

    Attributes
    ----------
    type
        Slot granularity.
    minute
        Minute of the hour the slot ends at (default 0).
    hour
        Hour of the day the slot ends at (default 0). Ignored for hourly
        schedules.
    weekday
        Day of the week for weekly schedules, ``0`` being Sunday.
    day_of_month
        Day of the month for monthly and yearly schedules (default 1).
        Days beyond the length of a month are clamped to its last day.
    month
        Month of the year for yearly schedules (default 1).

    """

    type: SlotType
    minute: int | None = None
    hour: int | None = None
    weekday: int | None = None
    day_of_month: int | None = None
    month: int | None = None

    @property
    def effective_minute(self) -> int:
        """Return the slot-end minute, defaulting to 0."""
        return self.minute if self.minute is not None else 0

    @property
    def effective_hour(self) -> int:
        """Return the slot-end hour, defaulting to 0."""
        return self.hour if self.hour is not None else 0

    @property
    def effective_weekday(self) -> int:
        """Return the weekly slot-end weekday, defaulting to Sunday."""
        return self.weekday if self.weekday is not None else 0

    @property
    def effective_day_of_month(self) -> int:
        """Return the slot-end day of month before clamping, defaulting to 1."""
        return self.day_of_month if self.day_of_month is not None else 1

    @property
    def effective_month(self) -> int:
        """Return the yearly slot-end month, defaulting to January."""
        return self.month if self.month is not None else 1


@dc.dataclass(frozen=True, slots=True)
class LocalSlotFields:
    """Wall-clock calendar fields in a job's time zone.

    Fields are naive by design: arithmetic on them moves the wall clock and
    never a fixed number of seconds. Conversion to an instant happens only in
    :func:`cadence.scheduling.slots.build_slot_window`.
    """

    year: int
    month: int
    day: int
    hour: int
    minute: int

    @property
    def weekday(self) -> int:
        """Return the day of the week with ``0`` meaning Sunday."""
        return dt.date(self.year, self.month, self.day).isoweekday() % 7

    @property
    def days_in_month(self) -> int:
        """Return the number of days in this fields' month."""
        return calendar.monthrange(self.year, self.month)[1]

    def as_naive(self) -> dt.datetime:
        """Return the fields as a naive datetime."""
        return dt.datetime(  # noqa: DTZ001
            self.year, self.month, self.day, self.hour, self.minute
        )

    @classmethod
    def from_naive(cls, value: dt.datetime) -> LocalSlotFields:
        """Build fields from a naive (wall-clock) datetime."""
        return cls(
            year=value.year,
            month=value.month,
            day=value.day,
            hour=value.hour,
            minute=value.minute,
        )


@dc.dataclass(frozen=True, slots=True)
class SlotWindow:
    """Half-open activity window ``[start, end)`` in UTC."""

    start: dt.datetime
    end: dt.datetime

    @property
    def duration(self) -> dt.timedelta:
        """Return the elapsed UTC time covered by the window."""
        return self.end - self.start


@dc.dataclass(frozen=True, slots=True)
class Slot:
    """Identity of one discrete report slot.

    Attributes
    ----------
    slot_key
        Canonical ``YYYY-MM-DDTHH-MMZ`` key derived from ``scheduled_at``.
    slot_type
        Granularity of the schedule that produced the slot.
    scheduled_at
        Slot end instant in UTC.
    window
        Activity window; ``window.end`` always equals ``scheduled_at``.

    """

    slot_key: str
    slot_type: SlotType
    scheduled_at: dt.datetime
    window: SlotWindow
