"""Deterministic slot arithmetic.

Slot boundaries are computed on local calendar fields in the job's time zone
and converted to UTC last, using the zone offset in force at each resulting
local instant. Stepping a daily slot back across a spring-forward transition
therefore yields a 23-hour UTC window that still covers one local day.

Usage
-----
>>> import datetime as dt
>>> schedule = Schedule(type=SlotType.DAILY)
>>> now = dt.datetime(2024, 11, 3, 10, tzinfo=dt.UTC)
>>> [slot.slot_key for slot in list_slots(now, schedule, "UTC", 3)]
['2024-11-03T00-00Z', '2024-11-02T00-00Z', '2024-11-01T00-00Z']

"""

from __future__ import annotations

import calendar
import dataclasses as dc
import datetime as dt
import re
import typing as typ
import zoneinfo

from cadence.common.time import ensure_utc
from cadence.scheduling.errors import SlotResolutionError
from cadence.scheduling.models import LocalSlotFields, Slot, SlotType, SlotWindow

if typ.TYPE_CHECKING:
    from cadence.scheduling.models import Schedule

_SLOT_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})Z$")
_DAYS_PER_WEEK = 7
_MONTHS_PER_YEAR = 12


def resolve_time_zone(name: str) -> zoneinfo.ZoneInfo:
    """Load an IANA time zone, raising :class:`SlotResolutionError` if unknown."""
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
        raise SlotResolutionError.unknown_time_zone(name) from exc


def format_slot_key(instant: dt.datetime) -> str:
    """Return the canonical ``YYYY-MM-DDTHH-MMZ`` key for a UTC instant."""
    return ensure_utc(instant).strftime("%Y-%m-%dT%H-%MZ")


def parse_slot_key(slot_key: str) -> dt.datetime:
    """Return the UTC instant encoded by a canonical slot key."""
    match = _SLOT_KEY_PATTERN.match(slot_key)
    if match is None:
        raise SlotResolutionError.invalid_slot_key(slot_key)
    year, month, day, hour, minute = (int(part) for part in match.groups())
    try:
        return dt.datetime(year, month, day, hour, minute, tzinfo=dt.UTC)
    except ValueError as exc:
        raise SlotResolutionError.invalid_slot_key(slot_key) from exc


def local_fields(instant: dt.datetime, time_zone: str) -> LocalSlotFields:
    """Return the wall-clock fields of ``instant`` in ``time_zone``."""
    local = ensure_utc(instant).astimezone(resolve_time_zone(time_zone))
    return LocalSlotFields(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
    )


def local_to_utc(fields: LocalSlotFields, time_zone: str) -> dt.datetime:
    """Convert wall-clock fields to a UTC instant.

    Local times inside a DST gap resolve with the pre-transition offset and
    ambiguous local times resolve to their first occurrence (``fold=0``).
    """
    zone = resolve_time_zone(time_zone)
    return fields.as_naive().replace(tzinfo=zone).astimezone(dt.UTC)


def _clamp_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def _shift_hours(fields: LocalSlotFields, delta: int) -> LocalSlotFields:
    return LocalSlotFields.from_naive(fields.as_naive() + dt.timedelta(hours=delta))


def _shift_days(fields: LocalSlotFields, delta: int) -> LocalSlotFields:
    return LocalSlotFields.from_naive(fields.as_naive() + dt.timedelta(days=delta))


def _shift_months(
    fields: LocalSlotFields, delta: int, anchor_day: int
) -> LocalSlotFields:
    """Move ``delta`` calendar months, re-anchoring the day of month.

    ``anchor_day`` is the schedule's intended day; it is clamped to the
    length of the target month so that day 31 maps to the last day of
    shorter months without drifting after a short month is crossed.
    """
    index = fields.year * _MONTHS_PER_YEAR + (fields.month - 1) + delta
    year, month_index = divmod(index, _MONTHS_PER_YEAR)
    month = month_index + 1
    return dc.replace(
        fields, year=year, month=month, day=_clamp_day(year, month, anchor_day)
    )


def _shift_years(
    fields: LocalSlotFields, delta: int, anchor_day: int
) -> LocalSlotFields:
    year = fields.year + delta
    return dc.replace(
        fields, year=year, day=_clamp_day(year, fields.month, anchor_day)
    )


def shift_slot_end(
    fields: LocalSlotFields, schedule: Schedule, delta: int
) -> LocalSlotFields:
    """Move slot-end fields by ``delta`` schedule units in local calendar terms."""
    match schedule.type:
        case SlotType.HOURLY:
            return _shift_hours(fields, delta)
        case SlotType.DAILY:
            return _shift_days(fields, delta)
        case SlotType.WEEKLY:
            return _shift_days(fields, delta * _DAYS_PER_WEEK)
        case SlotType.MONTHLY:
            return _shift_months(fields, delta, schedule.effective_day_of_month)
        case SlotType.YEARLY:
            return _shift_years(fields, delta, schedule.effective_day_of_month)
    msg = f"unsupported slot type: {schedule.type!r}"
    raise ValueError(msg)


def _time_before(parts: LocalSlotFields, hour: int, minute: int) -> bool:
    return (parts.hour, parts.minute) < (hour, minute)


def resolve_slot_end(
    now: dt.datetime, schedule: Schedule, time_zone: str
) -> LocalSlotFields:
    """Return the most recent slot-end boundary at or before ``now``.

    The candidate boundary is built from the schedule fields on ``now``'s
    local date (or hour, week, month, year) and stepped back one schedule
    unit when ``now`` falls before it. An instant exactly on a boundary
    resolves to that boundary.

    Parameters
    ----------
    now
        Aware reference instant.
    schedule
        Job schedule.
    time_zone
        IANA zone the schedule is expressed in.

    Returns
    -------
    LocalSlotFields
        Local wall-clock fields of the slot end.

    """
    parts = local_fields(now, time_zone)
    minute = schedule.effective_minute
    hour = schedule.effective_hour

    match schedule.type:
        case SlotType.HOURLY:
            candidate = dc.replace(parts, minute=minute)
            if parts.minute < minute:
                return _shift_hours(candidate, -1)
            return candidate

        case SlotType.DAILY:
            candidate = dc.replace(parts, hour=hour, minute=minute)
            if _time_before(parts, hour, minute):
                return _shift_days(candidate, -1)
            return candidate

        case SlotType.WEEKLY:
            candidate = dc.replace(parts, hour=hour, minute=minute)
            delta = (parts.weekday - schedule.effective_weekday) % _DAYS_PER_WEEK
            if delta == 0 and _time_before(parts, hour, minute):
                delta = _DAYS_PER_WEEK
            return _shift_days(candidate, -delta)

        case SlotType.MONTHLY:
            anchor = schedule.effective_day_of_month
            day = _clamp_day(parts.year, parts.month, anchor)
            candidate = dc.replace(parts, day=day, hour=hour, minute=minute)
            if (parts.day, parts.hour, parts.minute) < (day, hour, minute):
                return _shift_months(candidate, -1, anchor)
            return candidate

        case SlotType.YEARLY:
            anchor = schedule.effective_day_of_month
            month = schedule.effective_month
            day = _clamp_day(parts.year, month, anchor)
            candidate = dc.replace(
                parts, month=month, day=day, hour=hour, minute=minute
            )
            current = (parts.month, parts.day, parts.hour, parts.minute)
            if current < (month, day, hour, minute):
                return _shift_years(candidate, -1, anchor)
            return candidate

    msg = f"unsupported slot type: {schedule.type!r}"
    raise ValueError(msg)


def build_slot_window(
    slot_end: LocalSlotFields, schedule: Schedule, time_zone: str
) -> Slot:
    """Convert local slot-end fields into a :class:`Slot`.

    The start is the end stepped back one schedule unit on local fields.
    Each bound is converted with the offset in force at that bound, so a DST
    transition inside the window changes its UTC length but not its local
    meaning.
    """
    slot_start = shift_slot_end(slot_end, schedule, -1)
    end_utc = local_to_utc(slot_end, time_zone)
    start_utc = local_to_utc(slot_start, time_zone)
    return Slot(
        slot_key=format_slot_key(end_utc),
        slot_type=schedule.type,
        scheduled_at=end_utc,
        window=SlotWindow(start=start_utc, end=end_utc),
    )


def resolve_slot(now: dt.datetime, schedule: Schedule, time_zone: str) -> Slot:
    """Return the current slot as of ``now``."""
    slot_end = resolve_slot_end(now, schedule, time_zone)
    return build_slot_window(slot_end, schedule, time_zone)


def resolve_slot_key(now: dt.datetime, schedule: Schedule, time_zone: str) -> str:
    """Return the key of the current slot as of ``now``."""
    end = local_to_utc(resolve_slot_end(now, schedule, time_zone), time_zone)
    return format_slot_key(end)


def list_slots(
    now: dt.datetime,
    schedule: Schedule,
    time_zone: str,
    backfill_slots: int,
) -> list[Slot]:
    """Return the current slot and earlier slots, newest first.

    ``backfill_slots`` counts slots rather than days, so a monthly schedule
    with ``backfill_slots=3`` covers three months. At least one slot (the
    current one) is always returned.
    """
    total = max(1, backfill_slots or 0)
    cursor = resolve_slot_end(now, schedule, time_zone)
    slots: list[Slot] = []
    for _ in range(total):
        slots.append(build_slot_window(cursor, schedule, time_zone))
        cursor = shift_slot_end(cursor, schedule, -1)
    return slots
