"""Resolve the ``--at`` argument of manual runs into a slot.

Accepted forms:

- an instant with a zone suffix (``2026-01-10T05:00:00Z``,
  ``2026-01-10T05:00+02:00``) which is used as-is;
- a local date-time without a zone (``2026-01-10T05:00`` or
  ``2026-01-10 05:00:30``) which is read in the job's time zone;
- a date (``2026-01-10``) which means local midnight, except for daily
  schedules where it names the day being reported on and selects the slot
  ending on the following day at the schedule time.
"""

from __future__ import annotations

import datetime as dt
import re
import typing as typ

from cadence.common.time import ensure_utc
from cadence.scheduling.errors import SlotResolutionError
from cadence.scheduling.models import LocalSlotFields, SlotType
from cadence.scheduling.slots import (
    build_slot_window,
    local_to_utc,
    resolve_slot_end,
    resolve_time_zone,
)

if typ.TYPE_CHECKING:
    from cadence.scheduling.models import Schedule, Slot

_DATE_ONLY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_LOCAL_DATE_TIME = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2})(?::(\d{2}))?$"
)
_ZONE_SUFFIX = re.compile(r"([Zz]|[+-]\d{2}:?\d{2})$")


def _parse_date(value: str) -> dt.date:
    match = _DATE_ONLY.match(value)
    if match is None:
        raise SlotResolutionError.invalid_at(value)
    year, month, day = (int(part) for part in match.groups())
    try:
        return dt.date(year, month, day)
    except ValueError as exc:
        raise SlotResolutionError.invalid_at(value) from exc


def _local_instant(value: dt.datetime, time_zone: str) -> dt.datetime:
    zone = resolve_time_zone(time_zone)
    return value.replace(tzinfo=zone).astimezone(dt.UTC)


def parse_at(value: str, time_zone: str) -> dt.datetime:
    """Parse an ``--at`` value into an aware UTC instant.

    Parameters
    ----------
    value
        Raw command-line value.
    time_zone
        IANA zone used for values without a zone suffix.

    Raises
    ------
    SlotResolutionError
        If ``value`` matches none of the accepted forms.

    """
    text = value.strip()
    if _ZONE_SUFFIX.search(text):
        normalised = f"{text[:-1]}+00:00" if text[-1] in "Zz" else text
        try:
            return ensure_utc(dt.datetime.fromisoformat(normalised))
        except ValueError as exc:
            raise SlotResolutionError.invalid_at(value) from exc

    if _DATE_ONLY.match(text):
        date = _parse_date(text)
        midnight = dt.datetime.combine(date, dt.time())
        return _local_instant(midnight, time_zone)

    match = _LOCAL_DATE_TIME.match(text)
    if match is not None:
        year, month, day, hour, minute, second = match.groups()
        try:
            local = dt.datetime(  # noqa: DTZ001
                int(year),
                int(month),
                int(day),
                int(hour),
                int(minute),
                int(second or 0),
            )
        except ValueError as exc:
            raise SlotResolutionError.invalid_at(value) from exc
        return _local_instant(local, time_zone)

    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError as exc:
        raise SlotResolutionError.invalid_at(value) from exc
    if parsed.tzinfo is None:
        return _local_instant(parsed, time_zone)
    return ensure_utc(parsed)


def _reference_instant(value: str, schedule: Schedule, time_zone: str) -> dt.datetime:
    text = value.strip()
    if schedule.type is SlotType.DAILY and _DATE_ONLY.match(text):
        following = _parse_date(text) + dt.timedelta(days=1)
        slot_end = LocalSlotFields(
            year=following.year,
            month=following.month,
            day=following.day,
            hour=schedule.effective_hour,
            minute=schedule.effective_minute,
        )
        return local_to_utc(slot_end, time_zone)
    return parse_at(text, time_zone)


def resolve_slot_for_at(value: str, schedule: Schedule, time_zone: str) -> Slot:
    """Return the slot selected by an ``--at`` value for ``schedule``."""
    reference = _reference_instant(value, schedule, time_zone)
    slot_end = resolve_slot_end(reference, schedule, time_zone)
    return build_slot_window(slot_end, schedule, time_zone)
