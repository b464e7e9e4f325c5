"""Decide whether a scheduled job is due for its current slot.

Only unattended invocations consult this engine; manual runs always execute.
A job is due when no run has been recorded yet or when the latest recorded
slot key sorts before the current one.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from cadence.records.index import load_latest
from cadence.scheduling.slots import resolve_slot_key

if typ.TYPE_CHECKING:
    import datetime as dt

    from cadence.scheduling.models import Schedule
    from cadence.storage.protocol import ObjectStore

UNSCHEDULED_SLOT_KEY = "unscheduled"


@dc.dataclass(frozen=True, slots=True)
class ScheduleDecision:
    """Outcome of a due check.

    Attributes
    ----------
    due
        Whether the job should run now.
    slot_key
        Key of the current slot.
    last_slot_key
        Key recorded by the latest pointer, if any.
    next_slot_key
        Key of the slot a run now would process.

    """

    due: bool
    slot_key: str
    next_slot_key: str
    last_slot_key: str | None = None


def is_due(
    schedule: Schedule | None,
    now: dt.datetime,
    time_zone: str,
    last_slot_key: str | None,
) -> ScheduleDecision:
    """Return whether a job with ``schedule`` is due at ``now``.

    Jobs without a schedule are always due with the ``unscheduled`` key.
    """
    if schedule is None:
        return ScheduleDecision(
            due=True,
            slot_key=UNSCHEDULED_SLOT_KEY,
            next_slot_key=UNSCHEDULED_SLOT_KEY,
            last_slot_key=last_slot_key,
        )
    slot_key = resolve_slot_key(now, schedule, time_zone)
    due = not last_slot_key or last_slot_key < slot_key
    return ScheduleDecision(
        due=due,
        slot_key=slot_key,
        next_slot_key=slot_key,
        last_slot_key=last_slot_key,
    )


async def get_schedule_decision(
    store: ObjectStore,
    index_base: str,
    schedule: Schedule | None,
    now: dt.datetime,
    time_zone: str,
) -> ScheduleDecision:
    """Return :func:`is_due` using the slot key stored in the latest pointer."""
    if schedule is None:
        return is_due(None, now, time_zone, None)
    latest = await load_latest(store, index_base)
    return is_due(schedule, now, time_zone, latest.slot_key if latest else None)
