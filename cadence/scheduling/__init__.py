"""Slot scheduling: map wall-clock time onto deterministic report slots.

Public API
----------
Schedule
    Immutable schedule definition attached to a job.
SlotType
    Enumeration of supported slot granularities.
Slot
    Resolved slot identity with its UTC window.
list_slots
    Current slot plus backfill slots, newest first.
resolve_slot_end
    Most recent slot-end boundary in local calendar fields.
build_slot_window
    Convert local slot-end fields into a :class:`Slot`.
resolve_slot_for_at
    Resolve the slot selected by a CLI ``--at`` value.

The due-decision engine lives in :mod:`cadence.scheduling.decision` because
it reads the persisted latest pointer.
"""

from cadence.scheduling.at import parse_at, resolve_slot_for_at
from cadence.scheduling.errors import SlotResolutionError
from cadence.scheduling.models import (
    LocalSlotFields,
    Schedule,
    Slot,
    SlotType,
    SlotWindow,
)
from cadence.scheduling.slots import (
    build_slot_window,
    format_slot_key,
    list_slots,
    parse_slot_key,
    resolve_slot_end,
    resolve_slot_key,
    resolve_time_zone,
)

__all__ = [
    "LocalSlotFields",
    "Schedule",
    "Slot",
    "SlotResolutionError",
    "SlotType",
    "SlotWindow",
    "build_slot_window",
    "format_slot_key",
    "list_slots",
    "parse_at",
    "parse_slot_key",
    "resolve_slot_end",
    "resolve_slot_for_at",
    "resolve_slot_key",
    "resolve_time_zone",
]
