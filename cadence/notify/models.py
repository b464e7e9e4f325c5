"""Run notification payload."""

from __future__ import annotations

import msgspec

from cadence.records.models import OutputDescriptor, OwnerType  # noqa: TC001


class NotificationWindow(msgspec.Struct, kw_only=True, frozen=True):
    """Activity window of the announced run."""

    start: str
    end: str


class RunNotification(
    msgspec.Struct, kw_only=True, frozen=True, rename="camel", omit_defaults=True
):
    """Body posted to a webhook after a report artifact is stored."""

    owner: str
    owner_type: OwnerType
    job_id: str
    job_name: str
    slot_key: str
    window: NotificationWindow
    artifact: OutputDescriptor
    created_at: str
    content: str | None = None
