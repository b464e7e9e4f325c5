"""Interface for announcing completed report runs."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from cadence.notify.models import RunNotification


@typ.runtime_checkable
class Notifier(typ.Protocol):
    """Destination for run notifications."""

    async def send(self, payload: RunNotification, content: str) -> None:
        """Deliver ``payload`` describing an artifact whose text is ``content``."""
        ...
