"""Interface for fetching repository activity within a slot window."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from cadence.activity.models import ActivityFetchResult, ActivityScope
    from cadence.scheduling.models import SlotWindow


@typ.runtime_checkable
class ActivitySource(typ.Protocol):
    """Source of commits, pull requests and issues for an owner's repositories."""

    async def fetch(
        self, scope: ActivityScope, window: SlotWindow
    ) -> ActivityFetchResult:
        """Return activity for every repository in ``scope`` during ``window``.

        Implementations apply the scope's allowlist, blocklist and privacy
        filter and include repositories without activity, so callers can
        decide whether inactive repositories appear in a report.
        """
        ...
