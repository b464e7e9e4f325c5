"""Errors raised while resolving schedules and slots."""

from __future__ import annotations


class SlotResolutionError(ValueError):
    """Raised when a slot cannot be resolved from the supplied inputs."""

    @classmethod
    def unknown_time_zone(cls, name: str) -> SlotResolutionError:
        """Return an error for an IANA zone name that cannot be loaded."""
        return cls(f"Unknown time zone: {name!r}")

    @classmethod
    def invalid_at(cls, value: str) -> SlotResolutionError:
        """Return an error for an unparseable ``--at`` value."""
        return cls(f"Invalid --at value: {value!r}")

    @classmethod
    def invalid_slot_key(cls, value: str) -> SlotResolutionError:
        """Return an error for a string that is not a canonical slot key."""
        return cls(f"Invalid slot key: {value!r} (expected YYYY-MM-DDTHH-MMZ)")
