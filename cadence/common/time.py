"""Common time utilities.

Persisted documents carry instants as ISO-8601 strings in UTC with a ``Z``
suffix so that lexical comparison of two stamps matches chronological order.
"""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"datetime must be timezone aware, got naive value {value!r}"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def to_iso_z(value: dt.datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Millisecond precision matches the stamps written by earlier deployments,
    keeping existing index files byte-stable when they are rewritten.
    """
    utc = ensure_utc(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> dt.datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    parsed = dt.datetime.fromisoformat(text)
    return ensure_utc(parsed)
