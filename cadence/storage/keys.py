"""Deterministic storage keys derived from slot identity.

Every key is a pure function of its inputs: no execution timestamps and no
random components. Rerunning a slot therefore writes to exactly the same keys
and a lookup never depends on when the run happened.

Layout::

    {prefix}/{ownerType}/{owner}/{jobId}/{slotKey}/manifest.json
    {prefix}/{ownerType}/{owner}/{jobId}/{slotKey}/summary.json
    {prefix}/{ownerType}/{owner}/{jobId}/{slotKey}/output.{md|json}
    {prefix}/_index/{ownerType}/{owner}/{jobId}/{YYYY-MM}.json
    {prefix}/_index/{ownerType}/{owner}/{jobId}/latest.json
    {prefix}/_index/{ownerType}/{owner}/jobs.json

"""

from __future__ import annotations

import datetime as dt
import re
import typing as typ

from cadence.common.time import ensure_utc
from cadence.scheduling.slots import resolve_time_zone

if typ.TYPE_CHECKING:
    import collections.abc as cabc

INDEX_SEGMENT = "_index"
LATEST_FILENAME = "latest.json"
JOBS_REGISTRY_FILENAME = "jobs.json"
MANIFEST_FILENAME = "manifest.json"
SUMMARY_FILENAME = "summary.json"

_OUTPUT_EXTENSIONS: dict[str, str] = {"markdown": "md", "json": "json"}
_PERIOD_KEY_PATTERN = re.compile(r"/(\d{4}-\d{2})\.json$")


def report_base_key(
    prefix: str, owner_type: str, owner: str, job_id: str, slot_key: str
) -> str:
    """Return the key prefix holding every artifact of one slot run."""
    return f"{prefix}/{owner_type}/{owner}/{job_id}/{slot_key}"


def index_base_key(prefix: str, owner_type: str, owner: str, job_id: str) -> str:
    """Return the key prefix holding a job's monthly index files."""
    return f"{prefix}/{INDEX_SEGMENT}/{owner_type}/{owner}/{job_id}"


def jobs_registry_key(prefix: str, owner_type: str, owner: str) -> str:
    """Return the key of an owner's job registry document."""
    return f"{prefix}/{INDEX_SEGMENT}/{owner_type}/{owner}/{JOBS_REGISTRY_FILENAME}"


def manifest_key(base_key: str) -> str:
    """Return the manifest key under a report base key."""
    return f"{base_key}/{MANIFEST_FILENAME}"


def summary_key(base_key: str) -> str:
    """Return the summary key under a report base key."""
    return f"{base_key}/{SUMMARY_FILENAME}"


def output_extension(output_format: str) -> str:
    """Return the file extension used for an output format."""
    return _OUTPUT_EXTENSIONS.get(output_format, "md")


def output_key(base_key: str, output_format: str) -> str:
    """Return the output artifact key under a report base key."""
    return f"{base_key}/output.{output_extension(output_format)}"


def month_index_key(index_base: str, period: str) -> str:
    """Return the monthly index file key for ``period`` (``YYYY-MM``)."""
    return f"{index_base}/{period}.json"


def latest_key(index_base: str) -> str:
    """Return the latest-pointer key under an index base."""
    return f"{index_base}/{LATEST_FILENAME}"


def month_key(instant: dt.datetime, time_zone: str) -> str:
    """Return the ``YYYY-MM`` calendar month of ``instant`` in ``time_zone``."""
    local = ensure_utc(instant).astimezone(resolve_time_zone(time_zone))
    return f"{local.year:04d}-{local.month:02d}"


def month_keys_between(
    start: dt.datetime, end: dt.datetime, time_zone: str
) -> list[str]:
    """Return every ``YYYY-MM`` period touched by ``[start, end]``, sorted.

    Walks the range in whole-day steps, always including the month of
    ``end`` itself.
    """
    months: set[str] = set()
    cursor = ensure_utc(start)
    stop = ensure_utc(end)
    while cursor <= stop:
        months.add(month_key(cursor, time_zone))
        cursor += dt.timedelta(days=1)
    months.add(month_key(stop, time_zone))
    return sorted(months)


def period_from_key(key: str) -> str | None:
    """Return the ``YYYY-MM`` period encoded in a monthly index key."""
    match = _PERIOD_KEY_PATTERN.search(key)
    return match.group(1) if match else None


def periods_from_keys(keys: cabc.Iterable[str]) -> list[str]:
    """Return the distinct monthly periods among ``keys``, sorted."""
    return sorted({period for key in keys if (period := period_from_key(key))})
