"""Deterministic per-author statistics for ``stats`` jobs.

Stats jobs render fetched activity straight into a JSON document without a
report generator: per-author commit, line, pull request and issue counts plus
a 24-bucket histogram of commit times in the job's local time zone.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from cadence.common.time import parse_iso, to_iso_z
from cadence.records.models import IndexWindow, OwnerType  # noqa: TC001
from cadence.scheduling.slots import resolve_time_zone

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from cadence.activity.models import RepoActivity

HOURS_PER_DAY = 24
UNKNOWN_AUTHOR = "unknown"


class _Stats(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Base for stats document structs."""


class StatsTotals(_Stats):
    """Totals across every author in a stats document."""

    commits: int = 0
    additions: int = 0
    deletions: int = 0
    prs_authored: int = 0
    prs_merged: int = 0
    issues_closed: int = 0


class StatsAuthor(_Stats):
    """Activity attributed to one author.

    Attributes
    ----------
    login
        Alias-resolved author login.
    commits
        Commits authored in the window.
    additions
        Lines added across those commits.
    deletions
        Lines removed across those commits.
    prs_authored
        Pull requests opened by the author.
    prs_merged
        Pull requests merged by the author.
    issues_closed
        Issues closed by the author.
    activity_by_hour
        Commits per local hour of day, indexed ``0`` to ``23``.

    """

    login: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    prs_authored: int = 0
    prs_merged: int = 0
    issues_closed: int = 0
    activity_by_hour: tuple[int, ...] = (0,) * HOURS_PER_DAY


class StatsPayload(_Stats):
    """The artifact written by a ``stats`` job."""

    owner: str
    owner_type: OwnerType
    window: IndexWindow
    generated_at: str
    totals: StatsTotals
    authors: tuple[StatsAuthor, ...]


@dc.dataclass(slots=True)
class _AuthorTally:
    login: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    prs_authored: int = 0
    prs_merged: int = 0
    issues_closed: int = 0
    hours: list[int] = dc.field(default_factory=lambda: [0] * HOURS_PER_DAY)

    def freeze(self) -> StatsAuthor:
        return StatsAuthor(
            login=self.login,
            commits=self.commits,
            additions=self.additions,
            deletions=self.deletions,
            prs_authored=self.prs_authored,
            prs_merged=self.prs_merged,
            issues_closed=self.issues_closed,
            activity_by_hour=tuple(self.hours),
        )


class _Tallies:
    """Author tallies keyed case-insensitively on the resolved login."""

    def __init__(self, aliases: cabc.Mapping[str, str]) -> None:
        self._aliases = aliases
        self._by_key: dict[str, _AuthorTally] = {}

    def get(self, author: str | None) -> _AuthorTally:
        raw = (author or UNKNOWN_AUTHOR).strip() or UNKNOWN_AUTHOR
        login = self._aliases.get(raw, raw)
        key = login.lower()
        tally = self._by_key.get(key)
        if tally is None:
            tally = self._by_key[key] = _AuthorTally(login=login)
        return tally

    def frozen(self) -> tuple[StatsAuthor, ...]:
        ordered = sorted(self._by_key.values(), key=lambda t: t.login.lower())
        return tuple(tally.freeze() for tally in ordered)


def _totals(authors: cabc.Iterable[StatsAuthor]) -> StatsTotals:
    materialised = list(authors)
    return StatsTotals(
        commits=sum(a.commits for a in materialised),
        additions=sum(a.additions for a in materialised),
        deletions=sum(a.deletions for a in materialised),
        prs_authored=sum(a.prs_authored for a in materialised),
        prs_merged=sum(a.prs_merged for a in materialised),
        issues_closed=sum(a.issues_closed for a in materialised),
    )


def collect_activity_stats(  # noqa: PLR0913
    repos: cabc.Iterable[RepoActivity],
    *,
    owner: str,
    owner_type: OwnerType,
    window: IndexWindow,
    time_zone: str,
    now: dt.datetime,
    aliases: cabc.Mapping[str, str] | None = None,
) -> StatsPayload:
    """Tally per-author statistics over ``repos``.

    Commits are credited to their author and bucketed by the local hour of
    the commit date in ``time_zone``. Pull requests count once for their
    author and once for whoever merged them; issues count for whoever closed
    them. Authors are sorted by login, case-insensitively.

    Parameters
    ----------
    repos
        Filtered repository activity of the window.
    owner
        Owner login stamped on the document.
    owner_type
        Owner account kind.
    window
        Persisted window of the slot.
    time_zone
        IANA zone used for the hour-of-day histogram.
    now
        Generation instant stamped as ``generatedAt``.
    aliases
        Map of raw author names onto canonical logins.

    Returns
    -------
    StatsPayload
        The stats document.

    """
    zone = resolve_time_zone(time_zone)
    tallies = _Tallies(aliases or {})
    for repo in repos:
        for commit in repo.commits:
            tally = tallies.get(commit.author)
            tally.commits += 1
            tally.additions += commit.additions or 0
            tally.deletions += commit.deletions or 0
            if commit.date:
                tally.hours[parse_iso(commit.date).astimezone(zone).hour] += 1
        for pull in repo.pull_requests:
            tallies.get(pull.author).prs_authored += 1
            if pull.merged_by:
                tallies.get(pull.merged_by).prs_merged += 1
        for issue in repo.issues:
            if issue.closed_by:
                tallies.get(issue.closed_by).issues_closed += 1

    authors = tallies.frozen()
    return StatsPayload(
        owner=owner,
        owner_type=owner_type,
        window=window,
        generated_at=to_iso_z(now),
        totals=_totals(authors),
        authors=authors,
    )


def is_empty_stats(payload: StatsPayload) -> bool:
    """Return whether a stats document recorded no activity."""
    totals = payload.totals
    return not (totals.commits or totals.prs_authored or totals.issues_closed)


def encode_stats(payload: StatsPayload) -> str:
    """Encode ``payload`` as indented JSON text."""
    return msgspec.json.format(msgspec.json.encode(payload), indent=2).decode("utf-8")
