"""Activity metrics and run statistics.

:func:`compute_metrics` derives per-run metrics from fetched activity,
:func:`aggregate_metrics` folds the metrics of several source runs into one
roll-up, and :func:`summarize_index_items` reports run counts, durations and
model usage over index items for the ``stats`` command.
"""

from __future__ import annotations

import collections
import dataclasses as dc
import math
import typing as typ

from cadence.records.models import (
    ContributorStats,
    RecordStatus,
    ReportMetrics,
    ReportMetricsTotals,
    RepoStats,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cadence.activity.models import RepoActivity
    from cadence.records.models import IndexItem

DEFAULT_TOP_N = 10
_P95 = 0.95


def _top_contributors(
    counts: collections.Counter[str], limit: int
) -> tuple[ContributorStats, ...]:
    ranked = sorted(counts.items(), key=lambda entry: (-entry[1], entry[0]))
    return tuple(
        ContributorStats(author=author, commits=commits)
        for author, commits in ranked[:limit]
    )


def _top_repos(repos: cabc.Iterable[RepoStats], limit: int) -> tuple[RepoStats, ...]:
    ranked = sorted(repos, key=lambda repo: (-repo.commits, repo.name))
    return tuple(ranked[:limit])


def compute_metrics(
    repos: cabc.Sequence[RepoActivity],
    *,
    top_contributors: int = DEFAULT_TOP_N,
    top_repos: int = DEFAULT_TOP_N,
    aliases: cabc.Mapping[str, str] | None = None,
) -> ReportMetrics:
    """Compute metric totals and leader boards for one window's activity."""
    alias_map = aliases or {}
    authors: collections.Counter[str] = collections.Counter()
    additions = deletions = 0
    prs_opened = prs_merged = prs_closed = 0
    issues_opened = issues_closed = 0
    repo_stats: list[RepoStats] = []

    for repo in repos:
        for commit in repo.commits:
            author = commit.author.strip()
            authors[alias_map.get(author, author)] += 1
            additions += commit.additions or 0
            deletions += commit.deletions or 0
        for pull in repo.pull_requests:
            prs_opened += 1
            if pull.merged_at:
                prs_merged += 1
            elif pull.closed_at:
                prs_closed += 1
        for issue in repo.issues:
            issues_opened += 1
            if issue.closed_at:
                issues_closed += 1
        repo_stats.append(
            RepoStats(
                name=repo.repo.name,
                commits=len(repo.commits),
                prs=len(repo.pull_requests),
                issues=len(repo.issues),
            )
        )

    totals = ReportMetricsTotals(
        repos=sum(1 for repo in repos if repo.commits),
        commits=sum(authors.values()),
        additions=additions,
        deletions=deletions,
        prs_opened=prs_opened,
        prs_merged=prs_merged,
        prs_closed=prs_closed,
        issues_opened=issues_opened,
        issues_closed=issues_closed,
        contributors=len(authors),
    )
    return ReportMetrics(
        totals=totals,
        top_contributors=_top_contributors(authors, top_contributors),
        top_repos=_top_repos(repo_stats, top_repos),
    )


def aggregate_metrics(
    sources: cabc.Sequence[ReportMetrics],
    *,
    top_contributors: int = DEFAULT_TOP_N,
    top_repos: int = DEFAULT_TOP_N,
) -> ReportMetrics | None:
    """Fold the metrics of several runs into one; ``None`` without sources.

    Contributor and repository counts are summed across the sources' leader
    boards, so a roll-up ranks only names that were top-N in some source.
    ``totals.contributors`` and ``totals.repos`` count distinct names seen.
    """
    if not sources:
        return None

    authors: collections.Counter[str] = collections.Counter()
    repos: dict[str, RepoStats] = {}
    sums: collections.Counter[str] = collections.Counter()
    summed_fields = (
        "commits",
        "additions",
        "deletions",
        "prs_opened",
        "prs_merged",
        "prs_closed",
        "issues_opened",
        "issues_closed",
    )
    for metrics in sources:
        for field in summed_fields:
            sums[field] += getattr(metrics.totals, field)
        for contributor in metrics.top_contributors:
            authors[contributor.author] += contributor.commits
        for repo in metrics.top_repos:
            previous = repos.get(repo.name)
            if previous is None:
                repos[repo.name] = repo
                continue
            repos[repo.name] = RepoStats(
                name=repo.name,
                commits=previous.commits + repo.commits,
                prs=previous.prs + repo.prs,
                issues=previous.issues + repo.issues,
            )

    totals = ReportMetricsTotals(
        repos=len(repos),
        contributors=len(authors),
        **{field: sums[field] for field in summed_fields},
    )
    return ReportMetrics(
        totals=totals,
        top_contributors=_top_contributors(authors, top_contributors),
        top_repos=_top_repos(repos.values(), top_repos),
    )


@dc.dataclass(frozen=True, slots=True)
class RunStatistics:
    """Counts, durations and model usage over a set of index items.

    Attributes
    ----------
    total
        Number of items.
    succeeded
        Items with ``status=success``.
    failed
        Items with ``status=failed``.
    empty
        Items recorded as empty.
    output_bytes
        Sum of output sizes.
    avg_duration_ms
        Mean duration over items that recorded one.
    max_duration_ms
        Longest recorded duration.
    p95_duration_ms
        Nearest-rank 95th percentile duration.
    input_tokens
        Total model input tokens.
    output_tokens
        Total model output tokens.
    models
        Number of runs per model identifier.

    """

    total: int
    succeeded: int
    failed: int
    empty: int
    output_bytes: int
    avg_duration_ms: float | None
    max_duration_ms: int | None
    p95_duration_ms: int | None
    input_tokens: int
    output_tokens: int
    models: dict[str, int]


def _percentile(sorted_values: cabc.Sequence[int], fraction: float) -> int:
    rank = max(1, math.ceil(fraction * len(sorted_values)))
    return sorted_values[rank - 1]


def summarize_index_items(items: cabc.Iterable[IndexItem]) -> RunStatistics:
    """Return :class:`RunStatistics` for ``items``."""
    materialised = list(items)
    durations = sorted(
        item.duration_ms for item in materialised if item.duration_ms is not None
    )
    models: collections.Counter[str] = collections.Counter(
        item.llm.model for item in materialised if item.llm is not None
    )
    return RunStatistics(
        total=len(materialised),
        succeeded=sum(1 for i in materialised if i.status is RecordStatus.SUCCESS),
        failed=sum(1 for i in materialised if i.status is RecordStatus.FAILED),
        empty=sum(1 for item in materialised if item.empty),
        output_bytes=sum(item.output_size for item in materialised),
        avg_duration_ms=(sum(durations) / len(durations)) if durations else None,
        max_duration_ms=durations[-1] if durations else None,
        p95_duration_ms=_percentile(durations, _P95) if durations else None,
        input_tokens=sum(
            item.llm.input_tokens or 0 for item in materialised if item.llm is not None
        ),
        output_tokens=sum(
            item.llm.output_tokens or 0 for item in materialised if item.llm is not None
        ),
        models=dict(sorted(models.items())),
    )
