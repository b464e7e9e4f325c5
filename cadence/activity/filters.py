"""Filters and budgets applied to fetched activity before reporting.

Every function returns new structs; fetched activity is never mutated.
Filters run in a fixed order in the pipeline processor: repository caps,
the total commit budget, author filters, context enrichment, then path
redaction.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from cadence.records.models import ManifestStats

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cadence.activity.models import RepoActivity, RepoContext

EMPTY_MARKDOWN_REPORT = "# No activity\n\nNo activity recorded for this window."


@dc.dataclass(frozen=True, slots=True)
class AuthorFilter:
    """Author include and exclude lists with an alias map.

    Attributes
    ----------
    include
        Authors whose activity is kept; empty keeps every author not
        excluded.
    exclude
        Authors whose activity is dropped.
    aliases
        Raw author names mapped onto canonical names before matching.

    """

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    aliases: cabc.Mapping[str, str] = dc.field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        """Return whether the filter keeps every author."""
        return not self.include and not self.exclude


def normalize_author(
    author: str | None, aliases: cabc.Mapping[str, str] | None = None
) -> str:
    """Return the alias-resolved, lower-cased form of ``author``."""
    if not author:
        return ""
    trimmed = author.strip()
    mapped = (aliases or {}).get(trimmed, trimmed)
    return mapped.lower()


def normalize_authors(
    authors: cabc.Iterable[str], aliases: cabc.Mapping[str, str] | None = None
) -> frozenset[str]:
    """Return the normalised set of ``authors``."""
    return frozenset(normalize_author(author, aliases) for author in authors)


def apply_repo_caps(
    repos: cabc.Sequence[RepoActivity],
    *,
    max_repos: int | None = None,
    max_commits_per_repo: int | None = None,
) -> list[RepoActivity]:
    """Keep the first ``max_repos`` repositories and trim each one's commits."""
    capped = list(repos[:max_repos] if max_repos else repos)
    if not max_commits_per_repo:
        return capped
    return [
        msgspec.structs.replace(repo, commits=repo.commits[:max_commits_per_repo])
        for repo in capped
    ]


def apply_commit_budget(
    repos: cabc.Sequence[RepoActivity], max_total_commits: int | None = None
) -> list[RepoActivity]:
    """Spend a commit budget across repositories in order.

    Repositories earlier in the sequence keep their commits first; once the
    budget is exhausted later repositories keep none.
    """
    if not max_total_commits:
        return list(repos)
    remaining = max_total_commits
    budgeted: list[RepoActivity] = []
    for repo in repos:
        kept = repo.commits[: max(remaining, 0)]
        remaining -= len(kept)
        budgeted.append(msgspec.structs.replace(repo, commits=kept))
    return budgeted


def _keeps(author: str | None, author_filter: AuthorFilter) -> bool:
    include = normalize_authors(author_filter.include, author_filter.aliases)
    exclude = normalize_authors(author_filter.exclude, author_filter.aliases)
    normalized = normalize_author(author, author_filter.aliases)
    if normalized in exclude:
        return False
    return not include or normalized in include


def apply_author_filters(
    repos: cabc.Sequence[RepoActivity], author_filter: AuthorFilter
) -> list[RepoActivity]:
    """Drop commits, pull requests and issues by filtered-out authors."""
    if author_filter.is_noop:
        return list(repos)
    return [
        msgspec.structs.replace(
            repo,
            commits=tuple(c for c in repo.commits if _keeps(c.author, author_filter)),
            pull_requests=tuple(
                pr for pr in repo.pull_requests if _keeps(pr.author, author_filter)
            ),
            issues=tuple(i for i in repo.issues if _keeps(i.author, author_filter)),
        )
        for repo in repos
    ]


def matches_any(path: str, patterns: cabc.Iterable[str]) -> bool:
    """Return whether ``path`` contains any of ``patterns``."""
    return any(pattern in path for pattern in patterns)


def _redact_context(
    context: RepoContext, redact_paths: cabc.Sequence[str]
) -> RepoContext:
    return msgspec.structs.replace(
        context,
        diff_summary=tuple(
            msgspec.structs.replace(
                summary,
                files=tuple(
                    entry
                    for entry in summary.files
                    if not matches_any(entry.path, redact_paths)
                ),
            )
            for summary in context.diff_summary
        ),
        diff_snippets=tuple(
            msgspec.structs.replace(
                snippet,
                files=tuple(
                    entry
                    for entry in snippet.files
                    if not matches_any(entry.path, redact_paths)
                ),
            )
            for snippet in context.diff_snippets
        ),
    )


def apply_redactions(
    repos: cabc.Sequence[RepoActivity], redact_paths: cabc.Sequence[str] = ()
) -> list[RepoActivity]:
    """Remove changed paths matching any redaction pattern.

    Paths are dropped from commits and from the diff summaries and snippets
    of any repository context.
    """
    if not redact_paths:
        return list(repos)
    redacted: list[RepoActivity] = []
    for repo in repos:
        commits = tuple(
            msgspec.structs.replace(
                commit,
                files=tuple(
                    path for path in commit.files if not matches_any(path, redact_paths)
                ),
            )
            for commit in repo.commits
        )
        context = (
            _redact_context(repo.context, redact_paths)
            if repo.context is not None
            else None
        )
        redacted.append(
            msgspec.structs.replace(repo, commits=commits, context=context)
        )
    return redacted


def split_inactive(
    repos: cabc.Sequence[RepoActivity], *, include_inactive: bool
) -> tuple[list[RepoActivity], int]:
    """Return the repositories to report on and the count of inactive ones."""
    inactive = sum(1 for repo in repos if not repo.is_active)
    if include_inactive:
        return (list(repos), inactive)
    return ([repo for repo in repos if repo.is_active], inactive)


def summarize_activity(repos: cabc.Iterable[RepoActivity]) -> ManifestStats:
    """Return repository, commit, pull request and issue totals."""
    materialised = list(repos)
    return ManifestStats(
        repos=len(materialised),
        commits=sum(len(repo.commits) for repo in materialised),
        prs=sum(len(repo.pull_requests) for repo in materialised),
        issues=sum(len(repo.issues) for repo in materialised),
    )


def is_empty_activity(stats: ManifestStats) -> bool:
    """Return whether a window had no commits, pull requests or issues."""
    return stats.commits == 0 and stats.prs == 0 and stats.issues == 0


def build_empty_report(output_format: str, template_id: str) -> str:
    """Return the placeholder artifact written for empty windows."""
    if output_format == "json":
        return msgspec.json.format(
            msgspec.json.encode({"empty": True, "template": template_id}), indent=2
        ).decode("utf-8")
    return EMPTY_MARKDOWN_REPORT
