"""Activity structures returned by an :class:`ActivitySource`."""

from __future__ import annotations

import msgspec

from cadence.records.models import OwnerType  # noqa: TC001


class ActivityScope(msgspec.Struct, kw_only=True, frozen=True):
    """Which repositories of an owner to fetch activity for.

    Attributes
    ----------
    owner
        GitHub user or organisation login.
    owner_type
        Whether ``owner`` is a user or an organisation.
    allowlist
        Repository names to include; empty means every repository.
    blocklist
        Repository names to exclude.
    include_private
        Whether private repositories are fetched.
    include_commit_details
        Whether per-commit line counts and changed paths are fetched.

    """

    owner: str
    owner_type: OwnerType
    allowlist: tuple[str, ...] = ()
    blocklist: tuple[str, ...] = ()
    include_private: bool = False
    include_commit_details: bool = False


class RepoRef(msgspec.Struct, kw_only=True, frozen=True):
    """Repository identity."""

    name: str
    private: bool = False
    html_url: str = ""


class CommitSummary(msgspec.Struct, kw_only=True, frozen=True):
    """One commit inside the activity window."""

    sha: str
    message: str
    author: str
    date: str
    url: str = ""
    additions: int | None = None
    deletions: int | None = None
    files: tuple[str, ...] = ()


class PullRequestSummary(msgspec.Struct, kw_only=True, frozen=True):
    """One pull request updated inside the activity window."""

    number: int
    title: str
    state: str
    author: str | None
    created_at: str
    url: str = ""
    merged_at: str | None = None
    closed_at: str | None = None
    merged_by: str | None = None


class IssueSummary(msgspec.Struct, kw_only=True, frozen=True):
    """One issue updated inside the activity window."""

    number: int
    title: str
    state: str
    author: str | None
    created_at: str
    url: str = ""
    closed_at: str | None = None
    closed_by: str | None = None


class RepoOverview(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Descriptive text of a repository gathered by context providers."""

    description: str | None = None
    topics: tuple[str, ...] | None = None
    readme: str | None = None
    llm_txt: str | None = None


class DiffFileSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Line counts of one file changed by a commit."""

    path: str
    additions: int = 0
    deletions: int = 0


class CommitDiffSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Changed files and line totals of one commit."""

    sha: str
    files: tuple[DiffFileSummary, ...] = ()
    total_additions: int = 0
    total_deletions: int = 0


class DiffSnippetFile(msgspec.Struct, kw_only=True, frozen=True):
    """Truncated patch of one changed file."""

    path: str
    patch: str


class CommitDiffSnippet(msgspec.Struct, kw_only=True, frozen=True):
    """Patch excerpts of one commit."""

    sha: str
    files: tuple[DiffSnippetFile, ...] = ()


class RepoContext(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Extra material about a repository handed to the report generator.

    Attributes
    ----------
    overview
        Description, topics, README and ``llm.txt`` text.
    diff_summary
        Per-commit changed files with line counts.
    diff_snippets
        Per-commit patch excerpts, bounded by a byte budget per repository.

    """

    overview: RepoOverview | None = None
    diff_summary: tuple[CommitDiffSummary, ...] = ()
    diff_snippets: tuple[CommitDiffSnippet, ...] = ()


class RepoActivity(msgspec.Struct, kw_only=True, frozen=True):
    """Activity of one repository in a window.

    ``context`` is filled in by context providers after filtering and stays
    ``None`` for jobs that run none.
    """

    repo: RepoRef
    commits: tuple[CommitSummary, ...] = ()
    pull_requests: tuple[PullRequestSummary, ...] = ()
    issues: tuple[IssueSummary, ...] = ()
    context: RepoContext | None = None

    @property
    def is_active(self) -> bool:
        """Return whether the repository has any commits in the window."""
        return bool(self.commits)


class ActivityMeta(msgspec.Struct, kw_only=True, frozen=True):
    """Repository counts reported by a fetch for observability."""

    total_repos: int = 0
    filtered_repos: int = 0
    excluded_repos: int = 0


class RateLimitInfo(msgspec.Struct, kw_only=True, frozen=True):
    """Last rate-limit headers observed during a fetch."""

    limit: int | None = None
    remaining: int | None = None
    reset: int | None = None


class ActivityFetchResult(msgspec.Struct, kw_only=True, frozen=True):
    """Result of :meth:`ActivitySource.fetch`."""

    repos: tuple[RepoActivity, ...]
    meta: ActivityMeta = msgspec.field(default_factory=ActivityMeta)
    rate_limit: RateLimitInfo = msgspec.field(default_factory=RateLimitInfo)
