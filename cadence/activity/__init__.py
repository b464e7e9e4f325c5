"""Repository activity fetching and filtering."""

from __future__ import annotations

from .context import (
    PROVIDERS,
    ContextClient,
    ContextSettings,
    ProviderResult,
    enrich_repos_with_context,
)
from .errors import ActivitySourceError, GitHubAPIError, GitHubConfigError
from .github import GitHubActivitySource, GitHubRESTConfig
from .models import (
    ActivityFetchResult,
    ActivityMeta,
    ActivityScope,
    CommitDiffSnippet,
    CommitDiffSummary,
    CommitSummary,
    DiffFileSummary,
    DiffSnippetFile,
    IssueSummary,
    PullRequestSummary,
    RateLimitInfo,
    RepoActivity,
    RepoContext,
    RepoOverview,
    RepoRef,
)
from .protocol import ActivitySource
from .stats import StatsAuthor, StatsPayload, StatsTotals, collect_activity_stats

__all__ = [
    "PROVIDERS",
    "ActivityFetchResult",
    "ActivityMeta",
    "ActivityScope",
    "ActivitySource",
    "ActivitySourceError",
    "CommitDiffSnippet",
    "CommitDiffSummary",
    "CommitSummary",
    "ContextClient",
    "ContextSettings",
    "DiffFileSummary",
    "DiffSnippetFile",
    "GitHubAPIError",
    "GitHubActivitySource",
    "GitHubConfigError",
    "GitHubRESTConfig",
    "IssueSummary",
    "ProviderResult",
    "PullRequestSummary",
    "RateLimitInfo",
    "RepoActivity",
    "RepoContext",
    "RepoOverview",
    "RepoRef",
    "StatsAuthor",
    "StatsPayload",
    "StatsTotals",
    "collect_activity_stats",
    "enrich_repos_with_context",
]
