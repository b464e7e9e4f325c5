"""GitHub REST implementation of :class:`ActivitySource`."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

import httpx

from cadence.activity.errors import GitHubAPIError, GitHubConfigError
from cadence.activity.models import (
    ActivityFetchResult,
    ActivityMeta,
    CommitSummary,
    IssueSummary,
    PullRequestSummary,
    RateLimitInfo,
    RepoActivity,
    RepoRef,
)
from cadence.common.time import parse_iso, to_iso_z
from cadence.logging import get_logger, log_debug, log_info
from cadence.records.models import OwnerType

if typ.TYPE_CHECKING:
    from cadence.activity.models import ActivityScope
    from cadence.config import AppConfig
    from cadence.scheduling.models import SlotWindow

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_HTTP_CONFLICT = 409
_UNKNOWN_AUTHOR = "unknown"


@dc.dataclass(frozen=True, slots=True)
class GitHubRESTConfig:
    """Configuration for the GitHub REST activity source."""

    token: str | None = None
    api_url: str = "https://api.github.com"
    per_page: int = 100
    max_pages: int = 5
    timeout_s: float = 20.0
    user_agent: str = "cadence/0.1"

    @classmethod
    def from_app_config(cls, config: AppConfig) -> GitHubRESTConfig:
        """Build the REST configuration from application settings."""
        return cls(
            token=config.github_token,
            api_url=config.github_api_url,
            per_page=config.github_per_page,
            max_pages=config.github_max_pages,
        )


@dc.dataclass(slots=True)
class _RateLimitTracker:
    """Fold rate-limit headers across responses.

    ``remaining`` keeps the lowest value observed, ``limit`` the first and
    ``reset`` the latest.
    """

    limit: int | None = None
    remaining: int | None = None
    reset: int | None = None

    def observe(self, headers: httpx.Headers) -> None:
        remaining = _header_int(headers, "x-ratelimit-remaining")
        limit = _header_int(headers, "x-ratelimit-limit")
        reset = _header_int(headers, "x-ratelimit-reset")
        if remaining is not None:
            self.remaining = (
                remaining if self.remaining is None else min(self.remaining, remaining)
            )
        if limit is not None and self.limit is None:
            self.limit = limit
        if reset is not None:
            self.reset = reset

    def snapshot(self) -> RateLimitInfo:
        return RateLimitInfo(
            limit=self.limit, remaining=self.remaining, reset=self.reset
        )


def _header_int(headers: httpx.Headers, name: str) -> int | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _maybe_login(value: object) -> str | None:
    if isinstance(value, dict):
        login = value.get("login")
        if isinstance(login, str):
            return login
    return None


def _in_window(value: str | None, window: SlotWindow) -> bool:
    if not value:
        return False
    instant = parse_iso(value)
    return window.start <= instant < window.end


def _repo_from_payload(raw: dict[str, typ.Any]) -> RepoRef:
    return RepoRef(
        name=str(raw.get("name", "")),
        private=bool(raw.get("private", False)),
        html_url=str(raw.get("html_url", "")),
    )


def _commit_from_payload(
    raw: dict[str, typ.Any], window: SlotWindow
) -> CommitSummary:
    commit = raw.get("commit") or {}
    author = commit.get("author") or {}
    stats = raw.get("stats") or {}
    files = raw.get("files") or []
    return CommitSummary(
        sha=str(raw.get("sha", "")),
        message=str(commit.get("message", "")),
        author=author.get("name") or _UNKNOWN_AUTHOR,
        date=author.get("date") or to_iso_z(window.end),
        url=str(raw.get("html_url", "")),
        additions=stats.get("additions"),
        deletions=stats.get("deletions"),
        files=tuple(
            entry["filename"]
            for entry in files
            if isinstance(entry, dict) and isinstance(entry.get("filename"), str)
        ),
    )


def _pull_request_from_payload(raw: dict[str, typ.Any]) -> PullRequestSummary:
    return PullRequestSummary(
        number=int(raw["number"]),
        title=str(raw.get("title", "")),
        state=str(raw.get("state", "")),
        author=_maybe_login(raw.get("user")),
        created_at=str(raw.get("created_at", "")),
        url=str(raw.get("html_url", "")),
        merged_at=raw.get("merged_at"),
        closed_at=raw.get("closed_at"),
        merged_by=_maybe_login(raw.get("merged_by")),
    )


def _issue_from_payload(raw: dict[str, typ.Any]) -> IssueSummary:
    return IssueSummary(
        number=int(raw["number"]),
        title=str(raw.get("title", "")),
        state=str(raw.get("state", "")),
        author=_maybe_login(raw.get("user")),
        created_at=str(raw.get("created_at", "")),
        url=str(raw.get("html_url", "")),
        closed_at=raw.get("closed_at"),
        closed_by=_maybe_login(raw.get("closed_by")),
    )


def _touched_in_window(raw: dict[str, typ.Any], window: SlotWindow) -> bool:
    """Return whether an issue or pull request was opened or closed in ``window``."""
    return any(
        _in_window(raw.get(field), window)
        for field in ("created_at", "closed_at", "merged_at")
    )


class GitHubActivitySource:
    """Fetch repository activity from the GitHub REST API.

    Repositories are listed for the scope's owner and filtered by the
    allowlist, blocklist and privacy flag. For each remaining repository the
    commits inside the window are listed, together with pull requests and
    issues opened, merged or closed inside the window. Every list endpoint is
    paginated up to ``max_pages`` pages.
    """

    def __init__(
        self,
        config: GitHubRESTConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the source with the provided API configuration."""
        if config.token is not None and not config.token.strip():
            raise GitHubConfigError.empty_token()
        if config.per_page < 1 or config.max_pages < 1:
            raise GitHubConfigError.invalid_page_settings(
                config.per_page, config.max_pages
            )

        headers = {
            "User-Agent": config.user_agent,
            "Accept": "application/vnd.github+json",
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.timeout_s,
            headers=headers,
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch(
        self, scope: ActivityScope, window: SlotWindow
    ) -> ActivityFetchResult:
        """Return activity for every repository in ``scope`` during ``window``."""
        rate_limit = _RateLimitTracker()
        listed = await self._list_repos(scope, rate_limit)
        selected = [repo for repo in listed if _in_scope(repo, scope)]
        log_info(
            logger,
            "Fetching activity for %s: %d of %d repositories selected",
            scope.owner,
            len(selected),
            len(listed),
        )

        results: list[RepoActivity] = []
        for repo in selected:
            commits = await self._list_commits(scope, repo, window, rate_limit)
            pull_requests = await self._list_pull_requests(
                scope.owner, repo, window, rate_limit
            )
            issues = await self._list_issues(scope.owner, repo, window, rate_limit)
            results.append(
                RepoActivity(
                    repo=repo,
                    commits=tuple(commits),
                    pull_requests=tuple(pull_requests),
                    issues=tuple(issues),
                )
            )

        return ActivityFetchResult(
            repos=tuple(results),
            meta=ActivityMeta(
                total_repos=len(listed),
                filtered_repos=len(selected),
                excluded_repos=len(listed) - len(selected),
            ),
            rate_limit=rate_limit.snapshot(),
        )

    async def get_optional(self, path: str) -> typ.Any | None:  # noqa: ANN401
        """Return the JSON body at ``path``, or ``None`` when GitHub answers 404.

        Used by context providers for READMEs, ``llm.txt`` files and commit
        details, any of which may be missing.
        """
        try:
            return await self._get_json(path, {}, _RateLimitTracker())
        except GitHubAPIError as exc:
            if exc.status_code != _HTTP_NOT_FOUND:
                raise
            log_debug(logger, "GET %s returned 404", path)
            return None

    async def _list_repos(
        self, scope: ActivityScope, rate_limit: _RateLimitTracker
    ) -> list[RepoRef]:
        if scope.owner_type is OwnerType.ORG:
            path = f"/orgs/{scope.owner}/repos"
            params: dict[str, typ.Any] = {"type": "all"}
        else:
            path = f"/users/{scope.owner}/repos"
            params = {}
        raw_repos = await self._paginate(path, params, rate_limit)
        return [_repo_from_payload(raw) for raw in raw_repos]

    async def _list_commits(
        self,
        scope: ActivityScope,
        repo: RepoRef,
        window: SlotWindow,
        rate_limit: _RateLimitTracker,
    ) -> list[CommitSummary]:
        path = f"/repos/{scope.owner}/{repo.name}/commits"
        params = {"since": to_iso_z(window.start), "until": to_iso_z(window.end)}
        try:
            raw_commits = await self._paginate(path, params, rate_limit)
        except GitHubAPIError as exc:
            # GitHub answers 409 Conflict for repositories without commits.
            if exc.status_code != _HTTP_CONFLICT:
                raise
            return []
        if scope.include_commit_details:
            raw_commits = [
                await self._get_json(f"{path}/{raw['sha']}", {}, rate_limit)
                for raw in raw_commits
                if isinstance(raw.get("sha"), str)
            ]
        return [_commit_from_payload(raw, window) for raw in raw_commits]

    async def _list_pull_requests(
        self,
        owner: str,
        repo: RepoRef,
        window: SlotWindow,
        rate_limit: _RateLimitTracker,
    ) -> list[PullRequestSummary]:
        path = f"/repos/{owner}/{repo.name}/pulls"
        params = {"state": "all", "sort": "updated", "direction": "desc"}
        pull_requests: list[PullRequestSummary] = []
        for raw in await self._paginate(
            path, params, rate_limit, stop_before=window.start
        ):
            if _touched_in_window(raw, window):
                pull_requests.append(_pull_request_from_payload(raw))
        return pull_requests

    async def _list_issues(
        self,
        owner: str,
        repo: RepoRef,
        window: SlotWindow,
        rate_limit: _RateLimitTracker,
    ) -> list[IssueSummary]:
        path = f"/repos/{owner}/{repo.name}/issues"
        params = {"state": "all", "since": to_iso_z(window.start)}
        return [
            _issue_from_payload(raw)
            for raw in await self._paginate(path, params, rate_limit)
            # The issues endpoint also lists pull requests.
            if "pull_request" not in raw and _touched_in_window(raw, window)
        ]

    async def _paginate(
        self,
        path: str,
        params: dict[str, typ.Any],
        rate_limit: _RateLimitTracker,
        *,
        stop_before: dt.datetime | None = None,
    ) -> list[dict[str, typ.Any]]:
        """Collect list items across pages.

        When ``stop_before`` is given, results are assumed ordered by
        ``updated_at`` descending and pagination stops at the first page
        containing an item last updated before it.
        """
        items: list[dict[str, typ.Any]] = []
        for page in range(1, self._config.max_pages + 1):
            payload = await self._get_json(
                path,
                {**params, "per_page": self._config.per_page, "page": page},
                rate_limit,
            )
            if not isinstance(payload, list):
                raise GitHubAPIError.unexpected_payload(path)
            page_items = [entry for entry in payload if isinstance(entry, dict)]
            items.extend(page_items)
            log_debug(
                logger, "GET %s page %d returned %d items", path, page, len(payload)
            )
            if len(payload) < self._config.per_page:
                break
            if stop_before is not None and any(
                parse_iso(entry["updated_at"]) < stop_before
                for entry in page_items
                if isinstance(entry.get("updated_at"), str)
            ):
                break
        return items

    async def _get_json(
        self,
        path: str,
        params: dict[str, typ.Any],
        rate_limit: _RateLimitTracker,
    ) -> typ.Any:  # noqa: ANN401
        response = await self._client.get(path, params=params)
        rate_limit.observe(response.headers)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(response.status_code, path)
        return response.json()


def _in_scope(repo: RepoRef, scope: ActivityScope) -> bool:
    if scope.allowlist and repo.name not in scope.allowlist:
        return False
    if repo.name in scope.blocklist:
        return False
    return scope.include_private or not repo.private
