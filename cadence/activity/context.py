"""Context providers enriching repository activity for report prompts.

Providers run after a pipeline job's caps and filters, in registry order,
each across every reported repository. A provider failing after its retries
is recorded as not ok; the run continues with the context gathered so far.

Usage
-----
>>> repos, results = await enrich_repos_with_context(
...     client, "octo-org", repos, RetryPolicy(), allowlist=("readme",)
... )

"""

from __future__ import annotations

import base64
import binascii
import dataclasses as dc
import functools
import os
import time
import typing as typ

import httpx
import msgspec

from cadence.activity.errors import ActivitySourceError, GitHubAPIError
from cadence.activity.models import (
    CommitDiffSnippet,
    CommitDiffSummary,
    DiffFileSummary,
    DiffSnippetFile,
    RepoContext,
    RepoOverview,
)
from cadence.common.text import truncate_utf8, utf8_size
from cadence.logging import get_logger, log_debug, log_warning
from cadence.retry import with_retry

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from cadence.activity.models import RepoActivity
    from cadence.retry import RetryPolicy

logger = get_logger(__name__)

ENV_PREFIX = "CADENCE_CONTEXT_"
TRUNCATION_MARKER = "...[truncated]"
CONTEXT_ERRORS: tuple[type[Exception], ...] = (ActivitySourceError, httpx.HTTPError)

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@typ.runtime_checkable
class ContextClient(typ.Protocol):
    """Read access to the GitHub REST API used by context providers."""

    async def get_optional(self, path: str) -> typ.Any | None:  # noqa: ANN401
        """Return the JSON body at ``path``, or ``None`` when it does not exist."""
        ...


@dc.dataclass(frozen=True, slots=True)
class ContextSettings:
    """Switches and limits of the context providers.

    Each ``include_*`` flag enables one provider, or one part of the
    ``repo-overview`` provider. A job's ``contextProviders`` list can only
    narrow the enabled set.

    Attributes
    ----------
    max_readme_bytes
        UTF-8 bytes of README text kept per repository.
    max_llm_txt_bytes
        UTF-8 bytes of ``llm.txt`` text kept per repository.
    max_diff_commits_per_repo
        Leading commits of each repository summarised by ``diff-summary``.
    max_diff_files_per_commit
        Files listed per summarised commit.
    max_snippet_commits_per_repo
        Leading commits of each repository excerpted by ``diff-snippets``.
    max_snippet_files_per_commit
        Largest changed files excerpted per commit.
    max_snippet_lines_per_file
        Patch lines kept per file before the truncation marker.
    max_snippet_bytes_per_repo
        Byte budget shared by every excerpt of one repository.
    ignore_extensions
        File name suffixes never excerpted.

    """

    include_repo_description: bool = True
    include_repo_topics: bool = False
    include_readme: bool = True
    include_llm_txt: bool = True
    include_diff_summary: bool = True
    include_diff_snippets: bool = False
    max_readme_bytes: int = 12_000
    max_llm_txt_bytes: int = 8_000
    max_diff_commits_per_repo: int = 10
    max_diff_files_per_commit: int = 20
    max_snippet_commits_per_repo: int = 5
    max_snippet_files_per_commit: int = 3
    max_snippet_lines_per_file: int = 40
    max_snippet_bytes_per_repo: int = 8_000
    ignore_extensions: tuple[str, ...] = ()

    @classmethod
    def from_env(cls, env: cabc.Mapping[str, str] | None = None) -> ContextSettings:
        """Read ``CADENCE_CONTEXT_*`` overrides from ``env`` or ``os.environ``.

        Every field maps onto the upper-cased variable name, for example
        ``CADENCE_CONTEXT_INCLUDE_DIFF_SNIPPETS=true`` or
        ``CADENCE_CONTEXT_MAX_README_BYTES=4000``. ``IGNORE_EXTENSIONS`` is a
        comma-separated list.

        Raises
        ------
        ValueError
            If a flag is not a boolean word or a limit is not a positive
            integer.

        """
        source = os.environ if env is None else env
        overrides: dict[str, object] = {}
        for field in dc.fields(cls):
            name = f"{ENV_PREFIX}{field.name.upper()}"
            raw = source.get(name, "").strip()
            if not raw:
                continue
            if field.name == "ignore_extensions":
                overrides[field.name] = tuple(
                    part.strip() for part in raw.split(",") if part.strip()
                )
            elif field.name.startswith("include_"):
                overrides[field.name] = _parse_flag(name, raw)
            else:
                overrides[field.name] = _parse_limit(name, raw)
        return cls(**overrides)  # type: ignore[arg-type]


def _parse_flag(name: str, raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    msg = f"{name} must be a boolean, got: {raw!r}"
    raise ValueError(msg)


def _parse_limit(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{name} must be positive, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class ProviderArgs:
    """Inputs shared by every provider of one enrichment pass."""

    client: ContextClient
    owner: str
    settings: ContextSettings


@dc.dataclass(frozen=True, slots=True)
class ProviderResult:
    """Outcome of one provider across every repository."""

    name: str
    ok: bool
    duration_ms: int
    error: str | None = None


class ContextProvider(typ.Protocol):
    """Return the enriched context of one repository, or ``None`` if unchanged."""

    async def __call__(
        self, args: ProviderArgs, repo: RepoActivity
    ) -> RepoContext | None: ...


def _context_of(repo: RepoActivity) -> RepoContext:
    return repo.context if repo.context is not None else RepoContext()


def _with_overview(repo: RepoActivity, **changes: object) -> RepoContext:
    context = _context_of(repo)
    overview = context.overview if context.overview is not None else RepoOverview()
    return msgspec.structs.replace(
        context, overview=msgspec.structs.replace(overview, **changes)
    )


def _decode_content(payload: object, path: str) -> str:
    """Return the text of a GitHub contents payload."""
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
        raise GitHubAPIError.unexpected_payload(path)
    if payload.get("encoding", "base64") != "base64":
        return payload["content"]
    try:
        raw = base64.b64decode(payload["content"])
    except binascii.Error as exc:
        raise GitHubAPIError.unexpected_payload(path) from exc
    return raw.decode("utf-8", errors="replace")


def _repo_path(args: ProviderArgs, repo: RepoActivity) -> str:
    return f"/repos/{args.owner}/{repo.repo.name}"


async def repo_overview(args: ProviderArgs, repo: RepoActivity) -> RepoContext | None:
    """Add the repository description and topics."""
    settings = args.settings
    if not settings.include_repo_description and not settings.include_repo_topics:
        return None
    payload = await args.client.get_optional(_repo_path(args, repo))
    if not isinstance(payload, dict):
        return None
    changes: dict[str, object] = {}
    if settings.include_repo_description:
        changes["description"] = payload.get("description")
    if settings.include_repo_topics:
        changes["topics"] = tuple(
            topic for topic in payload.get("topics") or () if isinstance(topic, str)
        )
    return _with_overview(repo, **changes)


async def readme(args: ProviderArgs, repo: RepoActivity) -> RepoContext | None:
    """Add the README text, cut to ``max_readme_bytes``."""
    if not args.settings.include_readme:
        return None
    path = f"{_repo_path(args, repo)}/readme"
    payload = await args.client.get_optional(path)
    if payload is None:
        return None
    text = _decode_content(payload, path)
    return _with_overview(
        repo, readme=truncate_utf8(text, args.settings.max_readme_bytes)
    )


async def llm_txt(args: ProviderArgs, repo: RepoActivity) -> RepoContext | None:
    """Add the text of a root ``llm.txt``, cut to ``max_llm_txt_bytes``."""
    if not args.settings.include_llm_txt:
        return None
    path = f"{_repo_path(args, repo)}/contents/llm.txt"
    payload = await args.client.get_optional(path)
    if payload is None:
        return None
    text = _decode_content(payload, path)
    return _with_overview(
        repo, llm_txt=truncate_utf8(text, args.settings.max_llm_txt_bytes)
    )


async def _get_commit(
    args: ProviderArgs, repo: RepoActivity, sha: str
) -> dict[str, typ.Any] | None:
    path = f"{_repo_path(args, repo)}/commits/{sha}"
    payload = await args.client.get_optional(path)
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise GitHubAPIError.unexpected_payload(path)
    return payload


def _changed_files(payload: dict[str, typ.Any]) -> list[dict[str, typ.Any]]:
    return [
        entry
        for entry in payload.get("files") or ()
        if isinstance(entry, dict) and isinstance(entry.get("filename"), str)
    ]


async def diff_summary(args: ProviderArgs, repo: RepoActivity) -> RepoContext | None:
    """Add changed files and line totals of the leading commits."""
    settings = args.settings
    commits = repo.commits[: settings.max_diff_commits_per_repo]
    if not settings.include_diff_summary or not commits:
        return None
    summaries: list[CommitDiffSummary] = []
    for commit in commits:
        payload = await _get_commit(args, repo, commit.sha)
        if payload is None:
            continue
        stats = payload.get("stats") or {}
        files = _changed_files(payload)[: settings.max_diff_files_per_commit]
        summaries.append(
            CommitDiffSummary(
                sha=commit.sha,
                files=tuple(
                    DiffFileSummary(
                        path=entry["filename"],
                        additions=entry.get("additions") or 0,
                        deletions=entry.get("deletions") or 0,
                    )
                    for entry in files
                ),
                total_additions=stats.get("additions") or 0,
                total_deletions=stats.get("deletions") or 0,
            )
        )
    return msgspec.structs.replace(_context_of(repo), diff_summary=tuple(summaries))


def truncate_patch(patch: str, max_lines: int) -> str:
    """Keep the first ``max_lines`` lines of ``patch`` and mark the cut."""
    lines = patch.split("\n")
    if len(lines) <= max_lines:
        return patch
    return "\n".join([*lines[:max_lines], TRUNCATION_MARKER])


def _snippet_candidates(
    payload: dict[str, typ.Any], settings: ContextSettings
) -> list[dict[str, typ.Any]]:
    """Return the largest excerptable files of a commit, biggest first."""
    files = [
        entry
        for entry in _changed_files(payload)
        if entry.get("patch")
        and not any(
            entry["filename"].endswith(suffix) for suffix in settings.ignore_extensions
        )
    ]
    files.sort(
        key=lambda entry: (entry.get("additions") or 0) + (entry.get("deletions") or 0),
        reverse=True,
    )
    return files[: settings.max_snippet_files_per_commit]


async def diff_snippets(args: ProviderArgs, repo: RepoActivity) -> RepoContext | None:
    """Add patch excerpts of the leading commits within a per-repository budget.

    An excerpt larger than the remaining budget is left out and smaller ones
    after it may still fit.
    """
    settings = args.settings
    commits = repo.commits[: settings.max_snippet_commits_per_repo]
    if not settings.include_diff_snippets or not commits:
        return None
    budget = settings.max_snippet_bytes_per_repo
    snippets: list[CommitDiffSnippet] = []
    for commit in commits:
        if budget <= 0:
            break
        payload = await _get_commit(args, repo, commit.sha)
        if payload is None:
            continue
        files: list[DiffSnippetFile] = []
        for entry in _snippet_candidates(payload, settings):
            patch = truncate_patch(entry["patch"], settings.max_snippet_lines_per_file)
            size = utf8_size(patch)
            if size > budget:
                continue
            budget -= size
            files.append(DiffSnippetFile(path=entry["filename"], patch=patch))
        if files:
            snippets.append(CommitDiffSnippet(sha=commit.sha, files=tuple(files)))
    if not snippets:
        return None
    return msgspec.structs.replace(_context_of(repo), diff_snippets=tuple(snippets))


PROVIDERS: dict[str, ContextProvider] = {
    "repo-overview": repo_overview,
    "readme": readme,
    "llm-txt": llm_txt,
    "diff-summary": diff_summary,
    "diff-snippets": diff_snippets,
}


async def _run_provider(
    provider: ContextProvider,
    args: ProviderArgs,
    repos: cabc.Sequence[RepoActivity],
) -> list[RepoActivity]:
    enriched: list[RepoActivity] = []
    for repo in repos:
        context = await provider(args, repo)
        enriched.append(
            repo if context is None else msgspec.structs.replace(repo, context=context)
        )
    return enriched


async def enrich_repos_with_context(  # noqa: PLR0913
    client: ContextClient,
    owner: str,
    repos: cabc.Sequence[RepoActivity],
    policy: RetryPolicy,
    *,
    allowlist: cabc.Collection[str] | None = None,
    settings: ContextSettings | None = None,
) -> tuple[list[RepoActivity], list[ProviderResult]]:
    """Run the selected providers over ``repos`` in registry order.

    Parameters
    ----------
    client
        GitHub client the providers read from.
    owner
        Login owning every repository in ``repos``.
    repos
        Filtered activity to enrich.
    policy
        Retry budget applied to each provider as a whole.
    allowlist
        Provider names to run; ``None`` runs every registered provider.
    settings
        Switches and limits; defaults to :class:`ContextSettings`.

    Returns
    -------
    tuple[list[RepoActivity], list[ProviderResult]]
        Enriched repositories and one result per provider that ran.

    """
    args = ProviderArgs(
        client=client, owner=owner, settings=settings or ContextSettings()
    )
    current = list(repos)
    results: list[ProviderResult] = []
    for name, provider in PROVIDERS.items():
        if allowlist is not None and name not in allowlist:
            continue
        started_at = time.monotonic()
        try:
            current = await with_retry(
                functools.partial(_run_provider, provider, args, current),
                policy,
                retry_on=CONTEXT_ERRORS,
            )
        except CONTEXT_ERRORS as exc:
            duration_ms = int((time.monotonic() - started_at) * 1000)
            log_warning(
                logger,
                "Context provider %s failed for %s: %s",
                name,
                owner,
                exc,
            )
            results.append(
                ProviderResult(
                    name=name,
                    ok=False,
                    duration_ms=duration_ms,
                    error=str(exc) or type(exc).__name__,
                )
            )
            continue
        duration_ms = int((time.monotonic() - started_at) * 1000)
        log_debug(logger, "Context provider %s took %dms", name, duration_ms)
        results.append(ProviderResult(name=name, ok=True, duration_ms=duration_ms))
    return current, results
