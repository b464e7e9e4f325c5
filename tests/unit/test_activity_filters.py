"""Unit tests for activity filters, budgets and per-author statistics."""

from __future__ import annotations

import datetime as dt

import msgspec
import pytest

from cadence.activity.filters import (
    EMPTY_MARKDOWN_REPORT,
    AuthorFilter,
    apply_author_filters,
    apply_commit_budget,
    apply_redactions,
    apply_repo_caps,
    build_empty_report,
    is_empty_activity,
    split_inactive,
    summarize_activity,
)
from cadence.activity.models import (
    CommitDiffSnippet,
    CommitDiffSummary,
    DiffFileSummary,
    DiffSnippetFile,
    RepoContext,
)
from cadence.activity.stats import collect_activity_stats, encode_stats, is_empty_stats
from cadence.records.models import IndexWindow, OwnerType
from tests.helpers.activity import commit, issue, pull_request, repo_activity

WINDOW = IndexWindow(
    start="2024-11-02T00:00:00.000Z", end="2024-11-03T00:00:00.000Z", days=1
)


def _shas(repos: list) -> list[list[str]]:
    return [[c.sha for c in repo.commits] for repo in repos]


class TestCapsAndBudgets:
    """Tests for repository caps and the commit budget."""

    def test_repo_caps(self) -> None:
        """Repositories and per-repository commits are capped in order."""
        repos = [
            repo_activity("a", commits=[commit("1"), commit("2"), commit("3")]),
            repo_activity("b", commits=[commit("4")]),
            repo_activity("c", commits=[commit("5")]),
        ]

        capped = apply_repo_caps(repos, max_repos=2, max_commits_per_repo=2)

        assert _shas(capped) == [["1", "2"], ["4"]]

    def test_no_caps_keeps_everything(self) -> None:
        """Unset caps leave the activity untouched."""
        repos = [repo_activity("a", commits=[commit("1")])]
        assert apply_repo_caps(repos) == repos

    def test_commit_budget_is_spent_in_order(self) -> None:
        """Earlier repositories consume the budget first."""
        repos = [
            repo_activity("a", commits=[commit("1"), commit("2")]),
            repo_activity("b", commits=[commit("3"), commit("4")]),
            repo_activity("c", commits=[commit("5")]),
        ]

        budgeted = apply_commit_budget(repos, 3)

        assert _shas(budgeted) == [["1", "2"], ["3"], []]


class TestAuthorFilters:
    """Tests for author include, exclude and alias handling."""

    def test_exclude_drops_bot_activity(self) -> None:
        """Excluded authors lose commits, pull requests and issues."""
        repos = [
            repo_activity(
                "a",
                commits=[commit("1"), commit("2", author="dependabot[bot]")],
                pull_requests=[pull_request(1, author="dependabot[bot]")],
                issues=[issue(1, author="Dependabot[bot]")],
            )
        ]

        (filtered,) = apply_author_filters(
            repos, AuthorFilter(exclude=("dependabot[bot]",))
        )

        assert [c.sha for c in filtered.commits] == ["1"]
        assert filtered.pull_requests == ()
        assert filtered.issues == (), "Expected matching to ignore case."

    def test_include_list_resolves_aliases(self) -> None:
        """Included authors match through the alias map."""
        repos = [
            repo_activity(
                "a",
                commits=[
                    commit("1", author="Mona Lisa"),
                    commit("2", author="bob"),
                ],
            )
        ]
        author_filter = AuthorFilter(
            include=("octocat",), aliases={"Mona Lisa": "octocat"}
        )

        (filtered,) = apply_author_filters(repos, author_filter)

        assert [c.sha for c in filtered.commits] == ["1"]

    def test_noop_filter(self) -> None:
        """A filter without lists keeps every author."""
        assert AuthorFilter().is_noop


def test_redactions_remove_matching_paths() -> None:
    """Changed paths containing a redaction pattern are dropped."""
    repos = [
        repo_activity(
            "a",
            commits=[commit("1", files=("secrets/key.pem", "src/app.py"))],
        )
    ]

    (redacted,) = apply_redactions(repos, ["secrets/"])

    assert redacted.commits[0].files == ("src/app.py",)


def test_redactions_cover_repository_context() -> None:
    """Diff summaries and snippets lose redacted paths too."""
    context = RepoContext(
        diff_summary=(
            CommitDiffSummary(
                sha="1",
                files=(
                    DiffFileSummary(path="secrets/key.pem", additions=1),
                    DiffFileSummary(path="src/app.py", additions=2),
                ),
            ),
        ),
        diff_snippets=(
            CommitDiffSnippet(
                sha="1",
                files=(DiffSnippetFile(path="secrets/key.pem", patch="+KEY"),),
            ),
        ),
    )
    repo = msgspec.structs.replace(repo_activity("a"), context=context)

    (redacted,) = apply_redactions([repo], ["secrets/"])

    assert redacted.context is not None
    assert [f.path for f in redacted.context.diff_summary[0].files] == ["src/app.py"]
    assert redacted.context.diff_snippets[0].files == ()


@pytest.mark.parametrize(
    ("include_inactive", "expected"), [(False, ["busy"]), (True, ["busy", "idle"])]
)
def test_split_inactive(
    include_inactive: bool,  # noqa: FBT001
    expected: list[str],
) -> None:
    """Repositories without commits are dropped unless requested."""
    repos = [
        repo_activity("busy", commits=[commit()]),
        repo_activity("idle", issues=[issue()]),
    ]

    kept, inactive = split_inactive(repos, include_inactive=include_inactive)

    assert [repo.repo.name for repo in kept] == expected
    assert inactive == 1


class TestEmptyActivity:
    """Tests for empty-window detection and placeholders."""

    def test_summary_counts(self) -> None:
        """Totals count every activity kind."""
        stats = summarize_activity(
            [repo_activity("a", commits=[commit()], issues=[issue()])]
        )
        assert (stats.repos, stats.commits, stats.prs, stats.issues) == (1, 1, 0, 1)
        assert not is_empty_activity(stats)

    def test_window_without_activity_is_empty(self) -> None:
        """Repositories without activity make an empty window."""
        assert is_empty_activity(summarize_activity([repo_activity("a")]))

    def test_placeholder_formats(self) -> None:
        """Placeholders are rendered in the job's output format."""
        document = msgspec.json.decode(build_empty_report("json", "changelog"))

        assert document == {"empty": True, "template": "changelog"}
        assert build_empty_report("markdown", "changelog") == EMPTY_MARKDOWN_REPORT


class TestActivityStats:
    """Tests for per-author statistics documents."""

    def test_tallies_per_author(self) -> None:
        """Commits, merges and closures are credited to the right author."""
        repos = [
            repo_activity(
                "a",
                commits=[
                    commit("1", author="Mona Lisa", additions=3, deletions=1),
                    commit("2", author="octocat", date="2024-11-02T15:30:00Z"),
                    commit("3", author="bob"),
                ],
                pull_requests=[
                    pull_request(
                        1,
                        author="bob",
                        merged_at="2024-11-02T16:00:00Z",
                        merged_by="octocat",
                    )
                ],
                issues=[
                    issue(2, closed_at="2024-11-02T17:00:00Z", closed_by="bob"),
                ],
            )
        ]

        payload = collect_activity_stats(
            repos,
            owner="octocat",
            owner_type=OwnerType.USER,
            window=WINDOW,
            time_zone="Europe/Berlin",
            now=dt.datetime(2024, 11, 3, 1, tzinfo=dt.UTC),
            aliases={"Mona Lisa": "octocat"},
        )

        bob, octocat = payload.authors
        assert (octocat.login, octocat.commits, octocat.prs_merged) == (
            "octocat",
            2,
            1,
        )
        assert (octocat.additions, octocat.deletions) == (3, 1)
        assert octocat.activity_by_hour[11] == 1, "Expected 10:00Z to be 11:00 CET."
        assert octocat.activity_by_hour[16] == 1
        assert (bob.commits, bob.prs_authored, bob.issues_closed) == (1, 1, 1)
        assert payload.totals.commits == 3
        assert not is_empty_stats(payload)

    def test_encoded_document_is_camel_case(self) -> None:
        """Stats documents use camelCase keys."""
        payload = collect_activity_stats(
            [],
            owner="octocat",
            owner_type=OwnerType.USER,
            window=WINDOW,
            time_zone="UTC",
            now=dt.datetime(2024, 11, 3, tzinfo=dt.UTC),
        )

        document = msgspec.json.decode(encode_stats(payload))

        assert document["ownerType"] == "user"
        assert document["generatedAt"] == "2024-11-03T00:00:00.000Z"
        assert document["authors"] == []
        assert is_empty_stats(payload)
