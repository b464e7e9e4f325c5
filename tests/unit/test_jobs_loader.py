"""Unit tests for loading and validating job definition files."""

from __future__ import annotations

import textwrap
import typing as typ

import pytest

from cadence.jobs import JobConfigError, JobMode, OnEmptyPolicy, load_jobs
from cadence.jobs.loader import find_job, select_jobs
from cadence.records.models import OwnerType
from cadence.scheduling.models import SlotType

if typ.TYPE_CHECKING:
    from pathlib import Path


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "jobs.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


_MINIMAL = """\
    jobs:
      - id: daily
        name: Daily
        scope:
          owner: octocat
"""


class TestLoadJobs:
    """Tests for load_jobs."""

    def test_example_file_loads(self, repo_root: Path) -> None:
        """The shipped example parses with camelCase keys."""
        jobs = load_jobs(repo_root / "jobs.example.yaml")

        daily, weekly, stats = jobs
        assert daily.scope.owner_type is OwnerType.ORG
        assert daily.scope.exclude_authors == ("dependabot[bot]",)
        assert daily.backfill_slots == 2
        assert daily.on_empty is OnEmptyPolicy.PLACEHOLDER
        assert daily.context_providers == ("repo-overview", "readme", "diff-summary")
        assert weekly.mode is JobMode.AGGREGATE
        assert weekly.aggregation.source_job_id == "daily-digest"
        assert weekly.effective_schedule.type is SlotType.WEEKLY
        assert stats.mode is JobMode.STATS
        assert stats.schedule is not None
        assert stats.schedule.day_of_month == 31
        assert stats.scope.author_aliases == {"Mona Lisa Octocat": "octocat"}

    def test_defaults(self, tmp_path: Path) -> None:
        """Unset fields take their documented defaults."""
        (job,) = load_jobs(_write(tmp_path, _MINIMAL))

        assert job.scope.owner_type is OwnerType.USER
        assert job.mode is JobMode.PIPELINE
        assert job.on_empty is OnEmptyPolicy.MANIFEST_ONLY
        assert job.context_providers is None
        assert job.schedule is None
        assert job.effective_schedule.type is SlotType.DAILY
        assert job.prefix("reports") == "reports"

    @pytest.mark.parametrize(
        ("body", "message"),
        [
            pytest.param("", "jobs file is empty", id="empty"),
            pytest.param("jobs: [\n", "failed to parse YAML", id="bad-yaml"),
            pytest.param(
                "jobs:\n  - id: x\n", "schema validation failed", id="missing-fields"
            ),
            pytest.param("jobs: []\n", "at least one job", id="no-jobs"),
        ],
    )
    def test_rejects_unusable_files(
        self, tmp_path: Path, body: str, message: str
    ) -> None:
        """Files that cannot produce jobs are rejected."""
        with pytest.raises(JobConfigError, match=message):
            load_jobs(_write(tmp_path, body))

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is reported as a configuration error."""
        with pytest.raises(JobConfigError, match="failed to parse YAML"):
            load_jobs(tmp_path / "absent.yaml")

    def test_collects_every_issue(self, tmp_path: Path) -> None:
        """Validation reports every problem at once."""
        body = """\
            jobs:
              - id: Bad_Id
                name: " "
                scope:
                  owner: octocat
                schedule:
                  type: daily
                  hour: 24
                backfillSlots: -1
                maxRepos: 0
                template: limerick
                contextProviders: [readme, horoscope]
              - id: roll
                name: Roll
                mode: aggregate
                scope:
                  owner: octocat
                aggregation:
                  sourceJobId: roll
              - id: roll
                name: Roll again
                scope:
                  owner: octocat
        """

        with pytest.raises(JobConfigError) as excinfo:
            load_jobs(_write(tmp_path, body))

        issues = excinfo.value.issues
        assert "job.id 'Bad_Id' must be a lowercase slug" in issues
        assert "job Bad_Id is missing a name" in issues
        assert "job Bad_Id.schedule.hour must be between 0 and 23" in issues
        assert "job Bad_Id.backfillSlots must be >= 0" in issues
        assert "job Bad_Id.max_repos must be a positive integer" in issues
        assert "job Bad_Id references unknown template 'limerick'" in issues
        assert "job Bad_Id references unknown context provider 'horoscope'" in issues
        assert "job roll cannot aggregate its own output" in issues
        assert "duplicate job 'roll' for user octocat" in issues
        assert str(excinfo.value).count("\n") == len(issues) - 1

    def test_duplicate_keys_are_rejected(self, tmp_path: Path) -> None:
        """Repeated mapping keys fail to parse."""
        body = """\
            jobs:
              - id: a
                id: b
                name: A
                scope:
                  owner: octocat
        """
        with pytest.raises(JobConfigError, match="failed to parse YAML"):
            load_jobs(_write(tmp_path, body))


class TestSelectJobs:
    """Tests for job selection by id."""

    def test_selects_in_file_order(self, repo_root: Path) -> None:
        """Selected jobs keep the order of the file."""
        jobs = load_jobs(repo_root / "jobs.example.yaml")

        selected = select_jobs(jobs, ["monthly-stats", "daily-digest"])

        assert [job.id for job in selected] == ["daily-digest", "monthly-stats"]
        assert select_jobs(jobs, None) == jobs

    def test_unknown_ids_are_reported(self, repo_root: Path) -> None:
        """Unknown ids are listed in the error."""
        jobs = load_jobs(repo_root / "jobs.example.yaml")

        with pytest.raises(JobConfigError) as excinfo:
            select_jobs(jobs, ["nope", "daily-digest", "gone"])

        assert excinfo.value.issues == ["unknown job 'nope'", "unknown job 'gone'"]

    def test_find_job(self, repo_root: Path) -> None:
        """find_job returns a single job by id."""
        jobs = load_jobs(repo_root / "jobs.example.yaml")
        assert find_job(jobs, "weekly-rollup").name == "Weekly roll-up"
