"""Unit tests for the scheduled-run Dramatiq actor and broker selection."""

from __future__ import annotations

import datetime as dt
import sys
import typing as typ

import pytest
from dramatiq.brokers.stub import StubBroker

from cadence.runner.models import JobRunResult, RunStatus, SkipReason
from cadence.worker import run_scheduled_jobs_job
from cadence.worker._broker import (
    ALLOW_STUB_ENV,
    BrokerConfigError,
    select_broker,
    stub_broker_allowed,
)
from cadence.worker.actor import _parse_as_of_iso, broker, summarize_results
from tests.helpers.runs import write_jobs_file

if typ.TYPE_CHECKING:
    from pathlib import Path

    from tests.helpers.activity import StaticActivitySource


class TestBrokerSelection:
    """Tests for choosing the Dramatiq broker."""

    def test_actor_is_bound_to_stub_broker_under_pytest(self) -> None:
        """Test processes never need RabbitMQ."""
        assert isinstance(broker, StubBroker)
        assert run_scheduled_jobs_job.broker is broker

    def test_explicit_opt_in(self) -> None:
        """The stub broker can be requested outside pytest."""
        assert stub_broker_allowed({ALLOW_STUB_ENV: "Yes"})

    def test_production_without_url_is_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Outside tests a missing broker URL is an error."""
        monkeypatch.delitem(sys.modules, "pytest")

        with pytest.raises(BrokerConfigError, match="CADENCE_BROKER_URL"):
            select_broker({})


class TestParseAsOfIso:
    """Tests for _parse_as_of_iso."""

    def test_none(self) -> None:
        """No timestamp means now."""
        assert _parse_as_of_iso(None) is None

    def test_offset_is_normalised_to_utc(self) -> None:
        """Offsets are converted to UTC."""
        parsed = _parse_as_of_iso("2024-11-03T11:00:00+01:00")
        assert parsed == dt.datetime(2024, 11, 3, 10, tzinfo=dt.UTC)

    def test_naive_timestamp_is_rejected(self) -> None:
        """A timestamp without a zone is ambiguous."""
        with pytest.raises(ValueError, match="timezone information"):
            _parse_as_of_iso("2024-11-03T10:00:00")


def test_summarize_results() -> None:
    """Each job id maps to its status string."""
    results = [
        JobRunResult(job_id="daily", status=RunStatus.SUCCESS),
        JobRunResult(
            job_id="weekly", status=RunStatus.SKIPPED, reason=SkipReason.NOT_DUE
        ),
    ]

    assert summarize_results(results) == {"daily": "success", "weekly": "skipped"}


def test_actor_runs_due_jobs(
    clean_env: pytest.MonkeyPatch,
    tmp_path: Path,
    activity_source: StaticActivitySource,
) -> None:
    """The actor body runs every due job and reports their statuses."""
    clean_env.setenv("CADENCE_STORAGE_BACKEND", "memory")
    clean_env.setattr(
        "cadence.runtime._activity_source", lambda config: activity_source
    )
    jobs_file = write_jobs_file(tmp_path)

    summary = run_scheduled_jobs_job.fn(
        str(jobs_file), as_of_iso="2024-11-03T10:00:00Z"
    )

    assert summary == {"daily": "success"}
    ((_, window),) = activity_source.calls
    assert window.end == dt.datetime(2024, 11, 3, tzinfo=dt.UTC)
