"""Mock implementation of ReportGenerator for testing and development."""

from __future__ import annotations

import msgspec

from cadence.generation.models import (
    AggregateRequest,
    GeneratedReport,
    OutputFormat,
    ReportRequest,
    TokenUsage,
)

MOCK_MODEL = "mock"


class MockReportGenerator:
    """Deterministic generator that renders request data without a model.

    Markdown output lists each repository with its commit, pull request and
    issue counts (or each source report for roll-ups). JSON output carries the
    same figures. Every request is recorded in :attr:`requests` so tests can
    assert on what the orchestrator asked for.

    Examples
    --------
    >>> import asyncio
    >>> generator = MockReportGenerator()
    >>> report = asyncio.run(generator.generate(request))
    >>> report.model
    'mock'

    """

    def __init__(self) -> None:
        """Initialise an empty request log."""
        self.requests: list[ReportRequest | AggregateRequest] = []

    async def generate(
        self, request: ReportRequest | AggregateRequest
    ) -> GeneratedReport:
        """Render ``request`` deterministically."""
        self.requests.append(request)
        if isinstance(request, AggregateRequest):
            text = self._render_aggregate(request)
        else:
            text = self._render_report(request)
        return GeneratedReport(
            text=text,
            format=request.output_format,
            model=MOCK_MODEL,
            usage=TokenUsage(input_tokens=0, output_tokens=0),
        )

    @staticmethod
    def _encode(payload: dict[str, object]) -> str:
        return msgspec.json.format(msgspec.json.encode(payload), indent=2).decode(
            "utf-8"
        )

    def _render_report(self, request: ReportRequest) -> str:
        rows = [
            {
                "name": repo.repo.name,
                "commits": len(repo.commits),
                "prs": len(repo.pull_requests),
                "issues": len(repo.issues),
            }
            for repo in request.repos
        ]
        if request.output_format is OutputFormat.JSON:
            return self._encode(
                {
                    "owner": request.owner,
                    "window": msgspec.to_builtins(request.window),
                    "repos": rows,
                }
            )

        lines = [
            f"# Activity for {request.owner}",
            "",
            f"{request.window.start} to {request.window.end}",
            "",
        ]
        lines.extend(
            f"- {row['name']}: {row['commits']} commits, {row['prs']} pull requests, "
            f"{row['issues']} issues"
            for row in rows
        )
        if request.inactive_repo_count:
            lines.append(
                f"- {request.inactive_repo_count} repositories without activity"
            )
        return "\n".join(lines)

    def _render_aggregate(self, request: AggregateRequest) -> str:
        if request.output_format is OutputFormat.JSON:
            return self._encode(
                {
                    "owner": request.owner,
                    "sourceJobId": request.source_job_id,
                    "window": msgspec.to_builtins(request.window),
                    "items": [item.date for item in request.items],
                }
            )

        lines = [
            f"# Roll-up of {request.source_job_id} for {request.owner}",
            "",
            f"{request.window.start} to {request.window.end}",
            "",
        ]
        lines.extend(
            f"- {item.date}: {len(item.content)} characters" for item in request.items
        )
        return "\n".join(lines)
