"""Prompt templates for report generation."""

from __future__ import annotations

import typing as typ

import msgspec

from cadence.generation.models import AggregateRequest, OutputFormat

if typ.TYPE_CHECKING:
    from cadence.generation.models import ReportRequest

BASE_PROMPT = """\
You are a helpful reporter that summarizes GitHub activity.

Return the response in the requested format. Be concise and factual. \
Highlight notable changes and themes.
If repositories have no commits in the window, do not list them individually; \
instead report a single line with the count.
Use any repository context provided (overview, README, llm.txt, diff summaries, \
diff snippets) and any pull request and issue data to explain what the project \
is and what changed.
"""

AGGREGATE_PROMPT = """\
You are a helpful reporter that summarizes a set of GitHub activity reports.

Return the response in the requested format. Be concise and factual. \
Highlight notable changes and themes across the window.
Do not invent details; only summarize what is present in the source reports.
"""

TEMPLATES: dict[str, str] = {
    "dev-diary": (
        "Write a very short dev diary entry (2-4 short paragraphs).\n"
        "Tone: personal, casual, easy to read quickly.\n"
        "Mention concrete changes and focus on what was done and why it matters."
    ),
    "changelog": (
        "Write a changelog-style report with short bullets and commit highlights.\n"
        "Use sections: Added, Changed, Fixed, Docs, DevOps.\n"
        "Keep wording minimal and factual."
    ),
    "twitter": (
        "Write a single post under 280 characters.\n"
        "Include the repo name and 1-2 concrete changes."
    ),
}


def template_instructions(template_id: str | None) -> str | None:
    """Return the instructions of a named template, if it exists."""
    if template_id is None:
        return None
    return TEMPLATES.get(template_id)


def _format_section(request: ReportRequest | AggregateRequest) -> list[str]:
    lines = [f"Output format: {request.output_format.value}"]
    if request.output_format is OutputFormat.JSON:
        lines.append("Respond with a single JSON object and nothing else.")
    if request.max_tokens_hint:
        lines.append(f"Keep the output under {request.max_tokens_hint} tokens.")
    return lines


def build_system_prompt(request: ReportRequest | AggregateRequest) -> str:
    """Return the system prompt for ``request``."""
    if request.prompt_template:
        return request.prompt_template
    if isinstance(request, AggregateRequest):
        return AGGREGATE_PROMPT
    return BASE_PROMPT


def build_user_prompt(request: ReportRequest | AggregateRequest) -> str:
    """Render the activity data of ``request`` as the user message."""
    sections = [
        f"Owner: {request.owner} ({request.owner_type.value})",
        f"Window: {request.window.start} to {request.window.end}",
    ]
    if isinstance(request, AggregateRequest):
        sections.append(f"Source job: {request.source_job_id}")
        sections.append("## Source reports")
        sections.extend(f"# {item.date}\n{item.content}" for item in request.items)
    else:
        if request.inactive_repo_count:
            sections.append(
                f"Repositories without activity: {request.inactive_repo_count}"
            )
        data = msgspec.json.format(msgspec.json.encode(request.repos), indent=2)
        sections.append("## Data")
        sections.append(data.decode("utf-8"))
    sections.extend(_format_section(request))
    return "\n\n".join(sections)
