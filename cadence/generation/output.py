"""Normalisation of generated report text."""

from __future__ import annotations

import re

import msgspec

from cadence.generation.errors import ReportOutputValidationError
from cadence.generation.models import OutputFormat

_FENCED_BLOCK = re.compile(r"^```[a-zA-Z]*\n(?P<body>.*)\n```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a single Markdown code fence wrapping the whole text."""
    match = _FENCED_BLOCK.match(text)
    return match.group("body") if match else text


def normalize_output(text: str, output_format: OutputFormat) -> str:
    """Return ``text`` ready to be stored as an artifact of ``output_format``.

    Markdown is trimmed. JSON is unwrapped from a code fence if present,
    validated by decoding it, and re-encoded with two-space indentation.

    Raises
    ------
    ReportOutputValidationError
        If the text is blank, or JSON was requested and it does not parse.

    """
    trimmed = text.strip()
    if not trimmed:
        raise ReportOutputValidationError.empty_output()
    if output_format is not OutputFormat.JSON:
        return trimmed

    body = strip_code_fence(trimmed).strip()
    try:
        parsed = msgspec.json.decode(body)
    except msgspec.DecodeError as exc:
        raise ReportOutputValidationError.invalid_json(body) from exc
    return msgspec.json.format(msgspec.json.encode(parsed), indent=2).decode("utf-8")
