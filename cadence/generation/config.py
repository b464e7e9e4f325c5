"""Configuration for the OpenAI-compatible report generator."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

from cadence.generation.errors import ReportGeneratorConfigError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

ENV_PREFIX = "CADENCE_OPENAI_"

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_TIMEOUT_S = 120.0
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2048

TEMPERATURE_RANGE = (0.0, 2.0)


def _read_number[NumberT: (int, float)](
    env: cabc.Mapping[str, str],
    name: str,
    convert: typ.Callable[[str], NumberT],
    default: NumberT,
    *,
    accept: typ.Callable[[NumberT], bool],
    invalid: typ.Callable[[str], ReportGeneratorConfigError],
) -> NumberT:
    raw = env.get(f"{ENV_PREFIX}{name}")
    if raw is None or not raw.strip():
        return default
    try:
        value = convert(raw)
    except ValueError as exc:
        raise invalid(raw) from exc
    if not accept(value):
        raise invalid(raw)
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class OpenAIGeneratorConfig:
    """Connection and sampling settings of :class:`OpenAIReportGenerator`.

    Attributes
    ----------
    api_key
        Bearer token sent with every request.
    endpoint
        Chat completions URL; any OpenAI-compatible server works.
    model
        Model identifier recorded in manifests as ``llm.model``.
    timeout_s
        Per-request timeout in seconds.
    temperature
        Sampling temperature within ``TEMPERATURE_RANGE``.
    max_tokens
        Completion token ceiling.

    """

    api_key: str
    endpoint: str = DEFAULT_ENDPOINT
    model: str = DEFAULT_MODEL
    timeout_s: float = DEFAULT_TIMEOUT_S
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    @classmethod
    def from_env(
        cls, env: cabc.Mapping[str, str] | None = None
    ) -> OpenAIGeneratorConfig:
        """Read ``CADENCE_OPENAI_*`` settings from ``env`` or ``os.environ``.

        ``API_KEY`` is required. ``ENDPOINT``, ``MODEL``, ``TIMEOUT_S``,
        ``TEMPERATURE`` and ``MAX_TOKENS`` fall back to the module defaults
        when unset or blank.

        Raises
        ------
        ReportGeneratorConfigError
            If the key is missing or blank, or a numeric setting does not
            parse or is out of range.

        """
        source = os.environ if env is None else env
        raw_api_key = source.get(f"{ENV_PREFIX}API_KEY")
        if raw_api_key is None:
            raise ReportGeneratorConfigError.missing_api_key()
        if not raw_api_key.strip():
            raise ReportGeneratorConfigError.empty_api_key()

        low, high = TEMPERATURE_RANGE
        return cls(
            api_key=raw_api_key.strip(),
            endpoint=source.get(f"{ENV_PREFIX}ENDPOINT") or DEFAULT_ENDPOINT,
            model=source.get(f"{ENV_PREFIX}MODEL") or DEFAULT_MODEL,
            timeout_s=_read_number(
                source,
                "TIMEOUT_S",
                float,
                DEFAULT_TIMEOUT_S,
                accept=lambda value: value > 0,
                invalid=ReportGeneratorConfigError.invalid_timeout,
            ),
            temperature=_read_number(
                source,
                "TEMPERATURE",
                float,
                DEFAULT_TEMPERATURE,
                accept=lambda value: low <= value <= high,
                invalid=ReportGeneratorConfigError.invalid_temperature,
            ),
            max_tokens=_read_number(
                source,
                "MAX_TOKENS",
                int,
                DEFAULT_MAX_TOKENS,
                accept=lambda value: value > 0,
                invalid=ReportGeneratorConfigError.invalid_max_tokens,
            ),
        )
