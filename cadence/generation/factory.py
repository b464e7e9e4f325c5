"""Factory for creating ReportGenerator implementations from configuration."""

from __future__ import annotations

import typing as typ

from cadence.generation.errors import ReportGeneratorConfigError
from cadence.generation.mock import MockReportGenerator

if typ.TYPE_CHECKING:
    from cadence.config import AppConfig
    from cadence.generation.protocol import ReportGenerator

_VALID_BACKENDS = frozenset({"mock", "openai"})


def create_report_generator(config: AppConfig) -> ReportGenerator:
    """Create the ReportGenerator selected by ``config.generator_backend``.

    For the ``openai`` backend the following environment variables are also
    read:

    - ``CADENCE_OPENAI_API_KEY``: Required API key
    - ``CADENCE_OPENAI_ENDPOINT``: Optional endpoint override
    - ``CADENCE_OPENAI_MODEL``: Optional model override
    - ``CADENCE_OPENAI_TEMPERATURE``: Optional temperature (0.0-2.0)
    - ``CADENCE_OPENAI_MAX_TOKENS``: Optional max tokens (positive integer)

    Raises
    ------
    ReportGeneratorConfigError
        If the backend is invalid, or the OpenAI backend is selected and its
        configuration is invalid.

    Examples
    --------
    >>> generator = create_report_generator(AppConfig(generator_backend="mock"))
    >>> isinstance(generator, MockReportGenerator)
    True

    """
    backend = config.generator_backend.strip().lower()
    if backend not in _VALID_BACKENDS:
        raise ReportGeneratorConfigError.invalid_backend(
            config.generator_backend, _VALID_BACKENDS
        )

    if backend == "mock":
        return MockReportGenerator()

    # backend == "openai"
    from cadence.generation.config import OpenAIGeneratorConfig
    from cadence.generation.openai_client import OpenAIReportGenerator

    return OpenAIReportGenerator(OpenAIGeneratorConfig.from_env())
