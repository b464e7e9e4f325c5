"""Report generation backends.

The :class:`ReportGenerator` protocol keeps the run orchestrator independent
of the model vendor. :class:`MockReportGenerator` renders deterministic
reports for tests and dry runs; :class:`OpenAIReportGenerator` calls an
OpenAI-compatible chat completions endpoint.
"""

from __future__ import annotations

from .config import OpenAIGeneratorConfig
from .errors import (
    ReportGeneratorAPIError,
    ReportGeneratorConfigError,
    ReportGeneratorError,
    ReportOutputValidationError,
)
from .factory import create_report_generator
from .mock import MockReportGenerator
from .models import (
    AggregateItem,
    AggregateRequest,
    GeneratedReport,
    OutputFormat,
    ReportRequest,
    ReportWindow,
    TokenUsage,
)
from .openai_client import OpenAIReportGenerator
from .protocol import ReportGenerator

__all__ = [
    "AggregateItem",
    "AggregateRequest",
    "GeneratedReport",
    "MockReportGenerator",
    "OpenAIGeneratorConfig",
    "OpenAIReportGenerator",
    "OutputFormat",
    "ReportGenerator",
    "ReportGeneratorAPIError",
    "ReportGeneratorConfigError",
    "ReportGeneratorError",
    "ReportOutputValidationError",
    "ReportRequest",
    "ReportWindow",
    "TokenUsage",
    "create_report_generator",
]
