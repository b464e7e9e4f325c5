"""ReportGenerator protocol for turning activity into report artifacts."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from cadence.generation.models import (
        AggregateRequest,
        GeneratedReport,
        ReportRequest,
    )


@typ.runtime_checkable
class ReportGenerator(typ.Protocol):
    """Protocol for report generation backends.

    Implementations receive either a :class:`ReportRequest` (one window of
    repository activity) or an :class:`AggregateRequest` (a roll-up over the
    outputs of another job) and return the report text in the requested
    format.

    Examples
    --------
    >>> from cadence.generation import MockReportGenerator, ReportGenerator
    >>> generator: ReportGenerator = MockReportGenerator()
    >>> isinstance(generator, ReportGenerator)
    True

    """

    async def generate(
        self, request: ReportRequest | AggregateRequest
    ) -> GeneratedReport:
        """Generate a report for ``request``.

        Raises
        ------
        ReportGeneratorAPIError
            If the backend fails or returns an unusable response.
        ReportOutputValidationError
            If JSON output was requested and the result is not valid JSON.

        """
        ...
