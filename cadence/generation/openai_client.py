"""OpenAI-compatible implementation of the ReportGenerator protocol.

Responses are decoded into the small slice of the chat completions schema
the generator reads; unknown fields are ignored.
"""

from __future__ import annotations

import http
import typing as typ

import httpx
import msgspec

from cadence.generation.errors import (
    ReportGeneratorAPIError,
    ReportGeneratorConfigError,
)
from cadence.generation.models import GeneratedReport, OutputFormat, TokenUsage
from cadence.generation.output import normalize_output
from cadence.generation.prompts import build_system_prompt, build_user_prompt
from cadence.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    from cadence.generation.config import OpenAIGeneratorConfig
    from cadence.generation.models import AggregateRequest, ReportRequest

logger = get_logger(__name__)


class _Message(msgspec.Struct):
    content: str | None = None


class _Choice(msgspec.Struct):
    message: _Message | None = None


class _Usage(msgspec.Struct):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class _Completion(msgspec.Struct):
    choices: list[_Choice] = msgspec.field(default_factory=list)
    usage: _Usage | None = None


def _retry_after_seconds(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After", "")
    return int(value) if value.isdigit() else None


def _raise_for_status(response: httpx.Response) -> None:
    """Map error statuses onto :class:`ReportGeneratorAPIError`."""
    if response.status_code == http.HTTPStatus.TOO_MANY_REQUESTS:
        raise ReportGeneratorAPIError.rate_limited(_retry_after_seconds(response))
    if response.is_error:
        raise ReportGeneratorAPIError.http_error(response.status_code)


def _decode_completion(response: httpx.Response) -> _Completion:
    try:
        return msgspec.json.decode(response.content, type=_Completion)
    except msgspec.DecodeError as exc:
        raise ReportGeneratorAPIError.invalid_body(response.text) from exc


def _message_content(completion: _Completion) -> str:
    if not completion.choices:
        raise ReportGeneratorAPIError.missing_field("choices")
    message = completion.choices[0].message
    if message is None or message.content is None:
        raise ReportGeneratorAPIError.missing_field("choices[0].message.content")
    return message.content


class OpenAIReportGenerator:
    """Generate reports through an OpenAI-compatible chat completions endpoint.

    Parameters
    ----------
    config
        Configuration for the API client.
    http_client
        Client to send requests with. When omitted the generator creates
        one carrying the bearer token and closes it in :meth:`aclose`.

    Examples
    --------
    >>> import asyncio
    >>> config = OpenAIGeneratorConfig(api_key="sk-...")
    >>> generator = OpenAIReportGenerator(config)
    >>> # report = asyncio.run(generator.generate(request))
    >>> asyncio.run(generator.aclose())

    """

    def __init__(
        self,
        config: OpenAIGeneratorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Validate the key and prepare the HTTP client."""
        if not config.api_key.strip():
            raise ReportGeneratorConfigError.empty_api_key()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
        )

    @property
    def config(self) -> OpenAIGeneratorConfig:
        """Return the client configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close the HTTP client when this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def generate(
        self, request: ReportRequest | AggregateRequest
    ) -> GeneratedReport:
        """Generate a report for ``request``.

        Raises
        ------
        ReportGeneratorAPIError
            If the API returns an error response, times out or returns a
            body without assistant content.
        ReportOutputValidationError
            If JSON output was requested and the content is not valid JSON.

        """
        response = await self._send_request(self._build_payload(request))
        _raise_for_status(response)
        completion = _decode_completion(response)
        content = _message_content(completion)
        log_debug(
            logger,
            "Model %s returned %d characters",
            self._config.model,
            len(content),
        )
        return GeneratedReport(
            text=normalize_output(content, request.output_format),
            format=request.output_format,
            model=self._config.model,
            usage=(
                TokenUsage(
                    input_tokens=completion.usage.prompt_tokens,
                    output_tokens=completion.usage.completion_tokens,
                )
                if completion.usage is not None
                else None
            ),
        )

    def _build_payload(
        self, request: ReportRequest | AggregateRequest
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(request)},
                {"role": "user", "content": build_user_prompt(request)},
            ],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        if request.output_format is OutputFormat.JSON:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _send_request(self, payload: dict[str, object]) -> httpx.Response:
        try:
            return await self._client.post(self._config.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise ReportGeneratorAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise ReportGeneratorAPIError.network_error(str(exc)) from exc
