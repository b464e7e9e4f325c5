"""Unit tests for the webhook notifier."""

from __future__ import annotations

import httpx
import msgspec
import pytest

from cadence.config import AppConfig
from cadence.notify import (
    SIGNATURE_HEADER,
    NotificationWindow,
    NotifierError,
    RunNotification,
    WebhookNotifier,
    create_notifier,
    sign_payload,
)
from cadence.records.models import OutputDescriptor, OwnerType

_URL = "https://hooks.example/run"
_HTTP_UNAVAILABLE = 503


def _notification() -> RunNotification:
    return RunNotification(
        owner="acme",
        owner_type=OwnerType.ORG,
        job_id="daily",
        job_name="Daily",
        slot_key="2024-11-03T00-00Z",
        window=NotificationWindow(
            start="2024-11-02T00:00:00.000Z", end="2024-11-03T00:00:00.000Z"
        ),
        artifact=OutputDescriptor(
            format="markdown",
            key="reports/org/acme/daily/2024-11-03T00-00Z/report.md",
            uri="memory://reports/org/acme/daily/2024-11-03T00-00Z/report.md",
            size=12,
        ),
        created_at="2024-11-03T10:00:00.000Z",
    )


def _make_notifier(
    status: int = 204, **kwargs: object
) -> tuple[WebhookNotifier, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code=status, text="unavailable")

    notifier = WebhookNotifier(
        _URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_handler)),
        **kwargs,  # type: ignore[arg-type]
    )
    return notifier, requests


class TestWebhookNotifier:
    """Tests for WebhookNotifier.send."""

    @pytest.mark.asyncio
    async def test_signed_delivery(self) -> None:
        """Signed bodies carry the HMAC of the exact bytes sent."""
        notifier, requests = _make_notifier(secret="s3cret")

        await notifier.send(_notification(), "# Report")

        (request,) = requests
        assert str(request.url) == _URL
        assert request.headers[SIGNATURE_HEADER] == sign_payload(
            "s3cret", request.content
        )
        await notifier.aclose()

    @pytest.mark.asyncio
    async def test_body_uses_camel_case_without_content(self) -> None:
        """The artifact text is left out unless requested."""
        notifier, requests = _make_notifier()

        await notifier.send(_notification(), "# Report")

        body = msgspec.json.decode(requests[0].content)
        assert body["ownerType"] == "org"
        assert body["slotKey"] == "2024-11-03T00-00Z"
        assert body["artifact"]["size"] == 12
        assert "content" not in body
        assert SIGNATURE_HEADER not in requests[0].headers

    @pytest.mark.asyncio
    async def test_content_is_included_when_requested(self) -> None:
        """``include_content`` embeds the artifact text."""
        notifier, requests = _make_notifier(include_content=True)

        await notifier.send(_notification(), "# Report")

        assert msgspec.json.decode(requests[0].content)["content"] == "# Report"

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        """Error responses raise with the status attached."""
        notifier, _ = _make_notifier(_HTTP_UNAVAILABLE)

        with pytest.raises(NotifierError, match="503 unavailable") as excinfo:
            await notifier.send(_notification(), "# Report")

        assert excinfo.value.status_code == _HTTP_UNAVAILABLE


def test_signature_is_hex_sha256() -> None:
    """Signatures are 64 hex characters and keyed by the secret."""
    signature = sign_payload("a", b"body")

    assert len(signature) == 64
    assert signature != sign_payload("b", b"body")


def test_create_notifier_requires_url() -> None:
    """No notifier is built without a webhook URL."""
    assert create_notifier(AppConfig()) is None
    assert isinstance(
        create_notifier(AppConfig(webhook_url=_URL, webhook_secret="x")),
        WebhookNotifier,
    )
