"""HMAC-signed JSON webhook notifier."""

from __future__ import annotations

import hashlib
import hmac

import httpx
import msgspec

from cadence.logging import get_logger, log_info, log_warning
from cadence.notify.errors import NotifierError
from cadence.notify.models import RunNotification

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-signature"
_HTTP_ERROR_STATUS_THRESHOLD = 400
_DEFAULT_TIMEOUT_S = 10.0


def sign_payload(secret: str, body: bytes) -> str:
    """Return the hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookNotifier:
    """POST run notifications as JSON to a URL.

    When ``secret`` is set the body is signed with HMAC-SHA256 and the hex
    digest is sent in the ``x-signature`` header. The artifact text is only
    included in the body when ``include_content`` is set.
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str | None = None,
        include_content: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the notifier for ``url``."""
        self._url = url
        self._secret = secret
        self._include_content = include_content
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=_DEFAULT_TIMEOUT_S)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def encode(self, payload: RunNotification, content: str) -> bytes:
        """Return the request body for ``payload``."""
        if self._include_content:
            payload = msgspec.structs.replace(payload, content=content)
        return msgspec.json.encode(payload)

    async def send(self, payload: RunNotification, content: str) -> None:
        """Deliver ``payload``.

        Raises
        ------
        NotifierError
            If the request fails or the endpoint answers with an error status.

        """
        body = self.encode(payload, content)
        headers = {"content-type": "application/json"}
        if self._secret:
            headers[SIGNATURE_HEADER] = sign_payload(self._secret, body)

        try:
            response = await self._client.post(self._url, content=body, headers=headers)
        except httpx.RequestError as exc:
            raise NotifierError.network_error(str(exc)) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            log_warning(
                logger,
                "Webhook for %s/%s answered %d",
                payload.job_id,
                payload.slot_key,
                response.status_code,
            )
            raise NotifierError.http_error(response.status_code, response.text)
        log_info(
            logger, "Webhook delivered for %s/%s", payload.job_id, payload.slot_key
        )
