"""Run notifications."""

from __future__ import annotations

import typing as typ

from .errors import NotifierError
from .models import NotificationWindow, RunNotification
from .protocol import Notifier
from .webhook import SIGNATURE_HEADER, WebhookNotifier, sign_payload

if typ.TYPE_CHECKING:
    from cadence.config import AppConfig


def create_notifier(config: AppConfig) -> Notifier | None:
    """Return a webhook notifier when a URL is configured, else ``None``."""
    if not config.webhook_url:
        return None
    return WebhookNotifier(config.webhook_url, secret=config.webhook_secret)


__all__ = [
    "SIGNATURE_HEADER",
    "NotificationWindow",
    "Notifier",
    "NotifierError",
    "RunNotification",
    "WebhookNotifier",
    "create_notifier",
    "sign_payload",
]
