from typing import Protocol

import requests

from academy_ledger.config import settings
from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    def send(self, payload: dict) -> bool: ...


class WebhookNotifier:
    """Posts notification payloads to the outbound invoice webhook."""

    def __init__(self, url: str | None = None, timeout_seconds: int | None = None):
        self.url = url if url is not None else settings.notification_webhook_url
        self.timeout_seconds = timeout_seconds or settings.notification_timeout_seconds

    def send(self, payload: dict) -> bool:
        event_type = payload.get("type")
        if not self.url:
            logger.warning("notification_webhook_not_configured", event_type=event_type)
            return False
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("notification_webhook_failed", event_type=event_type, error=str(exc))
            return False
        if response.status_code >= 400:
            logger.warning(
                "notification_webhook_rejected",
                event_type=event_type,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        logger.info("notification_webhook_sent", event_type=event_type, status_code=response.status_code)
        return True


def get_notifier() -> WebhookNotifier:
    return WebhookNotifier()
