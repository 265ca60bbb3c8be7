"""
Session-started webhook sender
"""
import threading
from typing import Any, Dict, Optional

import httpx

from tradecoach.config import settings
from tradecoach.config.settings import WebhookConfig
from tradecoach.core.interfaces import NotificationSender
from tradecoach.core.models import NotificationEvent
from tradecoach.logger import logger


class WebhookNotificationSender(NotificationSender):
    """POSTs session notifications from a daemon thread.

    ``send`` never waits for delivery. An empty URL disables sending.
    """

    def __init__(self, config: Optional[WebhookConfig] = None, background: bool = True):
        self.config = config or settings.WEBHOOK
        self._background = background

    @property
    def enabled(self) -> bool:
        return bool(self.config.url)

    def send(self, event: NotificationEvent) -> None:
        if not self.enabled:
            logger.debug(f"[WEBHOOK] No webhook URL configured, skipping {event.ticker}")
            return

        payload = event.to_payload()
        if not self._background:
            self.deliver(payload)
            return
        threading.Thread(
            target=self.deliver,
            args=(payload,),
            name=f"Webhook-{event.ticker}",
            daemon=True,
        ).start()

    def deliver(self, payload: Dict[str, Any]) -> bool:
        """POST one payload. Returns True on a 2xx response."""
        try:
            with httpx.Client(timeout=self.config.timeout_seconds) as client:
                response = client.post(self.config.url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"[WEBHOOK] Delivery failed for {payload.get('ticker')}: {exc}")
            return False
        logger.info(f"[WEBHOOK] Delivered session_started for {payload.get('ticker')}")
        return True
