"""
Unit tests for WebhookNotificationSender.
"""
from unittest.mock import MagicMock, patch

import httpx
import pytest

from tradecoach.config.settings import WebhookConfig
from tradecoach.core.models import NotificationEvent
from tradecoach.integrations.webhook import WebhookNotificationSender


EVENT = NotificationEvent(ticker="AAPL", session_id="db-1")


@pytest.fixture
def http_client():
    with patch("tradecoach.integrations.webhook.httpx.Client") as client_cls:
        client = MagicMock()
        client_cls.return_value.__enter__.return_value = client
        yield client_cls, client


@pytest.mark.unit
class TestWebhookNotificationSender:
    """Session-started POSTs."""

    def test_disabled_without_url(self, http_client):
        client_cls, _ = http_client
        sender = WebhookNotificationSender(WebhookConfig(url=""), background=False)

        sender.send(EVENT)

        assert sender.enabled is False
        client_cls.assert_not_called()

    def test_posts_payload(self, http_client):
        client_cls, client = http_client
        sender = WebhookNotificationSender(
            WebhookConfig(url="https://hooks.example.com/coach", timeout_seconds=3), background=False
        )

        sender.send(EVENT)

        client_cls.assert_called_once_with(timeout=3)
        client.post.assert_called_once_with(
            "https://hooks.example.com/coach",
            json={"ticker": "AAPL", "session_id": "db-1", "event_type": "session_started"},
        )

    def test_delivery_failure_returns_false(self, http_client):
        _, client = http_client
        client.post.side_effect = httpx.ConnectError("connection refused")
        sender = WebhookNotificationSender(WebhookConfig(url="https://hooks.example.com/coach"))

        assert sender.deliver(EVENT.to_payload()) is False

    def test_http_error_status_returns_false(self, http_client):
        _, client = http_client
        request = httpx.Request("POST", "https://hooks.example.com/coach")
        response = httpx.Response(500, request=request)
        client.post.return_value = response
        sender = WebhookNotificationSender(WebhookConfig(url="https://hooks.example.com/coach"))

        assert sender.deliver(EVENT.to_payload()) is False

    def test_background_send_does_not_block(self, http_client):
        sender = WebhookNotificationSender(WebhookConfig(url="https://hooks.example.com/coach"))
        with patch("tradecoach.integrations.webhook.threading.Thread") as thread_cls:
            sender.send(EVENT)

        thread_cls.assert_called_once()
        assert thread_cls.call_args.kwargs["daemon"] is True
        thread_cls.return_value.start.assert_called_once()
