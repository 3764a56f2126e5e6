"""
Tests for push subscriptions, delivery and notification history
Run with: pytest tests/test_notifications_router.py -v
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock
import uuid

import requests
from pywebpush import WebPushException
from sqlalchemy import select

from farmkonnect.api.main import app
from farmkonnect.api.models.notification import PushSubscription, NotificationLog
from farmkonnect.api.services.push import PushService, build_payload

client = TestClient(app, raise_server_exceptions=False)

SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM", "auth": "tBHItJI5svbpez7KI4CCXg"},
    "user_agent": "Mozilla/5.0",
}


def subscribe(headers, **overrides):
    response = client.post("/api/v1/notifications/subscribe", json=dict(SUBSCRIPTION, **overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestSubscriptions:
    """Test subscribing browsers"""

    def test_public_key_needs_no_auth(self):
        response = client.get("/api/v1/notifications/vapid-public-key")
        assert response.status_code == 200
        assert "public_key" in response.json()

    def test_subscribe_requires_auth(self):
        response = client.post("/api/v1/notifications/subscribe", json=SUBSCRIPTION)
        assert response.status_code in (401, 403)

    def test_resubscribe_updates_existing(self, farmer):
        _, headers = farmer
        first = subscribe(headers)
        second = subscribe(headers, keys={"p256dh": "new-key", "auth": "new-auth"})

        assert first["id"] == second["id"]
        response = client.get("/api/v1/notifications/subscriptions", headers=headers)
        assert len(response.json()) == 1

    def test_missing_keys(self, farmer):
        _, headers = farmer
        body = dict(SUBSCRIPTION, keys={"p256dh": "only"})
        response = client.post("/api/v1/notifications/subscribe", json=body, headers=headers)
        assert response.status_code == 422

    def test_unsubscribe(self, farmer):
        _, headers = farmer
        subscribe(headers)

        response = client.post(
            "/api/v1/notifications/unsubscribe", json={"endpoint": SUBSCRIPTION["endpoint"]}, headers=headers
        )
        assert response.status_code == 204

        subscriptions = client.get("/api/v1/notifications/subscriptions", headers=headers).json()
        assert subscriptions[0]["is_active"] is False

    def test_unsubscribe_unknown_endpoint(self, farmer):
        _, headers = farmer
        response = client.post(
            "/api/v1/notifications/unsubscribe", json={"endpoint": "https://push.example/none"}, headers=headers
        )
        assert response.status_code == 404


class TestHistory:
    """Test the notification inbox"""

    def send_test(self, headers):
        response = client.post("/api/v1/notifications/test", headers=headers)
        assert response.status_code == 200
        return response.json()

    def test_unconfigured_push_is_logged_as_failed(self, farmer):
        _, headers = farmer
        subscribe(headers)

        assert self.send_test(headers) == {"sent": 0, "failed": 0}

        history = client.get("/api/v1/notifications/history", headers=headers).json()
        assert history["total"] == 1
        assert history["notifications"][0]["delivery_status"] == "failed"
        assert history["notifications"][0]["notification_type"] == "test"

    def test_read_flow(self, farmer):
        _, headers = farmer
        self.send_test(headers)
        self.send_test(headers)

        response = client.get("/api/v1/notifications/unread-count", headers=headers)
        assert response.json() == {"unread": 2}

        history = client.get("/api/v1/notifications/history", headers=headers).json()
        notification_id = history["notifications"][0]["id"]

        response = client.post(f"/api/v1/notifications/{notification_id}/read", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"unread": 1}

        unread = client.get("/api/v1/notifications/history?unread_only=true", headers=headers).json()
        assert unread["total"] == 1

        client.post("/api/v1/notifications/read-all", headers=headers)
        assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"unread": 0}

    def test_delete(self, farmer, make_user):
        _, headers = farmer
        self.send_test(headers)
        notification_id = client.get("/api/v1/notifications/history", headers=headers).json()["notifications"][0]["id"]

        _, other_headers = make_user()
        response = client.delete(f"/api/v1/notifications/{notification_id}", headers=other_headers)
        assert response.status_code == 404

        response = client.delete(f"/api/v1/notifications/{notification_id}", headers=headers)
        assert response.status_code == 204
        assert client.get("/api/v1/notifications/history", headers=headers).json()["total"] == 0

    def test_unknown_notification(self, farmer):
        _, headers = farmer
        response = client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=headers)
        assert response.status_code == 404


class TestPushService:
    """Test delivery against a stubbed push sender"""

    def _subscriptions(self, run_async, session_factory, user_id, endpoints):
        async def _insert():
            async with session_factory() as session:
                for endpoint in endpoints:
                    session.add(PushSubscription(
                        user_id=user_id, endpoint=endpoint, p256dh="key", auth="auth", is_active=True
                    ))
                await session.commit()
        run_async(_insert())

    def _send(self, run_async, session_factory, service, user_id):
        async def _go():
            async with session_factory() as session:
                return await service.send_to_user(session, user_id, "Hello", "World", notification_type="test")
        return run_async(_go())

    def _load(self, run_async, session_factory, model):
        async def _go():
            async with session_factory() as session:
                result = await session.execute(select(model))
                return result.scalars().all()
        return run_async(_go())

    def test_payload(self):
        payload = build_payload("Title", "Body", tag="order_status", data={"order_id": "1"})
        assert payload["icon"] == "/icon-192x192.png"
        assert payload["badge"] == "/badge-72x72.png"
        assert payload["tag"] == "order_status"
        assert payload["requireInteraction"] is False

    def test_sends_to_every_active_subscription(self, farmer, run_async, session_factory):
        user, _ = farmer
        self._subscriptions(run_async, session_factory, user.id, ["https://push.example/1", "https://push.example/2"])
        sender = Mock()

        result = self._send(run_async, session_factory, PushService(private_key="vapid-key", sender=sender), user.id)

        assert result == {"sent": 2, "failed": 0}
        assert sender.call_count == 2
        assert sender.call_args.kwargs["vapid_claims"]["sub"].startswith("mailto:")

        logs = self._load(run_async, session_factory, NotificationLog)
        assert len(logs) == 1
        assert logs[0].delivery_status == "sent"

    def test_gone_subscription_is_deactivated(self, farmer, run_async, session_factory):
        user, _ = farmer
        self._subscriptions(run_async, session_factory, user.id, ["https://push.example/gone"])
        sender = Mock(side_effect=WebPushException("Gone", response=Mock(status_code=410)))

        result = self._send(run_async, session_factory, PushService(private_key="vapid-key", sender=sender), user.id)

        assert result == {"sent": 0, "failed": 1}
        subscriptions = self._load(run_async, session_factory, PushSubscription)
        assert subscriptions[0].is_active is False

    def test_transient_failure_keeps_subscription(self, farmer, run_async, session_factory):
        user, _ = farmer
        self._subscriptions(run_async, session_factory, user.id, ["https://push.example/busy"])
        sender = Mock(side_effect=WebPushException("Unavailable", response=Mock(status_code=503)))

        result = self._send(run_async, session_factory, PushService(private_key="vapid-key", sender=sender), user.id)

        assert result == {"sent": 0, "failed": 1}
        assert self._load(run_async, session_factory, PushSubscription)[0].is_active is True
        assert self._load(run_async, session_factory, NotificationLog)[0].delivery_status == "failed"

    def test_network_error_does_not_stop_delivery(self, farmer, run_async, session_factory):
        user, _ = farmer
        self._subscriptions(run_async, session_factory, user.id, ["https://push.example/a", "https://push.example/b"])
        sender = Mock(side_effect=[requests.exceptions.ConnectionError("connection refused"), None])

        result = self._send(run_async, session_factory, PushService(private_key="vapid-key", sender=sender), user.id)

        assert result == {"sent": 1, "failed": 1}
        assert sender.call_count == 2

        logs = self._load(run_async, session_factory, NotificationLog)
        assert len(logs) == 1
        assert logs[0].delivery_status == "sent"
        assert "connection refused" in logs[0].delivery_error

    def test_malformed_key_is_counted_as_failure(self, farmer, run_async, session_factory):
        user, _ = farmer
        self._subscriptions(run_async, session_factory, user.id, ["https://push.example/bad"])
        sender = Mock(side_effect=ValueError("Could not deserialize key data"))

        result = self._send(run_async, session_factory, PushService(private_key="vapid-key", sender=sender), user.id)

        assert result == {"sent": 0, "failed": 1}
        assert self._load(run_async, session_factory, PushSubscription)[0].is_active is True
        assert self._load(run_async, session_factory, NotificationLog)[0].delivery_status == "failed"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
