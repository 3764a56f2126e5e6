"""
Tests for the email, cache, order and audit helpers and the service endpoints
Run with: pytest tests/test_services.py -v
"""

import asyncio
import pytest
from fastapi.testclient import TestClient
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import requests
from redis.exceptions import RedisError
from loguru import logger

from farmkonnect.api.main import app
from farmkonnect.api.core.cache import CacheService, farm_analytics_pattern
from farmkonnect.api.services import email as email_service
from farmkonnect.api.services.email import EmailService
from farmkonnect.api.services.orders import (
    INVOICE_TRANSITIONS,
    can_transition,
    line_subtotal,
    order_total,
    generate_order_number,
)
from farmkonnect.api.services.audit import changed_fields
from farmkonnect.utils.logger import get_logger, setup_logging

client = TestClient(app, raise_server_exceptions=False)


class TestServiceEndpoints:
    """Test health and root endpoints"""

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["cache"] == "disabled"

    def test_root_lists_routers(self):
        response = client.get("/")
        assert response.status_code == 200

        endpoints = response.json()["endpoints"]
        assert endpoints["finance"] == "/api/v1/finance"
        assert endpoints["marketplace"] == "/api/v1/marketplace"

    def test_process_time_header(self):
        response = client.get("/health")
        assert "X-Process-Time" in response.headers


class TestEmailService:
    """Test SendGrid delivery"""

    def test_unconfigured(self):
        session = Mock()
        service = EmailService(api_key="", session=session)

        result = service.send_email("ama@example.com", "Hi", "<p>Hi</p>")

        assert result == {"success": False, "message_id": None, "error": "Email service not configured"}
        session.post.assert_not_called()

    def test_success(self):
        session = Mock()
        session.post.return_value = Mock(headers={"X-Message-Id": "msg-123"}, raise_for_status=Mock())
        service = EmailService(api_key="SG.key", from_email="noreply@farmkonnect.com", session=session)

        result = service.send_email("ama@example.com", "Hi", "<p>Hi</p>", text="Hi")

        assert result == {"success": True, "message_id": "msg-123", "error": None}
        body = session.post.call_args.kwargs["json"]
        assert body["personalizations"][0]["to"][0]["email"] == "ama@example.com"
        assert body["from"]["email"] == "noreply@farmkonnect.com"
        assert [c["type"] for c in body["content"]] == ["text/plain", "text/html"]
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer SG.key"

    def test_http_error(self):
        error = requests.exceptions.HTTPError("401 Unauthorized", response=Mock(text="bad key"))
        session = Mock()
        session.post.return_value = Mock(raise_for_status=Mock(side_effect=error))
        service = EmailService(api_key="SG.key", session=session)

        result = service.send_email("ama@example.com", "Hi", "<p>Hi</p>")

        assert result["success"] is False
        assert result["error"].startswith("SendGrid error")

    def test_connection_error(self):
        session = Mock()
        session.post.side_effect = requests.exceptions.ConnectionError("unreachable")
        service = EmailService(api_key="SG.key", session=session)

        result = service.send_email("ama@example.com", "Hi", "<p>Hi</p>")

        assert result == {"success": False, "message_id": None, "error": "unreachable"}

    def test_templates(self):
        assert email_service.approval_email("Ama")["subject"] == "Your FarmKonnect Account Has Been Approved"

        rejection = email_service.rejection_email("Ama", "Incomplete documents")
        assert rejection["subject"] == "FarmKonnect Registration Status"
        assert "Incomplete documents" in rejection["html"]
        assert "Incomplete documents" in rejection["text"]

        status = email_service.account_status_email("Ama", "suspended")
        assert "suspended" in status["text"]
        assert "Reason" not in status["text"]


class TestCacheService:
    """Test cache degradation"""

    def test_disabled_cache_is_a_miss(self):
        redis_mock = AsyncMock()
        cache = CacheService(client=redis_mock, enabled=False)

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", {"a": 1})) is False
        redis_mock.get.assert_not_called()

    def test_round_trip(self):
        redis_mock = AsyncMock()
        redis_mock.get.return_value = '{"projected_profit": 300.0}'
        redis_mock.setex.return_value = True
        cache = CacheService(client=redis_mock, enabled=True)

        assert asyncio.run(cache.get("k")) == {"projected_profit": 300.0}
        assert asyncio.run(cache.set("k", {"a": Decimal("1.5")}, ttl=60)) is True
        redis_mock.setex.assert_awaited_with("k", 60, '{"a": "1.5"}')

    def test_redis_errors_degrade(self):
        redis_mock = AsyncMock()
        redis_mock.get.side_effect = RedisError("down")
        redis_mock.setex.side_effect = RedisError("down")
        redis_mock.delete.side_effect = RedisError("down")
        cache = CacheService(client=redis_mock, enabled=True)

        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", 1, ttl=10)) is False
        assert asyncio.run(cache.delete("k")) is False

    def test_farm_pattern(self):
        assert farm_analytics_pattern("abc") == "analytics:abc:*"


class TestOrderRules:
    """Test order pricing and transitions"""

    @pytest.mark.parametrize("current,new,allowed", [
        ("pending", "confirmed", True),
        ("pending", "shipped", False),
        ("confirmed", "cancelled", True),
        ("shipped", "cancelled", False),
        ("delivered", "refunded", True),
        ("cancelled", "pending", False),
    ])
    def test_transitions(self, current, new, allowed):
        assert can_transition(current, new) is allowed

    @pytest.mark.parametrize("current,new,allowed", [
        ("draft", "sent", True),
        ("draft", "paid", False),
        ("sent", "overdue", True),
        ("overdue", "paid", True),
        ("paid", "cancelled", False),
        ("sent", "sent", False),
    ])
    def test_invoice_transitions(self, current, new, allowed):
        assert can_transition(current, new, INVOICE_TRANSITIONS) is allowed

    def test_subtotal_rounds_to_cents(self):
        assert line_subtotal(Decimal("3.335"), Decimal("1")) == Decimal("3.34")
        assert line_subtotal(Decimal("12.50"), Decimal("2.5")) == Decimal("31.25")

    def test_total(self):
        lines = [(Decimal("12.50"), Decimal("2")), (Decimal("3.33"), Decimal("3"))]
        assert order_total(lines) == Decimal("34.99")
        assert order_total([]) == Decimal("0.00")

    def test_order_number_format(self):
        number = generate_order_number()
        prefix, millis, suffix = number.split("-")
        assert prefix == "ORD"
        assert millis.isdigit()
        assert len(suffix) == 6
        assert generate_order_number() != number


class TestLogging:
    """Test the loguru sinks used by the services"""

    @pytest.fixture
    def records(self):
        captured = []
        handler_id = logger.add(lambda message: captured.append(message.record), format="{name} {message}")
        yield captured
        logger.remove(handler_id)

    def test_component_is_bound(self, records):
        get_logger("farmkonnect.api.services.push").info("delivered")

        assert records[-1]["message"] == "delivered"
        assert records[-1]["extra"]["component"] == "farmkonnect.api.services.push"

    def test_plain_logger_writes_to_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        try:
            log_path = setup_logging(log_dir=str(tmp_path), log_file="test.log")
            logger.info("unbound message")
        finally:
            monkeypatch.undo()
            setup_logging()

        assert log_path == str(tmp_path / "test.log")
        with open(log_path) as handle:
            assert "unbound message" in handle.read()


class TestAuditHelpers:
    """Test audit diffing"""

    def test_changed_fields(self):
        old = {"approval_status": "pending", "name": "Ama"}
        new = {"approval_status": "approved", "name": "Ama", "approved_by": "admin"}
        assert changed_fields(old, new) == ["approval_status", "approved_by"]

    def test_no_snapshots(self):
        assert changed_fields(None, None) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
