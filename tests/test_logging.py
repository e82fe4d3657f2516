import logging
import uuid

import pytest

from config.settings import mask_sensitive_data


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        parsed = uuid.UUID(request_id, version=4)
        assert str(parsed) == request_id

    def test_correlation_id_in_logs(self, client, caplog):
        custom_id = "log-test-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/api/v1/cart/", HTTP_X_REQUEST_ID=custom_id)
        found = any(custom_id in record.getMessage() for record in caplog.records)
        assert found, (
            f"correlation_id '{custom_id}' not found in log records: "
            f"{[r.getMessage() for r in caplog.records]}"
        )


class TestSensitiveDataMasking:
    def test_dni_masked_in_log_output(self):
        event_dict = {"event": "test", "customer_dni": "45879632"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "45879632" not in result["customer_dni"]
        assert "***MASKED***" in result["customer_dni"]

    def test_card_number_masked_in_log_output(self):
        event_dict = {"event": "test", "data": "card 4111 1111 1111 1111 declined"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "4111 1111 1111 1111" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_password_masked_in_log_output(self):
        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked_in_log_output(self):
        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    @pytest.mark.parametrize("value", ["ORD-123456", "session_0192ab", "1449.90"])
    def test_non_sensitive_data_unchanged(self, value):
        event_dict = {"event": "order.created", "value": value}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["value"] == value
        assert result["event"] == "order.created"
