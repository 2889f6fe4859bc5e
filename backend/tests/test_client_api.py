# Overview: Pytest coverage for the httpx API boundary (headers, URLs, error envelope).

import json

import httpx
import pytest

from stockflow_client import ApiClient, ApiError, NotificationsApi, PaymentsApi


class Recorder:
    """MockTransport handler recording requests and replaying canned responses."""

    def __init__(self, responses=None):
        self.requests = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, body = self.responses.get(key, (200, {}))
        if body is None:
            return httpx.Response(status)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def _client(recorder, **kwargs):
    return ApiClient("http://api.test/", org_id=7, transport=httpx.MockTransport(recorder), **kwargs)


class TestApiClient:
    def test_sends_tenant_and_auth_headers(self):
        recorder = Recorder()
        client = _client(recorder, token="tok-123")

        client.get("/api/payments")

        assert recorder.last.headers["X-Org-Id"] == "7"
        assert recorder.last.headers["Authorization"] == "Bearer tok-123"
        assert str(recorder.last.url) == "http://api.test/api/payments"

    def test_error_envelope_becomes_api_error(self):
        recorder = Recorder({("GET", "/api/payments/5"): (404, {"error": "Pago no encontrado"})})
        payments = PaymentsApi(_client(recorder))

        with pytest.raises(ApiError) as exc_info:
            payments.get_payment(5)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Pago no encontrado"

    def test_message_field_is_used_as_fallback(self):
        recorder = Recorder({("POST", "/api/payments"): (422, {"message": "Datos invalidos"})})

        with pytest.raises(ApiError, match="Datos invalidos"):
            PaymentsApi(_client(recorder)).create_payment({})

    def test_non_json_error_has_empty_message(self):
        recorder = Recorder({("DELETE", "/api/payments/1"): (502, "Bad Gateway")})

        with pytest.raises(ApiError) as exc_info:
            PaymentsApi(_client(recorder)).delete_payment(1)

        assert exc_info.value.message == ""
        assert exc_info.value.status_code == 502

    def test_transport_errors_propagate(self):
        def _boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ApiClient("http://api.test", transport=httpx.MockTransport(_boom))

        with pytest.raises(httpx.ConnectError):
            client.get("/health")


class TestPaymentsApi:
    def test_filters_become_query_params(self):
        recorder = Recorder()
        PaymentsApi(_client(recorder)).get_payments({"status": "PENDING", "page": 2, "search": None})

        params = recorder.last.url.params
        assert params["status"] == "PENDING"
        assert params["page"] == "2"
        assert "search" not in params

    def test_status_and_refund_bodies(self):
        recorder = Recorder()
        payments = PaymentsApi(_client(recorder))

        payments.update_payment_status(3, "COMPLETED")
        status_request = recorder.last
        payments.refund_payment(3, 500000)
        refund_request = recorder.last
        payments.refund_payment(3)
        full_refund_request = recorder.last

        assert status_request.method == "PATCH"
        assert status_request.url.path == "/api/payments/3/status"
        assert json.loads(status_request.content) == {"status": "COMPLETED"}
        assert refund_request.url.path == "/api/payments/3/refund"
        assert json.loads(refund_request.content) == {"amount": 500000}
        assert json.loads(full_refund_request.content) == {}

    def test_lookup_paths(self):
        recorder = Recorder()
        payments = PaymentsApi(_client(recorder))

        payments.get_payments_by_invoice("INV-1")
        payments.get_payments_by_customer("C-1")
        payments.get_recent_payments()
        payments.get_payment_stats()

        assert [r.url.path for r in recorder.requests] == [
            "/api/payments/invoice/INV-1",
            "/api/payments/customer/C-1",
            "/api/payments/recent",
            "/api/payments/stats",
        ]


class TestNotificationsApi:
    def test_bulk_delete_sends_ids(self):
        recorder = Recorder({("DELETE", "/api/notifications"): (200, {"success": True, "deleted_count": 2})})

        result = NotificationsApi(_client(recorder)).delete_multiple_notifications([1, 2])

        assert result == {"success": True, "deleted_count": 2}
        assert json.loads(recorder.last.content) == {"ids": [1, 2]}

    def test_paths(self):
        recorder = Recorder()
        notifications = NotificationsApi(_client(recorder))

        notifications.get_unread_count()
        notifications.mark_as_read(4)
        notifications.mark_as_unread(4)
        notifications.mark_multiple_as_read([4, 5])
        notifications.mark_all_as_read()
        notifications.clear_read_notifications()
        notifications.get_recent_notifications(3)

        assert [(r.method, r.url.path) for r in recorder.requests] == [
            ("GET", "/api/notifications/unread/count"),
            ("PATCH", "/api/notifications/4/read"),
            ("PATCH", "/api/notifications/4/unread"),
            ("PATCH", "/api/notifications/read"),
            ("PATCH", "/api/notifications/read-all"),
            ("DELETE", "/api/notifications/clear-read"),
            ("GET", "/api/notifications/recent"),
        ]
        assert recorder.last.url.params["limit"] == "3"

    def test_empty_response_body_returns_none(self):
        recorder = Recorder({("DELETE", "/api/notifications/9"): (204, None)})

        assert NotificationsApi(_client(recorder)).delete_notification(9) is None
