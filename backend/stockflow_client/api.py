# Overview: httpx client for the payments and notifications REST API.

"""
Remote Service Boundary

WHY: One place that knows URLs, headers and the error envelope. Everything
above this module works with plain dicts and ApiError.

USAGE:
    client = ApiClient("http://localhost:5000", org_id=1)
    payments = PaymentsApi(client)
    page = payments.get_payments({"status": "PENDING", "page": 1})
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response; message is the server's error text when it sent one."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, message={self.message!r})"


def _clean_params(params: Optional[Dict]) -> Optional[Dict]:
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value.strip():
                return value
    return ""


class ApiClient:
    """
    HTTP client wrapper with tenant/auth headers and JSON decoding.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        org_id: Optional[int] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout, transport=transport)
        self.org_id = org_id
        self.token = token

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        """Build request headers with optional auth and tenant."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.org_id is not None:
            headers["X-Org-Id"] = str(self.org_id)
        if extra:
            headers.update(extra)
        return headers

    def request(self, method: str, path: str, params: Optional[Dict] = None, json: Any = None) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiError: On non-2xx responses
            httpx.HTTPError: On transport failures (timeouts, refused connections)
        """
        response = self.client.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            params=_clean_params(params),
            json=json,
        )
        if response.is_error:
            message = _error_message(response)
            logger.warning("%s %s failed with %s: %s", method, path, response.status_code, message or "-")
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise ApiError(message, status_code=response.status_code, payload=payload)
        if not response.content:
            return None
        return response.json()

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str, json: Any = None) -> Any:
        return self.request("DELETE", path, json=json)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class PaymentsApi:
    """Payment endpoints (/api/payments)."""

    base_path = "/api/payments"

    def __init__(self, client: ApiClient):
        self.client = client

    def get_payments(self, filters: Optional[Dict] = None) -> Dict:
        return self.client.get(self.base_path, params=filters)

    def get_payment(self, payment_id) -> Dict:
        return self.client.get(f"{self.base_path}/{payment_id}")

    def get_payments_by_invoice(self, invoice_id) -> List[Dict]:
        return self.client.get(f"{self.base_path}/invoice/{invoice_id}")

    def get_payments_by_customer(self, customer_id) -> List[Dict]:
        return self.client.get(f"{self.base_path}/customer/{customer_id}")

    def get_recent_payments(self) -> List[Dict]:
        return self.client.get(f"{self.base_path}/recent")

    def get_payment_stats(self) -> Dict:
        return self.client.get(f"{self.base_path}/stats")

    def create_payment(self, data: Dict) -> Dict:
        return self.client.post(self.base_path, json=data)

    def update_payment(self, payment_id, data: Dict) -> Dict:
        return self.client.patch(f"{self.base_path}/{payment_id}", json=data)

    def update_payment_status(self, payment_id, status: str) -> Dict:
        return self.client.patch(f"{self.base_path}/{payment_id}/status", json={"status": status})

    def delete_payment(self, payment_id) -> None:
        self.client.delete(f"{self.base_path}/{payment_id}")

    def refund_payment(self, payment_id, amount: Optional[int] = None) -> Dict:
        body = {} if amount is None else {"amount": amount}
        return self.client.post(f"{self.base_path}/{payment_id}/refund", json=body)


class NotificationsApi:
    """Notification endpoints (/api/notifications)."""

    base_path = "/api/notifications"

    def __init__(self, client: ApiClient):
        self.client = client

    def get_notifications(self, filters: Optional[Dict] = None) -> Dict:
        return self.client.get(self.base_path, params=filters)

    def get_notification(self, notification_id) -> Dict:
        return self.client.get(f"{self.base_path}/{notification_id}")

    def get_recent_notifications(self, limit: int = 5) -> List[Dict]:
        return self.client.get(f"{self.base_path}/recent", params={"limit": limit})

    def get_unread_count(self) -> Dict:
        return self.client.get(f"{self.base_path}/unread/count")

    def mark_as_read(self, notification_id) -> Dict:
        return self.client.patch(f"{self.base_path}/{notification_id}/read")

    def mark_as_unread(self, notification_id) -> Dict:
        return self.client.patch(f"{self.base_path}/{notification_id}/unread")

    def mark_multiple_as_read(self, ids: List) -> Dict:
        return self.client.patch(f"{self.base_path}/read", json={"ids": list(ids)})

    def mark_all_as_read(self) -> Dict:
        return self.client.patch(f"{self.base_path}/read-all")

    def delete_notification(self, notification_id) -> None:
        self.client.delete(f"{self.base_path}/{notification_id}")

    def delete_multiple_notifications(self, ids: List) -> Dict:
        return self.client.delete(self.base_path, json={"ids": list(ids)})

    def clear_read_notifications(self) -> Dict:
        return self.client.delete(f"{self.base_path}/clear-read")

    def create_notification(self, data: Dict) -> Dict:
        return self.client.post(self.base_path, json=data)
