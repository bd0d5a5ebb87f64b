# claimease/client/api_service.py
"""
HTTP client for the ClaimEase API.

One resource object per backend area, each method mapping onto a single
endpoint. Non-2xx responses raise ``ApiError`` with the field errors
normalized to ``{field: message}``.
"""

import json
from typing import Optional, Dict, Any, List, Tuple, BinaryIO

import requests

from claimease.core.logging import get_logger
from claimease.utils.validators import normalize_field_errors

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30

# (filename, file object, content type)
FileSpec = Tuple[str, BinaryIO, str]


class ApiError(Exception):
    """Error response from the API."""

    def __init__(self, status_code: int, message: str, field_errors: Optional[Dict[str, str]] = None,
                 payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.message = message
        self.field_errors = field_errors or {}
        self.payload = payload or {}
        super().__init__(f"{status_code}: {message}")


def field_error_map(errors: Optional[List[Dict[str, Any]]]) -> Dict[str, str]:
    """``{field: message}`` from any error entry shape; the first message per field wins."""
    mapped: Dict[str, str] = {}
    for entry in normalize_field_errors(errors or []):
        mapped.setdefault(entry["field"], entry["message"])
    return mapped


def merge_field_errors(form_errors: Dict[str, str], payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Fold an error response into a form's error state.

    Both ``{param, msg}`` and ``{field, message}`` entries are understood.
    Server messages replace client-side ones for the same field.
    """
    merged = dict(form_errors)
    if payload:
        merged.update(field_error_map(payload.get("errors")))
    return merged


class ApiClient:
    """requests.Session wrapper holding the base URL and bearer token."""

    def __init__(self, base_url: str = "http://localhost:8000/api", token: Optional[str] = None,
                 timeout: int = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token = token
        self.refresh_token: Optional[str] = None

        self.auth = AuthApi(self)
        self.users = UserApi(self)
        self.policies = PolicyApi(self)
        self.claims = ClaimApi(self)
        self.payments = PaymentApi(self)
        self.analytics = AnalyticsApi(self)
        self.notifications = NotificationApi(self)
        self.chatbot = ChatbotApi(self)
        self.dashboard = DashboardApi(self)
        self.profile = ProfileApi(self)
        self.recommendations = RecommendationApi(self)

    def set_tokens(self, access_token: Optional[str], refresh_token: Optional[str] = None):
        self.token = access_token
        if refresh_token is not None:
            self.refresh_token = refresh_token

    def request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.base_url}{path}"
        response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not 200 <= response.status_code < 300:
            message = payload.get("message") or response.reason or "Request failed"
            logger.warning(f"API error {response.status_code} on {method} {path}: {message}")
            raise ApiError(
                response.status_code,
                message,
                field_errors=field_error_map(payload.get("errors")),
                payload=payload,
            )
        return payload

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None, **kwargs) -> Dict[str, Any]:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Dict[str, Any]:
        return self.request("DELETE", path)


class _Resource:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthApi(_Resource):
    def _store_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.client.set_tokens(payload.get("access_token"), payload.get("refresh_token"))
        return payload

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._store_session(self.client.post("/auth/login", {"email": email, "password": password}))

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._store_session(self.client.post("/auth/register", data))

    def me(self) -> Dict[str, Any]:
        return self.client.get("/auth/me")

    def logout(self) -> Dict[str, Any]:
        payload = self.client.post("/auth/logout")
        self.client.token = None
        self.client.refresh_token = None
        return payload

    def refresh(self) -> Dict[str, Any]:
        return self._store_session(
            self.client.post("/auth/refresh", {"refresh_token": self.client.refresh_token})
        )

    def update_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return self._store_session(self.client.put(
            "/auth/update-password",
            {"current_password": current_password, "new_password": new_password},
        ))

    def forgot_password(self, email: str) -> Dict[str, Any]:
        return self.client.post("/auth/forgot-password", {"email": email})

    def reset_password(self, token: str, password: str) -> Dict[str, Any]:
        return self._store_session(self.client.put(f"/auth/reset-password/{token}", {"password": password}))


class UserApi(_Resource):
    def list(self, **params) -> Dict[str, Any]:
        return self.client.get("/users/", params)

    def get(self, user_id: str) -> Dict[str, Any]:
        return self.client.get(f"/users/{user_id}")

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post("/users/", data)

    def update(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put(f"/users/{user_id}", data)

    def delete(self, user_id: str) -> Dict[str, Any]:
        return self.client.delete(f"/users/{user_id}")

    def update_status(self, user_id: str, status: str) -> Dict[str, Any]:
        return self.client.put(f"/users/{user_id}/status", {"status": status})

    def bulk_update_status(self, user_ids: List[str], status: str) -> Dict[str, Any]:
        return self.client.put("/users/bulk/status", {"user_ids": user_ids, "status": status})

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.client.get("/users/dashboard-stats")

    def upload_avatar(self, avatar: FileSpec) -> Dict[str, Any]:
        return self.client.post("/users/me/avatar", files={"avatar": avatar})


class PolicyApi(_Resource):
    def list(self, **params) -> Dict[str, Any]:
        return self.client.get("/policies/", params)

    def get(self, policy_id: str) -> Dict[str, Any]:
        return self.client.get(f"/policies/{policy_id}")

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post("/policies/", data)

    def update(self, policy_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put(f"/policies/{policy_id}", data)

    def delete(self, policy_id: str) -> Dict[str, Any]:
        return self.client.delete(f"/policies/{policy_id}")

    def update_status(self, policy_id: str, status: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return self.client.put(f"/policies/{policy_id}/status", {"status": status, "reason": reason})

    def add_payment(self, policy_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post(f"/policies/{policy_id}/payment", data)

    def expiring_soon(self, days: int = 30) -> Dict[str, Any]:
        return self.client.get("/policies/expiring-soon", {"days": days})

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.client.get("/policies/dashboard-stats")


class ClaimApi(_Resource):
    def list(self, **params) -> Dict[str, Any]:
        return self.client.get("/claims/", params)

    def get(self, claim_id: str) -> Dict[str, Any]:
        return self.client.get(f"/claims/{claim_id}")

    def create(self, data: Dict[str, Any], documents: List[FileSpec]) -> Dict[str, Any]:
        """Multipart submit: nested values are sent as JSON strings, files as ``claimDocument``."""
        form = {}
        for key, value in data.items():
            if value is None:
                continue
            form[key] = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        files = [("claimDocument", document) for document in documents]
        return self.client.post("/claims/", data=form, files=files)

    def update(self, claim_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put(f"/claims/{claim_id}", data)

    def delete(self, claim_id: str) -> Dict[str, Any]:
        return self.client.delete(f"/claims/{claim_id}")

    def update_status(self, claim_id: str, status: str, comments: Optional[str] = None,
                      **extra) -> Dict[str, Any]:
        return self.client.put(f"/claims/{claim_id}/status", {"status": status, "comments": comments, **extra})

    def assign(self, claim_id: str, assigned_to: str) -> Dict[str, Any]:
        return self.client.put(f"/claims/{claim_id}/assign", {"assigned_to": assigned_to})

    def add_investigation(self, claim_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put(f"/claims/{claim_id}/investigation", data)

    def upload_documents(self, claim_id: str, documents: List[FileSpec]) -> Dict[str, Any]:
        files = [("claimDocument", document) for document in documents]
        return self.client.post(f"/claims/{claim_id}/documents", files=files)

    def actions(self, claim_id: str) -> Dict[str, Any]:
        return self.client.get(f"/claims/{claim_id}/actions")

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.client.get("/claims/dashboard-stats")


class PaymentApi(_Resource):
    def list(self, **params) -> Dict[str, Any]:
        return self.client.get("/payments/", params)

    def get(self, payment_id: str) -> Dict[str, Any]:
        return self.client.get(f"/payments/{payment_id}")

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post("/payments/", data)

    def update_status(self, payment_id: str, status: str, failure_reason: Optional[str] = None) -> Dict[str, Any]:
        return self.client.put(f"/payments/{payment_id}/status", {"status": status, "failure_reason": failure_reason})

    def refund(self, payment_id: str, amount: Optional[float] = None, reason: Optional[str] = None) -> Dict[str, Any]:
        return self.client.post(f"/payments/{payment_id}/refund", {"amount": amount, "reason": reason})

    def receipt(self, payment_id: str) -> Dict[str, Any]:
        return self.client.get(f"/payments/{payment_id}/receipt")

    def overdue(self) -> Dict[str, Any]:
        return self.client.get("/payments/overdue")

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.client.get("/payments/dashboard-stats")


class AnalyticsApi(_Resource):
    def dashboard(self, timeframe: str = "30d") -> Dict[str, Any]:
        return self.client.get("/analytics/dashboard", {"timeframe": timeframe})

    def revenue(self, months: int = 12) -> Dict[str, Any]:
        return self.client.get("/analytics/revenue", {"months": months})

    def policies(self) -> Dict[str, Any]:
        return self.client.get("/analytics/policies")

    def claims(self, months: int = 6) -> Dict[str, Any]:
        return self.client.get("/analytics/claims", {"months": months})

    def customers(self, months: int = 6) -> Dict[str, Any]:
        return self.client.get("/analytics/customers", {"months": months})

    def export(self, type: str, format: str = "json") -> Dict[str, Any]:
        return self.client.get("/analytics/export", {"type": type, "format": format})


class NotificationApi(_Resource):
    def list(self, **params) -> Dict[str, Any]:
        return self.client.get("/notifications/", params)

    def unread_count(self) -> Dict[str, Any]:
        return self.client.get("/notifications/unread-count")

    def mark_read(self, notification_id: str) -> Dict[str, Any]:
        return self.client.put(f"/notifications/{notification_id}/read")

    def mark_many_read(self, notification_ids: List[str]) -> Dict[str, Any]:
        return self.client.put("/notifications/mark-multiple-read", {"notification_ids": notification_ids})

    def mark_all_read(self) -> Dict[str, Any]:
        return self.client.put("/notifications/mark-all-read")

    def delete(self, notification_id: str) -> Dict[str, Any]:
        return self.client.delete(f"/notifications/{notification_id}")

    def send_test(self) -> Dict[str, Any]:
        return self.client.post("/notifications/test", {})

    def preferences(self) -> Dict[str, Any]:
        return self.client.get("/notifications/preferences")

    def update_preferences(self, **preferences) -> Dict[str, Any]:
        return self.client.put("/notifications/preferences", preferences)


class ChatbotApi(_Resource):
    def chat(self, message: str) -> Dict[str, Any]:
        return self.client.post("/chatbot/", {"message": message})

    def suggestions(self) -> Dict[str, Any]:
        return self.client.get("/chatbot/suggestions")

    def faqs(self) -> Dict[str, Any]:
        return self.client.get("/chatbot/faqs")


class DashboardApi(_Resource):
    def overview(self) -> Dict[str, Any]:
        return self.client.get("/dashboard/")

    def claims_trend(self, days: int = 30) -> Dict[str, Any]:
        return self.client.get("/dashboard/claims-trend", {"days": days})

    def policy_expiry_alerts(self, days_ahead: int = 30) -> Dict[str, Any]:
        return self.client.get("/dashboard/policy-expiry-alerts", {"days_ahead": days_ahead})


class ProfileApi(_Resource):
    def get(self) -> Dict[str, Any]:
        return self.client.get("/profile/")

    def update(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/", data)

    def activity(self, page: int = 1, limit: Optional[int] = None) -> Dict[str, Any]:
        return self.client.get("/profile/activity", {"page": page, "limit": limit})

    def update_personal_info(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/personal-info", data)

    def update_work_info(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/work-info", data)

    def update_medical_info(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/medical-info", data)

    def update_preferences(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/preferences", data)

    def update_security(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.put("/profile/security", data)

    def upload_avatar(self, avatar: FileSpec) -> Dict[str, Any]:
        return self.client.post("/profile/avatar", files={"avatar": avatar})

    def add_bank_details(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post("/profile/bank-details", data)

    def add_nominee(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.post("/profile/nominee", data)


class RecommendationApi(_Resource):
    def list(self) -> Dict[str, Any]:
        return self.client.get("/recommendations/")

    def get(self, policy_type: str) -> Dict[str, Any]:
        return self.client.get(f"/recommendations/{policy_type}")
