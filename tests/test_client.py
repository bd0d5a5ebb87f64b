"""Tests for the HTTP API client."""

import io
import json
from unittest.mock import MagicMock

import pytest

from claimease.client.api_service import ApiClient, ApiError, field_error_map, merge_field_errors

from conftest import PASSWORD


def fake_response(status_code=200, payload=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def api(session):
    return ApiClient(base_url="http://api.test/api/", session=session)


class TestFieldErrors:
    """Test error mapping helpers."""

    def test_both_shapes(self) -> None:
        """Test param/msg and field/message entries."""
        errors = [
            {"param": "email", "msg": "Email is required"},
            {"field": "phone", "message": "Phone number is required"},
            {"param": "email", "msg": "Duplicate entry"},
        ]

        assert field_error_map(errors) == {
            "email": "Email is required",
            "phone": "Phone number is required",
        }

    def test_merge_server_wins(self) -> None:
        """Test server messages replace local ones."""
        form = {"email": "Looks wrong", "name": "Name is required"}
        payload = {"errors": [{"param": "email", "msg": "User already exists with this email"}]}

        assert merge_field_errors(form, payload) == {
            "email": "User already exists with this email",
            "name": "Name is required",
        }
        assert merge_field_errors(form, None) == form


class TestApiClient:
    """Test request handling."""

    def test_url_and_auth_header(self, api, session) -> None:
        """Test the base URL join and bearer token."""
        session.request.return_value = fake_response(payload={"success": True})
        api.token = "abc"

        api.get("/auth/me")

        args, kwargs = session.request.call_args
        assert args == ("GET", "http://api.test/api/auth/me")
        assert kwargs["headers"] == {"Authorization": "Bearer abc"}
        assert kwargs["timeout"] == 30

    def test_get_drops_none_params(self, api, session) -> None:
        """Test unset filters are not sent."""
        session.request.return_value = fake_response(payload={"claims": []})

        api.claims.list(status="submitted", page=None)

        assert session.request.call_args.kwargs["params"] == {"status": "submitted"}

    def test_error_raises(self, api, session) -> None:
        """Test non-2xx responses become ApiError."""
        session.request.return_value = fake_response(400, {
            "success": False,
            "message": "Validation failed",
            "errors": [{"field": "claim_amount", "message": "Claim amount exceeds remaining coverage"}],
        }, reason="Bad Request")

        with pytest.raises(ApiError) as exc_info:
            api.claims.update("CLM1", {"claim_amount": 10 ** 9})

        error = exc_info.value
        assert error.status_code == 400
        assert error.message == "Validation failed"
        assert error.field_errors == {"claim_amount": "Claim amount exceeds remaining coverage"}

    def test_error_without_body(self, api, session) -> None:
        """Test the reason phrase is used when there is no JSON body."""
        session.request.return_value = fake_response(502, None, reason="Bad Gateway")

        with pytest.raises(ApiError) as exc_info:
            api.chatbot.faqs()

        assert exc_info.value.message == "Bad Gateway"
        assert exc_info.value.field_errors == {}


class TestResources:
    """Test resource methods."""

    def test_login_and_logout(self, api, session) -> None:
        """Test tokens are stored then cleared."""
        session.request.return_value = fake_response(payload={
            "success": True, "access_token": "access", "refresh_token": "refresh",
        })
        api.auth.login("asha@claimease.com", PASSWORD)

        assert api.token == "access"
        assert api.refresh_token == "refresh"
        assert session.request.call_args.kwargs["json"] == {"email": "asha@claimease.com", "password": PASSWORD}

        session.request.return_value = fake_response(payload={"success": True})
        api.auth.logout()

        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer access"
        assert api.token is None
        assert api.refresh_token is None

    def test_claim_create_multipart(self, api, session) -> None:
        """Test nested values are JSON encoded and files sent as claimDocument."""
        session.request.return_value = fake_response(201, {"success": True})
        document = ("bill.pdf", io.BytesIO(b"%PDF-1.4"), "application/pdf")
        witnesses = [{"name": "Ravi", "phone": "9876543210"}]

        api.claims.create(
            {"policy_id": "P1", "claim_amount": 5000, "witnesses": witnesses, "police_report_number": None},
            [document],
        )

        kwargs = session.request.call_args.kwargs
        assert kwargs["data"]["claim_amount"] == "5000"
        assert json.loads(kwargs["data"]["witnesses"]) == witnesses
        assert "police_report_number" not in kwargs["data"]
        assert kwargs["files"] == [("claimDocument", document)]

    def test_mark_many_read(self, api, session) -> None:
        """Test the bulk read route."""
        session.request.return_value = fake_response(payload={"modified_count": 2})

        api.notifications.mark_many_read(["N1", "N2"])

        args, kwargs = session.request.call_args
        assert args == ("PUT", "http://api.test/api/notifications/mark-multiple-read")
        assert kwargs["json"] == {"notification_ids": ["N1", "N2"]}

    def test_profile_activity_page(self, api, session) -> None:
        """Test the activity route drops an unset limit."""
        session.request.return_value = fake_response(payload={"activities": []})

        api.profile.activity(page=2)

        args, kwargs = session.request.call_args
        assert args == ("GET", "http://api.test/api/profile/activity")
        assert kwargs["params"] == {"page": 2}


class TestAgainstApp:
    """Test the client against the running application."""

    def test_register_and_fetch_profile(self, client) -> None:
        """Test a full round through the real routes."""
        api = ApiClient(base_url="http://testserver/api", session=client)

        api.auth.register({
            "first_name": "Meera",
            "last_name": "Iyer",
            "email": "meera@claimease.com",
            "password": PASSWORD,
            "phone": "9123456780",
            "date_of_birth": "1990-05-20",
        })
        profile = api.auth.me()

        assert profile["user"]["email"] == "meera@claimease.com"
        assert profile["user"]["role"] == "customer"

    def test_error_mapping_from_app(self, client) -> None:
        """Test a real validation response is mapped."""
        api = ApiClient(base_url="http://testserver/api", session=client)

        with pytest.raises(ApiError) as exc_info:
            api.auth.login("", "")

        assert exc_info.value.status_code == 400
        assert exc_info.value.field_errors["email"] == "Email is required"

    def test_profile_and_recommendations(self, client, customer) -> None:
        """Test income saved through the profile changes the life cover advice."""
        api = ApiClient(base_url="http://testserver/api", session=client)
        api.auth.login(customer.email, PASSWORD)

        api.profile.update_personal_info({"annual_income": 800000, "marital_status": "married"})
        life = api.recommendations.get("life")["recommendation"]

        assert life["recommended_coverage"] == 8000000
        assert "You have family responsibilities" in life["reasons"]
        with pytest.raises(ApiError) as exc_info:
            api.recommendations.get("pet")
        assert exc_info.value.status_code == 404
