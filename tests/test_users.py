"""Tests for accounts, authentication and password recovery."""

from datetime import date, timedelta

import pytest

from claimease.core.config import settings
from claimease.core.dependencies import get_auth_service, get_user_service
from claimease.core.exceptions import (
    AuthenticationError, AuthorizationError, BusinessRuleError,
    DuplicateResourceError, ValidationFailedError
)
from claimease.models.user import UserCreate, UserUpdate
from claimease.utils.validators import add_years

from conftest import PASSWORD, auth_headers, make_user


def fields(exc: ValidationFailedError) -> dict:
    return {e["field"]: e["message"] for e in exc.errors}


def registration(**overrides) -> dict:
    data = {
        "first_name": "Asha",
        "last_name": "Verma",
        "email": "asha@claimease.com",
        "phone": "9876543210",
        "password": PASSWORD,
        "date_of_birth": "1990-05-14",
    }
    data.update(overrides)
    return data


class TestUserCreation:
    """Test account validation."""

    def test_agent_gets_agent_code(self) -> None:
        """Test agent codes."""
        agent = make_user("agent", "agent2@claimease.com")
        assert agent.agent_code.startswith("AG")
        assert len(agent.agent_code) == 8

    def test_customer_under_18_rejected(self) -> None:
        """Test the minimum customer age."""
        dob = add_years(date.today(), -17)
        with pytest.raises(ValidationFailedError) as exc_info:
            make_user("customer", "young@claimease.com", date_of_birth=dob)

        assert fields(exc_info.value)["date_of_birth"] == "Customer must be at least 18 years old"

    def test_customer_needs_birth_date(self) -> None:
        """Test date of birth is required for customers."""
        with pytest.raises(ValidationFailedError) as exc_info:
            make_user("customer", "nodob@claimease.com", date_of_birth=None)

        assert "date_of_birth" in fields(exc_info.value)

    def test_staff_need_department(self) -> None:
        """Test department is required for staff."""
        with pytest.raises(ValidationFailedError) as exc_info:
            make_user("agent", "nodept@claimease.com", department=None)

        assert fields(exc_info.value)["department"] == "Department is required for agents and admins"

    def test_all_errors_reported(self) -> None:
        """Test every bad field is listed."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_user_service().create_user(UserCreate(role="customer"))

        assert set(fields(exc_info.value)) >= {
            "first_name", "last_name", "email", "phone", "password", "date_of_birth"
        }

    def test_phone_format(self) -> None:
        """Test phone numbers must be ten digits."""
        with pytest.raises(ValidationFailedError) as exc_info:
            make_user("customer", "phone@claimease.com", phone="12345")

        assert fields(exc_info.value)["phone"] == "Phone number must be exactly 10 digits"

    def test_duplicate_email(self, customer) -> None:
        """Test emails are unique regardless of case."""
        with pytest.raises(DuplicateResourceError):
            make_user("customer", "CUSTOMER@claimease.com")

    def test_password_stored_hashed(self, customer) -> None:
        """Test the public form hides secrets."""
        public = customer.to_public()

        assert "password_hash" not in public
        assert public["full_name"] == "Customer Tester"
        assert public["status"] == "active"


class TestUserManagement:
    """Test updates and status changes."""

    def test_customer_cannot_change_role(self, customer) -> None:
        """Test restricted fields."""
        with pytest.raises(AuthorizationError):
            get_user_service().update_user(customer, customer.user_id, UserUpdate(role="admin"))

    def test_customer_cannot_edit_others(self, customer, other_customer) -> None:
        """Test users only edit themselves."""
        with pytest.raises(AuthorizationError):
            get_user_service().update_user(customer, other_customer.user_id, UserUpdate(first_name="Mallory"))

    def test_self_update(self, customer) -> None:
        """Test editing one's own profile."""
        updated = get_user_service().update_user(customer, customer.user_id, UserUpdate(first_name="Meera"))
        assert updated.first_name == "Meera"

    def test_admin_cannot_deactivate_self(self, admin) -> None:
        """Test self lockout protection."""
        with pytest.raises(BusinessRuleError):
            get_user_service().update_status(admin, admin.user_id, "inactive")

    def test_bulk_skips_admins(self, admin, agent, customer) -> None:
        """Test bulk status changes leave admins alone."""
        other_admin = make_user("admin", "admin2@claimease.com")
        modified = get_user_service().bulk_update_status(
            admin, [agent.user_id, customer.user_id, other_admin.user_id, "usr_missing"], "inactive"
        )

        assert modified == 2
        assert other_admin.is_active is True

    def test_cannot_delete_admin(self, admin) -> None:
        """Test admin accounts are protected."""
        other_admin = make_user("admin", "admin2@claimease.com")
        with pytest.raises(BusinessRuleError):
            get_user_service().delete_user(admin, other_admin.user_id)

    def test_agent_sees_only_customers(self, admin, agent, customer) -> None:
        """Test agent scoping of the user list."""
        users, total = get_user_service().list_users(agent)

        assert total == 1
        assert users[0].user_id == customer.user_id


class TestAuthService:
    """Test login and password flows."""

    def test_login(self, customer) -> None:
        """Test a successful login."""
        session = get_auth_service().login("customer@claimease.com", PASSWORD)

        assert session["user"]["user_id"] == customer.user_id
        assert session["access_token"]
        assert session["refresh_token"]

    def test_wrong_password(self, customer) -> None:
        """Test bad credentials."""
        with pytest.raises(AuthenticationError) as exc_info:
            get_auth_service().login("customer@claimease.com", "Wrong@123")

        assert exc_info.value.message == "Invalid credentials"

    def test_inactive_user(self, admin, customer) -> None:
        """Test deactivated accounts cannot log in."""
        get_user_service().update_status(admin, customer.user_id, "inactive")

        with pytest.raises(AuthenticationError) as exc_info:
            get_auth_service().login("customer@claimease.com", PASSWORD)

        assert exc_info.value.message == "Account is deactivated. Please contact administrator."

    def test_register_forces_customer(self) -> None:
        """Test self-registration cannot pick a role."""
        session = get_auth_service().register(UserCreate(**registration(role="admin", department="Ops")))

        assert session["user"]["role"] == "customer"
        assert session["user"]["department"] is None

    def test_reset_flow(self, customer) -> None:
        """Test forgot then reset password."""
        service = get_auth_service()
        token = service.forgot_password("customer@claimease.com")

        assert customer.reset_password_token != token
        service.reset_password(token, "Changed@456")

        assert customer.reset_password_token is None
        assert service.login("customer@claimease.com", "Changed@456")["user"]["user_id"] == customer.user_id

    def test_expired_reset_token(self, customer) -> None:
        """Test tokens expire."""
        service = get_auth_service()
        token = service.forgot_password("customer@claimease.com")
        customer.reset_password_expire = customer.reset_password_expire - timedelta(hours=1)

        with pytest.raises(BusinessRuleError) as exc_info:
            service.reset_password(token, "Changed@456")

        assert exc_info.value.message == "Invalid or expired token"

    def test_unknown_email_gets_no_token(self) -> None:
        """Test unknown accounts."""
        assert get_auth_service().forgot_password("nobody@claimease.com") is None

    def test_update_password_checks_current(self, customer) -> None:
        """Test the current password is required."""
        with pytest.raises(AuthenticationError):
            get_auth_service().update_password(customer, "Wrong@123", "Changed@456")

    def test_update_password_strength(self, customer) -> None:
        """Test the new password must be strong."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_auth_service().update_password(customer, PASSWORD, "weak")

        assert {e["field"] for e in exc_info.value.errors} == {"new_password"}


class TestAuthApi:
    """Test the auth endpoints."""

    def test_register_and_me(self, client) -> None:
        """Test registering then fetching the profile."""
        response = client.post("/api/auth/register", json=registration())
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["role"] == "customer"

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "asha@claimease.com"

    def test_register_validation_errors(self, client) -> None:
        """Test registration field errors."""
        dob = add_years(date.today(), -17).isoformat()
        response = client.post("/api/auth/register", json=registration(date_of_birth=dob))

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "date_of_birth", "message": "Customer must be at least 18 years old"}
        ]

    def test_login_normalizes_email(self, client, customer) -> None:
        """Test email case and whitespace are ignored."""
        response = client.post("/api/auth/login", json={"email": " Customer@ClaimEase.com ", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["message"] == "Login successful"

    def test_login_failure(self, client, customer) -> None:
        """Test the error envelope for bad credentials."""
        response = client.post("/api/auth/login", json={"email": "customer@claimease.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Invalid credentials",
            "error_code": "AUTHENTICATION_ERROR",
        }

    def test_login_rate_limited(self, client, customer, monkeypatch) -> None:
        """Test auth attempts are limited per client."""
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
        monkeypatch.setattr(settings, "AUTH_RATE_LIMIT_REQUESTS", 2)

        codes = [
            client.post("/api/auth/login", json={"email": "customer@claimease.com", "password": "nope"}).status_code
            for _ in range(3)
        ]

        assert codes == [401, 401, 429]

    def test_forgot_password_debug_token(self, client, customer) -> None:
        """Test the reset token is echoed only in debug mode."""
        response = client.post("/api/auth/forgot-password", json={"email": "customer@claimease.com"})
        token = response.json()["reset_token"]

        response = client.put(f"/api/auth/reset-password/{token}", json={"password": "Changed@456"})
        assert response.status_code == 200
        assert response.json()["message"] == "Password reset successful"

    def test_forgot_password_hides_token(self, client, customer, monkeypatch) -> None:
        """Test production responses do not leak the token."""
        monkeypatch.setattr(settings, "DEBUG", False)
        response = client.post("/api/auth/forgot-password", json={"email": "customer@claimease.com"})

        assert response.status_code == 200
        assert "reset_token" not in response.json()

    def test_refresh(self, client, customer) -> None:
        """Test exchanging a refresh token."""
        login = client.post("/api/auth/login", json={"email": "customer@claimease.com", "password": PASSWORD}).json()
        response = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})

        assert response.status_code == 200
        assert response.json()["user"]["user_id"] == customer.user_id

    def test_deactivated_token_refused(self, client, admin, customer) -> None:
        """Test tokens stop working once the account is deactivated."""
        headers = auth_headers(customer)
        get_user_service().update_status(admin, customer.user_id, "inactive")

        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["message"] == "User account is deactivated"


class TestUsersApi:
    """Test the user management endpoints."""

    def test_admin_lists_users(self, client, admin, agent, customer) -> None:
        """Test listing with role filter."""
        response = client.get("/api/users/", params={"role": "agent"}, headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["users"][0]["email"] == "agent@claimease.com"

    def test_customer_cannot_list(self, client, customer) -> None:
        """Test the staff guard."""
        response = client.get("/api/users/", headers=auth_headers(customer))
        assert response.status_code == 403

    def test_status_message(self, client, admin, agent) -> None:
        """Test deactivate then activate."""
        response = client.put(
            f"/api/users/{agent.user_id}/status", json={"status": "inactive"}, headers=auth_headers(admin)
        )
        assert response.json()["message"] == "User deactivated successfully"

        response = client.put(
            f"/api/users/{agent.user_id}/status", json={"status": "active"}, headers=auth_headers(admin)
        )
        assert response.json()["message"] == "User activated successfully"

    def test_avatar_upload(self, client, customer, isolated_settings) -> None:
        """Test avatars are stored under profiles."""
        response = client.post(
            "/api/users/me/avatar",
            files={"avatar": ("me.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
            headers=auth_headers(customer),
        )

        assert response.status_code == 200
        assert response.json()["user"]["avatar"].startswith("/uploads/profiles/")
        assert len(list((isolated_settings / "uploads" / "profiles").iterdir())) == 1

    def test_avatar_must_be_image(self, client, customer) -> None:
        """Test avatars only accept images."""
        response = client.post(
            "/api/users/me/avatar",
            files={"avatar": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "UNSUPPORTED_FILE_TYPE"
