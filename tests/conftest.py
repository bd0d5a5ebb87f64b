"""Test configuration and fixtures.

Every test gets its own data, upload and log directories under ``tmp_path``,
freshly built services and stores, and one seeded user per role.
"""

from datetime import date, timedelta
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from claimease.core.config import settings
from claimease.core.dependencies import (
    cleanup_resources, get_user_service, get_policy_service, get_claim_service
)
from claimease.core.security import generate_tokens, reset_rate_limits
from claimease.models.claim import ClaimCreate
from claimease.models.policy import PolicyCreate
from claimease.models.schemas import UploadedFile
from claimease.models.user import UserCreate

PASSWORD = "Secure@123"
POLICY_TERMS = (
    "Cover applies to hospitalization, day-care procedures and emergency "
    "ambulance charges within the sum insured."
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point all file storage at tmp_path and rebuild singletons around each test."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "LOG_FILE_PATH", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(settings, "LLM_PROVIDER", "google")
    monkeypatch.setattr(settings, "GOOGLE_API_KEY", None)
    monkeypatch.setattr(settings, "GROQ_API_KEY", None)
    monkeypatch.setattr(settings, "DEBUG", True)

    cleanup_resources()
    reset_rate_limits()
    yield tmp_path
    cleanup_resources()
    reset_rate_limits()


@pytest.fixture
def client():
    from claimease.main import app
    with TestClient(app) as test_client:
        yield test_client


# ===================
# Users
# ===================

def make_user(role: str, email: str, **overrides):
    data = {
        "first_name": role.capitalize(),
        "last_name": "Tester",
        "email": email,
        "phone": "9876543210",
        "password": PASSWORD,
        "role": role,
        "department": "Operations" if role != "customer" else None,
        "date_of_birth": date(1990, 5, 14) if role == "customer" else None,
    }
    data.update(overrides)
    return get_user_service().create_user(UserCreate(**data))


@pytest.fixture
def admin():
    return make_user("admin", "admin@claimease.com")


@pytest.fixture
def agent():
    return make_user("agent", "agent@claimease.com")


@pytest.fixture
def customer():
    return make_user("customer", "customer@claimease.com")


@pytest.fixture
def other_customer():
    return make_user("customer", "other@claimease.com", first_name="Other")


def auth_headers(user) -> Dict[str, str]:
    return {"Authorization": f"Bearer {generate_tokens(user.user_id)['access_token']}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def agent_headers(agent):
    return auth_headers(agent)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)

# ===================
# Policies & Claims
# ===================

def policy_payload(customer_id: str, **overrides) -> Dict[str, Any]:
    data = {
        "policy_name": "Family Health Shield",
        "description": "Comprehensive health cover for the family",
        "policy_type": "health",
        "coverage_amount": 500000,
        "premium_amount": 12000,
        "premium_frequency": "annual",
        "duration": 5,
        "customer_id": customer_id,
        "start_date": (date.today() - timedelta(days=30)).isoformat(),
        "terms": POLICY_TERMS,
    }
    data.update(overrides)
    return data


@pytest.fixture
def pending_policy(admin, agent, customer):
    return get_policy_service().create_policy(
        admin, PolicyCreate(**policy_payload(customer.user_id, agent_id=agent.user_id))
    )


@pytest.fixture
def active_policy(admin, pending_policy):
    return get_policy_service().update_status(admin, pending_policy.policy_id, "active")


def stored_document(name: str = "report.pdf") -> UploadedFile:
    return UploadedFile(
        field="claimDocument",
        filename=name,
        original_name=name,
        path=f"/nonexistent/{name}",
        url=f"/uploads/claims/{name}",
        mime_type="application/pdf",
        size=1024,
    )


def claim_data(policy_id: str, **overrides) -> ClaimCreate:
    data = {
        "policy_id": policy_id,
        "claim_type": "medical",
        "claim_amount": 25000,
        "incident_date": date.today() - timedelta(days=3),
        "incident_location": "Pune",
        "description": "Hospitalized for three days after a fall",
    }
    data.update(overrides)
    return ClaimCreate(**data)


@pytest.fixture
def submitted_claim(customer, active_policy):
    return get_claim_service().create_claim(
        customer, claim_data(active_policy.policy_id), [stored_document()]
    )
