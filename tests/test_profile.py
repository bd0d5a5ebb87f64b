"""Tests for extended customer profiles."""

import io
from datetime import date

import pytest

from claimease.core.constants import ACTIVITY_LOG_LIMIT
from claimease.core.dependencies import get_profile_service
from claimease.core.exceptions import BusinessRuleError, ValidationFailedError
from claimease.core.security import verify_password
from claimease.models.profile import (
    ClientInfo, ProfileUpdate, PersonalInfoUpdate, WorkInfoUpdate, MedicalInfoUpdate,
    ProfilePreferencesUpdate, SecurityUpdate, BankAccountCreate, NomineeCreate
)
from claimease.storage.profile_store import get_profile_store
from claimease.storage.user_store import get_user_store
from claimease.utils.validators import add_years


def fields(exc: ValidationFailedError) -> dict:
    return {e["field"]: e["message"] for e in exc.errors}


def bank_account(**overrides) -> BankAccountCreate:
    data = {
        "account_number": "123456789012",
        "ifsc_code": "hdfc0001234",
        "bank_name": "HDFC Bank",
    }
    data.update(overrides)
    return BankAccountCreate(**data)


class TestProfileLookup:
    """Test profile creation on first access."""

    def test_created_once(self, customer) -> None:
        """Test the first read creates a profile seeded from the account."""
        service = get_profile_service()

        first = service.get_or_create(customer)
        second = service.get_or_create(customer)

        assert first.profile_id == second.profile_id
        assert get_profile_store().count() == 1
        assert first.personal_info.date_of_birth == date(1990, 5, 14)
        assert first.security.last_password_change is not None

    def test_initial_completeness(self, customer, admin) -> None:
        """Test defaults count towards completeness."""
        service = get_profile_service()

        # date of birth and nationality out of four personal fields, plus preferences
        assert service.get_or_create(customer).profile_completeness == 25
        assert service.get_or_create(admin).profile_completeness == 18

    def test_public_view(self, customer) -> None:
        """Test the public view includes the account and computed fields."""
        profile = get_profile_service().get_profile(customer)

        assert profile["user"]["email"] == "customer@claimease.com"
        assert profile["age"] is not None
        assert profile["bmi"] is None
        assert "activity_log" not in profile


class TestSectionUpdates:
    """Test the per-section updates."""

    def test_personal_info(self, customer) -> None:
        """Test fields merge and completeness rises."""
        service = get_profile_service()
        service.update_personal_info(customer, PersonalInfoUpdate(gender="female", occupation="Engineer"))
        profile = service.update_personal_info(customer, PersonalInfoUpdate(annual_income=900000))

        assert profile.personal_info.gender == "female"
        assert profile.personal_info.occupation == "Engineer"
        assert profile.personal_info.annual_income == 900000
        assert profile.profile_completeness == 40

    def test_personal_info_rejected(self, customer) -> None:
        """Test every invalid field is reported together."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().update_personal_info(customer, PersonalInfoUpdate(
                gender="unknown",
                marital_status="complicated",
                annual_income=-1,
                identification_documents=[{"type": "pan", "number": "12345"}],
            ))

        assert fields(exc_info.value) == {
            "gender": "Invalid gender",
            "marital_status": "Invalid marital status",
            "annual_income": "Annual income must be positive",
            "identification_documents.0.number": "Please provide a valid PAN number",
        }
        assert get_profile_store().count() == 0

    def test_identification_documents_start_unverified(self, customer) -> None:
        """Test callers cannot mark their own documents verified."""
        profile = get_profile_service().update_personal_info(customer, PersonalInfoUpdate(
            identification_documents=[{"type": "pan", "number": "ABCDE1234F", "verified": True}],
        ))

        assert profile.personal_info.identification_documents[0].verified is False

    def test_work_info(self, customer) -> None:
        """Test company and position complete the work section."""
        profile = get_profile_service().update_work_info(customer, WorkInfoUpdate(
            company="Acme", position="Analyst", employment_type="full-time",
        ))

        assert profile.work_info.employment_type == "full-time"
        assert profile.profile_completeness == 45

    def test_invalid_employment_type(self, customer) -> None:
        """Test unknown employment types."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().update_work_info(customer, WorkInfoUpdate(employment_type="gig"))

        assert fields(exc_info.value) == {"employment_type": "Invalid employment type"}

    def test_medical_info_and_bmi(self, customer) -> None:
        """Test BMI is derived from height and weight."""
        profile = get_profile_service().update_medical_info(customer, MedicalInfoUpdate(
            blood_group="O+", height=170, weight=65, chronic_conditions=["asthma", " "],
        ))

        assert profile.medical_info.bmi == 22.5
        assert profile.medical_info.chronic_conditions == ["asthma"]
        assert profile.profile_completeness == 40

    @pytest.mark.parametrize("update, field", [
        ({"height": 30}, "height"),
        ({"weight": 600}, "weight"),
        ({"height": float("nan")}, "height"),
        ({"blood_group": "C+"}, "blood_group"),
    ])
    def test_medical_ranges(self, customer, update, field) -> None:
        """Test out-of-range measurements."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().update_medical_info(customer, MedicalInfoUpdate(**update))

        assert list(fields(exc_info.value)) == [field]

    def test_preferences_merge(self, customer) -> None:
        """Test nested notification settings keep untouched values."""
        profile = get_profile_service().update_preferences(customer, ProfilePreferencesUpdate(
            theme="dark", notifications={"marketing": True},
        ))

        assert profile.preferences.theme == "dark"
        assert profile.preferences.notifications.marketing is True
        assert profile.preferences.notifications.email is True
        assert profile.preferences.language == "en"

    def test_security_answers_hashed(self, customer) -> None:
        """Test answers are stored as hashes and hidden from the public view."""
        service = get_profile_service()
        profile = service.update_security(customer, SecurityUpdate(
            two_factor_enabled=True,
            security_questions=[{"question": "First pet?", "answer": " Bruno "}],
        ))

        stored = profile.security.security_questions[0]
        assert verify_password("bruno", stored.answer_hash)
        assert profile.profile_completeness == 40
        assert service.get_profile(customer)["security"]["security_questions"] == [{"question": "First pet?"}]

    def test_general_update_validates_all_sections(self, customer) -> None:
        """Test nothing is saved when any section is invalid."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().update_profile(customer, ProfileUpdate(
                first_name="Priya",
                personal_info={"gender": "unknown"},
                medical_info={"height": 10},
            ))

        assert fields(exc_info.value) == {
            "personal_info.gender": "Invalid gender",
            "medical_info.height": "Height must be between 50 and 300 cm",
        }
        assert get_user_store().get(customer.user_id).first_name == "Customer"

    def test_general_update(self, customer) -> None:
        """Test account and profile fields change together."""
        profile = get_profile_service().update_profile(customer, ProfileUpdate(
            first_name="Priya",
            personal_info={"marital_status": "married"},
            work_info={"company": "Acme"},
        ))

        assert get_user_store().get(customer.user_id).first_name == "Priya"
        assert profile.personal_info.marital_status == "married"
        assert profile.work_info.company == "Acme"
        assert profile.activity_log[-1].action == "Profile updated"


class TestActivityLog:
    """Test the profile change history."""

    def test_records_client(self, customer) -> None:
        """Test the address and agent of the change are kept."""
        client = ClientInfo(ip_address="10.0.0.7", user_agent="pytest")
        profile = get_profile_service().update_work_info(customer, WorkInfoUpdate(company="Acme"), client)

        entry = profile.activity_log[-1]
        assert entry.action == "Work information updated"
        assert entry.ip_address == "10.0.0.7"
        assert entry.user_agent == "pytest"

    def test_capped(self, customer) -> None:
        """Test only the most recent entries are kept."""
        service = get_profile_service()
        for i in range(ACTIVITY_LOG_LIMIT + 5):
            service.update_work_info(customer, WorkInfoUpdate(department=f"Team {i}"))

        profile = service.get_or_create(customer)
        assert len(profile.activity_log) == ACTIVITY_LOG_LIMIT
        assert profile.work_info.department == f"Team {ACTIVITY_LOG_LIMIT + 4}"


class TestBankDetails:
    """Test bank accounts."""

    def test_first_account_is_primary(self, customer) -> None:
        """Test normalization and the primary flag."""
        profile = get_profile_service().add_bank_account(customer, bank_account(account_number="1234 5678 9012"))

        account = profile.bank_details[0]
        assert account.account_number == "123456789012"
        assert account.ifsc_code == "HDFC0001234"
        assert account.is_primary is True

    def test_new_primary_replaces_old(self, customer) -> None:
        """Test only one account is primary."""
        service = get_profile_service()
        service.add_bank_account(customer, bank_account())
        service.add_bank_account(customer, bank_account(account_number="999988887777"))
        profile = service.add_bank_account(customer, bank_account(account_number="111122223333", is_primary=True))

        assert [a.is_primary for a in profile.bank_details] == [False, False, True]

    def test_duplicate_rejected(self, customer) -> None:
        """Test the same account twice."""
        service = get_profile_service()
        service.add_bank_account(customer, bank_account())

        with pytest.raises(BusinessRuleError) as exc_info:
            service.add_bank_account(customer, bank_account())

        assert exc_info.value.message == "This bank account is already added"

    def test_invalid_details(self, customer) -> None:
        """Test account number and IFSC formats."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().add_bank_account(customer, bank_account(account_number="12ab", ifsc_code="HDFC1234"))

        assert fields(exc_info.value) == {
            "account_number": "Account number must be 9 to 18 digits",
            "ifsc_code": "Please provide a valid IFSC code",
        }

    def test_masked_in_public_view(self, customer) -> None:
        """Test only the last four digits are shown."""
        service = get_profile_service()
        service.add_bank_account(customer, bank_account())

        assert service.get_profile(customer)["bank_details"][0]["account_number"] == "********9012"


class TestNominees:
    """Test nominee shares and guardians."""

    def test_shares_capped_at_hundred(self, customer) -> None:
        """Test the running share total."""
        service = get_profile_service()
        service.add_nominee(customer, NomineeCreate(name="Ravi", relationship="Spouse", share=60))

        with pytest.raises(BusinessRuleError) as exc_info:
            service.add_nominee(customer, NomineeCreate(name="Anu", relationship="Sister", share=50))

        assert exc_info.value.message == "Total nominee share cannot exceed 100%"
        profile = service.add_nominee(customer, NomineeCreate(name="Anu", relationship="Sister", share=40))
        assert profile.nominee_share_total == 100

    @pytest.mark.parametrize("share", [None, 0, 101, float("nan")])
    def test_invalid_share(self, customer, share) -> None:
        """Test shares outside 0-100."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_profile_service().add_nominee(customer, NomineeCreate(name="Ravi", relationship="Son", share=share))

        assert fields(exc_info.value) == {"share": "Share must be between 0 and 100"}

    def test_minor_needs_guardian(self, customer) -> None:
        """Test nominees under 18 need a guardian."""
        minor = add_years(date.today(), -10)
        service = get_profile_service()

        with pytest.raises(ValidationFailedError) as exc_info:
            service.add_nominee(customer, NomineeCreate(name="Kiran", relationship="Son",
                                                        date_of_birth=minor, share=50))
        assert fields(exc_info.value) == {"guardian_name": "Guardian name is required for minor nominees"}

        profile = service.add_nominee(customer, NomineeCreate(name="Kiran", relationship="Son", date_of_birth=minor,
                                                              share=50, guardian_name="Ravi"))
        assert profile.nominees[0].guardian_name == "Ravi"


class TestProfileApi:
    """Test the profile endpoints."""

    def test_get_profile(self, client, customer_headers) -> None:
        """Test the profile is created on first read."""
        response = client.get("/api/profile/", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["profile"]["profile_completeness"] == 25

    def test_requires_auth(self, client) -> None:
        """Test anonymous access."""
        assert client.get("/api/profile/").status_code == 401

    def test_section_routes(self, client, customer_headers) -> None:
        """Test each section route updates its section."""
        routes = {
            "/api/profile/personal-info": {"gender": "male"},
            "/api/profile/work-info": {"company": "Acme", "position": "Lead"},
            "/api/profile/medical-info": {"blood_group": "A+", "height": 180, "weight": 81},
            "/api/profile/preferences": {"language": "hi"},
            "/api/profile/security": {
                "two_factor_enabled": True,
                "security_questions": [{"question": "Birth city?", "answer": "Pune"}],
            },
        }
        for path, body in routes.items():
            response = client.put(path, json=body, headers=customer_headers)
            assert response.status_code == 200, path

        profile = response.json()["profile"]
        assert profile["bmi"] == 25.0
        assert profile["preferences"]["language"] == "hi"
        assert profile["profile_completeness"] == 83

    def test_validation_envelope(self, client, customer_headers) -> None:
        """Test invalid sections use the shared error shape."""
        response = client.put("/api/profile/medical-info", json={"weight": 5}, headers=customer_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"] == [{"field": "weight", "message": "Weight must be between 20 and 500 kg"}]

    def test_activity_pages(self, client, customer_headers) -> None:
        """Test the newest change comes first with the caller's agent recorded."""
        client.put("/api/profile/work-info", json={"company": "Acme"}, headers=customer_headers)
        client.put("/api/profile/preferences", json={"theme": "dark"},
                   headers={**customer_headers, "User-Agent": "claimease-tests"})

        body = client.get("/api/profile/activity", params={"limit": 1}, headers=customer_headers).json()

        assert body["total"] == 2
        assert body["total_pages"] == 2
        assert body["activities"][0]["action"] == "Preferences updated"
        assert body["activities"][0]["user_agent"] == "claimease-tests"
        assert body["activities"][0]["ip_address"] == "testclient"

    def test_bank_and_nominee(self, client, customer_headers) -> None:
        """Test account and nominee creation routes."""
        bank = client.post("/api/profile/bank-details", headers=customer_headers, json={
            "account_number": "123456789012", "ifsc_code": "SBIN0000123", "bank_name": "SBI",
        })
        nominee = client.post("/api/profile/nominee", headers=customer_headers, json={
            "name": "Ravi", "relationship": "Spouse", "share": 100,
        })

        assert bank.status_code == 201
        assert bank.json()["profile"]["bank_details"][0]["account_number"] == "********9012"
        assert nominee.status_code == 201
        assert nominee.json()["profile"]["nominees"][0]["share"] == 100

    def test_avatar(self, client, customer, customer_headers) -> None:
        """Test the avatar is stored on the account and as the profile photo."""
        response = client.post(
            "/api/profile/avatar",
            headers=customer_headers,
            files={"avatar": ("me.png", io.BytesIO(b"\x89PNG\r\n\x1a\n"), "image/png")},
        )

        assert response.status_code == 200
        url = response.json()["avatar_url"]
        assert get_user_store().get(customer.user_id).avatar == url
        documents = get_profile_service().get_or_create(customer).documents
        assert [(d.type, d.url) for d in documents] == [("profile_photo", url)]
