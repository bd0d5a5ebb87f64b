"""Tests for claim submission, workflow and the claims API."""

from datetime import date, timedelta

import pytest

from claimease.core.dependencies import get_claim_service, get_policy_service, get_notification_service
from claimease.core.exceptions import (
    AuthorizationError, BusinessRuleError, InvalidStatusTransition,
    TransitionNotAuthorized, ValidationFailedError
)
from claimease.models.claim import ClaimStatusUpdate, ClaimUpdate, InvestigationCreate
from claimease.storage.claim_store import get_claim_store

from conftest import auth_headers, claim_data, stored_document

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


def fields(exc: ValidationFailedError) -> dict:
    return {e["field"]: e["message"] for e in exc.errors}


class TestClaimSubmission:
    """Test claim creation rules."""

    def test_creates_submitted_claim_with_audit_entry(self, customer, active_policy) -> None:
        """Test a valid submission."""
        claim = get_claim_service().create_claim(
            customer, claim_data(active_policy.policy_id), [stored_document()]
        )

        assert claim.status == "submitted"
        assert claim.customer_id == customer.user_id
        assert claim.claim_number.startswith("CLM")
        assert len(claim.documents) == 1
        assert len(claim.status_history) == 1
        assert claim.status_history[0].status == "submitted"
        assert claim.status_history[0].comments == "Claim submitted"

    def test_claim_linked_to_policy(self, submitted_claim, active_policy) -> None:
        """Test that the policy records its claims."""
        policy = get_policy_service().store.get(active_policy.policy_id)
        assert submitted_claim.claim_id in policy.claim_ids

    def test_customer_and_agent_notified(self, submitted_claim, customer, agent) -> None:
        """Test submission notifications."""
        _, customer_total, _ = get_notification_service().list_for(customer)
        _, agent_total, _ = get_notification_service().list_for(agent)

        # customer also received the policy created/activated notices
        assert customer_total >= 1
        assert agent_total == 1

    def test_requires_documents(self, customer, active_policy) -> None:
        """Test that at least one document is required."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_claim_service().create_claim(customer, claim_data(active_policy.policy_id), [])

        assert fields(exc_info.value)["documents"] == "At least one supporting document is required"

    def test_zero_amount_rejected(self, customer, active_policy) -> None:
        """Test claim amount must be positive."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, claim_amount=0), [stored_document()]
            )

        assert fields(exc_info.value)["claim_amount"] == "Valid claim amount is required"

    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_amount_rejected(self, customer, active_policy, amount) -> None:
        """Test NaN and infinite claim amounts."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, claim_amount=amount), [stored_document()]
            )

        assert fields(exc_info.value)["claim_amount"] == "Valid claim amount is required"
        assert get_claim_store().count() == 0

    def test_future_incident_rejected(self, customer, active_policy) -> None:
        """Test incident date cannot be in the future."""
        tomorrow = date.today() + timedelta(days=1)
        with pytest.raises(ValidationFailedError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, incident_date=tomorrow), [stored_document()]
            )

        assert fields(exc_info.value)["incident_date"] == "Incident date cannot be in the future"

    def test_short_description_rejected(self, customer, active_policy) -> None:
        """Test description length."""
        with pytest.raises(ValidationFailedError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, description="Too short"), [stored_document()]
            )

        assert fields(exc_info.value)["description"] == "Description must be between 10 and 1000 characters"

    def test_amount_above_coverage_rejected(self, customer, active_policy) -> None:
        """Test the coverage ceiling."""
        with pytest.raises(BusinessRuleError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, claim_amount=600000), [stored_document()]
            )

        assert exc_info.value.message == "Claim amount exceeds policy coverage amount"

    def test_incident_before_coverage_rejected(self, customer, active_policy) -> None:
        """Test the coverage period."""
        before_start = active_policy.start_date - timedelta(days=1)
        with pytest.raises(BusinessRuleError) as exc_info:
            get_claim_service().create_claim(
                customer, claim_data(active_policy.policy_id, incident_date=before_start), [stored_document()]
            )

        assert exc_info.value.message == "Incident date is outside policy coverage period"

    def test_pending_policy_rejected(self, customer, pending_policy) -> None:
        """Test claims need an active policy."""
        with pytest.raises(BusinessRuleError) as exc_info:
            get_claim_service().create_claim(customer, claim_data(pending_policy.policy_id), [stored_document()])

        assert exc_info.value.message == "Cannot create claim for inactive policy"

    def test_foreign_policy_rejected(self, other_customer, active_policy) -> None:
        """Test customers can only claim on their own policies."""
        with pytest.raises(AuthorizationError):
            get_claim_service().create_claim(other_customer, claim_data(active_policy.policy_id), [stored_document()])


class TestClaimWorkflow:
    """Test status changes and the audit trail."""

    def test_each_transition_appends_one_entry(self, submitted_claim, admin, agent) -> None:
        """Test the audit trail grows by exactly one per move."""
        service = get_claim_service()

        claim = service.update_status(agent, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))
        assert len(claim.status_history) == 2

        claim = service.update_status(agent, claim.claim_id, ClaimStatusUpdate(status="investigating"))
        assert len(claim.status_history) == 3

        claim = service.update_status(
            admin, claim.claim_id, ClaimStatusUpdate(status="approved", comments="Verified", approved_amount=20000)
        )
        assert len(claim.status_history) == 4
        assert claim.status == "approved"
        assert claim.approved_amount == 20000
        assert claim.decided_at is not None

        last = claim.status_history[-1]
        assert last.previous_status == "investigating"
        assert last.changed_by == admin.user_id
        assert last.comments == "Verified"

    def test_review_assigns_actor(self, submitted_claim, agent) -> None:
        """Test that starting review assigns the claim."""
        claim = get_claim_service().update_status(
            agent, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review")
        )
        assert claim.assigned_to == agent.user_id

    def test_agent_cannot_approve(self, submitted_claim, agent) -> None:
        """Test approval is admin only."""
        service = get_claim_service()
        service.update_status(agent, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

        with pytest.raises(TransitionNotAuthorized):
            service.update_status(agent, submitted_claim.claim_id, ClaimStatusUpdate(status="approved"))

        claim = service.get_claim(agent, submitted_claim.claim_id)
        assert claim.status == "under_review"
        assert len(claim.status_history) == 2

    def test_cannot_skip_review(self, submitted_claim, admin) -> None:
        """Test submitted claims cannot be approved directly."""
        with pytest.raises(InvalidStatusTransition):
            get_claim_service().update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="approved"))

    def test_terminal_claim_is_frozen(self, submitted_claim, admin) -> None:
        """Test closed claims cannot move."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="closed"))

        with pytest.raises(InvalidStatusTransition):
            service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

    def test_approved_amount_capped(self, submitted_claim, admin) -> None:
        """Test approved amount cannot exceed the claim."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

        with pytest.raises(ValidationFailedError) as exc_info:
            service.update_status(
                admin, submitted_claim.claim_id, ClaimStatusUpdate(status="approved", approved_amount=999999)
            )

        assert exc_info.value.message == "Approved amount cannot exceed claim amount"

    def test_non_finite_approved_amount(self, submitted_claim, admin) -> None:
        """Test a NaN approved amount is refused."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

        with pytest.raises(ValidationFailedError) as exc_info:
            service.update_status(
                admin, submitted_claim.claim_id, ClaimStatusUpdate(status="approved", approved_amount=float("nan"))
            )

        assert exc_info.value.message == "Approved amount must be greater than 0"
        assert service.store.get(submitted_claim.claim_id).status == "under_review"

    def test_rejection_needs_reason(self, submitted_claim, admin) -> None:
        """Test rejection requires a reason."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

        with pytest.raises(ValidationFailedError) as exc_info:
            service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="rejected"))
        assert exc_info.value.message == "Rejection reason is required"

        claim = service.update_status(
            admin, submitted_claim.claim_id,
            ClaimStatusUpdate(status="rejected", rejection_reason="Pre-existing condition")
        )
        assert claim.rejection_reason == "Pre-existing condition"
        assert claim.status_history[-1].reason == "Pre-existing condition"

    def test_markup_in_comments_rejected(self, submitted_claim, admin) -> None:
        """Test notes must be plain text."""
        with pytest.raises(ValidationFailedError):
            get_claim_service().update_status(
                admin, submitted_claim.claim_id,
                ClaimStatusUpdate(status="under_review", comments="<b>bold</b>")
            )

    def test_customer_notified_on_decision(self, submitted_claim, admin, customer) -> None:
        """Test the customer hears about approval."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="approved"))

        items, _, _ = get_notification_service().list_for(customer)
        approved = [n for n in items if n.type == "claim_approved"]
        assert len(approved) == 1
        assert approved[0].priority == "high"


class TestClaimAssignmentAndInvestigation:
    """Test assignment and investigation records."""

    def test_assign_moves_to_review(self, submitted_claim, admin, agent) -> None:
        """Test assigning a submitted claim."""
        claim = get_claim_service().assign_claim(admin, submitted_claim.claim_id, agent.user_id)

        assert claim.status == "under_review"
        assert claim.assigned_to == agent.user_id
        assert len(claim.status_history) == 2

    def test_cannot_assign_to_customer(self, submitted_claim, admin, customer) -> None:
        """Test assignees must be staff."""
        with pytest.raises(ValidationFailedError):
            get_claim_service().assign_claim(admin, submitted_claim.claim_id, customer.user_id)

    def test_assigned_agent_investigates(self, submitted_claim, admin, agent) -> None:
        """Test investigation by the assigned agent."""
        service = get_claim_service()
        service.assign_claim(admin, submitted_claim.claim_id, agent.user_id)

        claim = service.add_investigation(
            agent, submitted_claim.claim_id,
            InvestigationCreate(findings="Hospital bills verified", recommendation="approve", notes="Called hospital")
        )

        assert claim.status == "investigating"
        assert claim.investigation.findings == "Hospital bills verified"
        assert claim.investigation.recommendation == "approve"
        assert len(claim.investigation.notes) == 1

    def test_customer_cannot_investigate(self, submitted_claim, customer) -> None:
        """Test investigation is staff only."""
        with pytest.raises(AuthorizationError):
            get_claim_service().add_investigation(customer, submitted_claim.claim_id, InvestigationCreate())


class TestClaimEditing:
    """Test edits and access."""

    def test_customer_edits_submitted_claim(self, submitted_claim, customer) -> None:
        """Test editing while submitted."""
        claim = get_claim_service().update_claim(
            customer, submitted_claim.claim_id, ClaimUpdate(incident_location="Mumbai")
        )
        assert claim.incident_location == "Mumbai"

    def test_customer_cannot_edit_after_review(self, submitted_claim, customer, agent) -> None:
        """Test the edit window closes once review starts."""
        service = get_claim_service()
        service.update_status(agent, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))

        with pytest.raises(BusinessRuleError):
            service.update_claim(customer, submitted_claim.claim_id, ClaimUpdate(incident_location="Mumbai"))

    def test_customer_cannot_change_priority(self, submitted_claim, customer) -> None:
        """Test priority is staff only."""
        with pytest.raises(AuthorizationError):
            get_claim_service().update_claim(customer, submitted_claim.claim_id, ClaimUpdate(priority="urgent"))

    def test_other_customer_cannot_view(self, submitted_claim, other_customer) -> None:
        """Test claim visibility."""
        with pytest.raises(AuthorizationError):
            get_claim_service().get_claim(other_customer, submitted_claim.claim_id)

    def test_delete_unlinks_policy(self, submitted_claim, admin, active_policy) -> None:
        """Test deleting a claim."""
        get_claim_service().delete_claim(admin, submitted_claim.claim_id)

        policy = get_policy_service().store.get(active_policy.policy_id)
        assert submitted_claim.claim_id not in policy.claim_ids


class TestClaimsApi:
    """Test the claims endpoints."""

    def _form(self, policy_id: str, **overrides) -> dict:
        data = {
            "policy_id": policy_id,
            "claim_type": "medical",
            "claim_amount": "25000",
            "incident_date": (date.today() - timedelta(days=2)).isoformat(),
            "incident_location": "Pune",
            "description": "Hospitalized for three days after a fall",
        }
        data.update(overrides)
        return data

    def test_submit_with_pdf(self, client, customer, active_policy, isolated_settings) -> None:
        """Test a claim with one valid PDF is accepted."""
        response = client.post(
            "/api/claims/",
            data=self._form(active_policy.policy_id),
            files=[("claimDocument", ("bill.pdf", PDF_BYTES, "application/pdf"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["claim"]["status"] == "submitted"
        assert body["claim"]["actions"] == ["view", "edit"]
        assert body["claim"]["documents"][0]["url"].startswith("/uploads/claims/")
        assert len(list((isolated_settings / "uploads" / "claims").iterdir())) == 1

    def test_refused_claim_removes_files(self, client, customer, active_policy, isolated_settings) -> None:
        """Test stored files are deleted when the claim is refused."""
        response = client.post(
            "/api/claims/",
            data=self._form(active_policy.policy_id, claim_amount="0"),
            files=[("claimDocument", ("bill.pdf", PDF_BYTES, "application/pdf"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "claim_amount", "message": "Valid claim amount is required"}]
        assert list((isolated_settings / "uploads" / "claims").iterdir()) == []

    def test_nan_amount_refused_before_saving(self, client, customer, active_policy, isolated_settings) -> None:
        """Test a "nan" form amount is a validation error and nothing is stored."""
        response = client.post(
            "/api/claims/",
            data=self._form(active_policy.policy_id, claim_amount="nan"),
            files=[("claimDocument", ("bill.pdf", PDF_BYTES, "application/pdf"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "claim_amount", "message": "Valid claim amount is required"}]
        assert get_claim_store().count() == 0
        assert get_policy_service().store.get(active_policy.policy_id).claim_ids == []
        assert list((isolated_settings / "uploads" / "claims").iterdir()) == []

    def test_oversized_file_rejected(self, client, customer, active_policy) -> None:
        """Test the 5 MB limit."""
        big = b"0" * (5 * 1024 * 1024 + 1)
        response = client.post(
            "/api/claims/",
            data=self._form(active_policy.policy_id),
            files=[("claimDocument", ("scan.pdf", big, "application/pdf"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "File size too large. Maximum size is 5MB."

    def test_unsupported_type_rejected(self, client, customer, active_policy) -> None:
        """Test disallowed MIME types."""
        response = client.post(
            "/api/claims/",
            data=self._form(active_policy.policy_id),
            files=[("claimDocument", ("run.sh", b"echo hi", "application/x-sh"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_status_update_and_list(self, client, submitted_claim, admin, agent) -> None:
        """Test status changes through the API."""
        response = client.put(
            f"/api/claims/{submitted_claim.claim_id}/status",
            json={"status": "under_review", "comments": "Starting review"},
            headers=auth_headers(agent),
        )
        assert response.status_code == 200
        assert response.json()["claim"]["status"] == "under_review"

        response = client.put(
            f"/api/claims/{submitted_claim.claim_id}/status",
            json={"status": "approved"},
            headers=auth_headers(agent),
        )
        assert response.status_code == 403
        assert response.json()["error_code"] == "TRANSITION_NOT_AUTHORIZED"

        response = client.get("/api/claims/", params={"status": "under_review"}, headers=auth_headers(admin))
        body = response.json()
        assert body["total"] == 1
        assert body["current_page"] == 1
        assert body["claims"][0]["claim_id"] == submitted_claim.claim_id

    def test_customer_cannot_change_status(self, client, submitted_claim, customer) -> None:
        """Test the status endpoint is staff only."""
        response = client.put(
            f"/api/claims/{submitted_claim.claim_id}/status",
            json={"status": "under_review"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 403

    def test_unknown_claim_is_404(self, client, admin) -> None:
        """Test not found."""
        response = client.get("/api/claims/clm_missing", headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json()["message"] == "Claim not found"

    def test_requires_token(self, client) -> None:
        """Test authentication is required."""
        response = client.get("/api/claims/")

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized to access this route"
