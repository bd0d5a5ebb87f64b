# claimease/services/claim_service.py
"""Claim submission, review workflow and audit trail."""

from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Callable

from claimease.core.constants import (
    ClaimType, ClaimStatus, ClaimPriority, InvestigationRecommendation, PolicyStatus, UserRole,
    NotificationType, NotificationPriority, DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH
)
from claimease.core.exceptions import (
    ClaimNotFoundError, PolicyNotFoundError, AuthorizationError,
    BusinessRuleError, ValidationFailedError
)
from claimease.core.logging import get_logger
from claimease.core.security import generate_claim_number, sanitize_input
from claimease.core.workflow import (
    check_claim_transition, allowed_claim_transitions, claim_actions_for,
    validate_transition_notes, is_terminal_claim_status
)
from claimease.models.base import StatusChange, utcnow
from claimease.models.claim import (
    Claim, ClaimCreate, ClaimUpdate, ClaimStatusUpdate, ClaimDocument,
    Investigation, InvestigationCreate, InvestigationNote
)
from claimease.models.policy import Policy
from claimease.models.schemas import UploadedFile
from claimease.models.user import User
from claimease.storage.claim_store import get_claim_store
from claimease.storage.policy_store import get_policy_store
from claimease.storage.user_store import get_user_store
from claimease.utils.validators import FieldErrors, is_valid_amount

logger = get_logger(__name__)

DECISION_NOTIFICATIONS = {
    ClaimStatus.APPROVED.value: (NotificationType.CLAIM_APPROVED, NotificationPriority.HIGH),
    ClaimStatus.REJECTED.value: (NotificationType.CLAIM_REJECTED, NotificationPriority.HIGH),
}


def validate_claim_fields(
    data: Dict[str, Any],
    errors: FieldErrors,
    document_count: Optional[int] = None,
    partial: bool = False
):
    """
    Field rules for the claim form.

    ``document_count`` is checked only when given (creation). With
    ``partial`` only the keys present in ``data`` are checked.
    """
    def present(key: str) -> bool:
        return not partial or data.get(key) is not None

    if present("policy_id") and not data.get("policy_id"):
        errors.add("policy_id", "Policy is required")

    if present("claim_type") and data.get("claim_type") not in ClaimType.values():
        errors.add("claim_type", "Invalid claim type")

    if present("claim_amount"):
        amount = data.get("claim_amount")
        if not is_valid_amount(amount):
            errors.add("claim_amount", "Valid claim amount is required")

    if present("incident_date"):
        incident_date = data.get("incident_date")
        if incident_date is None:
            errors.add("incident_date", "Incident date is required")
        elif incident_date > date.today():
            errors.add("incident_date", "Incident date cannot be in the future")

    if present("incident_location") and not (data.get("incident_location") or "").strip():
        errors.add("incident_location", "Incident location is required")

    if present("description"):
        description = (data.get("description") or "").strip()
        if not description:
            errors.add("description", "Description is required")
        elif not DESCRIPTION_MIN_LENGTH <= len(description) <= DESCRIPTION_MAX_LENGTH:
            errors.add(
                "description",
                f"Description must be between {DESCRIPTION_MIN_LENGTH} and {DESCRIPTION_MAX_LENGTH} characters"
            )

    if present("priority") and data.get("priority") not in ClaimPriority.values():
        errors.add("priority", "Invalid priority")

    if document_count is not None and document_count < 1:
        errors.add("documents", "At least one supporting document is required")


def check_policy_covers(policy: Policy, claim_amount: float, incident_date: date):
    """Claims must fit inside the policy's coverage amount and period."""
    if not is_valid_amount(claim_amount) or claim_amount > policy.coverage_amount:
        raise BusinessRuleError("Claim amount exceeds policy coverage amount")
    if not policy.covers(incident_date):
        raise BusinessRuleError("Incident date is outside policy coverage period")


class ClaimService:
    """Service for claim operations."""

    def __init__(self):
        self.store = get_claim_store()
        self.policies = get_policy_store()
        self.users = get_user_store()

    # ===================
    # Access
    # ===================

    def can_view(self, user: User, claim: Claim) -> bool:
        if user.role == UserRole.ADMIN:
            return True
        if user.role == UserRole.CUSTOMER:
            return claim.customer_id == user.user_id
        if claim.assigned_to == user.user_id:
            return True
        policy = self.policies.get(claim.policy_id)
        return policy is not None and policy.agent_id in (user.user_id, None)

    def scope_for(self, user: User) -> Optional[Callable[[Claim], bool]]:
        if user.role == UserRole.ADMIN:
            return None
        return lambda c: self.can_view(user, c)

    def get_claim(self, user: User, claim_id: str) -> Claim:
        claim = self.store.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        if not self.can_view(user, claim):
            raise AuthorizationError("Not authorized to access this claim")
        return claim

    def list_claims(
        self,
        user: User,
        status: Optional[str] = None,
        claim_type: Optional[str] = None,
        priority: Optional[str] = None,
        policy_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
        search: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Claim], int]:
        return self.store.search(
            scope=self.scope_for(user),
            status=status,
            claim_type=claim_type,
            priority=priority,
            policy_id=policy_id,
            assigned_to=assigned_to if user.role == UserRole.ADMIN else None,
            search=sanitize_input(search),
            from_date=from_date,
            to_date=to_date,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit
        )

    def actions_for(self, user: User, claim: Claim) -> List[str]:
        return claim_actions_for(user.role, claim, user.user_id)

    def allowed_transitions(self, user: User, claim: Claim) -> List[str]:
        return allowed_claim_transitions(claim.status, user.role)

    # ===================
    # Submission
    # ===================

    def create_claim(self, actor: User, data: ClaimCreate, documents: List[UploadedFile]) -> Claim:
        """
        Submit a claim against a policy.

        The claim starts in ``submitted`` with that submission as the first
        entry of its audit trail.
        """
        raw = data.model_dump()
        for key in ("incident_location", "description"):
            raw[key] = sanitize_input(raw.get(key))

        errors = FieldErrors()
        validate_claim_fields(raw, errors, document_count=len(documents))
        errors.raise_if_any()

        policy = self.policies.get(data.policy_id)
        if policy is None:
            raise PolicyNotFoundError(data.policy_id)

        if actor.role == UserRole.CUSTOMER and policy.customer_id != actor.user_id:
            logger.log_security("claim_for_foreign_policy", severity="medium",
                                user_id=actor.user_id, policy_id=policy.policy_id)
            raise AuthorizationError("Not authorized to create claim for this policy")
        if actor.role == UserRole.AGENT and policy.agent_id not in (actor.user_id, None):
            raise AuthorizationError("Not authorized to create claim for this policy")

        if not policy.is_active or policy.status != PolicyStatus.ACTIVE:
            raise BusinessRuleError("Cannot create claim for inactive policy")
        check_policy_covers(policy, data.claim_amount, data.incident_date)

        claim = Claim(
            claim_number=self._unique_claim_number(),
            policy_id=policy.policy_id,
            customer_id=policy.customer_id,
            claim_type=raw["claim_type"],
            claim_amount=data.claim_amount,
            incident_date=data.incident_date,
            incident_location=raw["incident_location"],
            description=raw["description"],
            priority=raw["priority"],
            witnesses=data.witnesses,
            documents=[self._document(d, actor) for d in documents],
            submitted_by=actor.user_id,
            status_history=[StatusChange(
                status=ClaimStatus.SUBMITTED.value,
                changed_by=actor.user_id,
                comments="Claim submitted",
            )],
        )
        self.store.save(claim)

        from claimease.core.dependencies import get_policy_service
        get_policy_service().link_claim(policy, claim.claim_id)

        self._notify(claim.customer_id, claim, NotificationType.CLAIM_SUBMITTED,
                     "Claim submitted", f"Your claim {claim.claim_number} has been submitted.", actor)
        if policy.agent_id:
            self._notify(policy.agent_id, claim, NotificationType.CLAIM_SUBMITTED,
                         "New claim to review",
                         f"Claim {claim.claim_number} was submitted on policy {policy.policy_number}.", actor)

        logger.log_claim("submitted", claim.claim_id, user_id=actor.user_id,
                         status=claim.status, amount=claim.claim_amount,
                         documents=len(claim.documents))
        return claim

    def _unique_claim_number(self) -> str:
        number = generate_claim_number()
        while self.store.get_by_claim_number(number):
            number = generate_claim_number()
        return number

    @staticmethod
    def _document(stored: UploadedFile, actor: User) -> ClaimDocument:
        return ClaimDocument(
            filename=stored.filename,
            original_name=stored.original_name,
            url=stored.url,
            mime_type=stored.mime_type,
            size=stored.size,
            uploaded_by=actor.user_id,
        )

    # ===================
    # Editing
    # ===================

    def update_claim(self, actor: User, claim_id: str, update: ClaimUpdate) -> Claim:
        """
        Edit claim details.

        Customers may edit their own claims only while ``submitted`` and may
        not change priority.
        """
        claim = self.get_claim(actor, claim_id)
        changes = update.model_dump(exclude_none=True)

        if actor.role == UserRole.CUSTOMER:
            if claim.status != ClaimStatus.SUBMITTED:
                raise BusinessRuleError("Claims can only be edited while they are in submitted status")
            if "priority" in changes:
                raise AuthorizationError("Only staff can change claim priority")
        elif is_terminal_claim_status(claim.status):
            raise BusinessRuleError(f"Cannot update a {claim.status} claim")

        for key in ("incident_location", "description"):
            if key in changes:
                changes[key] = sanitize_input(changes[key])

        errors = FieldErrors()
        validate_claim_fields(changes, errors, partial=True)
        errors.raise_if_any()

        if "claim_amount" in changes or "incident_date" in changes:
            policy = self.policies.get(claim.policy_id)
            if policy is None:
                raise PolicyNotFoundError(claim.policy_id)
            check_policy_covers(
                policy,
                changes.get("claim_amount", claim.claim_amount),
                changes.get("incident_date", claim.incident_date),
            )

        if "witnesses" in changes:
            changes["witnesses"] = update.witnesses
        for key, value in changes.items():
            setattr(claim, key, value)
        claim.touch()
        self.store.save(claim)

        logger.log_claim("updated", claim.claim_id, user_id=actor.user_id, fields=sorted(changes))
        return claim

    def add_documents(self, actor: User, claim_id: str, documents: List[UploadedFile]) -> Claim:
        claim = self.get_claim(actor, claim_id)
        if not documents:
            raise ValidationFailedError.single("documents", "At least one supporting document is required")
        if is_terminal_claim_status(claim.status):
            raise BusinessRuleError(f"Cannot add documents to a {claim.status} claim")

        claim.documents.extend(self._document(d, actor) for d in documents)
        claim.touch()
        self.store.save(claim)

        logger.log_claim("documents_added", claim.claim_id, user_id=actor.user_id, count=len(documents))
        return claim

    def delete_claim(self, actor: User, claim_id: str):
        claim = self.store.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)

        self.store.delete(claim_id)
        policy = self.policies.get(claim.policy_id)
        if policy and claim_id in policy.claim_ids:
            policy.claim_ids.remove(claim_id)
            policy.touch()
            self.policies.save(policy)

        logger.log_claim("deleted", claim_id, user_id=actor.user_id)

    # ===================
    # Workflow
    # ===================

    def _transition(
        self,
        claim: Claim,
        target: str,
        actor: User,
        comments: Optional[str] = None,
        reason: Optional[str] = None
    ):
        """Apply an already-authorized move and append its audit entry."""
        previous = claim.status
        claim.status_history.append(StatusChange(
            status=target,
            previous_status=previous,
            changed_by=actor.user_id,
            comments=comments,
            reason=reason,
        ))
        claim.status = target

        if target in (ClaimStatus.UNDER_REVIEW, ClaimStatus.INVESTIGATING):
            claim.assigned_to = actor.user_id
        if is_terminal_claim_status(target):
            claim.decided_at = utcnow()
        claim.touch()

        notification_type, priority = DECISION_NOTIFICATIONS.get(
            target, (NotificationType.CLAIM_UPDATED, NotificationPriority.MEDIUM)
        )
        message = f"Your claim {claim.claim_number} is now {target.replace('_', ' ')}."
        if comments:
            message += f" {comments}"
        self._notify(claim.customer_id, claim, notification_type, "Claim status updated",
                     message, actor, priority=priority)

        logger.log_claim("status_changed", claim.claim_id, user_id=actor.user_id,
                         status=target, previous_status=previous)

    def update_status(self, actor: User, claim_id: str, update: ClaimStatusUpdate) -> Claim:
        """
        Move a claim to ``update.status``.

        Raises:
            InvalidStatusTransition: move not in the lifecycle
            TransitionNotAuthorized: actor's role may not make the move
            ValidationFailedError: bad notes, amount or missing rejection reason
        """
        if update.status not in ClaimStatus.values():
            raise ValidationFailedError.single("status", "Invalid status")

        claim = self.get_claim(actor, claim_id)
        check_claim_transition(claim.status, update.status, actor.role)
        comments = validate_transition_notes(update.comments, "comments")
        reason = None

        if update.status == ClaimStatus.APPROVED:
            approved_amount = update.approved_amount if update.approved_amount is not None else claim.claim_amount
            if not is_valid_amount(approved_amount):
                raise ValidationFailedError.single("approved_amount", "Approved amount must be greater than 0")
            if approved_amount > claim.claim_amount:
                raise ValidationFailedError.single("approved_amount", "Approved amount cannot exceed claim amount")
            claim.approved_amount = approved_amount

        if update.status == ClaimStatus.REJECTED:
            reason = validate_transition_notes(update.rejection_reason, "rejection_reason") or comments
            if not reason:
                raise ValidationFailedError.single("rejection_reason", "Rejection reason is required")
            claim.rejection_reason = reason

        self._transition(claim, update.status, actor, comments=comments, reason=reason)
        self.store.save(claim)
        return claim

    def assign_claim(self, actor: User, claim_id: str, assignee_id: str) -> Claim:
        """Assign a claim to staff; a submitted claim moves to ``under_review``."""
        if actor.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can assign claims")

        claim = self.get_claim(actor, claim_id)
        assignee = self.users.get(assignee_id)
        if assignee is None or assignee.role not in UserRole.staff() or not assignee.is_active:
            raise ValidationFailedError.single("assigned_to", "Claim can only be assigned to an active admin or agent")

        if claim.status == ClaimStatus.SUBMITTED:
            check_claim_transition(claim.status, ClaimStatus.UNDER_REVIEW, actor.role)
            self._transition(claim, ClaimStatus.UNDER_REVIEW.value, actor,
                             comments=f"Claim assigned to {assignee.full_name}")
        elif is_terminal_claim_status(claim.status):
            raise BusinessRuleError(f"Cannot assign a {claim.status} claim")

        claim.assigned_to = assignee.user_id
        claim.touch()
        self.store.save(claim)

        self._notify(assignee.user_id, claim, NotificationType.CLAIM_UPDATED, "Claim assigned",
                     f"Claim {claim.claim_number} has been assigned to you.", actor)
        logger.log_claim("assigned", claim.claim_id, user_id=actor.user_id, assigned_to=assignee.user_id)
        return claim

    def add_investigation(self, actor: User, claim_id: str, data: InvestigationCreate) -> Claim:
        """Record investigation findings; the claim moves to ``investigating``."""
        claim = self.get_claim(actor, claim_id)
        if actor.role == UserRole.CUSTOMER:
            raise AuthorizationError("Only staff can investigate claims")
        if actor.role == UserRole.AGENT and claim.assigned_to != actor.user_id:
            raise AuthorizationError("Only the assigned agent can investigate this claim")

        findings = validate_transition_notes(data.findings, "findings")
        note = validate_transition_notes(data.notes, "notes")
        if data.recommendation is not None and data.recommendation not in InvestigationRecommendation.values():
            raise ValidationFailedError.single("recommendation", "Invalid recommendation")

        if claim.status != ClaimStatus.INVESTIGATING:
            check_claim_transition(claim.status, ClaimStatus.INVESTIGATING, actor.role)

        investigation = claim.investigation or Investigation(investigator_id=actor.user_id)
        if findings:
            investigation.findings = findings
        if data.recommendation:
            investigation.recommendation = data.recommendation
        if note:
            investigation.notes.append(InvestigationNote(note=note, added_by=actor.user_id))
        claim.investigation = investigation

        if claim.status != ClaimStatus.INVESTIGATING:
            self._transition(claim, ClaimStatus.INVESTIGATING.value, actor, comments="Investigation started")
        else:
            claim.touch()
        self.store.save(claim)

        logger.log_claim("investigation_updated", claim.claim_id, user_id=actor.user_id,
                         recommendation=investigation.recommendation)
        return claim

    # ===================
    # Statistics
    # ===================

    def statistics(self, user: User) -> Dict[str, Any]:
        scope = self.scope_for(user)
        claims = self.store.get_all()
        if scope:
            claims = [c for c in claims if scope(c)]
        return self.store.get_statistics(claims)

    def _notify(
        self,
        recipient_id: str,
        claim: Claim,
        type: NotificationType,
        title: str,
        message: str,
        actor: User,
        priority: NotificationPriority = NotificationPriority.MEDIUM
    ):
        from claimease.core.dependencies import get_notification_service
        get_notification_service().notify(
            recipient_id,
            type,
            title,
            message,
            priority=priority,
            related={"claim_id": claim.claim_id, "policy_id": claim.policy_id},
            sender_id=actor.user_id,
        )
