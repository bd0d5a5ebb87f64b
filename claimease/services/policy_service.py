# claimease/services/policy_service.py
"""Policy business logic service."""

from datetime import date
from typing import Optional, List, Tuple, Dict, Any, Callable

from claimease.core.config import settings
from claimease.core.constants import (
    PolicyType, PolicyStatus, PremiumFrequency, PaymentMethod, UserRole,
    NotificationType, NotificationPriority
)
from claimease.core.exceptions import (
    PolicyNotFoundError, AuthorizationError, BusinessRuleError, ValidationFailedError
)
from claimease.core.logging import get_logger
from claimease.core.security import generate_policy_number, sanitize_input
from claimease.core.workflow import check_policy_transition, allowed_policy_transitions
from claimease.models.policy import (
    Policy, PolicyCreate, PolicyUpdate, PolicyPaymentRecord, PolicyMetadata, PolicyPaymentCreate
)
from claimease.models.user import User
from claimease.storage.policy_store import get_policy_store
from claimease.storage.user_store import get_user_store
from claimease.storage.claim_store import get_claim_store
from claimease.utils.validators import FieldErrors, add_years, add_months, is_valid_amount

logger = get_logger(__name__)

EXPIRING_SOON_LIMIT = 50


def validate_policy_terms(data: Dict[str, Any], errors: FieldErrors, partial: bool = False):
    """Check policy content fields; with ``partial`` only keys present in ``data``."""
    def present(key: str) -> bool:
        return not partial or data.get(key) is not None

    if present("policy_name"):
        name = (data.get("policy_name") or "").strip()
        if not name:
            errors.add("policy_name", "Policy name is required")
        elif not 5 <= len(name) <= 100:
            errors.add("policy_name", "Policy name must be between 5 and 100 characters")

    if present("description"):
        description = (data.get("description") or "").strip()
        if not description:
            errors.add("description", "Description is required")
        elif not 10 <= len(description) <= 500:
            errors.add("description", "Description must be between 10 and 500 characters")

    if present("policy_type") and data.get("policy_type") not in PolicyType.values():
        errors.add("policy_type", "Invalid policy type")

    if present("coverage_amount"):
        coverage = data.get("coverage_amount")
        if not is_valid_amount(coverage, settings.MIN_COVERAGE_AMOUNT):
            errors.add("coverage_amount", f"Coverage amount must be at least ₹{settings.MIN_COVERAGE_AMOUNT:,.0f}")

    if present("premium_amount"):
        premium = data.get("premium_amount")
        if not is_valid_amount(premium, settings.MIN_PREMIUM_AMOUNT):
            errors.add("premium_amount", f"Premium amount must be at least ₹{settings.MIN_PREMIUM_AMOUNT:,.0f}")

    if present("premium_frequency") and data.get("premium_frequency") not in PremiumFrequency.values():
        errors.add("premium_frequency", "Invalid premium frequency")

    if present("duration"):
        duration = data.get("duration")
        if duration is None or duration < 1:
            errors.add("duration", "Duration must be at least 1 year")
        elif duration > settings.MAX_POLICY_DURATION_YEARS:
            errors.add("duration", f"Duration cannot exceed {settings.MAX_POLICY_DURATION_YEARS} years")

    if present("terms"):
        terms = (data.get("terms") or "").strip()
        if len(terms) < 50:
            errors.add("terms", "Terms and conditions must be at least 50 characters")

    beneficiaries = data.get("beneficiaries") or []
    if beneficiaries:
        total = sum(b["percentage"] if isinstance(b, dict) else b.percentage for b in beneficiaries)
        if abs(total - 100) > 0.01:
            errors.add("beneficiaries", "Beneficiaries percentage must total 100%")


def compute_end_date(start_date: date, duration: int) -> date:
    """Coverage ends ``duration`` calendar years after it starts."""
    return add_years(start_date, duration)


def next_due_after(day: date, frequency: str) -> date:
    return add_months(day, PremiumFrequency(frequency).months)


class PolicyService:
    """Service for policy operations."""

    def __init__(self):
        self.store = get_policy_store()
        self.users = get_user_store()
        self.claims = get_claim_store()

    # ===================
    # Access
    # ===================

    @staticmethod
    def can_view(user: User, policy: Policy) -> bool:
        if user.role == UserRole.ADMIN:
            return True
        if user.role == UserRole.AGENT:
            return policy.agent_id in (user.user_id, None)
        return policy.customer_id == user.user_id

    @staticmethod
    def can_manage(user: User, policy: Policy) -> bool:
        """Staff who may change the policy: admins, or its agent (unassigned counts)."""
        if user.role == UserRole.ADMIN:
            return True
        return user.role == UserRole.AGENT and policy.agent_id in (user.user_id, None)

    def scope_for(self, user: User) -> Optional[Callable[[Policy], bool]]:
        if user.role == UserRole.ADMIN:
            return None
        return lambda p: self.can_view(user, p)

    def get_policy(self, user: User, policy_id: str) -> Policy:
        policy = self.store.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(policy_id)
        if not self.can_view(user, policy):
            raise AuthorizationError("Not authorized to access this policy")
        return policy

    def _managed_policy(self, user: User, policy_id: str) -> Policy:
        policy = self.get_policy(user, policy_id)
        if not self.can_manage(user, policy):
            raise AuthorizationError("Not authorized to modify this policy")
        return policy

    def list_policies(
        self,
        user: User,
        status: Optional[str] = None,
        policy_type: Optional[str] = None,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Policy], int]:
        return self.store.search(
            scope=self.scope_for(user),
            status=status,
            policy_type=policy_type,
            customer_id=customer_id,
            agent_id=agent_id if user.role == UserRole.ADMIN else None,
            search=sanitize_input(search),
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit
        )

    # ===================
    # Create / update
    # ===================

    def create_policy(self, actor: User, data: PolicyCreate) -> Policy:
        """
        Validate and persist a new policy in ``pending`` status.

        End date and first premium due date are derived from the start date.
        """
        if actor.role not in UserRole.staff():
            raise AuthorizationError("Only admins and agents can create policies")

        raw = data.model_dump()
        for key in ("policy_name", "description", "terms"):
            raw[key] = sanitize_input(raw.get(key))

        errors = FieldErrors()
        validate_policy_terms(raw, errors)

        customer = self.users.get(data.customer_id) if data.customer_id else None
        if customer is None or customer.role != UserRole.CUSTOMER or not customer.is_active:
            errors.add("customer_id", "Valid customer is required")

        agent_id = data.agent_id
        if actor.role == UserRole.AGENT:
            agent_id = actor.user_id
        elif agent_id:
            agent = self.users.get(agent_id)
            if agent is None or agent.role != UserRole.AGENT or not agent.is_active:
                errors.add("agent_id", "Valid agent is required")

        errors.raise_if_any()

        start_date = data.start_date or date.today()
        policy = Policy(
            policy_number=self._unique_policy_number(raw["policy_type"]),
            policy_name=raw["policy_name"],
            description=raw["description"],
            policy_type=raw["policy_type"],
            coverage_amount=data.coverage_amount,
            premium_amount=data.premium_amount,
            premium_frequency=data.premium_frequency,
            duration=data.duration,
            customer_id=customer.user_id,
            agent_id=agent_id,
            start_date=start_date,
            end_date=compute_end_date(start_date, data.duration),
            next_payment_due=next_due_after(start_date, data.premium_frequency),
            terms=raw["terms"],
            exclusions=[sanitize_input(e) for e in data.exclusions if e and e.strip()],
            beneficiaries=data.beneficiaries,
            metadata=data.metadata or PolicyMetadata(),
            created_by=actor.user_id,
        )
        self.store.save(policy)

        self._notify(
            policy,
            NotificationType.POLICY_CREATED,
            "New policy created",
            f"Policy {policy.policy_number} ({policy.policy_name}) has been created for you.",
            actor,
        )
        logger.log_policy("created", policy.policy_id, user_id=actor.user_id,
                          policy_type=policy.policy_type, policy_number=policy.policy_number)
        return policy

    def _unique_policy_number(self, policy_type: str) -> str:
        number = generate_policy_number(policy_type)
        while self.store.get_by_policy_number(number):
            number = generate_policy_number(policy_type)
        return number

    def update_policy(self, actor: User, policy_id: str, update: PolicyUpdate) -> Policy:
        if update.start_date is not None or update.end_date is not None or update.duration is not None:
            raise ValidationFailedError.single(
                "start_date", "Start date, end date and duration cannot be changed after creation"
            )

        policy = self._managed_policy(actor, policy_id)
        if policy.status in PolicyStatus.terminal_statuses():
            raise BusinessRuleError(f"Cannot update a {policy.status} policy")

        changes = update.model_dump(exclude_none=True, exclude={"start_date", "end_date", "duration"})
        for key in ("policy_name", "description", "terms"):
            if key in changes:
                changes[key] = sanitize_input(changes[key])

        errors = FieldErrors()
        validate_policy_terms(changes, errors, partial=True)
        if "agent_id" in changes:
            if actor.role != UserRole.ADMIN:
                errors.add("agent_id", "Only admins can reassign policies")
            else:
                agent = self.users.get(changes["agent_id"])
                if agent is None or agent.role != UserRole.AGENT:
                    errors.add("agent_id", "Valid agent is required")
        errors.raise_if_any()

        if "beneficiaries" in changes:
            changes["beneficiaries"] = update.beneficiaries
        if "metadata" in changes:
            changes["metadata"] = update.metadata
        if "exclusions" in changes:
            changes["exclusions"] = [sanitize_input(e) for e in changes["exclusions"] if e and e.strip()]

        for key, value in changes.items():
            setattr(policy, key, value)
        policy.touch()
        self.store.save(policy)

        logger.log_policy("updated", policy.policy_id, user_id=actor.user_id, fields=sorted(changes))
        return policy

    # ===================
    # Status
    # ===================

    def update_status(self, actor: User, policy_id: str, status: str, reason: Optional[str] = None) -> Policy:
        if status not in PolicyStatus.values():
            raise ValidationFailedError.single("status", "Invalid policy status")

        policy = self._managed_policy(actor, policy_id)
        check_policy_transition(policy.status, status, actor.role)
        self._apply_status(policy, status)
        self.store.save(policy)

        notification_type = (
            NotificationType.POLICY_CANCELLED if status == PolicyStatus.CANCELLED
            else NotificationType.POLICY_RENEWED if status == PolicyStatus.ACTIVE
            else NotificationType.GENERAL
        )
        message = f"Your policy {policy.policy_number} is now {status}."
        if reason:
            message += f" Reason: {sanitize_input(reason)}"
        self._notify(policy, notification_type, "Policy status updated", message, actor)

        logger.log_policy("status_changed", policy.policy_id, user_id=actor.user_id, status=status)
        return policy

    @staticmethod
    def _apply_status(policy: Policy, status: str):
        policy.status = status
        if status in PolicyStatus.terminal_statuses():
            policy.is_active = False
        elif status == PolicyStatus.ACTIVE:
            policy.is_active = True
        policy.touch()

    def delete_policy(self, actor: User, policy_id: str) -> Policy:
        """Cancel a policy in place. Policies with claims cannot be removed."""
        policy = self.store.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(policy_id)
        if self.claims.get_by_policy(policy_id):
            raise BusinessRuleError("Cannot delete policy with existing claims")

        check_policy_transition(policy.status, PolicyStatus.CANCELLED, actor.role)
        self._apply_status(policy, PolicyStatus.CANCELLED.value)
        self.store.save(policy)

        logger.log_policy("cancelled", policy.policy_id, user_id=actor.user_id)
        return policy

    def allowed_transitions(self, actor: User, policy: Policy) -> List[str]:
        if not self.can_manage(actor, policy):
            return []
        return allowed_policy_transitions(policy.status, actor.role)

    # ===================
    # Premiums
    # ===================

    def record_premium(
        self,
        policy: Policy,
        amount: float,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
        recorded_by: Optional[str] = None
    ) -> Policy:
        """Append to payment history and move the next due date one period on."""
        policy.payment_history.append(PolicyPaymentRecord(
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            recorded_by=recorded_by,
        ))
        policy.next_payment_due = next_due_after(
            policy.next_payment_due or policy.start_date, policy.premium_frequency
        )
        policy.touch()
        self.store.save(policy)
        return policy

    def add_payment(self, actor: User, policy_id: str, data: PolicyPaymentCreate) -> Policy:
        policy = self.get_policy(actor, policy_id)

        errors = FieldErrors()
        errors.check(is_valid_amount(data.amount), "amount", "Valid payment amount is required")
        if data.payment_method is not None:
            errors.check(data.payment_method in PaymentMethod.values(), "payment_method", "Invalid payment method")
        errors.raise_if_any()

        if policy.status != PolicyStatus.ACTIVE:
            raise BusinessRuleError("Payments can only be recorded for active policies")

        self.record_premium(policy, data.amount, data.payment_method, data.transaction_id, actor.user_id)
        logger.log_payment("policy_premium_recorded", data.transaction_id or policy.policy_id,
                           data.amount, user_id=actor.user_id, policy_id=policy.policy_id)
        return policy

    # ===================
    # Queries
    # ===================

    def expiring_soon(self, user: User, days: int = 30) -> List[Policy]:
        scope = self.scope_for(user)
        policies = self.store.get_expiring(days)
        if scope:
            policies = [p for p in policies if scope(p)]
        return policies[:EXPIRING_SOON_LIMIT]

    def statistics(self, user: User) -> Dict[str, Any]:
        scope = self.scope_for(user)
        policies = self.store.get_all()
        if scope:
            policies = [p for p in policies if scope(p)]
        return self.store.get_statistics(policies)

    def link_claim(self, policy: Policy, claim_id: str):
        if claim_id not in policy.claim_ids:
            policy.claim_ids.append(claim_id)
            policy.touch()
            self.store.save(policy)

    def _notify(self, policy: Policy, type: NotificationType, title: str, message: str, actor: User):
        from claimease.core.dependencies import get_notification_service
        get_notification_service().notify(
            policy.customer_id,
            type,
            title,
            message,
            priority=NotificationPriority.MEDIUM,
            related={"policy_id": policy.policy_id},
            sender_id=actor.user_id,
        )
