# claimease/services/payment_service.py
"""Premium payments, receipts and refunds."""

import secrets
import string
import time
from typing import Optional, List, Tuple, Dict, Any, Callable

from claimease.core.config import settings
from claimease.core.constants import (
    PaymentType, PaymentMethod, PaymentStatus, Currency, UserRole,
    NotificationType, NotificationPriority
)
from claimease.core.exceptions import (
    PaymentNotFoundError, PolicyNotFoundError, AuthorizationError, BusinessRuleError,
    InvalidStatusTransition, ValidationFailedError
)
from claimease.core.logging import get_logger
from claimease.core.security import sanitize_input
from claimease.models.base import utcnow
from claimease.models.payment import (
    Payment, PaymentCreate, PaymentFees, PaymentTaxes, Refund, RefundRequest, PaymentStatusUpdate
)
from claimease.models.user import User
from claimease.storage.payment_store import get_payment_store
from claimease.storage.policy_store import get_policy_store
from claimease.utils.validators import FieldErrors, is_valid_amount

logger = get_logger(__name__)

# Admin-driven processing states; ``refunded`` is reached only through a refund.
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING.value: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED,
                                  PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.PROCESSING.value: {PaymentStatus.COMPLETED, PaymentStatus.FAILED,
                                     PaymentStatus.CANCELLED},
    PaymentStatus.FAILED.value: {PaymentStatus.PENDING},
}


def compute_charges(amount: float) -> Tuple[PaymentFees, PaymentTaxes, float]:
    """Gateway fee on the amount, GST on amount plus fee, and the resulting net."""
    gateway_fee = round(amount * settings.GATEWAY_FEE_RATE, 2)
    fees = PaymentFees(gateway_fee=gateway_fee, total_fees=gateway_fee)
    gst = round((amount + fees.total_fees) * settings.GST_RATE, 2)
    taxes = PaymentTaxes(gst=gst, total_tax=gst)
    net_amount = round(amount - fees.total_fees - taxes.total_tax, 2)
    return fees, taxes, net_amount


def _timestamp() -> str:
    return str(int(time.time() * 1000))


def _digits(length: int) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_payment_id() -> str:
    return f"PAY{_timestamp()[-8:]}"


def generate_transaction_id() -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(5))
    return f"TXN{_timestamp()}{suffix}"


def generate_receipt_number() -> str:
    return f"RCP{_digits(8)}"


class PaymentService:
    """Service for payment operations."""

    def __init__(self):
        self.store = get_payment_store()
        self.policies = get_policy_store()

    # ===================
    # Access
    # ===================

    def can_view(self, user: User, payment: Payment) -> bool:
        if user.role == UserRole.ADMIN:
            return True
        if user.role == UserRole.CUSTOMER:
            return payment.customer_id == user.user_id
        policy = self.policies.get(payment.policy_id)
        return policy is not None and policy.agent_id in (user.user_id, None)

    def scope_for(self, user: User) -> Optional[Callable[[Payment], bool]]:
        if user.role == UserRole.ADMIN:
            return None
        return lambda p: self.can_view(user, p)

    def get_payment(self, user: User, payment_id: str) -> Payment:
        payment = self.store.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        if not self.can_view(user, payment):
            raise AuthorizationError("Not authorized to access this payment")
        return payment

    def list_payments(self, user: User, **filters) -> Tuple[List[Payment], int]:
        return self.store.search(scope=self.scope_for(user), **filters)

    # ===================
    # Create
    # ===================

    def create_payment(self, actor: User, data: PaymentCreate) -> Payment:
        errors = FieldErrors()
        errors.check(is_valid_amount(data.amount), "amount", "Valid payment amount is required")
        errors.check(data.payment_method in PaymentMethod.values(), "payment_method", "Invalid payment method")
        errors.check(data.payment_type in PaymentType.values(), "payment_type", "Invalid payment type")
        errors.check(data.currency in Currency.values(), "currency", "Invalid currency")
        errors.raise_if_any()

        policy = self.policies.get(data.policy_id)
        if policy is None:
            raise PolicyNotFoundError(data.policy_id)
        if actor.role == UserRole.CUSTOMER and policy.customer_id != actor.user_id:
            raise AuthorizationError("Not authorized to make payment for this policy")
        if not policy.is_active:
            raise BusinessRuleError("Cannot make payment for inactive policy")

        fees, taxes, net_amount = compute_charges(data.amount)
        payment_id = generate_payment_id()
        while self.store.exists(payment_id):
            payment_id = f"PAY{_digits(8)}"

        payment = Payment(
            payment_id=payment_id,
            transaction_id=generate_transaction_id(),
            policy_id=policy.policy_id,
            customer_id=policy.customer_id,
            payment_type=data.payment_type,
            amount=data.amount,
            currency=data.currency,
            payment_method=data.payment_method,
            description=sanitize_input(data.description),
            fees=fees,
            taxes=taxes,
            net_amount=net_amount,
            due_date=data.due_date,
        )
        self.store.save(payment)

        logger.log_payment("created", payment.payment_id, payment.amount, user_id=actor.user_id,
                           status=payment.status, policy_id=policy.policy_id)
        return payment

    # ===================
    # Processing
    # ===================

    def update_status(self, actor: User, payment_id: str, update: PaymentStatusUpdate) -> Payment:
        if update.status not in PaymentStatus.values():
            raise ValidationFailedError.single("status", "Invalid payment status")

        payment = self.get_payment(actor, payment_id)
        if update.status not in PAYMENT_TRANSITIONS.get(payment.status, set()):
            raise InvalidStatusTransition("payment", payment.status, update.status)

        payment.status = update.status
        payment.processed_by = actor.user_id

        if update.status == PaymentStatus.COMPLETED:
            payment.processed_date = utcnow()
            payment.receipt_number = generate_receipt_number()
            payment.failure_reason = None
            if payment.payment_type == PaymentType.PREMIUM:
                policy = self.policies.get(payment.policy_id)
                if policy is not None:
                    from claimease.core.dependencies import get_policy_service
                    get_policy_service().record_premium(
                        policy, payment.amount, payment.payment_method,
                        payment.transaction_id, actor.user_id
                    )
            self._notify(payment, NotificationType.PAYMENT_RECEIVED, "Payment received",
                         f"We received your payment {payment.payment_id} of {payment.currency} {payment.amount:,.2f}.",
                         actor)
        elif update.status == PaymentStatus.FAILED:
            payment.failure_reason = sanitize_input(update.failure_reason) or "Payment failed"
            self._notify(payment, NotificationType.GENERAL, "Payment failed",
                         f"Your payment {payment.payment_id} failed: {payment.failure_reason}",
                         actor, priority=NotificationPriority.HIGH)

        payment.touch()
        self.store.save(payment)

        logger.log_payment("status_changed", payment.payment_id, payment.amount,
                           user_id=actor.user_id, status=payment.status)
        return payment

    def refund(self, actor: User, payment_id: str, request: RefundRequest) -> Payment:
        """Refund a completed payment, up to its net amount."""
        payment = self.get_payment(actor, payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise BusinessRuleError("Only completed payments can be refunded")

        amount = request.amount if request.amount is not None else payment.net_amount
        if not is_valid_amount(amount):
            raise ValidationFailedError.single("amount", "Refund amount must be greater than 0")
        if amount > payment.net_amount:
            raise ValidationFailedError.single("amount", "Refund amount cannot exceed net amount")

        payment.refund = Refund(
            refund_id=f"REF{_timestamp()}",
            amount=round(amount, 2),
            reason=sanitize_input(request.reason),
            refunded_by=actor.user_id,
        )
        payment.status = PaymentStatus.REFUNDED.value
        payment.touch()
        self.store.save(payment)

        self._notify(payment, NotificationType.GENERAL, "Payment refunded",
                     f"A refund of {payment.currency} {amount:,.2f} was issued for payment {payment.payment_id}.",
                     actor)
        logger.log_payment("refunded", payment.payment_id, amount, user_id=actor.user_id,
                           refund_id=payment.refund.refund_id)
        return payment

    # ===================
    # Queries
    # ===================

    def receipt(self, user: User, payment_id: str) -> Dict[str, Any]:
        payment = self.get_payment(user, payment_id)
        if not payment.receipt_number:
            raise BusinessRuleError("Receipt is only available for completed payments")
        policy = self.policies.get(payment.policy_id)
        return {
            "receipt_number": payment.receipt_number,
            "payment_id": payment.payment_id,
            "transaction_id": payment.transaction_id,
            "policy_number": policy.policy_number if policy else None,
            "amount": payment.amount,
            "currency": payment.currency,
            "fees": payment.fees.model_dump(),
            "taxes": payment.taxes.model_dump(),
            "net_amount": payment.net_amount,
            "payment_method": payment.payment_method,
            "processed_date": payment.processed_date,
            "status": payment.status,
        }

    def overdue(self, user: User) -> List[Payment]:
        scope = self.scope_for(user)
        payments = self.store.get_overdue()
        return [p for p in payments if scope(p)] if scope else payments

    def statistics(self, user: User) -> Dict[str, Any]:
        scope = self.scope_for(user)
        payments = self.store.get_all()
        if scope:
            payments = [p for p in payments if scope(p)]
        return self.store.get_statistics(payments)

    def _notify(
        self,
        payment: Payment,
        type: NotificationType,
        title: str,
        message: str,
        actor: User,
        priority: NotificationPriority = NotificationPriority.MEDIUM
    ):
        from claimease.core.dependencies import get_notification_service
        get_notification_service().notify(
            payment.customer_id,
            type,
            title,
            message,
            priority=priority,
            related={"payment_id": payment.payment_id, "policy_id": payment.policy_id},
            sender_id=actor.user_id,
        )
