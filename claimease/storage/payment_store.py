# claimease/storage/payment_store.py
"""Payment storage implementation."""

from typing import Dict, Any, Optional, List, Callable
from datetime import datetime

from claimease.storage.base import BaseStore
from claimease.models.base import utcnow
from claimease.models.payment import Payment
from claimease.core.constants import PaymentStatus


class PaymentStore(BaseStore[Payment]):
    """Storage for payment records."""

    collection = "payments"
    model = Payment
    id_field = "payment_id"

    def get_by_policy(self, policy_id: str) -> List[Payment]:
        return self.find(lambda p: p.policy_id == policy_id)

    def get_by_customer(self, customer_id: str) -> List[Payment]:
        return self.find(lambda p: p.customer_id == customer_id)

    def get_overdue(self, now: Optional[datetime] = None) -> List[Payment]:
        now = now or utcnow()
        results = self.find(lambda p: p.is_overdue(now))
        results.sort(key=lambda p: p.due_date)
        return results

    def search(
        self,
        scope: Optional[Callable[[Payment], bool]] = None,
        status: Optional[str] = None,
        payment_type: Optional[str] = None,
        payment_method: Optional[str] = None,
        policy_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10
    ) -> tuple[List[Payment], int]:
        """Search payments with multiple filters."""
        results = self.get_all()

        if scope:
            results = [p for p in results if scope(p)]

        if status:
            results = [p for p in results if p.status == status]

        if payment_type:
            results = [p for p in results if p.payment_type == payment_type]

        if payment_method:
            results = [p for p in results if p.payment_method == payment_method]

        if policy_id:
            results = [p for p in results if p.policy_id == policy_id]

        if from_date:
            results = [p for p in results if p.created_at >= from_date]

        if to_date:
            results = [p for p in results if p.created_at <= to_date]

        return self.paginate(results, sort_key=lambda p: p.created_at, page=page, limit=limit)

    # Statistics
    def get_statistics(self, payments: Optional[List[Payment]] = None) -> Dict[str, Any]:
        all_payments = self.get_all() if payments is None else payments

        by_status: Dict[str, int] = {}
        by_method: Dict[str, int] = {}
        total_collected = 0.0
        total_refunded = 0.0

        for payment in all_payments:
            by_status[payment.status] = by_status.get(payment.status, 0) + 1
            by_method[payment.payment_method] = by_method.get(payment.payment_method, 0) + 1
            if payment.status == PaymentStatus.COMPLETED:
                total_collected += payment.amount
            if payment.refund:
                total_refunded += payment.refund.amount

        return {
            "total": len(all_payments),
            "by_status": by_status,
            "by_method": by_method,
            "total_collected": round(total_collected, 2),
            "total_refunded": round(total_refunded, 2),
            "pending": by_status.get(PaymentStatus.PENDING.value, 0),
            "overdue": len([p for p in all_payments if p.is_overdue()]),
        }


# Singleton instance
_payment_store: Optional[PaymentStore] = None


def get_payment_store() -> PaymentStore:
    """Get the payment store singleton."""
    global _payment_store
    if _payment_store is None:
        _payment_store = PaymentStore()
    return _payment_store
