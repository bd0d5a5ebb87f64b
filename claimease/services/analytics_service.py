# claimease/services/analytics_service.py
"""Admin reporting over users, policies, claims and payments."""

import csv
import io
from datetime import date, datetime, timedelta
from typing import Dict, Any, List, Optional

from claimease.core.constants import UserRole, PaymentStatus, ClaimStatus
from claimease.core.exceptions import ValidationFailedError
from claimease.core.logging import get_logger
from claimease.models.base import utcnow
from claimease.storage.user_store import get_user_store
from claimease.storage.policy_store import get_policy_store
from claimease.storage.claim_store import get_claim_store
from claimease.storage.payment_store import get_payment_store
from claimease.utils.validators import add_months

logger = get_logger(__name__)

TIMEFRAMES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
EXPORT_TYPES = ("users", "policies", "claims", "payments")
EXPORT_FORMATS = ("json", "csv")


def timeframe_start(timeframe: str, now: Optional[datetime] = None) -> datetime:
    if timeframe not in TIMEFRAMES:
        raise ValidationFailedError.single("timeframe", f"Timeframe must be one of {', '.join(TIMEFRAMES)}")
    return (now or utcnow()) - timedelta(days=TIMEFRAMES[timeframe])


def month_keys(months: int, today: Optional[date] = None) -> List[str]:
    """``YYYY-MM`` keys for the last ``months`` months, oldest first."""
    first = (today or date.today()).replace(day=1)
    return [add_months(first, -offset).strftime("%Y-%m") for offset in range(months - 1, -1, -1)]


def _month(value) -> str:
    return value.strftime("%Y-%m")


class AnalyticsService:
    """Service for analytics operations."""

    def __init__(self):
        self.users = get_user_store()
        self.policies = get_policy_store()
        self.claims = get_claim_store()
        self.payments = get_payment_store()

    def dashboard(self, timeframe: str = "30d") -> Dict[str, Any]:
        since = timeframe_start(timeframe)

        users = self.users.get_all()
        policies = self.policies.get_all()
        claims = self.claims.get_all()
        payments = self.payments.get_all()

        completed_in_period = [
            p for p in payments
            if p.status == PaymentStatus.COMPLETED and (p.processed_date or p.created_at) >= since
        ]

        return {
            "timeframe": timeframe,
            "users": {
                **self.users.get_statistics(),
                "new": len([u for u in users if u.created_at >= since]),
            },
            "policies": {
                **self.policies.get_statistics(policies),
                "new": len([p for p in policies if p.created_at >= since]),
            },
            "claims": {
                **self.claims.get_statistics(claims),
                "new": len([c for c in claims if c.created_at >= since]),
            },
            "payments": {
                **self.payments.get_statistics(payments),
                "revenue_in_period": round(sum(p.amount for p in completed_in_period), 2),
            },
        }

    def revenue(self, months: int = 12) -> Dict[str, Any]:
        keys = month_keys(months)
        buckets = {key: {"month": key, "revenue": 0.0, "count": 0} for key in keys}

        for payment in self.payments.get_all():
            if payment.status != PaymentStatus.COMPLETED:
                continue
            key = _month(payment.processed_date or payment.created_at)
            if key in buckets:
                buckets[key]["revenue"] = round(buckets[key]["revenue"] + payment.amount, 2)
                buckets[key]["count"] += 1

        monthly = [buckets[key] for key in keys]
        return {
            "monthly": monthly,
            "total_revenue": round(sum(b["revenue"] for b in monthly), 2),
        }

    def policy_analytics(self) -> Dict[str, Any]:
        policies = self.policies.get_all()
        by_type: Dict[str, Dict[str, float]] = {}
        for policy in policies:
            entry = by_type.setdefault(policy.policy_type, {"count": 0, "total_coverage": 0.0, "total_premium": 0.0})
            entry["count"] += 1
            entry["total_coverage"] += policy.coverage_amount
            entry["total_premium"] += policy.premium_amount

        for entry in by_type.values():
            entry["average_coverage"] = round(entry["total_coverage"] / entry["count"], 2)
            entry["average_premium"] = round(entry["total_premium"] / entry["count"], 2)

        return {
            **self.policies.get_statistics(policies),
            "type_breakdown": by_type,
            "expiring_30_days": len(self.policies.get_expiring(30)),
        }

    def claim_analytics(self, months: int = 6) -> Dict[str, Any]:
        claims = self.claims.get_all()
        keys = month_keys(months)
        monthly = {key: {"month": key, "submitted": 0, "approved": 0, "rejected": 0} for key in keys}

        for claim in claims:
            key = _month(claim.created_at)
            if key in monthly:
                monthly[key]["submitted"] += 1
                if claim.status == ClaimStatus.APPROVED:
                    monthly[key]["approved"] += 1
                elif claim.status == ClaimStatus.REJECTED:
                    monthly[key]["rejected"] += 1

        return {
            **self.claims.get_statistics(claims),
            "monthly": [monthly[key] for key in keys],
        }

    def customer_analytics(self, months: int = 6) -> Dict[str, Any]:
        customers = self.users.get_by_role(UserRole.CUSTOMER)
        keys = month_keys(months)
        growth = {key: 0 for key in keys}
        for customer in customers:
            key = _month(customer.created_at)
            if key in growth:
                growth[key] += 1

        insured = {p.customer_id for p in self.policies.get_all()}
        return {
            "total": len(customers),
            "active": len([c for c in customers if c.is_active]),
            "with_policies": len([c for c in customers if c.user_id in insured]),
            "growth": [{"month": key, "new_customers": growth[key]} for key in keys],
        }

    def export(self, data_type: str, format: str = "json") -> Dict[str, Any]:
        """Export one collection as JSON records or CSV text."""
        if data_type not in EXPORT_TYPES:
            raise ValidationFailedError.single("type", f"Export type must be one of {', '.join(EXPORT_TYPES)}")
        if format not in EXPORT_FORMATS:
            raise ValidationFailedError.single("format", "Format must be json or csv")

        if data_type == "users":
            records = [self._flat(u.to_public()) for u in self.users.get_all()]
        else:
            store = {"policies": self.policies, "claims": self.claims, "payments": self.payments}[data_type]
            records = [self._flat(e.model_dump(mode="json")) for e in store.get_all()]

        logger.log_business("data_exported", type=data_type, format=format, count=len(records))

        if format == "json":
            return {"type": data_type, "format": format, "count": len(records), "data": records}
        return {"type": data_type, "format": format, "count": len(records), "data": self._to_csv(records)}

    @staticmethod
    def _flat(record: Dict[str, Any]) -> Dict[str, Any]:
        """Drop nested structures so records fit one CSV row."""
        return {k: v for k, v in record.items() if not isinstance(v, (dict, list))}

    @staticmethod
    def _to_csv(records: List[Dict[str, Any]]) -> str:
        if not records:
            return ""
        fieldnames: List[str] = []
        for record in records:
            for key in record:
                if key not in fieldnames:
                    fieldnames.append(key)
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(records)
        return buffer.getvalue()
