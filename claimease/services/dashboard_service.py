# claimease/services/dashboard_service.py
"""Role-gated dashboard shells, claim trends and expiry alerts."""

from datetime import date, timedelta
from typing import List, Dict, Any

from claimease.core.constants import UserRole
from claimease.core.exceptions import ValidationFailedError
from claimease.core.logging import get_logger
from claimease.models.base import utcnow
from claimease.models.claim import Claim
from claimease.models.policy import Policy
from claimease.models.user import User
from claimease.storage.claim_store import get_claim_store
from claimease.storage.payment_store import get_payment_store
from claimease.storage.policy_store import get_policy_store
from claimease.storage.user_store import get_user_store

logger = get_logger(__name__)

DASHBOARD_TABS = {
    UserRole.ADMIN.value: ["overview", "users", "policies", "claims", "payments", "analytics"],
    UserRole.AGENT.value: ["overview", "policies", "claims", "customers"],
    UserRole.CUSTOMER.value: ["overview", "my_policies", "my_claims", "payments"],
}

RECENT_LIMIT = 5
MAX_TREND_DAYS = 365


def tabs_for(role: str) -> List[str]:
    return list(DASHBOARD_TABS.get(role, []))


class DashboardService:
    """Service for the per-role dashboard."""

    def __init__(self):
        self.users = get_user_store()
        self.policies = get_policy_store()
        self.claims = get_claim_store()
        self.payments = get_payment_store()

    # ===================
    # Scoping
    # ===================

    def _visible_policies(self, user: User) -> List[Policy]:
        from claimease.core.dependencies import get_policy_service
        scope = get_policy_service().scope_for(user)
        policies = self.policies.get_all()
        return [p for p in policies if scope(p)] if scope else policies

    def _visible_claims(self, user: User) -> List[Claim]:
        from claimease.core.dependencies import get_claim_service
        scope = get_claim_service().scope_for(user)
        claims = self.claims.get_all()
        return [c for c in claims if scope(c)] if scope else claims

    # ===================
    # Overview
    # ===================

    def overview(self, user: User) -> Dict[str, Any]:
        """Everything the caller's dashboard shell renders on first load."""
        policies = self._visible_policies(user)
        claims = self._visible_claims(user)

        stats: Dict[str, Any] = {
            "policies": self.policies.get_statistics(policies),
            "claims": self.claims.get_statistics(claims),
        }

        if user.role == UserRole.ADMIN:
            stats["users"] = self.users.get_statistics()
            stats["payments"] = self.payments.get_statistics()
        elif user.role == UserRole.AGENT:
            stats["customers"] = len({p.customer_id for p in policies})
            stats["assigned_claims"] = len([
                c for c in claims if c.assigned_to == user.user_id and c.is_pending
            ])
        else:
            payments = self.payments.get_by_customer(user.user_id)
            stats["payments"] = self.payments.get_statistics(payments)

        recent_claims = sorted(claims, key=lambda c: c.created_at, reverse=True)[:RECENT_LIMIT]
        recent_policies = sorted(policies, key=lambda p: p.created_at, reverse=True)[:RECENT_LIMIT]

        logger.debug("Dashboard built", user_id=user.user_id, role=user.role)
        return {
            "role": user.role,
            "tabs": tabs_for(user.role),
            "stats": stats,
            "recent_claims": [c.model_dump(mode="json") for c in recent_claims],
            "recent_policies": [p.model_dump(mode="json") for p in recent_policies],
        }

    # ===================
    # Trends & Alerts
    # ===================

    def claims_trend(self, user: User, days: int = 30) -> List[Dict[str, Any]]:
        """Daily submitted/approved/rejected counts for the last ``days`` days."""
        if not 1 <= days <= MAX_TREND_DAYS:
            raise ValidationFailedError.single("days", f"Days must be between 1 and {MAX_TREND_DAYS}")

        today = utcnow().date()
        start = today - timedelta(days=days - 1)
        buckets = {
            start + timedelta(days=offset): {"submitted": 0, "approved": 0, "rejected": 0}
            for offset in range(days)
        }

        for claim in self._visible_claims(user):
            day = claim.created_at.date()
            if day in buckets:
                buckets[day]["submitted"] += 1
            if claim.decided_at is not None and claim.status in ("approved", "rejected"):
                decided = claim.decided_at.date()
                if decided in buckets:
                    buckets[decided][claim.status] += 1

        return [{"date": day.isoformat(), **counts} for day, counts in sorted(buckets.items())]

    def policy_expiry_alerts(self, user: User, days_ahead: int = 30) -> List[Dict[str, Any]]:
        """Active policies ending within ``days_ahead`` days, soonest first."""
        if days_ahead < 1:
            raise ValidationFailedError.single("days_ahead", "Days ahead must be at least 1")

        from claimease.core.dependencies import get_policy_service
        scope = get_policy_service().scope_for(user)
        today = date.today()

        alerts = []
        for policy in self.policies.get_expiring(days_ahead, today=today):
            if scope and not scope(policy):
                continue
            customer = self.users.get(policy.customer_id)
            remaining = (policy.end_date - today).days
            alerts.append({
                "policy_id": policy.policy_id,
                "policy_number": policy.policy_number,
                "policy_type": policy.policy_type,
                "customer_name": customer.full_name if customer else None,
                "end_date": policy.end_date.isoformat(),
                "days_remaining": remaining,
                "urgency": "high" if remaining <= 7 else "medium" if remaining <= 15 else "low",
            })
        return alerts
