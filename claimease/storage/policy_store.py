# claimease/storage/policy_store.py
"""Policy storage implementation."""

from typing import Dict, Any, Optional, List, Callable
from datetime import date, timedelta

from claimease.storage.base import BaseStore
from claimease.models.policy import Policy
from claimease.core.constants import PolicyStatus

SORTABLE_FIELDS = {
    "created_at", "policy_name", "policy_number", "coverage_amount",
    "premium_amount", "start_date", "end_date", "status"
}


class PolicyStore(BaseStore[Policy]):
    """Storage for policy entities."""

    collection = "policies"
    model = Policy
    id_field = "policy_id"

    # Custom query methods
    def get_by_policy_number(self, policy_number: str) -> Optional[Policy]:
        return self.find_one(lambda p: p.policy_number == policy_number)

    def get_by_customer(self, customer_id: str) -> List[Policy]:
        return self.find(lambda p: p.customer_id == customer_id)

    def get_by_agent(self, agent_id: str) -> List[Policy]:
        return self.find(lambda p: p.agent_id == agent_id)

    def get_active(self) -> List[Policy]:
        return self.find(lambda p: p.status == PolicyStatus.ACTIVE)

    def get_expiring(self, days: int = 30, today: Optional[date] = None) -> List[Policy]:
        """Active policies whose end date falls within the next ``days`` days."""
        today = today or date.today()
        cutoff = today + timedelta(days=days)
        results = [
            p for p in self.get_active()
            if p.is_active and p.end_date <= cutoff
        ]
        results.sort(key=lambda p: p.end_date)
        return results

    def search(
        self,
        scope: Optional[Callable[[Policy], bool]] = None,
        status: Optional[str] = None,
        policy_type: Optional[str] = None,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10
    ) -> tuple[List[Policy], int]:
        """Search policies with multiple filters."""
        results = self.get_all()

        if scope:
            results = [p for p in results if scope(p)]

        if status:
            results = [p for p in results if p.status == status]

        if policy_type:
            results = [p for p in results if p.policy_type == policy_type]

        if customer_id:
            results = [p for p in results if p.customer_id == customer_id]

        if agent_id:
            results = [p for p in results if p.agent_id == agent_id]

        if search:
            term = search.lower()
            results = [
                p for p in results
                if term in p.policy_name.lower()
                or term in p.policy_number.lower()
                or term in p.description.lower()
            ]

        if sort_by not in SORTABLE_FIELDS:
            sort_by = "created_at"

        return self.paginate(
            results,
            sort_key=lambda p: getattr(p, sort_by),
            descending=sort_order == "desc",
            page=page,
            limit=limit
        )

    # Statistics
    def get_statistics(self, policies: Optional[List[Policy]] = None) -> Dict[str, Any]:
        """Aggregate counts and amounts over ``policies`` (default: all)."""
        all_policies = self.get_all() if policies is None else policies

        by_status: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        total_coverage = 0.0
        total_premium = 0.0

        for policy in all_policies:
            by_status[policy.status] = by_status.get(policy.status, 0) + 1
            by_type[policy.policy_type] = by_type.get(policy.policy_type, 0) + 1
            if policy.status == PolicyStatus.ACTIVE:
                total_coverage += policy.coverage_amount
                total_premium += policy.premium_amount

        return {
            "total": len(all_policies),
            "active": by_status.get(PolicyStatus.ACTIVE.value, 0),
            "pending": by_status.get(PolicyStatus.PENDING.value, 0),
            "by_status": by_status,
            "by_type": by_type,
            "total_coverage": round(total_coverage, 2),
            "total_premium": round(total_premium, 2),
        }


# Singleton instance
_policy_store: Optional[PolicyStore] = None


def get_policy_store() -> PolicyStore:
    """Get the policy store singleton."""
    global _policy_store
    if _policy_store is None:
        _policy_store = PolicyStore()
    return _policy_store
