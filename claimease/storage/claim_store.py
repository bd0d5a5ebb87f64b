# claimease/storage/claim_store.py
"""Claims collection."""

from collections import Counter
from datetime import date, timedelta
from typing import Dict, Any, Optional, List, Callable

from claimease.storage.base import BaseStore
from claimease.models.base import utcnow
from claimease.models.claim import Claim
from claimease.core.constants import ClaimStatus, ClaimPriority

SORTABLE_FIELDS = {
    "created_at", "claim_number", "claim_amount", "incident_date",
    "priority", "status", "updated_at"
}

URGENT_PRIORITIES = (ClaimPriority.HIGH, ClaimPriority.URGENT)


class ClaimStore(BaseStore[Claim]):
    collection = "claims"
    model = Claim
    id_field = "claim_id"

    def get_by_claim_number(self, claim_number: str) -> Optional[Claim]:
        return self.find_one(lambda c: c.claim_number == claim_number)

    def get_by_policy(self, policy_id: str) -> List[Claim]:
        return self.find(lambda c: c.policy_id == policy_id)

    def get_by_customer(self, customer_id: str) -> List[Claim]:
        return self.find(lambda c: c.customer_id == customer_id)

    def get_pending_claims(self) -> List[Claim]:
        """Claims not yet decided, closed or cancelled."""
        return self.find(lambda c: c.is_pending)

    def search(
        self,
        scope: Optional[Callable[[Claim], bool]] = None,
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
    ) -> tuple[List[Claim], int]:
        """
        Filtered, sorted page of claims.

        ``scope`` restricts the result to what the caller may see. ``search``
        matches the claim number, description and incident location.
        ``from_date``/``to_date`` bound the incident date.
        """
        checks: List[Callable[[Claim], bool]] = []
        if scope:
            checks.append(scope)
        for field, wanted in (("status", status), ("claim_type", claim_type), ("priority", priority),
                              ("policy_id", policy_id), ("assigned_to", assigned_to)):
            if wanted:
                checks.append(lambda c, f=field, w=wanted: getattr(c, f) == w)
        if search:
            term = search.lower()
            checks.append(lambda c: any(
                term in text.lower() for text in (c.claim_number, c.description, c.incident_location)
            ))
        if from_date:
            checks.append(lambda c: c.incident_date >= from_date)
        if to_date:
            checks.append(lambda c: c.incident_date <= to_date)

        if sort_by not in SORTABLE_FIELDS:
            sort_by = "created_at"

        return self.paginate(
            self.find(lambda c: all(check(c) for check in checks)),
            sort_key=lambda c: getattr(c, sort_by),
            descending=sort_order == "desc",
            page=page,
            limit=limit
        )

    def get_statistics(self, claims: Optional[List[Claim]] = None) -> Dict[str, Any]:
        """Totals, distributions and rates over ``claims`` (default: all)."""
        claims = self.get_all() if claims is None else claims
        statuses = Counter(c.status for c in claims)
        approved = [c for c in claims if c.status == ClaimStatus.APPROVED]
        decided = len(approved) + statuses.get(ClaimStatus.REJECTED.value, 0)
        durations = [c.processing_days for c in claims if c.processing_days is not None]
        claimed = sum(c.claim_amount for c in claims)
        cutoff = utcnow() - timedelta(days=30)

        return {
            "total": len(claims),
            "by_status": dict(statuses),
            "by_type": dict(Counter(c.claim_type for c in claims)),
            "total_claimed": round(claimed, 2),
            "total_approved": round(sum(c.approved_amount or c.claim_amount for c in approved), 2),
            "average_claim": round(claimed / len(claims), 2) if claims else 0,
            "approval_rate": round(len(approved) / decided * 100, 2) if decided else 0,
            "average_processing_days": round(sum(durations) / len(durations), 1) if durations else 0,
            "high_priority": sum(1 for c in claims if c.priority in URGENT_PRIORITIES),
            "pending_count": sum(1 for c in claims if c.is_pending),
            "recent_30_days": sum(1 for c in claims if c.created_at >= cutoff),
        }


_claim_store: Optional[ClaimStore] = None


def get_claim_store() -> ClaimStore:
    global _claim_store
    if _claim_store is None:
        _claim_store = ClaimStore()
    return _claim_store
