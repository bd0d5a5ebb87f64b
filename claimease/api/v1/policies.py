# claimease/api/v1/policies.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from claimease.core.constants import MAX_PAGE_SIZE
from claimease.core.dependencies import (
    get_policy_service, get_current_user, require_admin, require_staff
)
from claimease.models.policy import (
    PolicyCreate, PolicyUpdate, PolicyStatusUpdate, PolicyPaymentCreate
)
from claimease.models.schemas import page_meta

router = APIRouter()


def _with_actions(policy, user) -> dict:
    data = policy.model_dump(mode="json")
    data["allowed_transitions"] = get_policy_service().allowed_transitions(user, policy)
    return data

# ===================
# Collection
# ===================

@router.get("/")
async def list_policies(
    status: Optional[str] = None,
    policy_type: Optional[str] = None,
    customer_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(get_current_user)
):
    """List the policies visible to the caller."""
    policies, total = get_policy_service().list_policies(
        user, status=status, policy_type=policy_type, customer_id=customer_id,
        agent_id=agent_id, search=search, sort_by=sort_by, sort_order=sort_order,
        page=page, limit=limit
    )
    return {
        "success": True,
        **page_meta(total, page, limit, len(policies)),
        "policies": [p.model_dump(mode="json") for p in policies],
    }


@router.post("/", status_code=201)
async def create_policy(data: PolicyCreate, user=Depends(require_staff)):
    policy = get_policy_service().create_policy(user, data)
    return {"success": True, "message": "Policy created successfully", "policy": _with_actions(policy, user)}


@router.get("/expiring-soon")
async def expiring_soon(days: int = Query(30, ge=1, le=365), user=Depends(require_staff)):
    policies = get_policy_service().expiring_soon(user, days)
    return {
        "success": True,
        "count": len(policies),
        "policies": [p.model_dump(mode="json") for p in policies],
    }


@router.get("/dashboard-stats")
async def policy_stats(user=Depends(get_current_user)):
    return {"success": True, "stats": get_policy_service().statistics(user)}

# ===================
# Single policy
# ===================

@router.get("/{policy_id}")
async def get_policy(policy_id: str, user=Depends(get_current_user)):
    policy = get_policy_service().get_policy(user, policy_id)
    return {"success": True, "policy": _with_actions(policy, user)}


@router.put("/{policy_id}")
async def update_policy(policy_id: str, data: PolicyUpdate, user=Depends(require_staff)):
    policy = get_policy_service().update_policy(user, policy_id, data)
    return {"success": True, "message": "Policy updated successfully", "policy": _with_actions(policy, user)}


@router.put("/{policy_id}/status")
async def update_policy_status(policy_id: str, data: PolicyStatusUpdate, user=Depends(require_staff)):
    policy = get_policy_service().update_status(user, policy_id, data.status, data.reason)
    return {"success": True, "message": "Policy status updated successfully", "policy": _with_actions(policy, user)}


@router.post("/{policy_id}/payment")
async def add_policy_payment(policy_id: str, data: PolicyPaymentCreate, user=Depends(require_staff)):
    policy = get_policy_service().add_payment(user, policy_id, data)
    return {"success": True, "message": "Payment recorded successfully", "policy": _with_actions(policy, user)}


@router.delete("/{policy_id}")
async def delete_policy(policy_id: str, user=Depends(require_admin)):
    get_policy_service().delete_policy(user, policy_id)
    return {"success": True, "message": "Policy cancelled successfully"}
