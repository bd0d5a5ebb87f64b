# claimease/api/v1/claims.py
from fastapi import APIRouter, Depends, Query, Form, File, UploadFile
from pydantic import TypeAdapter, ValidationError
from typing import List, Optional
from datetime import date

from claimease.core.constants import MAX_PAGE_SIZE
from claimease.core.dependencies import (
    get_claim_service, get_current_user, require_admin, require_staff
)
from claimease.core.exceptions import ValidationFailedError
from claimease.core.logging import get_logger
from claimease.models.claim import (
    ClaimCreate, ClaimUpdate, ClaimStatusUpdate, ClaimAssign, InvestigationCreate, Witness
)
from claimease.models.schemas import page_meta
from claimease.utils.uploads import save_uploads, delete_stored_files

logger = get_logger(__name__)
router = APIRouter()

DOCUMENT_FIELD = "claimDocument"

_witnesses = TypeAdapter(List[Witness])


def _parse_witnesses(raw: Optional[str]) -> List[Witness]:
    """Witnesses arrive as a JSON array inside the multipart form."""
    if not raw:
        return []
    try:
        return _witnesses.validate_json(raw)
    except ValidationError:
        raise ValidationFailedError.single("witnesses", "Witnesses must be a list of name/contact entries")


def _with_actions(claim, user) -> dict:
    service = get_claim_service()
    data = claim.model_dump(mode="json")
    data["actions"] = service.actions_for(user, claim)
    data["allowed_transitions"] = service.allowed_transitions(user, claim)
    return data

# ===================
# Collection
# ===================

@router.get("/")
async def list_claims(
    status: Optional[str] = None,
    claim_type: Optional[str] = None,
    priority: Optional[str] = None,
    policy_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    search: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(get_current_user)
):
    """List the claims visible to the caller."""
    claims, total = get_claim_service().list_claims(
        user, status=status, claim_type=claim_type, priority=priority,
        policy_id=policy_id, assigned_to=assigned_to, search=search,
        from_date=from_date, to_date=to_date, sort_by=sort_by,
        sort_order=sort_order, page=page, limit=limit
    )
    return {
        "success": True,
        **page_meta(total, page, limit, len(claims)),
        "claims": [c.model_dump(mode="json") for c in claims],
    }


@router.post("/", status_code=201)
async def create_claim(
    policy_id: str = Form(""),
    claim_type: str = Form("other"),
    claim_amount: Optional[float] = Form(None),
    incident_date: Optional[date] = Form(None),
    incident_location: str = Form(""),
    description: str = Form(""),
    priority: str = Form("medium"),
    witnesses: Optional[str] = Form(None),
    claimDocument: Optional[List[UploadFile]] = File(None),
    user=Depends(get_current_user)
):
    """
    Submit a claim with its supporting documents.

    Files are stored first; if the claim is then refused they are removed.
    """
    data = ClaimCreate(
        policy_id=policy_id,
        claim_type=claim_type,
        claim_amount=claim_amount,
        incident_date=incident_date,
        incident_location=incident_location,
        description=description,
        priority=priority,
        witnesses=_parse_witnesses(witnesses),
    )

    stored = await save_uploads(claimDocument or [], DOCUMENT_FIELD, user.user_id)
    try:
        claim = get_claim_service().create_claim(user, data, stored)
    except Exception:
        delete_stored_files(stored)
        raise

    return {"success": True, "message": "Claim submitted successfully", "claim": _with_actions(claim, user)}


@router.get("/dashboard-stats")
async def claim_stats(user=Depends(get_current_user)):
    return {"success": True, "stats": get_claim_service().statistics(user)}

# ===================
# Single claim
# ===================

@router.get("/{claim_id}")
async def get_claim(claim_id: str, user=Depends(get_current_user)):
    claim = get_claim_service().get_claim(user, claim_id)
    return {"success": True, "claim": _with_actions(claim, user)}


@router.get("/{claim_id}/actions")
async def get_claim_actions(claim_id: str, user=Depends(get_current_user)):
    service = get_claim_service()
    claim = service.get_claim(user, claim_id)
    return {
        "success": True,
        "claim_id": claim.claim_id,
        "status": claim.status,
        "actions": service.actions_for(user, claim),
        "allowed_transitions": service.allowed_transitions(user, claim),
    }


@router.put("/{claim_id}")
async def update_claim(claim_id: str, data: ClaimUpdate, user=Depends(get_current_user)):
    claim = get_claim_service().update_claim(user, claim_id, data)
    return {"success": True, "message": "Claim updated successfully", "claim": _with_actions(claim, user)}


@router.put("/{claim_id}/status")
async def update_claim_status(claim_id: str, data: ClaimStatusUpdate, user=Depends(require_staff)):
    claim = get_claim_service().update_status(user, claim_id, data)
    return {"success": True, "message": "Claim status updated successfully", "claim": _with_actions(claim, user)}


@router.put("/{claim_id}/assign")
async def assign_claim(claim_id: str, data: ClaimAssign, user=Depends(require_admin)):
    claim = get_claim_service().assign_claim(user, claim_id, data.assigned_to)
    return {"success": True, "message": "Claim assigned successfully", "claim": _with_actions(claim, user)}


@router.put("/{claim_id}/investigation")
async def add_investigation(claim_id: str, data: InvestigationCreate, user=Depends(require_staff)):
    claim = get_claim_service().add_investigation(user, claim_id, data)
    return {"success": True, "message": "Investigation updated successfully", "claim": _with_actions(claim, user)}


@router.post("/{claim_id}/documents")
async def add_documents(
    claim_id: str,
    claimDocument: Optional[List[UploadFile]] = File(None),
    user=Depends(get_current_user)
):
    service = get_claim_service()
    service.get_claim(user, claim_id)

    stored = await save_uploads(claimDocument or [], DOCUMENT_FIELD, user.user_id)
    try:
        claim = service.add_documents(user, claim_id, stored)
    except Exception:
        delete_stored_files(stored)
        raise

    return {"success": True, "message": "Documents uploaded successfully", "claim": _with_actions(claim, user)}


@router.delete("/{claim_id}")
async def delete_claim(claim_id: str, user=Depends(require_admin)):
    get_claim_service().delete_claim(user, claim_id)
    return {"success": True, "message": "Claim deleted successfully"}
