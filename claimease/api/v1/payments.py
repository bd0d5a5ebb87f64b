# claimease/api/v1/payments.py
from fastapi import APIRouter, Depends, Query
from typing import Optional
from datetime import datetime

from claimease.core.constants import MAX_PAGE_SIZE, UserRole
from claimease.core.dependencies import (
    get_payment_service, get_current_user, require_admin, require_roles
)
from claimease.models.payment import PaymentCreate, PaymentStatusUpdate, RefundRequest
from claimease.models.schemas import page_meta

router = APIRouter()

require_payer = require_roles(UserRole.ADMIN, UserRole.CUSTOMER)


@router.get("/")
async def list_payments(
    status: Optional[str] = None,
    payment_type: Optional[str] = None,
    payment_method: Optional[str] = None,
    policy_id: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(get_current_user)
):
    payments, total = get_payment_service().list_payments(
        user, status=status, payment_type=payment_type, payment_method=payment_method,
        policy_id=policy_id, from_date=from_date, to_date=to_date, page=page, limit=limit
    )
    return {
        "success": True,
        **page_meta(total, page, limit, len(payments)),
        "payments": [p.model_dump(mode="json") for p in payments],
    }


@router.post("/", status_code=201)
async def create_payment(data: PaymentCreate, user=Depends(require_payer)):
    payment = get_payment_service().create_payment(user, data)
    return {"success": True, "message": "Payment initiated successfully", "payment": payment.model_dump(mode="json")}


@router.get("/overdue")
async def overdue_payments(user=Depends(get_current_user)):
    payments = get_payment_service().overdue(user)
    return {"success": True, "count": len(payments), "payments": [p.model_dump(mode="json") for p in payments]}


@router.get("/dashboard-stats")
async def payment_stats(user=Depends(get_current_user)):
    return {"success": True, "stats": get_payment_service().statistics(user)}


@router.get("/{payment_id}")
async def get_payment(payment_id: str, user=Depends(get_current_user)):
    payment = get_payment_service().get_payment(user, payment_id)
    return {"success": True, "payment": payment.model_dump(mode="json")}


@router.get("/{payment_id}/receipt")
async def get_receipt(payment_id: str, user=Depends(get_current_user)):
    receipt = get_payment_service().receipt(user, payment_id)
    return {"success": True, "receipt": receipt}


@router.put("/{payment_id}/status")
async def update_payment_status(payment_id: str, data: PaymentStatusUpdate, user=Depends(require_admin)):
    payment = get_payment_service().update_status(user, payment_id, data)
    return {"success": True, "message": "Payment status updated successfully", "payment": payment.model_dump(mode="json")}


@router.post("/{payment_id}/refund")
async def refund_payment(payment_id: str, data: RefundRequest, user=Depends(require_admin)):
    payment = get_payment_service().refund(user, payment_id, data)
    return {"success": True, "message": "Refund processed successfully", "payment": payment.model_dump(mode="json")}
