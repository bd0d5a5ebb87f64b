# claimease/api/v1/analytics.py
from fastapi import APIRouter, Depends, Query

from claimease.core.dependencies import get_analytics_service, require_admin

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/dashboard")
async def dashboard_analytics(timeframe: str = "30d"):
    return {"success": True, "analytics": get_analytics_service().dashboard(timeframe)}


@router.get("/revenue")
async def revenue_analytics(months: int = Query(12, ge=1, le=60)):
    return {"success": True, "analytics": get_analytics_service().revenue(months)}


@router.get("/policies")
async def policy_analytics():
    return {"success": True, "analytics": get_analytics_service().policy_analytics()}


@router.get("/claims")
async def claim_analytics(months: int = Query(6, ge=1, le=60)):
    return {"success": True, "analytics": get_analytics_service().claim_analytics(months)}


@router.get("/customers")
async def customer_analytics(months: int = Query(6, ge=1, le=60)):
    return {"success": True, "analytics": get_analytics_service().customer_analytics(months)}


@router.get("/export")
async def export_data(type: str = "claims", format: str = "json"):
    """Export one collection as JSON records or CSV text."""
    return {"success": True, **get_analytics_service().export(type, format)}
