# claimease/api/v1/dashboard.py
from fastapi import APIRouter, Depends, Query

from claimease.core.dependencies import get_dashboard_service, get_current_user

router = APIRouter()


@router.get("/")
async def get_dashboard(user=Depends(get_current_user)):
    """Tabs, statistics and recent activity for the caller's role."""
    return {"success": True, "dashboard": get_dashboard_service().overview(user)}


@router.get("/claims-trend")
async def claims_trend(days: int = Query(30), user=Depends(get_current_user)):
    trend = get_dashboard_service().claims_trend(user, days)
    return {"success": True, "days": days, "trend": trend}


@router.get("/policy-expiry-alerts")
async def policy_expiry_alerts(days_ahead: int = Query(30), user=Depends(get_current_user)):
    alerts = get_dashboard_service().policy_expiry_alerts(user, days_ahead)
    return {"success": True, "count": len(alerts), "alerts": alerts}
