# claimease/api/v1/recommendations.py
from fastapi import APIRouter, Depends

from claimease.core.dependencies import get_recommendation_service, get_current_user

router = APIRouter()


@router.get("/")
async def get_recommendations(user=Depends(get_current_user)):
    """Every policy type ranked for the caller's profile."""
    return {"success": True, **get_recommendation_service().recommendations(user)}


@router.get("/{policy_type}")
async def get_recommendation(policy_type: str, user=Depends(get_current_user)):
    return {"success": True, "recommendation": get_recommendation_service().for_policy_type(user, policy_type)}
