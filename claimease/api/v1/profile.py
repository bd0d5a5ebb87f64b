# claimease/api/v1/profile.py
from fastapi import APIRouter, Depends, Query, Request, UploadFile, File

from claimease.core.constants import MAX_PAGE_SIZE, ACTIVITY_PAGE_SIZE
from claimease.core.dependencies import get_profile_service, get_current_user
from claimease.core.rate_limit import client_ip
from claimease.models.profile import (
    ClientInfo, ProfileUpdate, PersonalInfoUpdate, WorkInfoUpdate, MedicalInfoUpdate,
    ProfilePreferencesUpdate, SecurityUpdate, BankAccountCreate, NomineeCreate
)
from claimease.models.schemas import page_meta

router = APIRouter()


def _client(request: Request) -> ClientInfo:
    return ClientInfo(ip_address=client_ip(request), user_agent=request.headers.get("user-agent"))


def _updated(profile, message: str) -> dict:
    return {"success": True, "message": message, "profile": profile.to_public()}

# ===================
# Profile
# ===================

@router.get("/")
async def get_profile(user=Depends(get_current_user)):
    """The caller's profile, created with defaults on first access."""
    return {"success": True, "profile": get_profile_service().get_profile(user)}


@router.put("/")
async def update_profile(data: ProfileUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_profile(user, data, _client(request))
    return _updated(profile, "Profile updated successfully")


@router.get("/activity")
async def get_activity(
    page: int = Query(1, ge=1),
    limit: int = Query(ACTIVITY_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(get_current_user)
):
    activities, total = get_profile_service().activity(user, page=page, limit=limit)
    return {
        "success": True,
        **page_meta(total, page, limit, len(activities)),
        "activities": [a.model_dump(mode="json") for a in activities],
    }

# ===================
# Sections
# ===================

@router.put("/personal-info")
async def update_personal_info(data: PersonalInfoUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_personal_info(user, data, _client(request))
    return _updated(profile, "Personal information updated successfully")


@router.put("/work-info")
async def update_work_info(data: WorkInfoUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_work_info(user, data, _client(request))
    return _updated(profile, "Work information updated successfully")


@router.put("/medical-info")
async def update_medical_info(data: MedicalInfoUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_medical_info(user, data, _client(request))
    return _updated(profile, "Medical information updated successfully")


@router.put("/preferences")
async def update_preferences(data: ProfilePreferencesUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_preferences(user, data, _client(request))
    return _updated(profile, "Preferences updated successfully")


@router.put("/security")
async def update_security(data: SecurityUpdate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().update_security(user, data, _client(request))
    return _updated(profile, "Security settings updated successfully")

# ===================
# Avatar, accounts & nominees
# ===================

@router.post("/avatar")
async def upload_avatar(request: Request, avatar: UploadFile = File(...), user=Depends(get_current_user)):
    url = await get_profile_service().upload_avatar(user, avatar, _client(request))
    return {"success": True, "message": "Avatar uploaded successfully", "avatar_url": url}


@router.post("/bank-details", status_code=201)
async def add_bank_details(data: BankAccountCreate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().add_bank_account(user, data, _client(request))
    return _updated(profile, "Bank details added successfully")


@router.post("/nominee", status_code=201)
async def add_nominee(data: NomineeCreate, request: Request, user=Depends(get_current_user)):
    profile = get_profile_service().add_nominee(user, data, _client(request))
    return _updated(profile, "Nominee added successfully")
