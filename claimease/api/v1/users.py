# claimease/api/v1/users.py
from fastapi import APIRouter, Depends, Query, UploadFile, File
from typing import Optional

from claimease.core.constants import MAX_PAGE_SIZE
from claimease.core.dependencies import (
    get_user_service, get_current_user, require_admin, require_staff
)
from claimease.models.schemas import page_meta
from claimease.models.user import UserCreate, UserUpdate, UserStatusUpdate, BulkStatusUpdate

router = APIRouter()

# ===================
# Collection
# ===================

@router.get("/")
async def list_users(
    role: Optional[str] = None,
    status: Optional[str] = None,
    department: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(require_staff)
):
    """List users. Agents only see customers."""
    users, total = get_user_service().list_users(
        user, role=role, status=status, department=department, search=search,
        sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
    )
    return {
        "success": True,
        **page_meta(total, page, limit, len(users)),
        "users": [u.to_public() for u in users],
    }


@router.post("/", status_code=201)
async def create_user(data: UserCreate, user=Depends(require_admin)):
    created = get_user_service().create_user(data, created_by=user)
    return {"success": True, "message": "User created successfully", "user": created.to_public()}


@router.get("/dashboard-stats")
async def dashboard_stats(user=Depends(require_admin)):
    return {"success": True, "stats": get_user_service().dashboard_stats()}


@router.put("/bulk/status")
async def bulk_update_status(data: BulkStatusUpdate, user=Depends(require_admin)):
    modified = get_user_service().bulk_update_status(user, data.user_ids, data.status)
    return {
        "success": True,
        "message": f"{modified} users updated successfully",
        "modified_count": modified,
    }


@router.post("/me/avatar")
async def upload_avatar(avatar: UploadFile = File(...), user=Depends(get_current_user)):
    updated = await get_user_service().upload_avatar(user, avatar)
    return {"success": True, "message": "Avatar uploaded successfully", "user": updated.to_public()}

# ===================
# Single user
# ===================

@router.get("/{user_id}")
async def get_user(user_id: str, user=Depends(get_current_user)):
    found = get_user_service().get_visible_user(user, user_id)
    return {"success": True, "user": found.to_public()}


@router.put("/{user_id}")
async def update_user(user_id: str, data: UserUpdate, user=Depends(get_current_user)):
    """Admins update anyone; other users only their own profile."""
    updated = get_user_service().update_user(user, user_id, data)
    return {"success": True, "message": "User updated successfully", "user": updated.to_public()}


@router.put("/{user_id}/status")
async def update_status(user_id: str, data: UserStatusUpdate, user=Depends(require_admin)):
    updated = get_user_service().update_status(user, user_id, data.status)
    action = "activated" if updated.is_active else "deactivated"
    return {
        "success": True,
        "message": f"User {action} successfully",
        "user": updated.to_public(),
    }


@router.delete("/{user_id}")
async def delete_user(user_id: str, user=Depends(require_admin)):
    get_user_service().delete_user(user, user_id)
    return {"success": True, "message": "User deactivated successfully"}
