# claimease/api/v1/notifications.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from claimease.core.constants import MAX_PAGE_SIZE
from claimease.core.dependencies import get_notification_service, get_current_user
from claimease.models.notification import NotificationCreate, MarkReadRequest, PreferencesUpdate
from claimease.models.schemas import page_meta

router = APIRouter()


@router.get("/")
async def list_notifications(
    is_read: Optional[bool] = None,
    type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    user=Depends(get_current_user)
):
    items, total, unread = get_notification_service().list_for(
        user, is_read=is_read, type=type, page=page, limit=limit
    )
    return {
        "success": True,
        **page_meta(total, page, limit, len(items)),
        "unread_count": unread,
        "notifications": [n.model_dump(mode="json") for n in items],
    }


@router.get("/unread-count")
async def unread_count(user=Depends(get_current_user)):
    return {"success": True, "unread_count": get_notification_service().unread_count(user)}


@router.put("/mark-multiple-read")
async def mark_many_read(data: MarkReadRequest, user=Depends(get_current_user)):
    updated = get_notification_service().mark_many_read(user, data.notification_ids)
    return {"success": True, "message": f"{updated} notifications marked as read", "modified_count": updated}


@router.put("/mark-all-read")
async def mark_all_read(user=Depends(get_current_user)):
    updated = get_notification_service().mark_all_read(user)
    return {"success": True, "message": "All notifications marked as read", "modified_count": updated}


@router.post("/test", status_code=201)
async def send_test(data: NotificationCreate, user=Depends(get_current_user)):
    notification = get_notification_service().send_test(user, data)
    return {"success": True, "message": "Test notification sent", "notification": notification.model_dump(mode="json")}


@router.get("/preferences")
async def get_preferences(user=Depends(get_current_user)):
    return {"success": True, "preferences": get_notification_service().get_preferences(user)}


@router.put("/preferences")
async def update_preferences(data: PreferencesUpdate, user=Depends(get_current_user)):
    preferences = get_notification_service().update_preferences(user, data)
    return {"success": True, "message": "Preferences updated successfully", "preferences": preferences}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user=Depends(get_current_user)):
    notification = get_notification_service().mark_read(user, notification_id)
    return {"success": True, "notification": notification.model_dump(mode="json")}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user=Depends(get_current_user)):
    get_notification_service().delete(user, notification_id)
    return {"success": True, "message": "Notification deleted successfully"}
