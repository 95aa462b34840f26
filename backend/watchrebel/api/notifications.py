"""Notification inbox endpoints."""

from fastapi import APIRouter, Depends, Query

from watchrebel.api.deps import get_current_user, inbox_service
from watchrebel.models.tables import User
from watchrebel.services.inbox import InboxService

router = APIRouter()


@router.get("/notifications")
async def get_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    user: User = Depends(get_current_user),
    inbox: InboxService = Depends(inbox_service),
):
    notifications = await inbox.get_notifications(user.id, unread_only)
    return {
        "notifications": notifications,
        "unreadCount": sum(1 for n in notifications if not n["isRead"]),
    }


@router.put("/notifications/mark-all-read")
async def mark_all_read(
    user: User = Depends(get_current_user),
    inbox: InboxService = Depends(inbox_service),
):
    count = await inbox.mark_all_read(user.id)
    return {"message": "Все уведомления прочитаны", "count": count}


@router.put("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    inbox: InboxService = Depends(inbox_service),
):
    notification = await inbox.mark_read(user.id, notification_id)
    return {"id": notification.id, "isRead": notification.is_read}


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    inbox: InboxService = Depends(inbox_service),
):
    await inbox.delete(user.id, notification_id)
    return {"message": "Уведомление удалено"}
