"""
Notification inbox endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException

from .auth import LendingSystem, get_current_user, get_lending_system
from ..notifications import NotificationChannel, NotificationStatus


router = APIRouter()


@router.get("")
async def list_notifications(
    status: Optional[NotificationStatus] = None,
    limit: int = 50,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """In-app notifications for the caller, newest first"""
    notifications = [
        n for n in system.notifier.get_notifications(user_id, status=status, limit=limit)
        if n.channel == NotificationChannel.IN_APP
    ]
    return {
        "notifications": [
            {
                "id": n.id,
                "type": n.notification_type.value,
                "subject": n.subject,
                "body": n.body,
                "status": n.status.value,
                "created_at": n.created_at.isoformat(),
                "loan_id": n.metadata.get("loan_id"),
            }
            for n in notifications
        ]
    }


@router.post("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Mark one of the caller's notifications as read"""
    owned = {n.id for n in system.notifier.get_notifications(user_id, limit=1000)}
    if notification_id not in owned or not system.notifier.mark_as_read(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}
