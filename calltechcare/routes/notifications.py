from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..services.notification_service import list_for_user, mark_all_read, serialize_notification

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.api_route("", methods=["GET", "POST"])
async def get_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Notification feed for the current user, newest first"""
    notifications = list_for_user(db, current_user)
    return {"ok": True, "notifications": [serialize_notification(n) for n in notifications]}


@router.post("/mark-read")
async def mark_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = mark_all_read(db, current_user)
    return {"ok": True, "updated": updated}
