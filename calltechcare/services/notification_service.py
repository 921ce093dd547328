"""
Notification Service
In-app notification feed written as a side effect of payment events
"""

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..models import NOTIFICATION_TYPES, Notification, User

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    message: str,
    notification_type: str = "info",
    user: Optional[User] = None,
    email: Optional[str] = None,
) -> Notification:
    """
    Add a notification to a user's feed.

    The row is keyed by user id when the user is known and always carries the
    email, so a notification written before the account existed still shows up.
    """
    if notification_type not in NOTIFICATION_TYPES:
        logger.warning(f"Unknown notification type '{notification_type}', using 'info'")
        notification_type = "info"

    notification = Notification(
        user_id=user.id if user else None,
        email=(user.email if user else (email or "").strip().lower() or None),
        message=message,
        type=notification_type,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info(f"🔔 Notification ({notification_type}) for {notification.email}: {message}")
    return notification


def _user_filter(user: User):
    return or_(Notification.user_id == user.id, func.lower(Notification.email) == user.email.lower())


def list_for_user(db: Session, user: User) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(_user_filter(user))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


def mark_all_read(db: Session, user: User) -> int:
    """Mark every unread notification as read; returns the number updated"""
    updated = (
        db.query(Notification)
        .filter(_user_filter(user), Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "message": notification.message,
        "type": notification.type,
        "read": notification.read,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }
