"""Storage, lookup and realtime delivery of per-user notifications."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
import logging

from anyio import from_thread
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.exceptions import NotificationAccessDenied, NotificationNotFound
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.services.notification_hub import notification_hub

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str:
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def notification_event(notification: Notification, *, event: str = "notification.created") -> dict:
    return {
        "event": event,
        "notification": {
            "id": notification.id,
            "recipient_id": notification.recipient_id,
            "title": notification.title,
            "message": notification.message,
            "type": notification.notification_type.value,
            "metadata": notification.details,
            "is_read": notification.is_read,
            "created_at": _iso(notification.created_at),
        },
    }


def active_recipients(db: Session, user_ids: Iterable[str], *, exclude_user_id: str | None = None) -> list[str]:
    """Keep the requested ids that belong to active users, in request order."""
    requested = [item for item in dict.fromkeys(user_ids) if item and item != exclude_user_id]
    if not requested:
        return []
    active = set(db.execute(select(User.id).where(User.id.in_(requested), User.is_active.is_(True))).scalars())
    return [item for item in requested if item in active]


def create_notifications(
    db: Session,
    *,
    recipient_ids: Iterable[str],
    title: str,
    message: str,
    notification_type: NotificationType = NotificationType.SYSTEM_ALERT,
    details: dict | None = None,
) -> list[Notification]:
    """Add one unread notification per recipient. The caller commits."""
    records = [
        Notification(
            recipient_id=recipient_id,
            title=title,
            message=message,
            notification_type=notification_type,
            details=dict(details) if details else None,
        )
        for recipient_id in recipient_ids
    ]
    db.add_all(records)
    db.flush()
    return records


def push_realtime(notifications: Iterable[Notification], *, event: str = "notification.created") -> int:
    """Forward committed notifications to connected websockets.

    Must be called from a worker thread started by the event loop (sync
    endpoints and background tasks); elsewhere nothing is pushed.
    """
    messages = [(item.recipient_id, notification_event(item, event=event)) for item in notifications]
    if not messages:
        return 0
    try:
        return from_thread.run(notification_hub.fan_out, messages)
    except RuntimeError:
        logger.debug("No event loop available; skipped realtime push of %d notification(s)", len(messages))
        return 0


def list_for_recipient(
    db: Session,
    recipient_id: str,
    *,
    is_read: bool | None = None,
    notification_type: NotificationType | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    filters = [Notification.recipient_id == recipient_id]
    if is_read is not None:
        filters.append(Notification.is_read.is_(is_read))
    if notification_type is not None:
        filters.append(Notification.notification_type == notification_type)

    total = db.execute(select(func.count()).select_from(Notification).where(*filters)).scalar_one()
    items = db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()
    return list(items), total


def get_for_recipient(db: Session, recipient_id: str, notification_id: str) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotificationNotFound(notification_id)
    if notification.recipient_id != recipient_id:
        logger.warning("User %s asked for notification %s of another user", recipient_id, notification_id)
        raise NotificationAccessDenied(notification_id)
    return notification


def mark_read(db: Session, recipient_id: str, notification_id: str) -> Notification:
    notification = get_for_recipient(db, recipient_id, notification_id)
    if notification.is_read:
        return notification
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    push_realtime([notification], event="notification.read")
    return notification
