from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.notification import NotificationType
from app.schemas.notification import NotificationOut, NotificationPage, PaginationMeta
from app.services import notifications as notification_service
from app.services.notification_hub import notification_hub

router = APIRouter(prefix="/notifications")


@router.get("/{user_id}", response_model=NotificationPage)
def list_user_notifications(
    user_id: str,
    is_read: bool | None = Query(default=None),
    notification_type: NotificationType | None = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> NotificationPage:
    items, total = notification_service.list_for_recipient(
        db,
        user_id,
        is_read=is_read,
        notification_type=notification_type,
        page=page,
        limit=limit,
    )
    return NotificationPage(
        notifications=[NotificationOut.model_validate(item) for item in items],
        pagination=PaginationMeta.build(total, page, limit),
    )


@router.get("/{user_id}/{notification_id}", response_model=NotificationOut)
def get_user_notification(user_id: str, notification_id: str, db: Session = Depends(get_db)) -> NotificationOut:
    return notification_service.get_for_recipient(db, user_id, notification_id)


@router.patch("/{user_id}/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(user_id: str, notification_id: str, db: Session = Depends(get_db)) -> NotificationOut:
    return notification_service.mark_read(db, user_id, notification_id)


@router.websocket("/ws/{user_id}")
async def notification_stream(websocket: WebSocket, user_id: str) -> None:
    await notification_hub.register(user_id, websocket)
    try:
        while True:
            # Frames from the client are ignored; reading detects the disconnect.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await notification_hub.unregister(user_id, websocket)
