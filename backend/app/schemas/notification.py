from datetime import datetime
from math import ceil

from pydantic import BaseModel, Field

from app.models.notification import NotificationType


class NotificationOut(BaseModel):
    id: str
    recipient_id: str
    title: str
    message: str
    notification_type: NotificationType = Field(serialization_alias="type")
    details: dict | None = Field(default=None, serialization_alias="metadata")
    is_read: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        total_pages = ceil(total / limit) if total else 0
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


class NotificationPage(BaseModel):
    notifications: list[NotificationOut]
    pagination: PaginationMeta
