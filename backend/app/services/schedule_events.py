"""Schedule change events and the consumer that turns them into notifications.

The orchestrator only publishes a ``ScheduleChanged`` once its transaction is
committed. Resolving who is affected and notifying them happens later in the
consumer, with its own session, so a failure there never reaches the writer.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import time
from enum import Enum
import logging

from fastapi import BackgroundTasks
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.models.notification import NotificationType
from app.models.timetable import DayOfWeek, PeriodType, Schedule
from app.services import directory
from app.services.notifications import active_recipients, create_notifications, push_realtime

logger = logging.getLogger(__name__)


class ScheduleChangeKind(str, Enum):
    created = "created"
    updated = "updated"
    room_unassigned = "room_unassigned"


class ScheduleChanged(BaseModel):
    kind: ScheduleChangeKind
    class_id: str
    timetable_id: str
    schedule_id: str
    day: DayOfWeek
    start_time: time
    end_time: time
    period_type: PeriodType
    room_id: str | None = None
    changed_fields: list[str] = Field(default_factory=list)

    @classmethod
    def from_schedule(
        cls,
        schedule: Schedule,
        kind: ScheduleChangeKind,
        changed_fields: list[str] | None = None,
    ) -> "ScheduleChanged":
        return cls(
            kind=kind,
            class_id=schedule.class_id,
            timetable_id=schedule.timetable_id,
            schedule_id=schedule.id,
            day=schedule.day,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            period_type=schedule.period_type,
            room_id=schedule.room_id,
            changed_fields=changed_fields or [],
        )


SchedulePublisher = Callable[[ScheduleChanged], None]
SessionFactory = Callable[[], Session]


def discard_event(event: ScheduleChanged) -> None:
    logger.debug("Schedule notifications disabled; dropping %s event for %s", event.kind.value, event.schedule_id)


def background_publisher(background_tasks: BackgroundTasks, session_factory: SessionFactory) -> SchedulePublisher:
    """Publisher that dispatches each event after the HTTP response has been sent."""

    def publish(event: ScheduleChanged) -> None:
        background_tasks.add_task(dispatch_schedule_change, event, session_factory)

    return publish


def resolve_affected_users(db: Session, class_id: str) -> list[str]:
    user_ids: list[str] = []
    for student_user_id, parent_user_id in directory.list_active_students_with_parents(db, class_id):
        user_ids.append(student_user_id)
        if parent_user_id:
            user_ids.append(parent_user_id)
    user_ids.extend(directory.list_active_teachers(db, class_id))
    return list(dict.fromkeys(user_ids))


def _period_label(event: ScheduleChanged) -> str:
    period = "break" if event.period_type == PeriodType.BREAK else "lesson"
    return (
        f"{period} on {event.day.value.title()} "
        f"{event.start_time.strftime('%H:%M')}-{event.end_time.strftime('%H:%M')}"
    )


def build_message(event: ScheduleChanged) -> tuple[str, str]:
    label = _period_label(event)
    if event.kind == ScheduleChangeKind.created:
        return "Timetable Updated", f"A new {label} was added to your class timetable."
    if event.kind == ScheduleChangeKind.room_unassigned:
        return "Room Unassigned", f"The {label} no longer has a room assigned."
    fields = ", ".join(field.replace("_", " ") for field in event.changed_fields) or "details"
    return "Timetable Updated", f"The {label} was changed ({fields})."


def dispatch_schedule_change(event: ScheduleChanged, session_factory: SessionFactory) -> int:
    """Notify everyone affected by the change; returns how many notifications were created.

    Errors are logged and swallowed: the schedule write has already been
    committed and must not be affected by delivery problems.
    """
    try:
        db = session_factory()
    except Exception:
        logger.exception("Unable to open a session for schedule %s notifications", event.schedule_id)
        return 0

    try:
        recipients = active_recipients(db, resolve_affected_users(db, event.class_id))
        if not recipients:
            logger.info("No users to notify about schedule %s", event.schedule_id)
            return 0
        title, message = build_message(event)
        created = create_notifications(
            db,
            recipient_ids=recipients,
            title=title,
            message=message,
            notification_type=NotificationType.TIMETABLE_CHANGE,
            details={
                "timetable_id": event.timetable_id,
                "class_id": event.class_id,
                "schedule_id": event.schedule_id,
                "room_id": event.room_id,
                "change": event.kind.value,
            },
        )
        db.commit()
        pushed = push_realtime(created)
        logger.info(
            "Sent %d notification(s), %d pushed live, for %s schedule %s",
            len(created),
            pushed,
            event.kind.value,
            event.schedule_id,
        )
        return len(created)
    except Exception:
        db.rollback()
        logger.exception("Failed to send notifications for schedule %s", event.schedule_id)
        return 0
    finally:
        db.close()
