from collections.abc import Generator

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import SessionLocal
from app.services.schedule_events import (
    SchedulePublisher,
    SessionFactory,
    background_publisher,
    discard_event,
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> SessionFactory:
    """Session source for work that outlives the request, such as notification fan-out."""
    return SessionLocal


def get_schedule_publisher(
    background_tasks: BackgroundTasks,
    session_factory: SessionFactory = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> SchedulePublisher:
    if not settings.schedule_notifications_enabled:
        return discard_event
    return background_publisher(background_tasks, session_factory)
