from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import or_, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import OperationFailed
from app.models.timetable import DAY_ORDER, DayOfWeek, Schedule, Timetable

logger = logging.getLogger(__name__)


def apply_statement_timeout(db: Session, timeout_ms: int | None) -> None:
    """Bound every statement of the current transaction; only Postgres supports it."""
    if timeout_ms and db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def _window_filters(effective_date: date | None, end_date: date | None) -> list:
    # Stored windows overlapping [effective_date, end_date]; NULL ends are unbounded.
    filters = []
    if end_date is not None:
        filters.append(or_(Schedule.effective_date.is_(None), Schedule.effective_date <= end_date))
    if effective_date is not None:
        filters.append(or_(Schedule.end_date.is_(None), Schedule.end_date >= effective_date))
    return filters


def _candidate_query(
    day: DayOfWeek,
    effective_date: date | None,
    end_date: date | None,
    exclude_schedule_id: str | None,
):
    query = (
        select(Schedule)
        .join(Timetable, Timetable.id == Schedule.timetable_id)
        .where(Schedule.day == day, Timetable.is_active.is_(True))
        .where(*_window_filters(effective_date, end_date))
        .order_by(Schedule.start_time)
    )
    if exclude_schedule_id is not None:
        query = query.where(Schedule.id != exclude_schedule_id)
    return query


def find_class_schedules(
    db: Session,
    *,
    class_id: str,
    day: DayOfWeek,
    effective_date: date | None = None,
    end_date: date | None = None,
    exclude_schedule_id: str | None = None,
) -> list[Schedule]:
    query = _candidate_query(day, effective_date, end_date, exclude_schedule_id).where(
        Timetable.class_id == class_id
    )
    return list(db.execute(query).scalars())


def find_teacher_schedules(
    db: Session,
    *,
    teacher_id: str,
    day: DayOfWeek,
    effective_date: date | None = None,
    end_date: date | None = None,
    exclude_schedule_id: str | None = None,
) -> list[Schedule]:
    query = _candidate_query(day, effective_date, end_date, exclude_schedule_id).where(
        Schedule.teacher_id == teacher_id
    )
    return list(db.execute(query).scalars())


def list_teacher_schedules(db: Session, teacher_id: str, day: DayOfWeek | None = None) -> list[Schedule]:
    query = (
        select(Schedule)
        .join(Timetable, Timetable.id == Schedule.timetable_id)
        .options(selectinload(Schedule.timetable))
        .where(Schedule.teacher_id == teacher_id, Timetable.is_active.is_(True))
    )
    if day is not None:
        query = query.where(Schedule.day == day)
    return sort_schedules(db.execute(query).scalars())


def get_schedule(db: Session, schedule_id: str) -> Schedule | None:
    return db.execute(
        select(Schedule).options(selectinload(Schedule.timetable)).where(Schedule.id == schedule_id)
    ).scalar_one_or_none()


def find_timetable_by_class(db: Session, class_id: str) -> Timetable | None:
    return db.execute(
        select(Timetable).options(selectinload(Timetable.schedules)).where(Timetable.class_id == class_id)
    ).scalar_one_or_none()


def list_timetables(db: Session) -> list[Timetable]:
    return list(
        db.execute(
            select(Timetable).options(selectinload(Timetable.schedules)).order_by(Timetable.created_at)
        ).scalars()
    )


def get_or_create_timetable(db: Session, class_id: str) -> Timetable:
    """Return the class's timetable, creating an active one if it has none.

    The unique constraint on ``timetables.class_id`` backs this up when two
    writers create the first timetable of a class at once: the loser's
    transaction is rolled back and the write is reported as retryable.
    """
    timetable = db.execute(select(Timetable).where(Timetable.class_id == class_id)).scalar_one_or_none()
    if timetable is not None:
        return timetable

    timetable = Timetable(class_id=class_id, is_active=True)
    db.add(timetable)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Timetable for class %s was created concurrently", class_id)
        raise OperationFailed("Timetable was created concurrently, please retry") from exc
    logger.info("Created timetable %s for class %s", timetable.id, class_id)
    return timetable


def sort_schedules(schedules) -> list[Schedule]:
    return sorted(schedules, key=lambda item: (DAY_ORDER[item.day], item.start_time))
