"""Entry points for every timetable read and schedule write.

All writes to ``schedules`` go through this module so each one is validated
in the same order: period-type rules, time/date ranges, referenced entities,
then class and teacher overlaps under the schedule write lock.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
import logging

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import (
    AppError,
    OperationFailed,
    ScheduleNotFound,
    SubjectRequiredForLesson,
    TeacherNotFound,
)
from app.models.timetable import DayOfWeek, PeriodType, Schedule
from app.schemas.timetable import BulkScheduleCreate, ScheduleCreate, ScheduleOut, ScheduleUpdate, TimetableOut
from app.services import directory, schedule_repository
from app.services.schedule_events import ScheduleChanged, ScheduleChangeKind, SchedulePublisher
from app.services.schedule_locks import LockKey, class_day_key, schedule_write_lock, teacher_day_key
from app.services.timetable_validation import (
    ProposedSchedule,
    validate_conflicts,
    validate_internal_overlaps,
    validate_ranges,
    validate_references,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "day",
    "start_time",
    "end_time",
    "period_type",
    "subject_id",
    "teacher_id",
    "room_id",
    "effective_date",
    "end_date",
)
REQUIRED_FIELDS = {"day", "start_time", "end_time", "period_type"}
EDIT_ATTEMPTS = 3


def apply_period_rules(
    period_type: PeriodType,
    subject_id: str | None,
    teacher_id: str | None,
) -> tuple[str | None, str | None]:
    """Return the (subject_id, teacher_id) a period of this type may carry."""
    if period_type == PeriodType.BREAK:
        return None, None
    if not subject_id:
        logger.warning("Rejected lesson without a subject")
        raise SubjectRequiredForLesson()
    return subject_id, teacher_id


def _lock_keys(proposals: Iterable[ProposedSchedule]) -> list[LockKey]:
    keys: list[LockKey] = []
    for proposal in proposals:
        keys.append(class_day_key(proposal.class_id, proposal.day))
        if proposal.teacher_id is not None:
            keys.append(teacher_day_key(proposal.teacher_id, proposal.day))
    return keys


@contextmanager
def _serialized_write(db: Session, keys: Iterable[LockKey]) -> Iterator[None]:
    """Hold the write lock for ``keys``; roll back on any failure inside the block."""
    settings = get_settings()
    try:
        with schedule_write_lock(db, keys, timeout_ms=settings.query_timeout_ms):
            yield
    except AppError:
        db.rollback()
        raise
    except DBAPIError as exc:
        db.rollback()
        logger.exception("Database error while writing schedules")
        raise OperationFailed() from exc


@contextmanager
def _guarded_access(db: Session) -> Iterator[None]:
    try:
        schedule_repository.apply_statement_timeout(db, get_settings().query_timeout_ms)
        yield
    except DBAPIError as exc:
        db.rollback()
        logger.exception("Database error while reading schedules")
        raise OperationFailed() from exc


def _load_schedule(db: Session, schedule_id: str) -> Schedule:
    with _guarded_access(db):
        schedule = schedule_repository.get_schedule(db, schedule_id)
    if schedule is None:
        logger.warning("Schedule not found: %s", schedule_id)
        raise ScheduleNotFound(schedule_id)
    return schedule


def _publish(publish: SchedulePublisher, event: ScheduleChanged) -> None:
    try:
        publish(event)
    except Exception:
        logger.exception("Failed to publish %s event for schedule %s", event.kind.value, event.schedule_id)


def add_schedule(db: Session, payload: ScheduleCreate, *, publish: SchedulePublisher) -> Schedule:
    subject_id, teacher_id = apply_period_rules(payload.period_type, payload.subject_id, payload.teacher_id)
    proposal = ProposedSchedule(
        class_id=payload.class_id,
        day=payload.day,
        start_time=payload.start_time,
        end_time=payload.end_time,
        subject_id=subject_id,
        teacher_id=teacher_id,
        effective_date=payload.effective_date,
        end_date=payload.end_date,
    )
    validate_ranges(proposal)

    with _serialized_write(db, _lock_keys([proposal])):
        validate_references(db, proposal.class_id, proposal.subject_id, proposal.teacher_id)
        validate_conflicts(db, proposal)

        timetable = schedule_repository.get_or_create_timetable(db, proposal.class_id)
        schedule = Schedule(
            timetable=timetable,
            day=proposal.day,
            start_time=proposal.start_time,
            end_time=proposal.end_time,
            period_type=payload.period_type,
            subject_id=proposal.subject_id,
            teacher_id=proposal.teacher_id,
            room_id=payload.room_id,
            effective_date=proposal.effective_date,
            end_date=proposal.end_date,
        )
        db.add(schedule)
        db.commit()

    db.refresh(schedule)
    logger.info(
        "Added schedule %s to class %s (%s %s-%s)",
        schedule.id,
        proposal.class_id,
        proposal.day.value,
        proposal.start_time,
        proposal.end_time,
    )
    _publish(publish, ScheduleChanged.from_schedule(schedule, ScheduleChangeKind.created))
    return schedule


def add_schedules_bulk(
    db: Session,
    class_id: str,
    payload: BulkScheduleCreate,
    *,
    publish: SchedulePublisher,
) -> list[Schedule]:
    """Add several periods to one class; either all of them are stored or none."""
    proposals: list[ProposedSchedule] = []
    for item in payload.schedules:
        subject_id, teacher_id = apply_period_rules(item.period_type, item.subject_id, item.teacher_id)
        proposal = ProposedSchedule(
            class_id=class_id,
            day=item.day,
            start_time=item.start_time,
            end_time=item.end_time,
            subject_id=subject_id,
            teacher_id=teacher_id,
            effective_date=item.effective_date,
            end_date=item.end_date,
        )
        validate_ranges(proposal)
        proposals.append(proposal)
    validate_internal_overlaps(proposals)

    with _serialized_write(db, _lock_keys(proposals)):
        for proposal in proposals:
            validate_references(db, class_id, proposal.subject_id, proposal.teacher_id)
        for proposal in proposals:
            validate_conflicts(db, proposal)

        timetable = schedule_repository.get_or_create_timetable(db, class_id)
        schedules = [
            Schedule(
                timetable=timetable,
                day=proposal.day,
                start_time=proposal.start_time,
                end_time=proposal.end_time,
                period_type=item.period_type,
                subject_id=proposal.subject_id,
                teacher_id=proposal.teacher_id,
                room_id=item.room_id,
                effective_date=proposal.effective_date,
                end_date=proposal.end_date,
            )
            for proposal, item in zip(proposals, payload.schedules)
        ]
        db.add_all(schedules)
        db.commit()

    for schedule in schedules:
        db.refresh(schedule)
    logger.info("Added %d schedule(s) to class %s", len(schedules), class_id)
    for schedule in schedules:
        _publish(publish, ScheduleChanged.from_schedule(schedule, ScheduleChangeKind.created))
    return schedules


def _merge_update(schedule: Schedule, payload: ScheduleUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    merged = {field: getattr(schedule, field) for field in EDITABLE_FIELDS}
    for field, value in changes.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        merged[field] = value
    return merged


def _edit_plan(schedule: Schedule, payload: ScheduleUpdate) -> tuple[dict, ProposedSchedule, list[LockKey]]:
    """Merge ``payload`` into the row as loaded; return the values, the proposal and the keys to lock."""
    merged = _merge_update(schedule, payload)
    merged["subject_id"], merged["teacher_id"] = apply_period_rules(
        merged["period_type"], merged["subject_id"], merged["teacher_id"]
    )
    proposal = ProposedSchedule(
        class_id=schedule.class_id,
        day=merged["day"],
        start_time=merged["start_time"],
        end_time=merged["end_time"],
        subject_id=merged["subject_id"],
        teacher_id=merged["teacher_id"],
        effective_date=merged["effective_date"],
        end_date=merged["end_date"],
    )
    validate_ranges(proposal)

    current = ProposedSchedule(
        class_id=schedule.class_id,
        day=schedule.day,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        teacher_id=schedule.teacher_id,
    )
    return merged, proposal, _lock_keys([current, proposal])


def edit_schedule(
    db: Session,
    schedule_id: str,
    payload: ScheduleUpdate,
    *,
    publish: SchedulePublisher,
) -> Schedule:
    schedule = _load_schedule(db, schedule_id)

    for attempt in range(1, EDIT_ATTEMPTS + 1):
        _, _, keys = _edit_plan(schedule, payload)
        locked = set(keys)
        with _serialized_write(db, locked):
            # The row may have moved between the first read and the lock.
            db.refresh(schedule, with_for_update=True)
            merged, proposal, keys = _edit_plan(schedule, payload)
            if not locked.issuperset(keys):
                db.rollback()
                logger.info("Schedule %s moved while waiting for its lock (attempt %d)", schedule_id, attempt)
                continue

            validate_references(db, proposal.class_id, proposal.subject_id, proposal.teacher_id)
            validate_conflicts(db, proposal, exclude_schedule_id=schedule.id)

            changed_fields = sorted(field for field, value in merged.items() if getattr(schedule, field) != value)
            if not changed_fields:
                db.rollback()
                return _load_schedule(db, schedule_id)
            for field in changed_fields:
                setattr(schedule, field, merged[field])
            db.commit()
        break
    else:
        logger.warning("Gave up editing schedule %s after %d attempts", schedule_id, EDIT_ATTEMPTS)
        raise OperationFailed("Schedule changed concurrently, please retry")

    db.refresh(schedule)
    logger.info("Edited schedule %s (%s)", schedule.id, ", ".join(changed_fields))
    _publish(publish, ScheduleChanged.from_schedule(schedule, ScheduleChangeKind.updated, changed_fields))
    return schedule


def unassign_room(db: Session, schedule_id: str, *, publish: SchedulePublisher) -> Schedule:
    schedule = _load_schedule(db, schedule_id)
    if schedule.room_id is None:
        return schedule

    previous_room_id = schedule.room_id
    with _guarded_access(db):
        schedule.room_id = None
        db.commit()
        db.refresh(schedule)

    logger.info("Unassigned room %s from schedule %s", previous_room_id, schedule.id)
    _publish(publish, ScheduleChanged.from_schedule(schedule, ScheduleChangeKind.room_unassigned, ["room_id"]))
    return schedule


def get_schedule(db: Session, schedule_id: str) -> Schedule:
    return _load_schedule(db, schedule_id)


def _timetable_out(timetable) -> TimetableOut:
    return TimetableOut(
        id=timetable.id,
        class_id=timetable.class_id,
        is_active=timetable.is_active,
        schedules=[
            ScheduleOut.model_validate(item) for item in schedule_repository.sort_schedules(timetable.schedules)
        ],
    )


def get_timetable_by_class(db: Session, class_id: str) -> TimetableOut:
    with _guarded_access(db):
        timetable = schedule_repository.find_timetable_by_class(db, class_id)
        if timetable is None:
            return TimetableOut(class_id=class_id, schedules=[])
        return _timetable_out(timetable)


def list_timetables(db: Session) -> list[TimetableOut]:
    with _guarded_access(db):
        return [_timetable_out(timetable) for timetable in schedule_repository.list_timetables(db)]


def get_teacher_schedules(db: Session, teacher_id: str, day: DayOfWeek | None = None) -> list[Schedule]:
    with _guarded_access(db):
        if directory.get_teacher(db, teacher_id) is None:
            raise TeacherNotFound(teacher_id)
        return schedule_repository.list_teacher_schedules(db, teacher_id, day)
