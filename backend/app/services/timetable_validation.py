"""Business rules every schedule write must satisfy.

The checks are ordered cheapest first: range checks need no database, the
existence checks are primary-key lookups, and the overlap detectors scan the
class's and the teacher's periods for the day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
import logging
from typing import Sequence

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ClassDayOverlap,
    ClassNotFound,
    InternalScheduleOverlap,
    InvalidDateRange,
    InvalidTimeRange,
    SubjectNotFound,
    TeacherDoubleBooked,
    TeacherNotFound,
)
from app.models.timetable import DayOfWeek
from app.services import directory, schedule_repository
from app.services.intervals import date_ranges_overlap, time_overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposedSchedule:
    """Field values of a schedule as they would be after the write."""

    class_id: str
    day: DayOfWeek
    start_time: time
    end_time: time
    subject_id: str | None = None
    teacher_id: str | None = None
    effective_date: date | None = None
    end_date: date | None = None


def validate_time_range(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        logger.warning("Invalid time range: start=%s end=%s", start_time, end_time)
        raise InvalidTimeRange(start_time, end_time)


def validate_date_range(effective_date: date | None, end_date: date | None) -> None:
    if end_date is None or effective_date is None:
        return
    if end_date <= effective_date:
        logger.warning("Invalid date range: effective=%s end=%s", effective_date, end_date)
        raise InvalidDateRange(effective_date, end_date)


def validate_ranges(proposal: ProposedSchedule) -> None:
    validate_time_range(proposal.start_time, proposal.end_time)
    validate_date_range(proposal.effective_date, proposal.end_date)


def validate_references(
    db: Session,
    class_id: str,
    subject_id: str | None = None,
    teacher_id: str | None = None,
) -> None:
    if directory.get_class(db, class_id) is None:
        logger.warning("Class not found: %s", class_id)
        raise ClassNotFound(class_id)
    if subject_id is not None and directory.get_subject(db, subject_id) is None:
        logger.warning("Subject not found: %s", subject_id)
        raise SubjectNotFound(subject_id)
    if teacher_id is not None and directory.get_teacher(db, teacher_id) is None:
        logger.warning("Teacher not found: %s", teacher_id)
        raise TeacherNotFound(teacher_id)


def validate_class_day_overlap(
    db: Session,
    proposal: ProposedSchedule,
    *,
    exclude_schedule_id: str | None = None,
) -> None:
    candidates = schedule_repository.find_class_schedules(
        db,
        class_id=proposal.class_id,
        day=proposal.day,
        effective_date=proposal.effective_date,
        end_date=proposal.end_date,
        exclude_schedule_id=exclude_schedule_id,
    )
    for existing in candidates:
        if time_overlaps(proposal.start_time, proposal.end_time, existing.start_time, existing.end_time):
            logger.warning(
                "Class day overlap: class=%s day=%s new=%s-%s existing=%s (%s-%s)",
                proposal.class_id,
                proposal.day.value,
                proposal.start_time,
                proposal.end_time,
                existing.id,
                existing.start_time,
                existing.end_time,
            )
            raise ClassDayOverlap(existing, details={"class_id": proposal.class_id})


def validate_teacher_double_booking(
    db: Session,
    proposal: ProposedSchedule,
    *,
    exclude_schedule_id: str | None = None,
) -> None:
    if proposal.teacher_id is None:
        return
    candidates = schedule_repository.find_teacher_schedules(
        db,
        teacher_id=proposal.teacher_id,
        day=proposal.day,
        effective_date=proposal.effective_date,
        end_date=proposal.end_date,
        exclude_schedule_id=exclude_schedule_id,
    )
    for existing in candidates:
        if time_overlaps(proposal.start_time, proposal.end_time, existing.start_time, existing.end_time):
            logger.warning(
                "Teacher double-booking: teacher=%s day=%s new=%s-%s existing=%s (%s-%s)",
                proposal.teacher_id,
                proposal.day.value,
                proposal.start_time,
                proposal.end_time,
                existing.id,
                existing.start_time,
                existing.end_time,
            )
            raise TeacherDoubleBooked(
                existing,
                details={"teacher_id": proposal.teacher_id, "class_id": existing.class_id},
            )


def validate_internal_overlaps(proposals: Sequence[ProposedSchedule]) -> None:
    """Reject a batch whose own members collide, before it is compared with stored periods."""
    for i, first in enumerate(proposals):
        for j in range(i + 1, len(proposals)):
            second = proposals[j]
            if first.day != second.day:
                continue
            if not date_ranges_overlap(
                first.effective_date, first.end_date, second.effective_date, second.end_date
            ):
                continue
            if not time_overlaps(first.start_time, first.end_time, second.start_time, second.end_time):
                continue
            # Teacher collisions take precedence: a single-class batch always shares the class.
            if first.teacher_id is not None and first.teacher_id == second.teacher_id:
                logger.warning("Internal teacher double-booking between items %d and %d", i, j)
                raise InternalScheduleOverlap(i, j, reason="teacher")
            if first.class_id == second.class_id:
                logger.warning("Internal schedule overlap between items %d and %d", i, j)
                raise InternalScheduleOverlap(i, j, reason="class")


def validate_conflicts(
    db: Session,
    proposal: ProposedSchedule,
    *,
    exclude_schedule_id: str | None = None,
) -> None:
    validate_class_day_overlap(db, proposal, exclude_schedule_id=exclude_schedule_id)
    validate_teacher_double_booking(db, proposal, exclude_schedule_id=exclude_schedule_id)
