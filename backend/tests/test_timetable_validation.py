from datetime import date, time

import pytest
from sqlalchemy import select

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
from app.models.timetable import DayOfWeek, PeriodType, Schedule, Timetable
from app.services.timetable_validation import (
    ProposedSchedule,
    validate_class_day_overlap,
    validate_date_range,
    validate_internal_overlaps,
    validate_references,
    validate_teacher_double_booking,
    validate_time_range,
)


def store_schedule(
    db,
    class_id,
    start,
    end,
    *,
    day=DayOfWeek.MONDAY,
    teacher_id=None,
    effective_date=None,
    end_date=None,
    timetable_active=True,
):
    timetable = db.execute(select(Timetable).where(Timetable.class_id == class_id)).scalar_one_or_none()
    if timetable is None:
        timetable = Timetable(class_id=class_id, is_active=timetable_active)
        db.add(timetable)
        db.flush()
    schedule = Schedule(
        timetable_id=timetable.id,
        day=day,
        start_time=start,
        end_time=end,
        period_type=PeriodType.ACADEMICS,
        subject_id="subject-x",
        teacher_id=teacher_id,
        effective_date=effective_date,
        end_date=end_date,
    )
    db.add(schedule)
    db.commit()
    return schedule


def proposal(class_id, start, end, **overrides):
    values = {"class_id": class_id, "day": DayOfWeek.MONDAY, "start_time": start, "end_time": end}
    values.update(overrides)
    return ProposedSchedule(**values)


def test_time_range_must_be_increasing():
    validate_time_range(time(9, 0), time(10, 0))
    with pytest.raises(InvalidTimeRange):
        validate_time_range(time(10, 0), time(10, 0))
    with pytest.raises(InvalidTimeRange) as excinfo:
        validate_time_range(time(11, 0), time(10, 0))
    assert excinfo.value.status_code == 400
    assert excinfo.value.details == {"start_time": "11:00:00", "end_time": "10:00:00"}


def test_date_range_requires_end_after_effective():
    validate_date_range(date(2026, 1, 1), None)
    validate_date_range(None, date(2026, 1, 1))
    validate_date_range(date(2026, 1, 1), date(2026, 1, 2))
    with pytest.raises(InvalidDateRange):
        validate_date_range(date(2026, 1, 1), date(2026, 1, 1))
    with pytest.raises(InvalidDateRange):
        validate_date_range(date(2026, 2, 1), date(2026, 1, 1))


def test_references_are_checked_in_order(db_session, seed):
    school_class = seed.school_class()
    subject = seed.subject()
    teacher = seed.teacher()
    seed.commit()

    validate_references(db_session, school_class.id, subject.id, teacher.id)
    validate_references(db_session, school_class.id)

    with pytest.raises(ClassNotFound):
        validate_references(db_session, "missing-class", "missing-subject", "missing-teacher")
    with pytest.raises(SubjectNotFound):
        validate_references(db_session, school_class.id, "missing-subject", "missing-teacher")
    with pytest.raises(TeacherNotFound) as excinfo:
        validate_references(db_session, school_class.id, subject.id, "missing-teacher")
    assert excinfo.value.status_code == 404
    assert excinfo.value.details == {"id": "missing-teacher"}


def test_class_overlap_reports_conflicting_schedule(db_session):
    existing = store_schedule(db_session, "class-a", time(9, 0), time(10, 0))

    with pytest.raises(ClassDayOverlap) as excinfo:
        validate_class_day_overlap(db_session, proposal("class-a", time(9, 30), time(10, 30)))

    assert excinfo.value.status_code == 409
    assert excinfo.value.details["schedule_id"] == existing.id
    assert excinfo.value.details["day"] == "MONDAY"
    assert excinfo.value.details["start_time"] == "09:00:00"
    assert excinfo.value.details["end_time"] == "10:00:00"


def test_class_overlap_allows_adjacent_other_day_and_other_class(db_session):
    store_schedule(db_session, "class-a", time(9, 0), time(10, 0))

    validate_class_day_overlap(db_session, proposal("class-a", time(10, 0), time(11, 0)))
    validate_class_day_overlap(db_session, proposal("class-a", time(8, 0), time(9, 0)))
    validate_class_day_overlap(db_session, proposal("class-a", time(9, 0), time(10, 0), day=DayOfWeek.TUESDAY))
    validate_class_day_overlap(db_session, proposal("class-b", time(9, 0), time(10, 0)))


def test_class_overlap_ignores_inactive_timetables(db_session):
    store_schedule(db_session, "class-a", time(9, 0), time(10, 0), timetable_active=False)

    validate_class_day_overlap(db_session, proposal("class-a", time(9, 0), time(10, 0)))


def test_class_overlap_excludes_given_schedule(db_session):
    existing = store_schedule(db_session, "class-a", time(9, 0), time(10, 0))

    validate_class_day_overlap(
        db_session,
        proposal("class-a", time(9, 0), time(10, 0)),
        exclude_schedule_id=existing.id,
    )


def test_validity_windows_that_do_not_meet_never_conflict(db_session):
    store_schedule(
        db_session,
        "class-a",
        time(9, 0),
        time(10, 0),
        effective_date=date(2026, 1, 5),
        end_date=date(2026, 3, 31),
    )

    validate_class_day_overlap(
        db_session,
        proposal("class-a", time(9, 0), time(10, 0), effective_date=date(2026, 4, 1)),
    )
    validate_class_day_overlap(
        db_session,
        proposal(
            "class-a",
            time(9, 0),
            time(10, 0),
            effective_date=date(2025, 9, 1),
            end_date=date(2026, 1, 4),
        ),
    )
    with pytest.raises(ClassDayOverlap):
        validate_class_day_overlap(
            db_session,
            proposal("class-a", time(9, 0), time(10, 0), effective_date=date(2026, 3, 31)),
        )


def test_open_ended_schedule_conflicts_with_future_proposal(db_session):
    store_schedule(db_session, "class-a", time(9, 0), time(10, 0), effective_date=date(2026, 1, 5))

    with pytest.raises(ClassDayOverlap):
        validate_class_day_overlap(
            db_session,
            proposal(
                "class-a",
                time(9, 15),
                time(9, 45),
                effective_date=date(2031, 1, 6),
                end_date=date(2031, 6, 30),
            ),
        )


def test_schedule_without_window_conflicts_with_any_window(db_session):
    store_schedule(db_session, "class-a", time(9, 0), time(10, 0))

    with pytest.raises(ClassDayOverlap):
        validate_class_day_overlap(
            db_session,
            proposal("class-a", time(9, 0), time(10, 0), effective_date=date(2027, 1, 1), end_date=date(2027, 2, 1)),
        )


def test_teacher_double_booking_crosses_classes(db_session):
    existing = store_schedule(db_session, "class-b", time(9, 0), time(10, 0), teacher_id="teacher-1")

    with pytest.raises(TeacherDoubleBooked) as excinfo:
        validate_teacher_double_booking(
            db_session,
            proposal("class-c", time(9, 30), time(10, 30), teacher_id="teacher-1"),
        )

    assert excinfo.value.details["schedule_id"] == existing.id
    assert excinfo.value.details["teacher_id"] == "teacher-1"
    assert excinfo.value.details["class_id"] == "class-b"


def test_teacher_same_time_other_day_is_allowed(db_session):
    store_schedule(db_session, "class-b", time(9, 0), time(10, 0), teacher_id="teacher-1")

    validate_teacher_double_booking(
        db_session,
        proposal("class-c", time(9, 0), time(10, 0), teacher_id="teacher-1", day=DayOfWeek.WEDNESDAY),
    )
    validate_teacher_double_booking(
        db_session,
        proposal("class-c", time(9, 0), time(10, 0), teacher_id="teacher-2"),
    )


def test_teacher_check_skipped_without_teacher(db_session):
    store_schedule(db_session, "class-b", time(9, 0), time(10, 0), teacher_id="teacher-1")

    validate_teacher_double_booking(db_session, proposal("class-c", time(9, 0), time(10, 0)))


def test_internal_overlaps_within_one_class():
    batch = [
        proposal("class-a", time(9, 0), time(10, 0)),
        proposal("class-a", time(10, 0), time(11, 0)),
        proposal("class-a", time(10, 30), time(11, 30)),
    ]

    with pytest.raises(InternalScheduleOverlap) as excinfo:
        validate_internal_overlaps(batch)

    assert excinfo.value.details == {"indexes": [1, 2], "reason": "class"}


def test_internal_overlaps_detect_teacher_across_classes():
    batch = [
        proposal("class-a", time(9, 0), time(10, 0), teacher_id="teacher-1"),
        proposal("class-b", time(9, 30), time(10, 30), teacher_id="teacher-1"),
    ]

    with pytest.raises(InternalScheduleOverlap) as excinfo:
        validate_internal_overlaps(batch)

    assert excinfo.value.details["reason"] == "teacher"


def test_internal_overlaps_report_shared_teacher_within_one_class():
    batch = [
        proposal("class-a", time(9, 0), time(10, 0), teacher_id="teacher-1"),
        proposal("class-a", time(9, 30), time(10, 30), teacher_id="teacher-1"),
    ]

    with pytest.raises(InternalScheduleOverlap) as excinfo:
        validate_internal_overlaps(batch)

    assert excinfo.value.details == {"indexes": [0, 1], "reason": "teacher"}


def test_internal_overlaps_respect_days_and_windows():
    validate_internal_overlaps(
        [
            proposal("class-a", time(9, 0), time(10, 0), end_date=date(2026, 1, 31)),
            proposal("class-a", time(9, 0), time(10, 0), effective_date=date(2026, 2, 1)),
            proposal("class-a", time(9, 0), time(10, 0), day=DayOfWeek.FRIDAY),
        ]
    )
