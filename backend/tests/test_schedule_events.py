from datetime import time

from fastapi import BackgroundTasks
from sqlalchemy import select

from app.models.notification import Notification
from app.models.timetable import DayOfWeek, PeriodType
from app.services import schedule_events
from app.services.schedule_events import (
    ScheduleChangeKind,
    ScheduleChanged,
    background_publisher,
    build_message,
    dispatch_schedule_change,
    resolve_affected_users,
)


def make_event(class_id="class-1", **overrides):
    values = {
        "kind": ScheduleChangeKind.created,
        "class_id": class_id,
        "timetable_id": "timetable-1",
        "schedule_id": "schedule-1",
        "day": DayOfWeek.MONDAY,
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        "period_type": PeriodType.ACADEMICS,
        "room_id": "room-1",
    }
    values.update(overrides)
    return ScheduleChanged(**values)


def test_build_message_describes_each_change_kind():
    assert build_message(make_event()) == (
        "Timetable Updated",
        "A new lesson on Monday 09:00-10:00 was added to your class timetable.",
    )

    title, message = build_message(make_event(kind=ScheduleChangeKind.room_unassigned, room_id=None))
    assert title == "Room Unassigned"
    assert message == "The lesson on Monday 09:00-10:00 no longer has a room assigned."

    title, message = build_message(
        make_event(
            kind=ScheduleChangeKind.updated,
            period_type=PeriodType.BREAK,
            changed_fields=["end_time", "room_id"],
        )
    )
    assert title == "Timetable Updated"
    assert message == "The break on Monday 09:00-10:00 was changed (end time, room id)."


def test_resolve_affected_users_orders_and_deduplicates(seed):
    school_class = seed.school_class()
    student, parent = seed.student(school_class, with_parent=True)
    sibling = seed.student(school_class)[0]
    # A second child of the same parent must not produce a second notification.
    sibling.parent_id = parent.id
    teacher = seed.teacher(assign_to=school_class)
    seed.student(school_class, enrolment_active=False)
    seed.commit()

    users = resolve_affected_users(seed.db, school_class.id)

    assert len(users) == 4
    assert set(users) == {student.user_id, parent.user_id, sibling.user_id, teacher.user_id}
    assert users[-1] == teacher.user_id


def test_dispatch_creates_notifications_for_affected_users(seed, session_factory):
    school_class = seed.school_class()
    student, parent = seed.student(school_class, with_parent=True)
    seed.commit()

    created = dispatch_schedule_change(make_event(class_id=school_class.id), session_factory)

    assert created == 2
    rows = list(seed.db.execute(select(Notification)).scalars())
    assert {row.recipient_id for row in rows} == {student.user_id, parent.user_id}
    assert rows[0].details == {
        "timetable_id": "timetable-1",
        "class_id": school_class.id,
        "schedule_id": "schedule-1",
        "room_id": "room-1",
        "change": "created",
    }


def test_dispatch_without_audience_creates_nothing(session_factory):
    assert dispatch_schedule_change(make_event(class_id="empty-class"), session_factory) == 0


def test_dispatch_swallows_session_failures():
    def broken_factory():
        raise RuntimeError("database unavailable")

    assert dispatch_schedule_change(make_event(), broken_factory) == 0


def test_dispatch_rolls_back_when_delivery_fails(seed, session_factory, monkeypatch):
    school_class = seed.school_class()
    seed.student(school_class)
    seed.commit()

    def broken_notify(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(schedule_events, "create_notifications", broken_notify)

    assert dispatch_schedule_change(make_event(class_id=school_class.id), session_factory) == 0
    assert list(seed.db.execute(select(Notification)).scalars()) == []


def test_background_publisher_defers_dispatch(session_factory):
    tasks = BackgroundTasks()
    publish = background_publisher(tasks, session_factory)

    publish(make_event())

    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].func is dispatch_schedule_change
    assert tasks.tasks[0].args[1] is session_factory
