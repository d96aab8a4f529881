import threading
import time

from app.models.timetable import DayOfWeek
from app.services import schedule_locks
from app.services.schedule_locks import (
    advisory_lock_id,
    class_day_key,
    schedule_write_lock,
    teacher_day_key,
)


def test_lock_keys_separate_classes_and_teachers():
    assert class_day_key("abc", DayOfWeek.MONDAY) == ("class", "abc", "MONDAY")
    assert teacher_day_key("abc", DayOfWeek.MONDAY) == ("teacher", "abc", "MONDAY")
    assert advisory_lock_id(class_day_key("abc", DayOfWeek.MONDAY)) != advisory_lock_id(
        teacher_day_key("abc", DayOfWeek.MONDAY)
    )


def test_advisory_lock_id_is_stable_signed_64_bit():
    key = class_day_key("class-1", DayOfWeek.FRIDAY)

    lock_id = advisory_lock_id(key)

    assert lock_id == advisory_lock_id(("class", "class-1", "FRIDAY"))
    assert -(2**63) <= lock_id < 2**63


def test_local_lock_is_released_after_error(db_session):
    key = class_day_key("class-1", DayOfWeek.MONDAY)

    try:
        with schedule_write_lock(db_session, [key]):
            raise ValueError("validation failed")
    except ValueError:
        pass

    with schedule_write_lock(db_session, [key, key]):
        pass


def test_local_lock_serializes_writers_on_the_same_key(db_session):
    key = teacher_day_key("teacher-1", DayOfWeek.TUESDAY)
    entered = threading.Event()
    order: list[str] = []

    def competing_writer():
        entered.set()
        with schedule_write_lock(db_session, [key]):
            order.append("second")

    with schedule_write_lock(db_session, [key]):
        worker = threading.Thread(target=competing_writer)
        worker.start()
        entered.wait(timeout=1)
        order.append("first")
    worker.join(timeout=5)

    assert order == ["first", "second"]


def test_released_keys_are_evicted(db_session):
    keys = [class_day_key(f"class-{number}", DayOfWeek.WEDNESDAY) for number in range(50)]

    for key in keys:
        with schedule_write_lock(db_session, [key, teacher_day_key("teacher-1", DayOfWeek.WEDNESDAY)]):
            assert key in schedule_locks._local_locks

    assert schedule_locks._local_locks == {}


def test_key_is_kept_while_a_writer_waits(db_session):
    key = class_day_key("class-1", DayOfWeek.THURSDAY)

    def waiting_writer():
        with schedule_write_lock(db_session, [key]):
            pass

    with schedule_write_lock(db_session, [key]):
        worker = threading.Thread(target=waiting_writer)
        worker.start()
        deadline = time.monotonic() + 5
        while schedule_locks._local_locks[key].holders < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert schedule_locks._local_locks[key].holders == 2
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert key not in schedule_locks._local_locks
