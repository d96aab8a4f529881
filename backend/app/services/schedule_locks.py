"""Serialization of schedule writes that compete for the same class or teacher day.

Overlap validation reads the periods of a (class, day) and a (teacher, day)
and the insert happens afterwards, so two writers racing on the same key
could both pass validation. Writers therefore take a lock per key before
validating and keep it until their transaction ends.

On PostgreSQL the keys map to transaction-scoped advisory locks, which are
released by the commit or rollback. Other dialects (SQLite in tests and local
runs) fall back to in-process locks held for the duration of the context.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
import hashlib
import logging
from threading import Lock

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.models.timetable import DayOfWeek
from app.services.schedule_repository import apply_statement_timeout

logger = logging.getLogger(__name__)

LockKey = tuple[str, str, str]


@dataclass
class _LocalEntry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


# Entries live only while a writer holds or waits for the key.
_local_locks: dict[LockKey, _LocalEntry] = {}
_registry_lock = Lock()


def class_day_key(class_id: str, day: DayOfWeek) -> LockKey:
    return ("class", class_id, day.value)


def teacher_day_key(teacher_id: str, day: DayOfWeek) -> LockKey:
    return ("teacher", teacher_id, day.value)


def advisory_lock_id(key: LockKey) -> int:
    """Map a key onto the signed 64-bit range accepted by pg_advisory_xact_lock."""
    digest = hashlib.blake2b("|".join(key).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _acquire_local(key: LockKey) -> None:
    with _registry_lock:
        entry = _local_locks.setdefault(key, _LocalEntry())
        entry.holders += 1
    entry.lock.acquire()


def _release_local(key: LockKey) -> None:
    with _registry_lock:
        entry = _local_locks[key]
        entry.lock.release()
        entry.holders -= 1
        if entry.holders == 0:
            del _local_locks[key]


@contextmanager
def schedule_write_lock(db: Session, keys: Iterable[LockKey], *, timeout_ms: int | None = None) -> Iterator[None]:
    # One global order prevents two writers from deadlocking on each other's keys.
    ordered = sorted(set(keys))
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        apply_statement_timeout(db, timeout_ms)
        for key in ordered:
            db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": advisory_lock_id(key)})
        logger.debug("Acquired %d advisory lock(s)", len(ordered))
        yield
        return

    acquired: list[LockKey] = []
    try:
        for key in ordered:
            _acquire_local(key)
            acquired.append(key)
        yield
    finally:
        for key in reversed(acquired):
            _release_local(key)
