from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "timetables": {"id", "class_id", "is_active"},
    "schedules": {
        "id",
        "timetable_id",
        "day",
        "start_time",
        "end_time",
        "period_type",
        "subject_id",
        "teacher_id",
        "room_id",
        "effective_date",
        "end_date",
    },
    "notifications": {"id", "recipient_id", "type", "metadata", "is_read"},
}


def _ensure_schedule_validity_window_columns(bind: Engine) -> None:
    # Older schedule tables predate validity windows; NULL means "always active".
    with bind.begin() as connection:
        inspector = inspect(connection)
        if "schedules" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("schedules")}
        for column_name in ("effective_date", "end_date"):
            if column_name in column_names:
                continue
            logger.info("Adding schedules.%s column", column_name)
            connection.execute(text(f"ALTER TABLE schedules ADD COLUMN {column_name} DATE"))


def _ensure_notification_metadata_column(bind: Engine) -> None:
    with bind.begin() as connection:
        inspector = inspect(connection)
        if "notifications" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("notifications")}
        if "metadata" in column_names:
            return

        if connection.dialect.name == "postgresql":
            connection.execute(text("ALTER TABLE notifications ADD COLUMN metadata JSONB"))
            return

        connection.execute(text("ALTER TABLE notifications ADD COLUMN metadata JSON"))


def missing_schema(connection: Connection) -> tuple[list[str], dict[str, list[str]]]:
    """Return (missing tables, missing columns per table) against ``REQUIRED_COLUMNS``."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name not in table_names:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        absent = sorted(required - existing)
        if absent:
            missing_columns[table_name] = absent
    return missing_tables, missing_columns


def _assert_required_columns(bind: Engine) -> None:
    with bind.connect() as connection:
        missing_tables, missing_columns = missing_schema(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")


def ensure_runtime_schema_compatibility(bind: Engine | None = None) -> None:
    bind = bind or default_engine
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=bind)
        _ensure_schedule_validity_window_columns(bind)
        _ensure_notification_metadata_column(bind)
        _assert_required_columns(bind)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
