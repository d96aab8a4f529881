from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import get_settings
from app.db.bootstrap import missing_schema
from app.db.session import engine

router = APIRouter(prefix="/health")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def health() -> dict:
    return {"status": "ok"}


@router.get("/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now()}


@router.get("/ready")
def health_ready() -> JSONResponse:
    """Ready once the database answers and carries every table and column the scheduler reads."""
    database = {
        "ok": False,
        "schema_ok": False,
        "missing_tables": [],
        "missing_columns": {},
        "error": None,
    }
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = missing_schema(connection)
    except SQLAlchemyError as exc:
        database["error"] = str(exc)
    else:
        database.update(
            ok=True,
            schema_ok=not missing_tables and not missing_columns,
            missing_tables=missing_tables,
            missing_columns=missing_columns,
        )

    ready = database["ok"] and database["schema_ok"]
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "degraded",
            "timestamp": _now(),
            "database": database,
            "notifications_enabled": get_settings().schedule_notifications_enabled,
        },
    )
