from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel, Field, field_validator

from app.models.timetable import DayOfWeek, PeriodType

DAY_SHORT_MAP = {
    "MON": DayOfWeek.MONDAY,
    "TUE": DayOfWeek.TUESDAY,
    "WED": DayOfWeek.WEDNESDAY,
    "THU": DayOfWeek.THURSDAY,
    "FRI": DayOfWeek.FRIDAY,
    "SAT": DayOfWeek.SATURDAY,
    "SUN": DayOfWeek.SUNDAY,
}


def normalize_day(value):
    if not isinstance(value, str):
        return value
    key = value.strip().upper()
    return DAY_SHORT_MAP.get(key, key)


def normalize_wall_time(value: time | None) -> time | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        raise ValueError("Time must be a wall-clock time without timezone")
    return value.replace(microsecond=0)


class ScheduleFields(BaseModel):
    day: DayOfWeek
    start_time: time
    end_time: time
    period_type: PeriodType = PeriodType.ACADEMICS
    subject_id: str | None = Field(default=None, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)
    room_id: str | None = Field(default=None, max_length=36)
    effective_date: date | None = None
    end_date: date | None = None

    @field_validator("day", mode="before")
    @classmethod
    def validate_day(cls, value):
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_wall_time(cls, value: time | None) -> time | None:
        return normalize_wall_time(value)


class ScheduleCreate(ScheduleFields):
    class_id: str = Field(min_length=1, max_length=36)


class BulkScheduleCreate(BaseModel):
    schedules: list[ScheduleFields] = Field(min_length=1, max_length=100)


class ScheduleUpdate(BaseModel):
    day: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    period_type: PeriodType | None = None
    subject_id: str | None = Field(default=None, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)
    room_id: str | None = Field(default=None, max_length=36)
    effective_date: date | None = None
    end_date: date | None = None

    @field_validator("day", mode="before")
    @classmethod
    def validate_day(cls, value):
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_wall_time(cls, value: time | None) -> time | None:
        return normalize_wall_time(value)


class ScheduleOut(ScheduleFields):
    id: str
    timetable_id: str
    class_id: str

    model_config = {"from_attributes": True}


class TimetableOut(BaseModel):
    id: str | None = None
    class_id: str
    is_active: bool = True
    schedules: list[ScheduleOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}
