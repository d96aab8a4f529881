from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_schedule_publisher
from app.models.timetable import DayOfWeek
from app.schemas.timetable import (
    BulkScheduleCreate,
    ScheduleCreate,
    ScheduleOut,
    ScheduleUpdate,
    TimetableOut,
)
from app.services import timetable_service
from app.services.schedule_events import SchedulePublisher

router = APIRouter()


@router.get("", response_model=list[TimetableOut])
def list_timetables(db: Session = Depends(get_db)) -> list[TimetableOut]:
    return timetable_service.list_timetables(db)


@router.post("/schedule", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
def add_schedule(
    payload: ScheduleCreate,
    db: Session = Depends(get_db),
    publish: SchedulePublisher = Depends(get_schedule_publisher),
) -> ScheduleOut:
    return timetable_service.add_schedule(db, payload, publish=publish)


@router.post(
    "/{class_id}/schedules/bulk",
    response_model=list[ScheduleOut],
    status_code=status.HTTP_201_CREATED,
)
def add_schedules_bulk(
    class_id: str,
    payload: BulkScheduleCreate,
    db: Session = Depends(get_db),
    publish: SchedulePublisher = Depends(get_schedule_publisher),
) -> list[ScheduleOut]:
    return timetable_service.add_schedules_bulk(db, class_id, payload, publish=publish)


@router.get("/class/{class_id}", response_model=TimetableOut)
def get_timetable_by_class(class_id: str, db: Session = Depends(get_db)) -> TimetableOut:
    return timetable_service.get_timetable_by_class(db, class_id)


@router.get("/teacher/{teacher_id}", response_model=list[ScheduleOut])
def get_teacher_schedules(
    teacher_id: str,
    day: DayOfWeek | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ScheduleOut]:
    return timetable_service.get_teacher_schedules(db, teacher_id, day)


@router.get("/schedule/{schedule_id}", response_model=ScheduleOut)
def get_schedule(schedule_id: str, db: Session = Depends(get_db)) -> ScheduleOut:
    return timetable_service.get_schedule(db, schedule_id)


@router.patch("/schedule/{schedule_id}", response_model=ScheduleOut)
def edit_schedule(
    schedule_id: str,
    payload: ScheduleUpdate,
    db: Session = Depends(get_db),
    publish: SchedulePublisher = Depends(get_schedule_publisher),
) -> ScheduleOut:
    return timetable_service.edit_schedule(db, schedule_id, payload, publish=publish)


@router.patch("/schedule/{schedule_id}/unassign-room", response_model=ScheduleOut)
def unassign_room(
    schedule_id: str,
    db: Session = Depends(get_db),
    publish: SchedulePublisher = Depends(get_schedule_publisher),
) -> ScheduleOut:
    return timetable_service.unassign_room(db, schedule_id, publish=publish)
