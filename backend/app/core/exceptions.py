class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    resource_type = "Resource"

    def __init__(self, resource_id: str):
        super().__init__(
            f"{self.resource_type} with id {resource_id} not found",
            status_code=404,
            details={"id": resource_id},
        )


class ClassNotFound(ResourceNotFoundError):
    resource_type = "Class"


class SubjectNotFound(ResourceNotFoundError):
    resource_type = "Subject"


class TeacherNotFound(ResourceNotFoundError):
    resource_type = "Teacher"


class ScheduleNotFound(ResourceNotFoundError):
    resource_type = "Schedule"


class NotificationNotFound(ResourceNotFoundError):
    resource_type = "Notification"


class NotificationAccessDenied(AppError):
    """Raised when a user asks for a notification addressed to someone else."""
    def __init__(self, notification_id: str):
        super().__init__(
            "Notification belongs to another user",
            status_code=403,
            details={"id": notification_id},
        )


class InvalidTimeRange(AppError):
    """Raised when a period does not end after it starts."""
    def __init__(self, start_time, end_time):
        super().__init__(
            "start_time must be before end_time",
            status_code=400,
            details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )


class InvalidDateRange(AppError):
    """Raised when a validity window does not end after it becomes effective."""
    def __init__(self, effective_date, end_date):
        super().__init__(
            "end_date must be after effective_date",
            status_code=400,
            details={
                "effective_date": effective_date.isoformat() if effective_date else None,
                "end_date": end_date.isoformat(),
            },
        )


class SubjectRequiredForLesson(AppError):
    def __init__(self):
        super().__init__("subject_id is required for ACADEMICS periods", status_code=400)


class ScheduleConflictError(AppError):
    """Raised when a proposed period collides with a stored one."""
    default_message = "Schedule conflicts with an existing period"

    def __init__(self, conflicting, details: dict = None):
        payload = {
            "schedule_id": conflicting.id,
            "day": conflicting.day.value,
            "start_time": conflicting.start_time.isoformat(),
            "end_time": conflicting.end_time.isoformat(),
        }
        payload.update(details or {})
        super().__init__(self.default_message, status_code=409, details=payload)


class ClassDayOverlap(ScheduleConflictError):
    default_message = "Class already has a period overlapping this time on this day"


class TeacherDoubleBooked(ScheduleConflictError):
    default_message = "Teacher is already booked for an overlapping period on this day"


class InternalScheduleOverlap(AppError):
    """Raised when two periods submitted in one batch collide with each other."""
    def __init__(self, first_index: int, second_index: int, reason: str = "class"):
        super().__init__(
            "Submitted schedules overlap with each other",
            status_code=409,
            details={"indexes": [first_index, second_index], "reason": reason},
        )


class OperationFailed(AppError):
    """Raised when the database fails or times out while a write is in progress."""
    def __init__(self, message: str = "Operation failed, please retry"):
        super().__init__(message, status_code=503)
