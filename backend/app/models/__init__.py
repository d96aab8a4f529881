from app.models.notification import Notification, NotificationType  # noqa: F401
from app.models.school_class import ClassStudent, ClassTeacher, SchoolClass  # noqa: F401
from app.models.student import Parent, Student  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.teacher import Teacher  # noqa: F401
from app.models.timetable import DayOfWeek, PeriodType, Schedule, Timetable  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
