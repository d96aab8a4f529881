"""Read-only lookups into the school directory (classes, subjects, staff, enrolments)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.school_class import ClassStudent, ClassTeacher, SchoolClass
from app.models.student import Parent, Student
from app.models.subject import Subject
from app.models.teacher import Teacher
from app.models.user import User


def get_class(db: Session, class_id: str) -> SchoolClass | None:
    return db.get(SchoolClass, class_id)


def get_subject(db: Session, subject_id: str) -> Subject | None:
    return db.get(Subject, subject_id)


def get_teacher(db: Session, teacher_id: str) -> Teacher | None:
    return db.get(Teacher, teacher_id)


def list_active_students_with_parents(db: Session, class_id: str) -> list[tuple[str, str | None]]:
    """Return (student user id, parent user id or None) for every active enrolment."""
    rows = db.execute(
        select(Student.user_id, Parent.user_id)
        .join(ClassStudent, ClassStudent.student_id == Student.id)
        .join(User, User.id == Student.user_id)
        .outerjoin(Parent, Parent.id == Student.parent_id)
        .where(
            ClassStudent.class_id == class_id,
            ClassStudent.is_active.is_(True),
            User.is_active.is_(True),
        )
    ).all()
    return [(student_user_id, parent_user_id) for student_user_id, parent_user_id in rows]


def list_active_teachers(db: Session, class_id: str) -> list[str]:
    """Return the user ids of teachers currently assigned to the class."""
    return list(
        db.execute(
            select(Teacher.user_id)
            .join(ClassTeacher, ClassTeacher.teacher_id == Teacher.id)
            .where(
                ClassTeacher.class_id == class_id,
                ClassTeacher.is_active.is_(True),
                Teacher.is_active.is_(True),
            )
        ).scalars()
    )
