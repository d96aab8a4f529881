import os

# Point the default engine at SQLite before the app is imported so startup never needs a server.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_db, get_session_factory  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.school_class import ClassStudent, ClassTeacher, SchoolClass  # noqa: E402
from app.models.student import Parent, Student  # noqa: E402
from app.models.subject import Subject  # noqa: E402
from app.models.teacher import Teacher  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402


@pytest.fixture()
def session_factory():
    engine = create_engine(  # isolated in-memory DB shared by every session of one test
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class SchoolSeeder:
    """Creates directory rows (classes, subjects, staff, enrolments) for a test."""

    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(self, role: UserRole, *, is_active: bool = True) -> User:
        number = self._next()
        user = User(
            first_name=role.value.title(),
            last_name=str(number),
            email=f"{role.value}{number}@school.test",
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def school_class(self, name: str = "JSS 1") -> SchoolClass:
        record = SchoolClass(name=f"{name} {self._next()}")
        self.db.add(record)
        self.db.flush()
        return record

    def subject(self, name: str = "Mathematics") -> Subject:
        record = Subject(name=f"{name} {self._next()}")
        self.db.add(record)
        self.db.flush()
        return record

    def teacher(self, *, assign_to: SchoolClass | None = None, assignment_active: bool = True) -> Teacher:
        user = self.user(UserRole.teacher)
        record = Teacher(user_id=user.id, title="Mr")
        self.db.add(record)
        self.db.flush()
        if assign_to is not None:
            self.db.add(ClassTeacher(class_id=assign_to.id, teacher_id=record.id, is_active=assignment_active))
            self.db.flush()
        return record

    def student(
        self,
        school_class: SchoolClass,
        *,
        with_parent: bool = False,
        enrolment_active: bool = True,
    ) -> tuple[Student, Parent | None]:
        parent = None
        if with_parent:
            parent = Parent(user_id=self.user(UserRole.parent).id)
            self.db.add(parent)
            self.db.flush()
        student = Student(user_id=self.user(UserRole.student).id, parent_id=parent.id if parent else None)
        self.db.add(student)
        self.db.flush()
        self.db.add(ClassStudent(class_id=school_class.id, student_id=student.id, is_active=enrolment_active))
        self.db.flush()
        return student, parent

    def commit(self) -> None:
        self.db.commit()


@pytest.fixture()
def seed(db_session):
    return SchoolSeeder(db_session)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)


@pytest.fixture()
def publisher():
    return RecordingPublisher()
