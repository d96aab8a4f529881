"""create school directory, timetables and notifications

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

DAYS = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column(
            "role",
            sa.Enum("admin", "teacher", "student", "parent", name="user_role"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "classes",
        _id_column(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("arm", sa.String(length=50), nullable=True),
        _created_at(),
    )

    op.create_table(
        "class_students",
        _id_column(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "student_id", name="uq_class_students_class_student"),
    )
    op.create_index("ix_class_students_class_id", "class_students", ["class_id"])

    op.create_table(
        "class_teachers",
        _id_column(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "teacher_id", name="uq_class_teachers_class_teacher"),
    )
    op.create_index("ix_class_teachers_class_id", "class_teachers", ["class_id"])

    op.create_table(
        "subjects",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        _created_at(),
    )

    op.create_table(
        "teachers",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("title", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "parents",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
        _created_at(),
    )

    op.create_table(
        "students",
        _id_column(),
        sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("parent_id", sa.String(length=36), nullable=True),
        _created_at(),
    )

    op.create_table(
        "timetables",
        _id_column(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetables_class_id", "timetables", ["class_id"], unique=True)

    op.create_table(
        "schedules",
        _id_column(),
        sa.Column(
            "timetable_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day", sa.Enum(*DAYS, name="day_of_week"), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column(
            "period_type",
            sa.Enum("ACADEMICS", "BREAK", name="period_type"),
            nullable=False,
            server_default="ACADEMICS",
        ),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("room_id", sa.String(length=36), nullable=True),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_schedules_timetable_day", "schedules", ["timetable_id", "day"])
    op.create_index("ix_schedules_teacher_day", "schedules", ["teacher_id", "day"])

    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("recipient_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("TIMETABLE_CHANGE", "SYSTEM_ALERT", name="notification_type"),
            nullable=False,
            server_default="SYSTEM_ALERT",
        ),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "is_read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_recipient_read", table_name="notifications")
    op.drop_index("ix_notifications_recipient_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_schedules_teacher_day", table_name="schedules")
    op.drop_index("ix_schedules_timetable_day", table_name="schedules")
    op.drop_table("schedules")
    op.drop_index("ix_timetables_class_id", table_name="timetables")
    op.drop_table("timetables")
    op.drop_table("students")
    op.drop_table("parents")
    op.drop_table("teachers")
    op.drop_table("subjects")
    op.drop_index("ix_class_teachers_class_id", table_name="class_teachers")
    op.drop_table("class_teachers")
    op.drop_index("ix_class_students_class_id", table_name="class_students")
    op.drop_table("class_students")
    op.drop_table("classes")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_name in ("notification_type", "period_type", "day_of_week", "user_role"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
