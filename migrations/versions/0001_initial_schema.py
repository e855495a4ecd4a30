"""initial planner schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = False) -> list:
    cols = [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now())
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(120)),
        sa.Column("last_name", sa.String(120)),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "is_manager", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "is_trainer", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("speciality", sa.String(120)),
        *_timestamps(),
    )
    op.create_index(
        "ix_users_email_lower", "users", [sa.text("lower(email)")], unique=True
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
        *_timestamps(),
    )

    op.create_table(
        "trainings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        *_timestamps(updated=True),
    )

    op.create_table(
        "training_levels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("training_id", sa.Integer(), nullable=False),
        sa.Column("level_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255)),
        sa.ForeignKeyConstraint(["training_id"], ["trainings.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "training_id", "level_number", name="uq_training_levels_number"
        ),
    )

    op.create_table(
        "curriculum_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("level_id", sa.Integer(), nullable=False),
        sa.Column("session_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255)),
        sa.Column("planned_at", sa.DateTime()),
        sa.ForeignKeyConstraint(
            ["level_id"], ["training_levels.id"], ondelete="CASCADE"
        ),
    )

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("training_id", sa.Integer(), nullable=False),
        sa.Column("trainer_id", sa.Integer()),
        sa.Column("day_of_week", sa.String(10)),
        sa.Column("start_time", sa.Time()),
        sa.Column("end_time", sa.Time()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["training_id"], ["trainings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trainer_id"], ["users.id"], ondelete="SET NULL"),
    )

    op.create_table(
        "group_students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "student_id", name="uq_group_students"),
    )

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("training_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer()),
        sa.Column("enrolled_at", sa.DateTime(timezone=True)),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attended_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("missed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("levels_validated", sa.JSON(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column(
            "eligible_for_certificate",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("certificate_issued_at", sa.DateTime(timezone=True)),
        *_timestamps(updated=True),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["training_id"], ["trainings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "student_id", "training_id", name="uq_enrollments_student_training"
        ),
    )

    op.create_table(
        "attendance_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enrollment_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("session_date", sa.Date()),
        sa.Column("marked_at", sa.DateTime(timezone=True)),
        sa.ForeignKeyConstraint(
            ["enrollment_id"], ["enrollments.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "enrollment_id", "session_id", name="uq_attendance_entries_session"
        ),
    )

    op.create_table(
        "seances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("training_id", sa.Integer()),
        sa.Column("session_id", sa.String(36)),
        sa.Column("group_id", sa.Integer()),
        sa.Column("trainer_id", sa.Integer()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PLANNED"),
        sa.Column("level_number", sa.Integer()),
        sa.Column("session_number", sa.Integer()),
        sa.Column("title", sa.String(255)),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(updated=True),
        sa.ForeignKeyConstraint(["training_id"], ["trainings.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["trainer_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint("end_time > start_time", name="ck_seances_interval"),
    )
    op.create_index("ix_seances_session_id", "seances", ["session_id"])
    op.create_index("ix_seances_trainer_id", "seances", ["trainer_id"])
    op.create_index("ix_seances_trainer_date", "seances", ["trainer_id", "date"])

    op.create_table(
        "session_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("seance_id", sa.Integer(), nullable=False),
        sa.Column("trainer_id", sa.Integer()),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("suggested_date", sa.Date()),
        sa.Column(
            "report_status", sa.String(16), nullable=False, server_default="PENDING"
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["seance_id"], ["seances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trainer_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_session_reports_seance_id", "session_reports", ["seance_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(255)),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer()),
        sa.Column("seance_id", sa.Integer()),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("details", sa.Text()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["seance_id"], ["seances.id"], ondelete="SET NULL"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_session_reports_seance_id", table_name="session_reports")
    op.drop_table("session_reports")
    op.drop_index("ix_seances_trainer_date", table_name="seances")
    op.drop_index("ix_seances_trainer_id", table_name="seances")
    op.drop_index("ix_seances_session_id", table_name="seances")
    op.drop_table("seances")
    op.drop_table("attendance_entries")
    op.drop_table("enrollments")
    op.drop_table("group_students")
    op.drop_table("groups")
    op.drop_table("curriculum_sessions")
    op.drop_table("training_levels")
    op.drop_table("trainings")
    op.drop_index("ix_users_email_lower", table_name="users")
    op.drop_table("users")
