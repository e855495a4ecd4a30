from __future__ import annotations

import uuid

from sqlalchemy.orm import validates

from ..app import db
from ..shared.constants import (
    PLANNED,
    REPORT_PENDING,
    ROLE_ATTRS,
    USER_ACTIVE,
)
from ..shared.names import display_name


def _new_session_key() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(120))
    last_name = db.Column(db.String(120))
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_manager = db.Column(db.Boolean, nullable=False, default=False)
    is_trainer = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(16), nullable=False, default=USER_ACTIVE, server_default=USER_ACTIVE
    )
    speciality = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_email_lower", db.func.lower(email), unique=True),
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    def has_role(self, role: str) -> bool:
        attr = ROLE_ATTRS.get(role)
        return bool(attr and getattr(self, attr, False))

    @property
    def is_active(self) -> bool:
        return self.status == USER_ACTIVE

    @property
    def display_name(self) -> str:
        return display_name(self)


class Student(db.Model):
    __tablename__ = "students"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(32))
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    @property
    def display_name(self) -> str:
        return display_name(self)


class Training(db.Model):
    __tablename__ = "trainings"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    levels = db.relationship(
        "TrainingLevel",
        back_populates="training",
        order_by="TrainingLevel.level_number",
        cascade="all, delete-orphan",
    )


class TrainingLevel(db.Model):
    __tablename__ = "training_levels"

    id = db.Column(db.Integer, primary_key=True)
    training_id = db.Column(
        db.Integer, db.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False
    )
    level_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255))

    training = db.relationship("Training", back_populates="levels")
    sessions = db.relationship(
        "CurriculumSession",
        back_populates="level",
        order_by="CurriculumSession.session_number",
        cascade="all, delete-orphan",
    )
    __table_args__ = (
        db.UniqueConstraint(
            "training_id", "level_number", name="uq_training_levels_number"
        ),
    )


class CurriculumSession(db.Model):
    """A planned session template inside a training level.

    ``id`` is an opaque string key; seances and attendance entries refer to it
    without a foreign key.
    """

    __tablename__ = "curriculum_sessions"

    id = db.Column(db.String(36), primary_key=True, default=_new_session_key)
    level_id = db.Column(
        db.Integer,
        db.ForeignKey("training_levels.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255))
    planned_at = db.Column(db.DateTime)

    level = db.relationship("TrainingLevel", back_populates="sessions")


class GroupStudent(db.Model):
    __tablename__ = "group_students"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    student_id = db.Column(
        db.Integer, db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    student = db.relationship("Student")
    __table_args__ = (
        db.UniqueConstraint("group_id", "student_id", name="uq_group_students"),
    )


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    training_id = db.Column(
        db.Integer, db.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False
    )
    trainer_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    day_of_week = db.Column(db.String(10))
    start_time = db.Column(db.Time)
    end_time = db.Column(db.Time)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    training = db.relationship("Training")
    trainer = db.relationship("User")
    memberships = db.relationship(
        "GroupStudent",
        order_by="GroupStudent.id",
        cascade="all, delete-orphan",
    )

    @property
    def student_ids(self) -> list[int]:
        """Roster in insertion order, without duplicates."""
        seen: set[int] = set()
        ids: list[int] = []
        for membership in self.memberships:
            if membership.student_id not in seen:
                seen.add(membership.student_id)
                ids.append(membership.student_id)
        return ids

    def add_student(self, student: Student) -> None:
        if student.id is not None and student.id in self.student_ids:
            return
        self.memberships.append(GroupStudent(student_id=student.id, student=student))


class Enrollment(db.Model):
    __tablename__ = "enrollments"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.Integer, db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    training_id = db.Column(
        db.Integer, db.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False
    )
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="SET NULL"))
    enrolled_at = db.Column(db.DateTime(timezone=True))

    # Progress snapshot
    total_sessions = db.Column(db.Integer, nullable=False, default=0)
    attended_count = db.Column(db.Integer, nullable=False, default=0)
    missed_count = db.Column(db.Integer, nullable=False, default=0)
    levels_validated = db.Column(db.JSON, nullable=False, default=list)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True))
    eligible_for_certificate = db.Column(db.Boolean, nullable=False, default=False)
    certificate_issued_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    student = db.relationship("Student")
    training = db.relationship("Training")
    entries = db.relationship(
        "AttendanceEntry",
        back_populates="enrollment",
        cascade="all, delete-orphan",
    )
    __table_args__ = (
        db.UniqueConstraint(
            "student_id", "training_id", name="uq_enrollments_student_training"
        ),
    )

    @property
    def attendance(self) -> dict[str, "AttendanceEntry"]:
        return {entry.session_id: entry for entry in self.entries}


class AttendanceEntry(db.Model):
    __tablename__ = "attendance_entries"

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(
        db.Integer,
        db.ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_id = db.Column(db.String(36), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    session_date = db.Column(db.Date)
    marked_at = db.Column(db.DateTime(timezone=True))

    enrollment = db.relationship("Enrollment", back_populates="entries")
    __table_args__ = (
        db.UniqueConstraint(
            "enrollment_id", "session_id", name="uq_attendance_entries_session"
        ),
    )


class Seance(db.Model):
    __tablename__ = "seances"

    id = db.Column(db.Integer, primary_key=True)
    training_id = db.Column(
        db.Integer, db.ForeignKey("trainings.id", ondelete="SET NULL")
    )
    session_id = db.Column(db.String(36), index=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="SET NULL"))
    trainer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(
        db.String(16), nullable=False, default=PLANNED, server_default=PLANNED
    )
    level_number = db.Column(db.Integer)
    session_number = db.Column(db.Integer)
    title = db.Column(db.String(255))
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime, server_default=db.func.now(), onupdate=db.func.now()
    )

    reports = db.relationship(
        "SessionReport",
        back_populates="seance",
        order_by="SessionReport.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_seances_interval"),
        db.Index("ix_seances_trainer_date", "trainer_id", "date"),
    )

    def key_fields(self) -> tuple:
        return (self.trainer_id, self.date, self.start_time, self.end_time)


class SessionReport(db.Model):
    __tablename__ = "session_reports"

    id = db.Column(db.Integer, primary_key=True)
    seance_id = db.Column(
        db.Integer,
        db.ForeignKey("seances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    trainer_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    reason = db.Column(db.Text, nullable=False)
    suggested_date = db.Column(db.Date)
    report_status = db.Column(
        db.String(16),
        nullable=False,
        default=REPORT_PENDING,
        server_default=REPORT_PENDING,
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    seance = db.relationship("Seance", back_populates="reports")


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255))
    category = db.Column(db.String(32), nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    seance_id = db.Column(
        db.Integer, db.ForeignKey("seances.id", ondelete="SET NULL")
    )
    action = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
