from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from flask import current_app

from ..app import db
from ..models import AttendanceEntry, Enrollment, Student
from ..shared import time as time_utils
from ..shared.constants import ATTENDANCE_STATUSES
from ..shared.errors import InvalidRequestError
from ..shared.names import display_name
from .progress import refresh_progress


class AttendanceValidationError(InvalidRequestError):
    """Raised when attendance parameters fail validation."""


@dataclass(frozen=True)
class AttendanceRecord:
    student_id: int
    status: str


@dataclass
class AttendanceMarkRequest:
    training_id: int
    session_id: str
    session_date: Optional[date]
    records: Sequence[AttendanceRecord] = field(default_factory=list)


@dataclass
class AttendanceMarkResult:
    marked: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"marked": list(self.marked), "skipped": list(self.skipped)}


def _validate(request: AttendanceMarkRequest) -> None:
    if not request.training_id:
        raise AttendanceValidationError("training_id is required.")
    if not request.session_id or not str(request.session_id).strip():
        raise AttendanceValidationError("session_id is required.")
    for record in request.records:
        if record.status not in ATTENDANCE_STATUSES:
            raise AttendanceValidationError(
                f"Unknown attendance status {record.status!r}.",
                student_id=record.student_id,
                allowed=list(ATTENDANCE_STATUSES),
            )


def mark_attendance(request: AttendanceMarkRequest) -> AttendanceMarkResult:
    """Create or overwrite one entry per record and refresh progress.

    Students without an enrollment in the training are skipped. The caller
    owns the transaction.
    """

    _validate(request)
    result = AttendanceMarkResult()
    if not request.records:
        return result

    student_ids = [record.student_id for record in request.records]
    enrollments = {
        e.student_id: e
        for e in Enrollment.query.filter(
            Enrollment.training_id == request.training_id,
            Enrollment.student_id.in_(student_ids),
        )
    }
    stamp = time_utils.now_utc()
    touched: dict[int, Enrollment] = {}
    for record in request.records:
        enrollment = enrollments.get(record.student_id)
        if enrollment is None:
            result.skipped.append(record.student_id)
            continue
        entry = enrollment.attendance.get(request.session_id)
        if entry is None:
            entry = AttendanceEntry(session_id=request.session_id)
            enrollment.entries.append(entry)
        entry.status = record.status
        entry.session_date = request.session_date
        entry.marked_at = stamp
        touched[enrollment.id] = enrollment
        result.marked.append(record.student_id)

    for enrollment in touched.values():
        refresh_progress(enrollment)

    if result.skipped:
        current_app.logger.warning(
            "[ATTENDANCE] training=%s session=%s skipped students=%s (not enrolled)",
            request.training_id,
            request.session_id,
            result.skipped,
        )
    current_app.logger.info(
        "[ATTENDANCE] training=%s session=%s marked=%d",
        request.training_id,
        request.session_id,
        len(result.marked),
    )
    return result


def session_attendance(training_id: int, session_id: str) -> list[dict]:
    """Every enrolled student of the training with their status for a session."""

    rows = (
        db.session.query(Enrollment, Student)
        .join(Student, Student.id == Enrollment.student_id)
        .filter(Enrollment.training_id == training_id)
        .order_by(Student.last_name, Student.first_name, Student.id)
        .all()
    )
    out = []
    for enrollment, student in rows:
        entry = enrollment.attendance.get(session_id)
        out.append(
            {
                "enrollment_id": enrollment.id,
                "student_id": student.id,
                "student_name": display_name(student),
                "status": entry.status if entry else None,
                "session_date": time_utils.iso_or_none(
                    entry.session_date if entry else None
                ),
                "marked_at": time_utils.iso_or_none(entry.marked_at if entry else None),
            }
        )
    return out
