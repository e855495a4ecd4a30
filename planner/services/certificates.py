from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..app import db
from ..models import Enrollment, Student, Training
from ..shared import time as time_utils
from ..shared.certificates import certificate_filename, render_certificate
from ..shared.errors import ConflictError, InternalError, NotFoundError
from ..shared.names import display_name
from .progress import snapshot_of


@dataclass(frozen=True)
class CertificateDocument:
    number: str
    filename: str
    content: bytes
    mimetype: str = "application/pdf"


def _get_enrollment(enrollment_id: int) -> Enrollment:
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFoundError("Enrollment not found.", enrollment_id=enrollment_id)
    return enrollment


def certificate_number(enrollment_id, year: int) -> str:
    prefix = current_app.config.get("CERTIFICATE_PREFIX") or "CERT"
    tail = str(enrollment_id)[-4:].upper().zfill(4)
    return f"{prefix}-{year}-{tail}"


def get_eligibility(enrollment_id: int) -> dict:
    """Read the stored snapshot; never mutates the enrollment."""

    enrollment = _get_enrollment(enrollment_id)
    student = db.session.get(Student, enrollment.student_id)
    training = db.session.get(Training, enrollment.training_id)
    return {
        "enrollment_id": enrollment.id,
        "eligible": bool(enrollment.eligible_for_certificate),
        "completed_at": time_utils.iso_or_none(enrollment.completed_at),
        "issued_at": time_utils.iso_or_none(enrollment.certificate_issued_at),
        "student_name": display_name(student),
        "training_title": training.title if training else "",
        "progress": snapshot_of(enrollment).to_dict(),
    }


def issue_certificate(enrollment_id: int) -> CertificateDocument:
    enrollment = _get_enrollment(enrollment_id)
    if not enrollment.eligible_for_certificate:
        raise ConflictError(
            "Student is not eligible for a certificate yet.",
            enrollment_id=enrollment_id,
        )

    zone = time_utils.org_zone()
    if enrollment.completed_at:
        completed = time_utils.local_date(enrollment.completed_at, zone)
    else:
        completed = time_utils.org_today(zone)
    student = db.session.get(Student, enrollment.student_id)
    training = db.session.get(Training, enrollment.training_id)
    student_name = display_name(student, "Student")
    number = certificate_number(enrollment.id, time_utils.org_today(zone).year)

    try:
        content = render_certificate(
            student_name,
            training.title if training else "",
            completed,
            number,
        )
    except Exception as exc:
        current_app.logger.exception(
            "[CERT-FAIL] enrollment=%s number=%s", enrollment_id, number
        )
        raise InternalError(
            "Certificate rendering failed.", enrollment_id=enrollment_id
        ) from exc

    first_issue = False
    if enrollment.certificate_issued_at is None:
        # Conditional write: a concurrent issuance may have stamped it first.
        stamped = Enrollment.query.filter_by(
            id=enrollment.id, certificate_issued_at=None
        ).update(
            {Enrollment.certificate_issued_at: time_utils.now_utc()},
            synchronize_session=False,
        )
        db.session.commit()
        first_issue = stamped == 1
    current_app.logger.info(
        "[CERT] enrollment=%s number=%s first_issue=%s",
        enrollment_id,
        number,
        first_issue,
    )
    return CertificateDocument(
        number=number,
        filename=certificate_filename(student_name, completed),
        content=content,
    )
