from datetime import date, datetime, timezone

from planner.app import db
from planner.models import Enrollment, Training, TrainingLevel
from planner.services.attendance import (
    AttendanceMarkRequest,
    AttendanceRecord,
    mark_attendance,
)
from planner.services.progress import compute_progress, refresh_progress
from planner.shared.constants import ABSENT, EXCUSED, PRESENT


def _mark(seed, student_id, session_id, status):
    mark_attendance(
        AttendanceMarkRequest(
            training_id=seed.training_id,
            session_id=session_id,
            session_date=date(2030, 3, 4),
            records=[AttendanceRecord(student_id, status)],
        )
    )
    db.session.commit()


def _enrollment(student_id):
    db.session.expire_all()
    return Enrollment.query.filter_by(student_id=student_id).one()


def test_fresh_enrollment_counts(app, seed):
    enrollment = _enrollment(seed.student_ids[0])
    snap = compute_progress(enrollment, enrollment.training)
    assert snap.total_sessions == 4
    assert snap.attended_count == 0
    assert snap.missed_count == 0
    assert snap.levels_validated == []
    assert not snap.completed
    assert snap.completed_at is None
    assert not snap.eligible_for_certificate


def test_level_validation_and_completion(app, seed):
    sid = seed.student_ids[0]
    _mark(seed, sid, "s-1-1", PRESENT)
    _mark(seed, sid, "s-1-2", EXCUSED)
    enrollment = _enrollment(sid)
    assert enrollment.levels_validated == [1]
    assert enrollment.attended_count == 2
    assert not enrollment.completed

    _mark(seed, sid, "s-2-1", PRESENT)
    _mark(seed, sid, "s-2-2", ABSENT)
    enrollment = _enrollment(sid)
    assert enrollment.missed_count == 1
    assert not enrollment.eligible_for_certificate

    _mark(seed, sid, "s-2-2", PRESENT)
    enrollment = _enrollment(sid)
    assert enrollment.levels_validated == [1, 2]
    assert enrollment.completed
    assert enrollment.eligible_for_certificate
    assert enrollment.missed_count == 0
    assert enrollment.completed_at is not None


def test_completed_at_kept_then_cleared(app, seed, freeze_now):
    sid = seed.student_ids[1]
    for session_id in seed.session_ids:
        _mark(seed, sid, session_id, PRESENT)
    first = _enrollment(sid).completed_at
    assert first.replace(tzinfo=None) == datetime(2030, 3, 4, 8, 0)

    freeze_now(datetime(2030, 4, 1, 12, tzinfo=timezone.utc))
    _mark(seed, sid, "s-1-1", PRESENT)
    assert _enrollment(sid).completed_at == first

    _mark(seed, sid, "s-1-1", ABSENT)
    enrollment = _enrollment(sid)
    assert not enrollment.completed
    assert enrollment.completed_at is None


def test_empty_curriculum_never_completes(app, seed):
    training = Training(title="Empty")
    training.levels.append(TrainingLevel(level_number=1))
    db.session.add(training)
    db.session.flush()
    enrollment = Enrollment(student_id=seed.student_ids[0], training_id=training.id)
    db.session.add(enrollment)
    db.session.flush()
    snap = refresh_progress(enrollment)
    assert snap.total_sessions == 0
    assert not snap.completed
    assert not enrollment.eligible_for_certificate


def test_certificate_issued_at_carried_over(app, seed):
    enrollment = _enrollment(seed.student_ids[2])
    stamp = datetime(2030, 1, 1, tzinfo=timezone.utc)
    enrollment.certificate_issued_at = stamp
    snap = refresh_progress(enrollment)
    assert snap.certificate_issued_at == stamp
    assert enrollment.certificate_issued_at == stamp
