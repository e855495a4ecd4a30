from datetime import date

import pytest

from planner.app import db
from planner.models import AttendanceEntry, Enrollment, Student
from planner.services.attendance import (
    AttendanceMarkRequest,
    AttendanceRecord,
    AttendanceValidationError,
    mark_attendance,
    session_attendance,
)
from planner.shared.constants import ABSENT, EXCUSED, PRESENT
from planner.shared.errors import InvalidRequestError


def test_mark_creates_then_overwrites(app, seed, freeze_now):
    sid = seed.student_ids[0]
    req = AttendanceMarkRequest(
        training_id=seed.training_id,
        session_id="s-1-1",
        session_date=date(2030, 3, 4),
        records=[AttendanceRecord(sid, ABSENT)],
    )
    result = mark_attendance(req)
    db.session.commit()
    assert result.marked == [sid]
    assert result.skipped == []

    req.records = [AttendanceRecord(sid, EXCUSED)]
    mark_attendance(req)
    db.session.commit()
    entries = (
        AttendanceEntry.query.join(Enrollment)
        .filter(Enrollment.student_id == sid)
        .all()
    )
    assert len(entries) == 1
    assert entries[0].status == EXCUSED
    assert entries[0].session_date == date(2030, 3, 4)
    assert entries[0].marked_at is not None


def test_invalid_status_rejected(app, seed):
    req = AttendanceMarkRequest(
        training_id=seed.training_id,
        session_id="s-1-1",
        session_date=None,
        records=[AttendanceRecord(seed.student_ids[0], "LATE")],
    )
    with pytest.raises(AttendanceValidationError) as exc:
        mark_attendance(req)
    assert isinstance(exc.value, InvalidRequestError)
    assert AttendanceEntry.query.count() == 0


def test_unenrolled_student_skipped(app, seed):
    stranger = Student(first_name="Wandering", last_name="Visitor")
    db.session.add(stranger)
    db.session.flush()
    result = mark_attendance(
        AttendanceMarkRequest(
            training_id=seed.training_id,
            session_id="s-1-1",
            session_date=None,
            records=[
                AttendanceRecord(stranger.id, PRESENT),
                AttendanceRecord(seed.student_ids[0], PRESENT),
            ],
        )
    )
    assert result.skipped == [stranger.id]
    assert result.marked == [seed.student_ids[0]]


def test_session_attendance_sheet(app, seed):
    mark_attendance(
        AttendanceMarkRequest(
            training_id=seed.training_id,
            session_id="s-2-1",
            session_date=date(2030, 3, 5),
            records=[AttendanceRecord(seed.student_ids[2], PRESENT)],
        )
    )
    db.session.commit()
    rows = session_attendance(seed.training_id, "s-2-1")
    assert [r["student_name"] for r in rows] == ["Amal Ben", "Rim Kaci", "Sami Zed"]
    by_name = {r["student_name"]: r for r in rows}
    assert by_name["Rim Kaci"]["status"] == PRESENT
    assert by_name["Rim Kaci"]["session_date"] == "2030-03-05"
    assert by_name["Sami Zed"]["status"] is None


def test_mark_route(client, seed, login_as):
    login_as(seed.trainer_id)
    resp = client.post(
        "/api/attendance/mark",
        json={
            "training_id": seed.training_id,
            "session_id": "s-1-2",
            "session_date": "2030-03-04",
            "records": [
                {"student_id": seed.student_ids[0], "status": "present"},
                {"student_id": seed.student_ids[1], "status": "ABSENT"},
            ],
        },
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["marked"] == seed.student_ids[:2]

    resp = client.get(
        "/api/attendance/session/s-1-2",
        query_string={"training_id": seed.training_id},
    )
    statuses = {r["student_id"]: r["status"] for r in resp.get_json()}
    assert statuses[seed.student_ids[0]] == PRESENT
    assert statuses[seed.student_ids[1]] == ABSENT


def test_mark_route_validation(client, seed, login_as):
    login_as(seed.trainer_id)
    resp = client.post(
        "/api/attendance/mark",
        json={
            "training_id": seed.training_id,
            "session_id": "s-1-2",
            "records": [{"student_id": seed.student_ids[0], "status": "late"}],
        },
    )
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid_request"
    assert client.get("/api/attendance/session/s-1-2").status_code == 400
