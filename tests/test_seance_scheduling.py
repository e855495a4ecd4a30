from datetime import date, time

import pytest
from sqlalchemy import text

from planner.app import db
from planner.models import AttendanceEntry, AuditLog, Notification, Seance, SessionReport
from planner.services import seances as seance_service
from planner.services.seances import SeanceRequest
from planner.shared.constants import CANCELLED, REPORTED, SEANCE_ASSIGNED, SEANCE_MODIFIED
from planner.shared.errors import ConflictError, InvalidRequestError, NotFoundError


def _request(seed, **overrides):
    values = dict(
        training_id=seed.training_id,
        session_id="s-1-1",
        group_id=seed.group_id,
        trainer_id=seed.trainer_id,
        date=date(2030, 3, 4),
        start_time=time(9, 0),
        end_time=time(10, 0),
        title="Intro",
    )
    values.update(overrides)
    return SeanceRequest(**values)


def test_create_seance_returns_enriched_record(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    resp = client.post("/api/seances", json=seance_payload())
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["status"] == "PLANNED"
    assert data["date"] == "2030-03-04"
    assert data["start_time"] == "09:00"
    assert data["end_time"] == "10:00"
    assert data["training_title"] == "Robotics 101"
    assert data["group_name"] == "Group A"
    assert data["trainer_name"] == "Tarek Trainer"
    assert db.session.get(Seance, data["id"]) is not None


def test_create_notifies_trainer(client, seed, login_as, seance_payload):
    login_as(seed.admin_id)
    resp = client.post("/api/seances", json=seance_payload())
    assert resp.status_code == 201
    notes = Notification.query.filter_by(user_id=seed.trainer_id).all()
    assert len(notes) == 1
    assert notes[0].category == SEANCE_ASSIGNED
    assert "Intro to motors" in notes[0].message


def test_date_before_today_rejected_today_accepted(app, seed):
    with pytest.raises(InvalidRequestError) as exc:
        seance_service.schedule_seance(_request(seed, date=date(2030, 3, 3)))
    assert exc.value.kind == "invalid_request"
    seance = seance_service.schedule_seance(_request(seed, date=date(2030, 3, 4)))
    assert seance.id is not None


def test_today_follows_org_zone(app, seed, freeze_now):
    from datetime import datetime, timezone

    # 23:30 UTC on the 3rd is already the 4th in Tunis.
    freeze_now(datetime(2030, 3, 3, 23, 30, tzinfo=timezone.utc))
    seance = seance_service.schedule_seance(_request(seed, date=date(2030, 3, 4)))
    assert seance.date == date(2030, 3, 4)
    with pytest.raises(InvalidRequestError):
        seance_service.schedule_seance(
            _request(seed, date=date(2030, 3, 3), start_time=time(14), end_time=time(15))
        )


@pytest.mark.parametrize(
    "start,end",
    [(time(10), time(9)), (time(10), time(10))],
)
def test_inverted_or_empty_interval_rejected(app, seed, start, end):
    with pytest.raises(InvalidRequestError):
        seance_service.schedule_seance(_request(seed, start_time=start, end_time=end))
    assert Seance.query.count() == 0


def test_overlap_rejected_and_adjacent_allowed(app, seed):
    seance_service.schedule_seance(_request(seed))
    with pytest.raises(InvalidRequestError) as exc:
        seance_service.schedule_seance(
            _request(seed, start_time=time(9, 30), end_time=time(10, 30))
        )
    ctx = exc.value.context
    assert ctx["trainer_id"] == seed.trainer_id
    assert ctx["date"] == "2030-03-04"
    assert ctx["conflicting_seance"]["start_time"] == "09:00"
    assert ctx["conflicting_seance"]["title"] == "Intro"

    adjacent = seance_service.schedule_seance(
        _request(seed, start_time=time(10), end_time=time(11))
    )
    assert adjacent.id is not None
    assert Seance.query.count() == 2


def test_other_trainer_same_slot_is_fine(app, seed):
    seance_service.schedule_seance(_request(seed))
    other = seance_service.schedule_seance(_request(seed, trainer_id=seed.other_trainer_id))
    assert other.trainer_id == seed.other_trainer_id


@pytest.mark.parametrize("status", [REPORTED, CANCELLED])
def test_reported_or_cancelled_seances_free_the_slot(app, seed, status):
    first = seance_service.schedule_seance(_request(seed))
    first.status = status
    db.session.commit()
    again = seance_service.schedule_seance(_request(seed, title="Replacement"))
    assert again.id != first.id


def test_conflict_over_http_returns_400_with_context(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    assert client.post("/api/seances", json=seance_payload()).status_code == 201
    resp = client.post(
        "/api/seances",
        json=seance_payload(start_time="09:30", end_time="10:30"),
    )
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["ok"] is False
    assert body["kind"] == "invalid_request"
    assert body["context"]["trainer_id"] == seed.trainer_id


def test_unknown_references(app, seed):
    with pytest.raises(NotFoundError):
        seance_service.schedule_seance(_request(seed, trainer_id=9999))
    with pytest.raises(NotFoundError):
        seance_service.schedule_seance(_request(seed, group_id=9999))
    with pytest.raises(NotFoundError):
        seance_service.schedule_seance(_request(seed, training_id=9999))


def test_non_trainer_cannot_be_assigned(app, seed):
    with pytest.raises(InvalidRequestError):
        seance_service.schedule_seance(_request(seed, trainer_id=seed.manager_id))


def test_missing_fields_rejected(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    payload = seance_payload()
    del payload["trainer_id"]
    resp = client.post("/api/seances", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["context"]["missing"] == ["trainer_id"]


@pytest.mark.parametrize("blank", [None, "", "   "])
def test_missing_session_id_rejected(client, seed, login_as, seance_payload, blank):
    login_as(seed.manager_id)
    resp = client.post("/api/seances", json=seance_payload(session_id=blank))
    assert resp.status_code == 400
    assert resp.get_json()["context"]["missing"] == ["session_id"]
    assert Seance.query.count() == 0


def test_service_rejects_request_without_session_id(app, seed):
    with pytest.raises(InvalidRequestError):
        seance_service.schedule_seance(_request(seed, session_id=""))
    assert Seance.query.count() == 0


def test_offset_time_rejected(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    resp = client.post("/api/seances", json=seance_payload(start_time="09:00+01:00"))
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "invalid_request"
    avail = client.get(
        "/api/seances/availability",
        query_string={
            "trainer_id": seed.trainer_id,
            "date": "2030-03-04",
            "start_time": "09:00+01:00",
            "end_time": "10:00",
        },
    )
    assert avail.status_code == 400


def test_update_without_slot_change_skips_conflict_check(app, seed, monkeypatch):
    seance = seance_service.schedule_seance(_request(seed))
    calls = []
    original = seance_service.find_conflict

    def spy(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(seance_service, "find_conflict", spy)
    updated = seance_service.update_seance(seance.id, _request(seed, title="Renamed"))
    assert updated.title == "Renamed"
    assert calls == []


def test_update_excludes_itself_from_conflicts(app, seed):
    seance = seance_service.schedule_seance(_request(seed))
    moved = seance_service.update_seance(
        seance.id, _request(seed, start_time=time(9, 30), end_time=time(10, 30))
    )
    assert moved.start_time == time(9, 30)


def test_update_into_occupied_slot_rejected(app, seed):
    seance_service.schedule_seance(_request(seed))
    later = seance_service.schedule_seance(
        _request(seed, start_time=time(11), end_time=time(12))
    )
    with pytest.raises(InvalidRequestError):
        seance_service.update_seance(
            later.id, _request(seed, start_time=time(9, 45), end_time=time(11))
        )
    db.session.expire_all()
    assert db.session.get(Seance, later.id).start_time == time(11)


def test_update_over_http_notifies_modified(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    seance_id = client.post("/api/seances", json=seance_payload()).get_json()["id"]
    resp = client.put(
        f"/api/seances/{seance_id}",
        json=seance_payload(start_time="14:00", end_time="15:30"),
    )
    assert resp.status_code == 200
    assert resp.get_json()["start_time"] == "14:00"
    categories = [
        n.category
        for n in Notification.query.filter_by(user_id=seed.trainer_id).order_by(Notification.id)
    ]
    assert categories == [SEANCE_ASSIGNED, SEANCE_MODIFIED]


def test_update_with_stale_version_conflicts(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    created = client.post("/api/seances", json=seance_payload()).get_json()
    resp = client.put(
        f"/api/seances/{created['id']}",
        json=seance_payload(title="First edit", version=created["version"]),
    )
    assert resp.status_code == 200
    resp = client.put(
        f"/api/seances/{created['id']}",
        json=seance_payload(title="Lost edit", version=created["version"]),
    )
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "conflict"


def test_concurrent_write_detected_by_version_column(app, seed):
    seance = seance_service.schedule_seance(_request(seed))
    seance_id = seance.id
    assert seance.version == 1
    db.session.execute(
        text("UPDATE seances SET version = version + 1 WHERE id = :id"),
        {"id": seance_id},
    )
    with pytest.raises(ConflictError):
        seance_service.set_seance_status(seance_id, CANCELLED)


def test_update_missing_seance(app, seed):
    with pytest.raises(NotFoundError):
        seance_service.update_seance(4242, _request(seed))


def test_delete_removes_reports_but_keeps_attendance(app, seed):
    seance = seance_service.schedule_seance(_request(seed))
    seance_service.set_seance_status(seance.id, "IN_PROGRESS")
    from planner.services.reports import report_seance

    report_seance(seance.id, seed.trainer_id, "Sick")
    assert SessionReport.query.count() == 1
    entries_before = AttendanceEntry.query.count()
    assert entries_before == 3

    seance_service.delete_seance(seance.id)
    assert db.session.get(Seance, seance.id) is None
    assert SessionReport.query.count() == 0
    assert AttendanceEntry.query.count() == entries_before
    with pytest.raises(NotFoundError):
        seance_service.delete_seance(seance.id)


def test_delete_requires_planner_role(client, seed, login_as, seance_payload):
    login_as(seed.manager_id)
    seance_id = client.post("/api/seances", json=seance_payload()).get_json()["id"]
    login_as(seed.trainer_id)
    assert client.delete(f"/api/seances/{seance_id}").status_code == 403
    login_as(seed.admin_id)
    assert client.delete(f"/api/seances/{seance_id}").status_code == 204
    assert client.get(f"/api/seances/{seance_id}").status_code == 404


def test_audit_rows_written(app, seed):
    seance = seance_service.schedule_seance(_request(seed), actor_id=seed.manager_id)
    seance_service.set_seance_status(seance.id, CANCELLED, actor_id=seed.manager_id)
    actions = [a.action for a in AuditLog.query.order_by(AuditLog.id)]
    assert actions == ["seance_created", "status_change"]
    last = AuditLog.query.order_by(AuditLog.id.desc()).first()
    assert last.details == "status:PLANNED->CANCELLED"
