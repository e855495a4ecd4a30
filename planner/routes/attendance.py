from __future__ import annotations

from flask import Blueprint, jsonify

from ..app import db
from ..services import attendance as attendance_service
from ..services.attendance import (
    AttendanceMarkRequest,
    AttendanceRecord,
    AttendanceValidationError,
)
from ..shared.rbac import seance_runner_required
from ..shared.time import parse_date
from .seances import arg_int, json_body

bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


def _parse_request(payload: dict) -> AttendanceMarkRequest:
    try:
        training_id = int(payload.get("training_id") or 0)
        raw_date = payload.get("session_date") or payload.get("date")
        session_date = parse_date(raw_date) if raw_date else None
        records = [
            AttendanceRecord(
                student_id=int(item["student_id"]),
                status=str(item.get("status") or "").strip().upper(),
            )
            for item in payload.get("records") or []
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise AttendanceValidationError(f"Malformed attendance payload: {exc}") from exc
    return AttendanceMarkRequest(
        training_id=training_id,
        session_id=str(payload.get("session_id") or ""),
        session_date=session_date,
        records=records,
    )


@bp.post("/mark")
@seance_runner_required
def mark(current_user):
    req = _parse_request(json_body())
    result = attendance_service.mark_attendance(req)
    db.session.commit()
    return jsonify({"ok": True, **result.to_dict()})


@bp.get("/session/<session_id>")
@seance_runner_required
def session_sheet(session_id: str, current_user):
    training_id = arg_int("training_id")
    if training_id is None:
        raise AttendanceValidationError("training_id is required.")
    rows = attendance_service.session_attendance(training_id, session_id)
    return jsonify(rows)
