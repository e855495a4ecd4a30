from __future__ import annotations

from datetime import date, time
from typing import Optional

from flask import Blueprint, jsonify, request

from ..services import reports as report_service
from ..services import seances as seance_service
from ..services.seances import SeanceRequest
from ..shared.errors import InvalidRequestError
from ..shared.rbac import login_required, planner_required, seance_runner_required
from ..shared.time import parse_date, parse_time

bp = Blueprint("seances", __name__, url_prefix="/api/seances")


def arg_date(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid date for '{name}'.", **{name: raw}) from exc


def arg_time(name: str) -> Optional[time]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_time(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid time for '{name}'.", **{name: raw}) from exc


def arg_int(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"'{name}' must be an integer.", **{name: raw}) from exc


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequestError("Expected a JSON object body.")
    return payload


def _date_filters() -> dict:
    return {
        "day": arg_date("date"),
        "date_from": arg_date("from"),
        "date_to": arg_date("to"),
    }


@bp.post("")
@planner_required
def create_seance(current_user):
    req = SeanceRequest.from_payload(json_body())
    seance = seance_service.schedule_seance(req, actor_id=current_user.id)
    return jsonify(seance_service.serialize_seance(seance)), 201


@bp.get("")
@login_required
def list_seances(current_user):
    seances = seance_service.list_seances(
        trainer_id=arg_int("trainer_id"),
        group_id=arg_int("group_id"),
        training_id=arg_int("training_id"),
        **_date_filters(),
    )
    return jsonify([seance_service.serialize_seance(s) for s in seances])


@bp.get("/my")
@seance_runner_required
def my_seances(current_user):
    seances = seance_service.list_seances(
        trainer_id=current_user.id, **_date_filters()
    )
    return jsonify([seance_service.serialize_seance(s) for s in seances])


@bp.get("/availability")
@login_required
def availability(current_user):
    trainer_id = arg_int("trainer_id")
    day = arg_date("date")
    start = arg_time("start_time")
    end = arg_time("end_time")
    if trainer_id is None or day is None or start is None or end is None:
        raise InvalidRequestError(
            "trainer_id, date, start_time and end_time are required."
        )
    available = seance_service.is_trainer_available(trainer_id, day, start, end)
    return jsonify({"available": available})


@bp.get("/<int:seance_id>")
@login_required
def get_seance(seance_id: int, current_user):
    seance = seance_service.get_seance(seance_id)
    return jsonify(seance_service.serialize_seance(seance))


@bp.put("/<int:seance_id>")
@planner_required
def update_seance(seance_id: int, current_user):
    req = SeanceRequest.from_payload(json_body())
    seance = seance_service.update_seance(seance_id, req, actor_id=current_user.id)
    return jsonify(seance_service.serialize_seance(seance))


@bp.delete("/<int:seance_id>")
@planner_required
def delete_seance(seance_id: int, current_user):
    seance_service.delete_seance(seance_id, actor_id=current_user.id)
    return "", 204


@bp.patch("/<int:seance_id>/status")
@seance_runner_required
def set_status(seance_id: int, current_user):
    status = (request.args.get("status") or "").strip().upper()
    if not status:
        body = request.get_json(silent=True) or {}
        status = str(body.get("status") or "").strip().upper()
    if not status:
        raise InvalidRequestError("status is required.")
    seance = seance_service.set_seance_status(
        seance_id, status, actor_id=current_user.id
    )
    return jsonify(seance_service.serialize_seance(seance))


@bp.post("/<int:seance_id>/report")
@seance_runner_required
def report_seance(seance_id: int, current_user):
    payload = json_body()
    suggested = payload.get("suggested_date")
    try:
        suggested_date = parse_date(suggested) if suggested else None
    except ValueError as exc:
        raise InvalidRequestError(
            "Invalid suggested_date.", suggested_date=suggested
        ) from exc
    report = report_service.report_seance(
        seance_id,
        current_user.id,
        payload.get("reason") or "",
        suggested_date,
    )
    return jsonify(report_service.serialize_report(report)), 201


@bp.get("/<int:seance_id>/reports")
@login_required
def list_reports(seance_id: int, current_user):
    reports = report_service.list_reports(seance_id)
    return jsonify([report_service.serialize_report(r) for r in reports])
