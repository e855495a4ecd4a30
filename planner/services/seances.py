"""Seance scheduling, trainer conflicts and the status lifecycle."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..app import db
from ..models import AuditLog, Group, Seance, Training, User
from ..shared import time as time_utils
from ..shared.constants import (
    ABSENT,
    BLOCKING_STATUSES,
    DASHBOARD_LINK,
    IN_PROGRESS,
    SEANCE_ASSIGNED,
    SEANCE_MODIFIED,
    SEANCE_STATUSES,
    TRAINER,
)
from ..shared.dispatch import side_effects
from ..shared.errors import ConflictError, InvalidRequestError, NotFoundError
from ..shared.names import display_name
from . import attendance
from . import notifications

_LOCK_STRIPES = 64
_slot_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]


@contextmanager
def trainer_day_lock(trainer_id: int, day: date):
    """Serialize conflict check and write for one (trainer, date) in-process."""
    lock = _slot_locks[hash((trainer_id, day)) % _LOCK_STRIPES]
    with lock:
        yield


@dataclass
class SeanceRequest:
    training_id: int
    session_id: str
    group_id: int
    trainer_id: int
    date: date
    start_time: time
    end_time: time
    level_number: Optional[int] = None
    session_number: Optional[int] = None
    title: Optional[str] = None
    version: Optional[int] = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SeanceRequest":
        missing = [
            key
            for key in (
                "training_id",
                "session_id",
                "group_id",
                "trainer_id",
                "date",
                "start_time",
                "end_time",
            )
            if data.get(key) is None or str(data[key]).strip() == ""
        ]
        if missing:
            raise InvalidRequestError(
                "Missing required fields: " + ", ".join(missing), missing=missing
            )
        try:
            return cls(
                training_id=int(data["training_id"]),
                session_id=str(data["session_id"]).strip(),
                group_id=int(data["group_id"]),
                trainer_id=int(data["trainer_id"]),
                date=time_utils.parse_date(data["date"]),
                start_time=time_utils.parse_time(data["start_time"]),
                end_time=time_utils.parse_time(data["end_time"]),
                level_number=_opt_int(data.get("level_number")),
                session_number=_opt_int(data.get("session_number")),
                title=(data.get("title") or None),
                version=_opt_int(data.get("version")),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(f"Malformed seance payload: {exc}") from exc


def _opt_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


# ---------------------------------------------------------------------------
# validation


def validate_interval(start: time, end: time) -> None:
    if end <= start:
        raise InvalidRequestError(
            "End time must be after start time.",
            start_time=start,
            end_time=end,
        )


def _validate_dates(day: date, start: time, end: time) -> None:
    zone = time_utils.org_zone()
    today = time_utils.org_today(zone)
    if day < today:
        raise InvalidRequestError(
            "Seance date cannot be in the past.", date=day, today=today
        )
    validate_interval(start, end)


def _resolve_refs(req: SeanceRequest) -> tuple[Training, Group, User]:
    if not req.session_id:
        raise InvalidRequestError("Seance needs a curriculum session id.")
    trainer = db.session.get(User, req.trainer_id)
    if not trainer:
        raise NotFoundError("Trainer not found.", trainer_id=req.trainer_id)
    if not trainer.has_role(TRAINER):
        raise InvalidRequestError(
            "Assigned user is not a trainer.", trainer_id=req.trainer_id
        )
    training = db.session.get(Training, req.training_id)
    if not training:
        raise NotFoundError("Training not found.", training_id=req.training_id)
    group = db.session.get(Group, req.group_id)
    if not group:
        raise NotFoundError("Group not found.", group_id=req.group_id)
    return training, group, trainer


def find_conflict(
    trainer_id: int,
    day: date,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
) -> Optional[Seance]:
    """First blocking seance of the trainer on ``day`` overlapping [start, end)."""

    query = Seance.query.filter(
        Seance.trainer_id == trainer_id,
        Seance.date == day,
        Seance.status.in_(BLOCKING_STATUSES),
        Seance.start_time < end,
        Seance.end_time > start,
    )
    if exclude_id is not None:
        query = query.filter(Seance.id != exclude_id)
    return query.order_by(Seance.start_time, Seance.id).first()


def _ensure_no_conflict(
    trainer_id: int,
    day: date,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
) -> None:
    clash = find_conflict(trainer_id, day, start, end, exclude_id)
    if clash is None:
        return
    current_app.logger.info(
        "[SEANCE-CONFLICT] trainer=%s date=%s wanted=%s-%s clash=%s",
        trainer_id,
        day,
        time_utils.fmt_time(start),
        time_utils.fmt_time(end),
        clash.id,
    )
    raise InvalidRequestError(
        "Trainer already has a seance overlapping this time slot.",
        trainer_id=trainer_id,
        date=day,
        conflicting_seance={
            "id": clash.id,
            "title": clash.title,
            "start_time": time_utils.fmt_time(clash.start_time),
            "end_time": time_utils.fmt_time(clash.end_time),
        },
    )


def is_trainer_available(trainer_id: int, day: date, start: time, end: time) -> bool:
    validate_interval(start, end)
    return find_conflict(trainer_id, day, start, end) is None


# ---------------------------------------------------------------------------
# persistence helpers


def _get_or_404(seance_id: int) -> Seance:
    seance = db.session.get(Seance, seance_id)
    if not seance:
        raise NotFoundError("Seance not found.", seance_id=seance_id)
    return seance


def commit_seance(seance_id: Optional[int]) -> None:
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            "Seance was changed by another request; reload and retry.",
            seance_id=seance_id,
        ) from exc


def audit(seance: Seance, action: str, details: str, actor_id: Optional[int]) -> None:
    db.session.add(
        AuditLog(
            user_id=actor_id,
            seance_id=seance.id,
            action=action,
            details=details,
        )
    )


def _apply(seance: Seance, req: SeanceRequest) -> None:
    seance.training_id = req.training_id
    seance.session_id = req.session_id
    seance.group_id = req.group_id
    seance.trainer_id = req.trainer_id
    seance.date = req.date
    seance.start_time = req.start_time
    seance.end_time = req.end_time
    seance.level_number = req.level_number
    seance.session_number = req.session_number
    seance.title = req.title


# ---------------------------------------------------------------------------
# operations


def schedule_seance(req: SeanceRequest, actor_id: Optional[int] = None) -> Seance:
    _validate_dates(req.date, req.start_time, req.end_time)
    _resolve_refs(req)
    with trainer_day_lock(req.trainer_id, req.date):
        _ensure_no_conflict(req.trainer_id, req.date, req.start_time, req.end_time)
        seance = Seance()
        _apply(seance, req)
        db.session.add(seance)
        db.session.flush()
        audit(seance, "seance_created", f"trainer:{req.trainer_id}", actor_id)
        commit_seance(seance.id)
    current_app.logger.info(
        "[SEANCE-CREATE] id=%s trainer=%s date=%s %s-%s",
        seance.id,
        seance.trainer_id,
        seance.date,
        time_utils.fmt_time(seance.start_time),
        time_utils.fmt_time(seance.end_time),
    )
    side_effects.submit(
        f"notify-trainer seance={seance.id}",
        notify_trainer,
        seance.id,
        SEANCE_ASSIGNED,
    )
    return seance


def update_seance(
    seance_id: int, req: SeanceRequest, actor_id: Optional[int] = None
) -> Seance:
    seance = _get_or_404(seance_id)
    if req.version is not None and req.version != seance.version:
        raise ConflictError(
            "Seance was changed since it was loaded; reload and retry.",
            seance_id=seance_id,
            expected_version=req.version,
            current_version=seance.version,
        )
    _validate_dates(req.date, req.start_time, req.end_time)
    _resolve_refs(req)
    with trainer_day_lock(req.trainer_id, req.date):
        slot_changed = seance.key_fields() != (
            req.trainer_id,
            req.date,
            req.start_time,
            req.end_time,
        )
        if slot_changed:
            _ensure_no_conflict(
                req.trainer_id,
                req.date,
                req.start_time,
                req.end_time,
                exclude_id=seance.id,
            )
        _apply(seance, req)
        audit(seance, "seance_updated", f"slot_changed:{slot_changed}", actor_id)
        commit_seance(seance.id)
    current_app.logger.info(
        "[SEANCE-UPDATE] id=%s trainer=%s date=%s slot_changed=%s",
        seance.id,
        seance.trainer_id,
        seance.date,
        slot_changed,
    )
    side_effects.submit(
        f"notify-trainer seance={seance.id}",
        notify_trainer,
        seance.id,
        SEANCE_MODIFIED,
    )
    return seance


def delete_seance(seance_id: int, actor_id: Optional[int] = None) -> None:
    """Delete a seance and its reports; attendance entries are left in place."""

    seance = _get_or_404(seance_id)
    db.session.delete(seance)
    commit_seance(seance_id)
    current_app.logger.info("[SEANCE-DELETE] id=%s by=%s", seance_id, actor_id)


def get_seance(seance_id: int) -> Seance:
    return _get_or_404(seance_id)


def list_seances(
    *,
    day: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    trainer_id: Optional[int] = None,
    group_id: Optional[int] = None,
    training_id: Optional[int] = None,
) -> list[Seance]:
    if date_from and date_to and date_from > date_to:
        raise InvalidRequestError(
            "'from' must not be after 'to'.", date_from=date_from, date_to=date_to
        )
    query = Seance.query
    if day is not None:
        query = query.filter(Seance.date == day)
    if date_from is not None:
        query = query.filter(Seance.date >= date_from)
    if date_to is not None:
        query = query.filter(Seance.date <= date_to)
    if trainer_id is not None:
        query = query.filter(Seance.trainer_id == trainer_id)
    if group_id is not None:
        query = query.filter(Seance.group_id == group_id)
    if training_id is not None:
        query = query.filter(Seance.training_id == training_id)
    return query.order_by(Seance.date, Seance.start_time, Seance.id).all()


def set_seance_status(
    seance_id: int, status: str, actor_id: Optional[int] = None
) -> Seance:
    """Move a seance to ``status``.

    Starting a seance is refused before its scheduled start in the org zone.
    Moving a reported or cancelled seance back to a blocking status must not
    overlap another blocking seance of the same trainer.
    Entering IN_PROGRESS queues the attendance cascade once the change is
    committed.
    """

    if status not in SEANCE_STATUSES:
        raise InvalidRequestError(
            f"Unknown seance status {status!r}.",
            status=status,
            allowed=list(SEANCE_STATUSES),
        )
    seance = _get_or_404(seance_id)
    old = seance.status
    if old == status:
        return seance

    if status == IN_PROGRESS:
        zone = time_utils.org_zone()
        starts = time_utils.scheduled_start(seance.date, seance.start_time, zone)
        if time_utils.org_now(zone) < starts:
            raise InvalidRequestError(
                "Cannot start a seance before its scheduled time.",
                seance_id=seance.id,
                scheduled_start=starts,
            )

    with trainer_day_lock(seance.trainer_id, seance.date):
        reactivated = old not in BLOCKING_STATUSES and status in BLOCKING_STATUSES
        if reactivated and seance.trainer_id is not None:
            _ensure_no_conflict(
                seance.trainer_id,
                seance.date,
                seance.start_time,
                seance.end_time,
                exclude_id=seance.id,
            )
        seance.status = status
        audit(seance, "status_change", f"status:{old}->{status}", actor_id)
        commit_seance(seance.id)
    current_app.logger.info(
        "[SEANCE-STATUS] id=%s %s->%s by=%s", seance.id, old, status, actor_id
    )
    if status == IN_PROGRESS:
        side_effects.submit(
            f"attendance-cascade seance={seance.id}", cascade_absent, seance.id
        )
    return seance


# ---------------------------------------------------------------------------
# side effects


def cascade_absent(seance_id: int) -> Optional[attendance.AttendanceMarkResult]:
    """Mark every student of the seance's group ABSENT for its session."""

    seance = db.session.get(Seance, seance_id)
    if seance is None:
        current_app.logger.warning("[CASCADE-SKIP] seance=%s gone", seance_id)
        return None
    group = db.session.get(Group, seance.group_id) if seance.group_id else None
    if group is None:
        current_app.logger.warning(
            "[CASCADE-SKIP] seance=%s group=%s not found", seance_id, seance.group_id
        )
        return None
    student_ids = group.student_ids
    if not student_ids:
        return None
    request = attendance.AttendanceMarkRequest(
        training_id=seance.training_id,
        session_id=seance.session_id,
        session_date=seance.date,
        records=[
            attendance.AttendanceRecord(student_id=sid, status=ABSENT)
            for sid in student_ids
        ],
    )
    return attendance.mark_attendance(request)


def notify_trainer(seance_id: int, category: str) -> None:
    seance = db.session.get(Seance, seance_id)
    if seance is None or seance.trainer_id is None:
        return
    label = seance.title or "Seance"
    when = (
        f"{time_utils.fmt_dt(seance.date)} "
        f"{time_utils.fmt_time(seance.start_time)}-{time_utils.fmt_time(seance.end_time)}"
    )
    if category == SEANCE_ASSIGNED:
        title = "New seance assigned"
        message = f'You have been assigned to "{label}" on {when}.'
    else:
        title = "Seance updated"
        message = f'"{label}" has been updated: {when}.'
    notifications.notify_user(
        seance.trainer_id, title, message, DASHBOARD_LINK, category
    )


# ---------------------------------------------------------------------------
# serialization


def _safe_get(model, ident):
    if ident is None:
        return None
    try:
        return db.session.get(model, ident)
    except SQLAlchemyError:
        current_app.logger.warning(
            "[ENRICH-FAIL] %s id=%s", model.__name__, ident, exc_info=True
        )
        return None


def serialize_seance(seance: Seance) -> dict:
    data = {
        "id": seance.id,
        "training_id": seance.training_id,
        "session_id": seance.session_id,
        "group_id": seance.group_id,
        "trainer_id": seance.trainer_id,
        "date": seance.date.isoformat(),
        "start_time": time_utils.fmt_time(seance.start_time),
        "end_time": time_utils.fmt_time(seance.end_time),
        "status": seance.status,
        "level_number": seance.level_number,
        "session_number": seance.session_number,
        "title": seance.title,
        "version": seance.version,
        "created_at": time_utils.iso_or_none(seance.created_at),
        "updated_at": time_utils.iso_or_none(seance.updated_at),
    }
    training = _safe_get(Training, seance.training_id)
    if training is not None:
        data["training_title"] = training.title
    group = _safe_get(Group, seance.group_id)
    if group is not None:
        data["group_name"] = group.name
    trainer = _safe_get(User, seance.trainer_id)
    if trainer is not None:
        data["trainer_name"] = display_name(trainer)
    return data
