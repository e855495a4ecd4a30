"""Trainer-initiated report/postpone workflow."""

from __future__ import annotations

from datetime import date
from typing import Optional

from flask import current_app

from ..app import db
from ..models import Seance, SessionReport, User
from ..shared import time as time_utils
from ..shared.constants import (
    ADMIN,
    DASHBOARD_LINK,
    MANAGER,
    REPORT_PENDING,
    REPORTED,
    SEANCE_REPORTED,
)
from ..shared.errors import InvalidRequestError, NotFoundError
from ..shared.dispatch import side_effects
from ..shared.names import display_name
from . import notifications
from .seances import audit, commit_seance


def report_seance(
    seance_id: int,
    trainer_id: int,
    reason: str,
    suggested_date: Optional[date] = None,
) -> SessionReport:
    seance = db.session.get(Seance, seance_id)
    if not seance:
        raise NotFoundError("Seance not found.", seance_id=seance_id)
    if seance.trainer_id != trainer_id:
        raise InvalidRequestError(
            "Only the assigned trainer can report this seance.",
            seance_id=seance_id,
            trainer_id=trainer_id,
        )
    reason = (reason or "").strip()
    if not reason:
        raise InvalidRequestError("A reason is required.", seance_id=seance_id)
    if suggested_date is not None:
        today = time_utils.org_today(time_utils.org_zone())
        if suggested_date < today:
            raise InvalidRequestError(
                "Suggested date cannot be in the past.",
                suggested_date=suggested_date,
                today=today,
            )

    old = seance.status
    seance.status = REPORTED
    report = SessionReport(
        seance_id=seance.id,
        trainer_id=trainer_id,
        reason=reason,
        suggested_date=suggested_date,
        report_status=REPORT_PENDING,
    )
    db.session.add(report)
    audit(seance, "seance_reported", f"status:{old}->{REPORTED}", trainer_id)
    commit_seance(seance.id)
    current_app.logger.info(
        "[SEANCE-REPORT] seance=%s trainer=%s report=%s suggested=%s",
        seance.id,
        trainer_id,
        report.id,
        suggested_date,
    )
    side_effects.submit(
        f"notify-report report={report.id}", notify_staff_of_report, report.id
    )
    return report


def list_reports(seance_id: int) -> list[SessionReport]:
    if not db.session.get(Seance, seance_id):
        raise NotFoundError("Seance not found.", seance_id=seance_id)
    return (
        SessionReport.query.filter_by(seance_id=seance_id)
        .order_by(SessionReport.created_at, SessionReport.id)
        .all()
    )


def notify_staff_of_report(report_id: int) -> None:
    report = db.session.get(SessionReport, report_id)
    if report is None:
        return
    seance = report.seance
    trainer = db.session.get(User, report.trainer_id) if report.trainer_id else None
    message = '{} reported the seance "{}": {}'.format(
        display_name(trainer, "A trainer"),
        (seance.title if seance else None) or "Seance",
        report.reason,
    )
    notifications.notify_roles(
        (ADMIN, MANAGER),
        "Seance reported",
        message,
        DASHBOARD_LINK,
        SEANCE_REPORTED,
    )


def serialize_report(report: SessionReport) -> dict:
    data = {
        "id": report.id,
        "seance_id": report.seance_id,
        "trainer_id": report.trainer_id,
        "reason": report.reason,
        "suggested_date": time_utils.iso_or_none(report.suggested_date),
        "report_status": report.report_status,
        "created_at": time_utils.iso_or_none(report.created_at),
    }
    trainer = db.session.get(User, report.trainer_id) if report.trainer_id else None
    if trainer is not None:
        data["trainer_name"] = display_name(trainer)
    return data
