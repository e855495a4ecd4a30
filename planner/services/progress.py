"""Completion state derived from curriculum and attendance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..models import Enrollment, Training
from ..shared import time as time_utils
from ..shared.constants import ABSENT, ATTENDED_STATUSES


@dataclass
class ProgressSnapshot:
    total_sessions: int = 0
    attended_count: int = 0
    missed_count: int = 0
    levels_validated: list[int] = field(default_factory=list)
    completed: bool = False
    completed_at: Optional[datetime] = None
    eligible_for_certificate: bool = False
    certificate_issued_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "total_sessions": self.total_sessions,
            "attended_count": self.attended_count,
            "missed_count": self.missed_count,
            "levels_validated": list(self.levels_validated),
            "completed": self.completed,
            "completed_at": time_utils.iso_or_none(self.completed_at),
            "eligible_for_certificate": self.eligible_for_certificate,
            "certificate_issued_at": time_utils.iso_or_none(
                self.certificate_issued_at
            ),
        }


def compute_progress(enrollment: Enrollment, training: Training) -> ProgressSnapshot:
    """Count attended/missed sessions and validate levels.

    A session counts as attended when its entry is PRESENT or EXCUSED. A level
    is validated when every one of its sessions is attended; an empty level is
    never validated. The enrollment is complete once every level is validated.
    """

    statuses = {entry.session_id: entry.status for entry in enrollment.entries}
    snap = ProgressSnapshot(certificate_issued_at=enrollment.certificate_issued_at)

    all_levels_ok = True
    for level in training.levels:
        sessions = list(level.sessions)
        attended_here = 0
        for session in sessions:
            status = statuses.get(session.id)
            if status in ATTENDED_STATUSES:
                attended_here += 1
            elif status == ABSENT:
                snap.missed_count += 1
        snap.total_sessions += len(sessions)
        snap.attended_count += attended_here
        if sessions and attended_here == len(sessions):
            snap.levels_validated.append(level.level_number)
        else:
            all_levels_ok = False

    snap.completed = snap.total_sessions > 0 and all_levels_ok
    if snap.completed:
        snap.completed_at = enrollment.completed_at or time_utils.now_utc()
    snap.eligible_for_certificate = snap.completed
    return snap


def apply_snapshot(enrollment: Enrollment, snap: ProgressSnapshot) -> None:
    enrollment.total_sessions = snap.total_sessions
    enrollment.attended_count = snap.attended_count
    enrollment.missed_count = snap.missed_count
    enrollment.levels_validated = list(snap.levels_validated)
    enrollment.completed = snap.completed
    enrollment.completed_at = snap.completed_at
    enrollment.eligible_for_certificate = snap.eligible_for_certificate


def refresh_progress(enrollment: Enrollment) -> ProgressSnapshot:
    """Recompute and store the snapshot on ``enrollment`` (caller commits)."""
    training = enrollment.training
    snap = compute_progress(enrollment, training)
    apply_snapshot(enrollment, snap)
    return snap


def snapshot_of(enrollment: Enrollment) -> ProgressSnapshot:
    return ProgressSnapshot(
        total_sessions=enrollment.total_sessions or 0,
        attended_count=enrollment.attended_count or 0,
        missed_count=enrollment.missed_count or 0,
        levels_validated=list(enrollment.levels_validated or []),
        completed=bool(enrollment.completed),
        completed_at=enrollment.completed_at,
        eligible_for_certificate=bool(enrollment.eligible_for_certificate),
        certificate_issued_at=enrollment.certificate_issued_at,
    )
