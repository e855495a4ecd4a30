from __future__ import annotations

from typing import Any

from .constants import ADMIN, MANAGER, TRAINER


def is_admin(user: Any) -> bool:
    return bool(user and user.has_role(ADMIN))


def is_manager(user: Any) -> bool:
    return bool(user and user.has_role(MANAGER))


def is_trainer(user: Any) -> bool:
    return bool(user and user.has_role(TRAINER))


def can_plan(user: Any) -> bool:
    """Admins and managers create, move and delete seances."""
    return is_admin(user) or is_manager(user)


def can_run_seances(user: Any) -> bool:
    return can_plan(user) or is_trainer(user)


def can_issue_certificates(user: Any) -> bool:
    return can_plan(user)
