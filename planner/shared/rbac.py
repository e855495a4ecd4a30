from functools import wraps

from flask import jsonify, session

from ..app import db
from ..models import User
from .acl import can_issue_certificates, can_plan, can_run_seances


def _current_user():
    user_id = session.get("user_id")
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def _unauthorized():
    return jsonify({"ok": False, "error": "Authentication required"}), 401


def _forbidden():
    return jsonify({"ok": False, "error": "Forbidden"}), 403


def _guard(predicate):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = _current_user()
            if not user:
                return _unauthorized()
            if predicate is not None and not predicate(user):
                return _forbidden()
            return fn(*args, **kwargs, current_user=user)

        return wrapper

    return decorator


login_required = _guard(None)
planner_required = _guard(can_plan)
seance_runner_required = _guard(can_run_seances)
certificate_issuer_required = _guard(can_issue_certificates)
