from flask import Blueprint, jsonify

from ..services import notifications as notification_service
from ..shared.rbac import login_required

bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@bp.get("")
@login_required
def inbox(current_user):
    notes = notification_service.list_for_user(current_user.id)
    return jsonify([notification_service.serialize_notification(n) for n in notes])


@bp.get("/unread")
@login_required
def unread(current_user):
    notes = notification_service.list_for_user(current_user.id, unread_only=True)
    return jsonify([notification_service.serialize_notification(n) for n in notes])


@bp.get("/unread/count")
@login_required
def unread_count(current_user):
    return jsonify({"count": notification_service.unread_count(current_user.id)})


@bp.patch("/<int:notification_id>/read")
@login_required
def mark_read(notification_id: int, current_user):
    note = notification_service.mark_read(current_user.id, notification_id)
    return jsonify(notification_service.serialize_notification(note))


@bp.post("/read-all")
@login_required
def mark_all_read(current_user):
    updated = notification_service.mark_all_read(current_user.id)
    return jsonify({"ok": True, "updated": updated})
