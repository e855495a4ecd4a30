"""In-app notification inbox."""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import or_

from ..app import db
from ..models import Notification, User
from ..shared.constants import (
    DASHBOARD_LINK,
    GENERAL,
    NOTIFICATION_CATEGORIES,
    ROLE_ATTRS,
    USER_ACTIVE,
)
from ..shared.errors import InvalidRequestError, NotFoundError
from ..shared.time import iso_or_none


def notify_user(
    user_id: int,
    title: str,
    message: str,
    link: str | None = DASHBOARD_LINK,
    category: str = GENERAL,
) -> Notification:
    if category not in NOTIFICATION_CATEGORIES:
        raise InvalidRequestError(
            f"Unknown notification category {category!r}.", category=category
        )
    note = Notification(
        user_id=user_id,
        title=title,
        message=message,
        link=link,
        category=category,
    )
    db.session.add(note)
    current_app.logger.info(
        "[NOTIFY] user=%s category=%s title=\"%s\"", user_id, category, title
    )
    return note


def active_users_with_role(*roles: str) -> list[User]:
    """Active users holding any of ``roles``, each listed once."""

    flags = []
    for role in roles:
        attr = ROLE_ATTRS.get(role)
        if not attr:
            raise InvalidRequestError(f"Unknown role {role!r}.", role=role)
        flags.append(getattr(User, attr).is_(True))
    if not flags:
        return []
    return (
        User.query.filter(User.status == USER_ACTIVE, or_(*flags))
        .order_by(User.id)
        .all()
    )


def notify_roles(
    roles: Iterable[str],
    title: str,
    message: str,
    link: str | None = DASHBOARD_LINK,
    category: str = GENERAL,
) -> list[Notification]:
    return [
        notify_user(user.id, title, message, link, category)
        for user in active_users_with_role(*roles)
    ]


def serialize_notification(note: Notification) -> dict:
    return {
        "id": note.id,
        "title": note.title,
        "message": note.message,
        "link": note.link,
        "category": note.category,
        "read": bool(note.read),
        "created_at": iso_or_none(note.created_at),
    }


def list_for_user(user_id: int, unread_only: bool = False) -> list[Notification]:
    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(user_id: int) -> int:
    return Notification.query.filter_by(user_id=user_id, read=False).count()


def mark_read(user_id: int, notification_id: int) -> Notification:
    note = db.session.get(Notification, notification_id)
    if not note or note.user_id != user_id:
        raise NotFoundError(
            "Notification not found.", notification_id=notification_id
        )
    note.read = True
    db.session.commit()
    return note


def mark_all_read(user_id: int) -> int:
    updated = Notification.query.filter_by(user_id=user_id, read=False).update(
        {"read": True}, synchronize_session=False
    )
    db.session.commit()
    return updated
