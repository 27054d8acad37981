"""Notification emission and the recipient-owned read/delete lifecycle.

``emit`` commits the current session, so callers flush their own primary
writes first and only then emit. Matching and messaging call ``try_emit``:
a notification that cannot be written is logged, never raised.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ...errors import CoreError, Forbidden, NotFound, TransientStorageFailure
from ...extensions import db
from ...models.notification import Notification
from ...models.types import utcnow
from ...schemas.notification import NotificationSchema, validate_payload
from .bus import publish, user_channel

logger = logging.getLogger(__name__)


def emit(
    user_id: int,
    kind: str,
    title: str,
    body: str,
    item_id: int | None = None,
    sender_id: int | None = None,
    payload: Dict[str, Any] | None = None,
) -> Notification:
    """Persist one notification atomically, then push it to live subscribers."""
    stored_payload = validate_payload(kind, payload)
    n = Notification(
        user_id=user_id,
        type=kind,
        title=title,
        body=body,
        item_id=item_id,
        sender_user_id=sender_id,
        payload=stored_payload,
    )
    try:
        db.session.add(n)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise TransientStorageFailure("Could not store notification") from exc

    # Push delivery is best-effort; the stored row is what counts
    try:
        publish(user_channel(user_id), {"type": "notification", "notification": NotificationSchema().dump(n)})
    except Exception:
        logger.warning("notification push failed for user %s", user_id, exc_info=True)
    return n


def try_emit(*args: Any, **kwargs: Any) -> Notification | None:
    """``emit`` for side effects: failures are logged and swallowed."""
    try:
        return emit(*args, **kwargs)
    except (CoreError, ValidationError, ValueError):
        logger.warning("best-effort notification dropped", exc_info=True)
        return None


def _owned(notification_id: int, user_id: int) -> Notification:
    n = db.session.get(Notification, notification_id)
    if n is None:
        raise NotFound("Notification not found")
    if n.user_id != user_id:
        raise Forbidden("Not authorized to modify this notification")
    return n


def list_for_user(user_id: int, page: int = 1, limit: int = 20, unread_only: bool = False) -> Tuple[List[Notification], int]:
    page = max(1, page)
    limit = max(1, min(100, limit))
    q = Notification.query.filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    total = q.count()
    rows = (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def unread_count(user_id: int) -> int:
    return Notification.query.filter_by(user_id=user_id, is_read=False).count()


def mark_read(notification_id: int, user_id: int) -> Notification:
    n = _owned(notification_id, user_id)
    if not n.is_read:
        n.is_read = True
        n.read_at = utcnow()
        db.session.commit()
    return n


def mark_all_read(user_id: int) -> int:
    updated = (
        Notification.query.filter_by(user_id=user_id, is_read=False)
        .update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return int(updated or 0)


def delete(notification_id: int, user_id: int) -> None:
    n = _owned(notification_id, user_id)
    db.session.delete(n)
    db.session.commit()
