from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...schemas.notification import NotificationSchema
from ...security import require_user
from ..sse import sse_response
from . import service
from .bus import user_channel

bp = Blueprint("notifications", __name__, url_prefix="/notifications")

_many = NotificationSchema(many=True)
_one = NotificationSchema()


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@bp.get("")
def list_notifications():
    uid = require_user()
    page = _int_arg("page", 1)
    limit = _int_arg("limit", 20)
    unread_only = request.args.get("unreadOnly") in ("1", "true", "yes")
    rows, total = service.list_for_user(uid, page=page, limit=limit, unread_only=unread_only)
    return jsonify({
        "notifications": _many.dump(rows),
        "pagination": {"page": max(1, page), "limit": max(1, min(100, limit)), "total": total},
    })


@bp.get("/unread-count")
def unread_count():
    uid = require_user()
    return jsonify({"unreadCount": service.unread_count(uid)})


@bp.patch("/<int:notif_id>/read")
def mark_read(notif_id: int):
    uid = require_user()
    n = service.mark_read(notif_id, uid)
    return jsonify({"notification": _one.dump(n)})


@bp.put("/mark-all-read")
def mark_all_read():
    uid = require_user()
    return jsonify({"updated": service.mark_all_read(uid)})


@bp.delete("/<int:notif_id>")
def delete_notification(notif_id: int):
    uid = require_user()
    service.delete(notif_id, uid)
    return "", 204


@bp.get("/stream")
def stream_notifications():
    """Server-Sent Events stream of the caller's notifications."""
    uid = require_user()
    return sse_response(user_channel(uid), event_name="notification")
