from __future__ import annotations

from flask import Blueprint, jsonify, request
from marshmallow import Schema, fields

from ...schemas.conversation import (
    ConversationSchema,
    MessageSchema,
    ResolveConversationSchema,
    SendMessageSchema,
    StartConversationSchema,
)
from ...security import require_user
from ..notifications.bus import conversation_channel
from ..sse import sse_response
from .service import get_conversation_service

bp = Blueprint("conversations", __name__, url_prefix="/conversations")


class _TypingSchema(Schema):
    is_typing = fields.Bool(data_key="isTyping", load_default=True)


class _PresenceSchema(Schema):
    status = fields.Str(load_default="online")


def _body() -> dict:
    return request.get_json(silent=True) or {}


@bp.get("")
def list_conversations():
    uid = require_user()
    convs = get_conversation_service().list_for_user(uid)
    return jsonify({"conversations": ConversationSchema(many=True).dump(convs)})


@bp.post("/start")
def start_conversation():
    uid = require_user()
    data = StartConversationSchema().load(_body())
    conv, created = get_conversation_service().start_direct(data["item_id"], uid)
    return jsonify({"conversation": ConversationSchema().dump(conv), "created": created}), (201 if created else 200)


@bp.get("/<cid>")
def conversation_history(cid: str):
    uid = require_user()
    conv, messages = get_conversation_service().fetch_history(cid, uid)
    return jsonify({
        "conversation": ConversationSchema().dump(conv),
        "messages": MessageSchema(many=True).dump(messages),
    })


@bp.post("/<cid>/messages")
def send_message(cid: str):
    uid = require_user()
    data = SendMessageSchema().load(_body())
    msg = get_conversation_service().send_message(cid, uid, data["text"], reply_to=data["reply_to"])
    return jsonify({"message": MessageSchema().dump(msg)}), 201


@bp.patch("/<cid>/messages/<mid>")
def edit_message(cid: str, mid: str):
    uid = require_user()
    data = SendMessageSchema(only=("text",)).load(_body())
    msg = get_conversation_service().edit_message(cid, mid, uid, data["text"])
    return jsonify({"message": MessageSchema().dump(msg)})


@bp.delete("/<cid>/messages/<mid>")
def delete_message(cid: str, mid: str):
    uid = require_user()
    get_conversation_service().delete_message(cid, mid, uid)
    return "", 204


@bp.put("/<cid>/read")
def mark_read(cid: str):
    uid = require_user()
    return jsonify({"marked": get_conversation_service().mark_read(cid, uid)})


@bp.put("/<cid>/resolve")
def resolve(cid: str):
    uid = require_user()
    data = ResolveConversationSchema().load(_body())
    conv = get_conversation_service().resolve(cid, uid, notes=data["notes"], item_returned=data["item_returned"])
    return jsonify({"conversation": ConversationSchema().dump(conv)})


@bp.put("/<cid>/close")
def close(cid: str):
    uid = require_user()
    conv = get_conversation_service().close(cid, uid)
    return jsonify({"conversation": ConversationSchema().dump(conv)})


@bp.post("/<cid>/typing")
def typing(cid: str):
    uid = require_user()
    data = _TypingSchema().load(_body())
    get_conversation_service().publish_typing(cid, uid, data["is_typing"])
    return "", 204


@bp.post("/<cid>/presence")
def presence(cid: str):
    uid = require_user()
    data = _PresenceSchema().load(_body())
    get_conversation_service().publish_presence(cid, uid, data["status"])
    return "", 204


@bp.get("/<cid>/stream")
def stream(cid: str):
    """Live chat events (new messages, typing, presence, status) for participants."""
    uid = require_user()
    get_conversation_service().publish_presence(cid, uid, "online")
    return sse_response(conversation_channel(cid))
