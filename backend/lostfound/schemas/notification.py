"""Notification serialization and the per-kind payload shapes.

Each notification kind carries its own payload schema; ``validate_payload``
rejects a payload that does not fit its kind before anything is written.
"""
from marshmallow import Schema, fields, validate

from ..models.enums import NOTIFICATION_TYPES


class MatchFoundPayloadSchema(Schema):
    matched_item_id = fields.Int(required=True, data_key="matchedItemId")
    original_item_id = fields.Int(required=True, data_key="originalItemId")
    score = fields.Float(required=True, validate=validate.Range(min=0.0, max=1.0))
    match_type = fields.Str(
        data_key="matchType", load_default="auto", validate=validate.OneOf(["auto", "manual"])
    )


class ChatStartedPayloadSchema(Schema):
    conversation_id = fields.Str(required=True, data_key="conversationId")
    item_id = fields.Int(required=True, data_key="itemId")


class MessageReceivedPayloadSchema(Schema):
    conversation_id = fields.Str(required=True, data_key="conversationId")
    message_id = fields.Str(required=True, data_key="messageId")


class ItemResolvedPayloadSchema(Schema):
    conversation_id = fields.Str(required=True, data_key="conversationId")
    item_returned = fields.Bool(data_key="itemReturned", load_default=False)


class ItemClaimedPayloadSchema(Schema):
    item_id = fields.Int(required=True, data_key="itemId")
    claimant_user_id = fields.Int(required=True, data_key="claimantUserId")


class AdminAnnouncementPayloadSchema(Schema):
    link = fields.Str(load_default=None, allow_none=True)


PAYLOAD_SCHEMAS: dict[str, type[Schema]] = {
    "match_found": MatchFoundPayloadSchema,
    "chat_started": ChatStartedPayloadSchema,
    "message_received": MessageReceivedPayloadSchema,
    "item_resolved": ItemResolvedPayloadSchema,
    "item_claimed": ItemClaimedPayloadSchema,
    "admin_announcement": AdminAnnouncementPayloadSchema,
}
if set(PAYLOAD_SCHEMAS) != set(NOTIFICATION_TYPES):
    raise RuntimeError("Every notification kind needs a payload schema")


def validate_payload(kind: str, payload: dict | None) -> dict:
    """Validate ``payload`` for ``kind`` and return it in stored (camelCase) form.

    Raises ValueError for an unknown kind and marshmallow.ValidationError for
    a payload of the wrong shape.
    """
    schema_cls = PAYLOAD_SCHEMAS.get(kind)
    if schema_cls is None:
        raise ValueError(f"Unknown notification kind: {kind}")
    schema = schema_cls()
    return schema.dump(schema.load(payload or {}))


class NotificationSchema(Schema):
    id = fields.Int(dump_only=True)
    user_id = fields.Int(data_key="userId")
    type = fields.Str()
    title = fields.Str()
    body = fields.Str(data_key="message")
    item_id = fields.Int(data_key="itemId", allow_none=True)
    sender_user_id = fields.Int(data_key="senderId", allow_none=True)
    payload = fields.Dict(allow_none=True)
    is_read = fields.Bool(data_key="isRead")
    created_at = fields.DateTime(data_key="createdAt")
    read_at = fields.DateTime(data_key="readAt", allow_none=True)
