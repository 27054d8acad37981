from marshmallow import Schema, fields


class ParticipantSchema(Schema):
    user_id = fields.Int(data_key="userId")
    display_name = fields.Str(data_key="displayName")
    role = fields.Str()
    joined_at = fields.DateTime(data_key="joinedAt")
    is_active = fields.Bool(data_key="isActive")
    last_seen_at = fields.DateTime(data_key="lastSeenAt")


class ReadReceiptSchema(Schema):
    user_id = fields.Int(data_key="userId")
    read_at = fields.DateTime(data_key="readAt")


class MessageSchema(Schema):
    message_id = fields.Str(data_key="messageId")
    conversation_id = fields.Str(data_key="conversationId")
    sender_user_id = fields.Int(data_key="senderId", allow_none=True)
    sender_display_name = fields.Str(data_key="senderDisplayName")
    text = fields.Str()
    type = fields.Str()
    status = fields.Str()
    created_at = fields.DateTime(data_key="timestamp")
    is_edited = fields.Bool(data_key="isEdited")
    edited_at = fields.DateTime(data_key="editedAt", allow_none=True)
    reply_to_message_id = fields.Str(data_key="replyTo", allow_none=True)
    read_by = fields.List(fields.Nested(ReadReceiptSchema), data_key="readBy")


class ConversationSchema(Schema):
    conversation_id = fields.Str(data_key="conversationId")
    item_id = fields.Int(data_key="itemId")
    matched_item_id = fields.Int(data_key="matchedItemId", allow_none=True)
    origin = fields.Str()
    status = fields.Str()
    last_activity_at = fields.DateTime(data_key="lastActivityAt")
    total_messages = fields.Int(data_key="totalMessages")
    unread_count = fields.Int(data_key="unreadCount")
    participants = fields.List(fields.Nested(ParticipantSchema))
    resolution = fields.Method("get_resolution")

    def get_resolution(self, obj):
        if obj.status != "resolved":
            return None
        return {
            "resolvedAt": obj.resolved_at.isoformat() if obj.resolved_at else None,
            "resolvedBy": obj.resolved_by_user_id,
            "notes": obj.resolution_notes,
            "itemReturned": bool(obj.item_returned),
        }


class StartConversationSchema(Schema):
    item_id = fields.Int(required=True, data_key="itemId")


class SendMessageSchema(Schema):
    text = fields.Str(required=True)
    reply_to = fields.Str(data_key="replyTo", load_default=None, allow_none=True)


class ResolveConversationSchema(Schema):
    notes = fields.Str(load_default=None, allow_none=True)
    item_returned = fields.Bool(data_key="itemReturned", load_default=False)
