from sqlalchemy import Enum

# Portable enum columns. On PostgreSQL these map to named ENUM types managed by migrations.

ROLES = ("student", "staff", "admin")
ITEM_TYPES = ("lost", "found")
ITEM_CATEGORIES = (
    "electronics",
    "clothing",
    "accessories",
    "documents",
    "books",
    "keys",
    "wallet",
    "id_card",
    "phone",
    "laptop",
    "bag",
    "jewelry",
    "other",
)
ITEM_STATUSES = ("active", "claimed", "resolved", "pending_approval")
CONVERSATION_STATUSES = ("active", "resolved", "closed", "archived")
CONVERSATION_ORIGINS = ("match", "direct")
PARTICIPANT_ROLES = ("owner", "finder", "claimer")
MESSAGE_TYPES = ("text", "system", "image", "file")
MESSAGE_STATUSES = ("sent", "delivered", "read")
NOTIFICATION_TYPES = (
    "match_found",
    "message_received",
    "item_claimed",
    "item_resolved",
    "admin_announcement",
    "chat_started",
)

role_enum = Enum(*ROLES, name="role_enum")
item_type_enum = Enum(*ITEM_TYPES, name="item_type_enum")
item_category_enum = Enum(*ITEM_CATEGORIES, name="item_category_enum")
item_status_enum = Enum(*ITEM_STATUSES, name="item_status_enum")
conversation_status_enum = Enum(*CONVERSATION_STATUSES, name="conversation_status_enum")
conversation_origin_enum = Enum(*CONVERSATION_ORIGINS, name="conversation_origin_enum")
participant_role_enum = Enum(*PARTICIPANT_ROLES, name="participant_role_enum")
message_type_enum = Enum(*MESSAGE_TYPES, name="message_type_enum")
message_status_enum = Enum(*MESSAGE_STATUSES, name="message_status_enum")
notification_type_enum = Enum(*NOTIFICATION_TYPES, name="notification_type_enum")
