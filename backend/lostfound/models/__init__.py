# Import every model so relationship() string targets resolve and metadata is complete.
from .user import User
from .item import Item
from .match_link import MatchLink
from .conversation import Conversation, ConversationParticipant
from .message import Message, MessageRead
from .notification import Notification

__all__ = [
    "User",
    "Item",
    "MatchLink",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageRead",
    "Notification",
]
