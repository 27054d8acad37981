from sqlalchemy import Index, UniqueConstraint
from ..extensions import db
from .enums import conversation_status_enum, conversation_origin_enum, participant_role_enum
from .types import BigIntPK, utcnow


class Conversation(db.Model):
    __tablename__ = "conversations"

    id = db.Column(BigIntPK, primary_key=True)
    # Public opaque identifier (URL-safe); the integer id never leaves the server
    conversation_id = db.Column(db.String(64), nullable=False, unique=True)
    item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    matched_item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="SET NULL"))
    origin = db.Column(conversation_origin_enum, nullable=False, default="direct", server_default="direct")
    status = db.Column(conversation_status_enum, nullable=False, default="active", server_default="active")
    last_activity_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    total_messages = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    unread_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    # Resolution details
    resolved_at = db.Column(db.DateTime(timezone=True))
    resolved_by_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    resolution_notes = db.Column(db.Text)
    item_returned = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    item = db.relationship("Item", foreign_keys=[item_id], back_populates="conversations")
    matched_item = db.relationship("Item", foreign_keys=[matched_item_id], back_populates="matched_conversations")
    participants = db.relationship(
        "ConversationParticipant",
        back_populates="conversation",
        order_by="ConversationParticipant.position",
        cascade="all, delete-orphan",
    )
    messages = db.relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_conversations_item", "item_id"),
        Index("idx_conversations_status_activity", "status", "last_activity_at"),
    )

    def participant_for(self, user_id: int | None) -> "ConversationParticipant | None":
        if user_id is None:
            return None
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def other_participant(self, user_id: int) -> "ConversationParticipant | None":
        for p in self.participants:
            if p.user_id != user_id:
                return p
        return None


class ConversationParticipant(db.Model):
    __tablename__ = "conversation_participants"

    id = db.Column(BigIntPK, primary_key=True)
    conversation_pk = db.Column(db.BigInteger, db.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    role = db.Column(participant_role_enum, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    last_seen_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = db.relationship("Conversation", back_populates="participants")
    user = db.relationship("User")

    __table_args__ = (
        UniqueConstraint("conversation_pk", "user_id", name="uq_participants_conversation_user"),
        Index("idx_participants_user", "user_id"),
    )
