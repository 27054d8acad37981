from sqlalchemy import Index, UniqueConstraint
from ..extensions import db
from .enums import message_type_enum, message_status_enum
from .types import BigIntPK, utcnow


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(BigIntPK, primary_key=True)
    message_id = db.Column(db.String(64), nullable=False, unique=True)
    conversation_id = db.Column(
        db.String(64),
        db.ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL for system messages; the display name is denormalized so history survives profile edits
    sender_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    sender_display_name = db.Column(db.String(120), nullable=False)
    text = db.Column(db.Text, nullable=False)
    type = db.Column(message_type_enum, nullable=False, default="text", server_default="text")
    status = db.Column(message_status_enum, nullable=False, default="sent", server_default="sent")
    is_edited = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    edited_at = db.Column(db.DateTime(timezone=True))
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    deleted_at = db.Column(db.DateTime(timezone=True))
    reply_to_message_id = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = db.relationship("Conversation", back_populates="messages")
    read_by = db.relationship("MessageRead", back_populates="message", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
        Index("idx_messages_sender", "sender_user_id"),
    )

    def is_read_by(self, user_id: int) -> bool:
        return any(r.user_id == user_id for r in self.read_by)


class MessageRead(db.Model):
    """Read receipt. At most one per (message, user)."""

    __tablename__ = "message_reads"

    id = db.Column(BigIntPK, primary_key=True)
    message_pk = db.Column(db.BigInteger, db.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    message = db.relationship("Message", back_populates="read_by")

    __table_args__ = (
        UniqueConstraint("message_pk", "user_id", name="uq_message_reads_message_user"),
    )
