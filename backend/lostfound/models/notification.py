from sqlalchemy import Index
from ..extensions import db
from .enums import notification_type_enum
from .types import BigIntPK, JSONType, utcnow


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(BigIntPK, primary_key=True)
    user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(notification_type_enum, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    body = db.Column(db.Text, nullable=False)
    item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="CASCADE"))
    sender_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    # Shape depends on `type`; see schemas.notification.PAYLOAD_SCHEMAS
    payload = db.Column(JSONType)
    is_read = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    read_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="notifications", foreign_keys=[user_id])
    item = db.relationship("Item", back_populates="notifications")

    __table_args__ = (
        Index("idx_notifications_user_created", "user_id", "created_at"),
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )
