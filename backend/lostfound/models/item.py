from datetime import date

from sqlalchemy import Index
from ..extensions import db
from .enums import item_type_enum, item_category_enum, item_status_enum
from .types import BigIntPK, utcnow


class Item(db.Model):
    """A lost or found report.

    Owned by the item CRUD collaborator. The matching core only writes
    ``match_score`` and ``match_links``; housekeeping writes ``is_public`` and
    ``admin_notes``.
    """

    __tablename__ = "items"

    id = db.Column(BigIntPK, primary_key=True)
    reporter_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="SET NULL"))
    type = db.Column(item_type_enum, nullable=False)
    category = db.Column(item_category_enum, nullable=False, default="other", server_default="other")
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    location = db.Column(db.String(200))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    occurred_on = db.Column(db.Date)
    status = db.Column(item_status_enum, nullable=False, default="active", server_default="active")
    match_score = db.Column(db.Float, nullable=False, default=0.0, server_default="0")
    is_public = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    admin_notes = db.Column(db.Text)
    resolution_date = db.Column(db.DateTime(timezone=True))
    resolution_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    reporter = db.relationship("User", back_populates="reported_items", foreign_keys=[reporter_user_id])
    match_links = db.relationship(
        "MatchLink",
        back_populates="item",
        foreign_keys="MatchLink.item_id",
        order_by="MatchLink.matched_at",
        cascade="all, delete-orphan",
    )
    inbound_match_links = db.relationship(
        "MatchLink",
        back_populates="matched_item",
        foreign_keys="MatchLink.matched_item_id",
        cascade="all, delete-orphan",
    )
    conversations = db.relationship(
        "Conversation",
        back_populates="item",
        foreign_keys="Conversation.item_id",
        cascade="all, delete-orphan",
    )
    # Conversations where this item is the non-anchor side of a match; detached on delete
    matched_conversations = db.relationship(
        "Conversation",
        back_populates="matched_item",
        foreign_keys="Conversation.matched_item_id",
    )
    notifications = db.relationship("Notification", back_populates="item", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_items_type_status", "type", "status"),
        Index("idx_items_category_type_status", "category", "type", "status"),
        Index("idx_items_occurred_on", "occurred_on"),
        Index("idx_items_reporter", "reporter_user_id"),
    )

    @property
    def opposite_type(self) -> str:
        return "found" if self.type == "lost" else "lost"

    def incident_date(self) -> date | None:
        """Date used for matching: occurred_on, else the day it was reported."""
        if self.occurred_on:
            return self.occurred_on
        return self.created_at.date() if self.created_at else None
