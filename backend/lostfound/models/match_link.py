from sqlalchemy import CheckConstraint, UniqueConstraint, Index
from ..extensions import db
from .types import BigIntPK, utcnow


class MatchLink(db.Model):
    """Directional scored edge item -> matched item. Always written in pairs."""

    __tablename__ = "match_links"

    id = db.Column(BigIntPK, primary_key=True)
    item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    matched_item_id = db.Column(db.BigInteger, db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    score = db.Column(db.Float, nullable=False, default=0.0)
    matched_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    item = db.relationship("Item", foreign_keys=[item_id], back_populates="match_links")
    matched_item = db.relationship("Item", foreign_keys=[matched_item_id], back_populates="inbound_match_links")

    __table_args__ = (
        UniqueConstraint("item_id", "matched_item_id", name="uq_match_links_pair"),
        CheckConstraint("item_id <> matched_item_id", name="ck_match_links_not_self"),
        Index("idx_match_links_item", "item_id"),
        Index("idx_match_links_matched_item", "matched_item_id"),
    )
