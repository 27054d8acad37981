from ..extensions import db
from .enums import role_enum
from .types import BigIntPK, utcnow


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(BigIntPK, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    # Legacy full name field (kept for backward compatibility)
    name = db.Column(db.String(120))
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)
    role = db.Column(role_enum, nullable=False, default="student", server_default="student")
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    reported_items = db.relationship(
        "Item",
        back_populates="reporter",
        foreign_keys="Item.reporter_user_id",
        lazy=True,
    )
    notifications = db.relationship(
        "Notification",
        back_populates="user",
        foreign_keys="Notification.user_id",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        if full:
            return full
        return (self.email or "").split("@")[0] or f"user-{self.id}"

    @property
    def is_admin(self) -> bool:
        return str(self.role or "").lower() == "admin"
