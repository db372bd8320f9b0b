from __future__ import annotations

from ..extensions import db
from omni.time_utils import to_utc_z


class Dealer(db.Model):
    """
    Dealer profile attached to a dealer-role user.

    business_name is what customers see on their warranty and what
    dealer-scoped warranty listings filter on.
    """
    __tablename__ = "dealers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    business_name = db.Column(db.String(255), nullable=False, unique=True)
    city = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("dealer_profile", uselist=False, lazy=True))

    def __repr__(self) -> str:
        return f"<Dealer id={self.id} business_name={self.business_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_name": self.business_name,
            "city": self.city,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
