from __future__ import annotations

from ..extensions import db
from omni.time_utils import to_iso_date, to_utc_z


class WarrantyRegistration(db.Model):
    """
    A dealer-submitted warranty registration for one vehicle.

    LIFECYCLE:
        PendingReview -> Approved
        PendingReview -> Declined

    Approved and Declined are terminal. A re-review is a new registration,
    never a mutation of a terminal one (enforced by warranty_store.update_review).

    IMMUTABLE AFTER CREATE: id, purchase_date, period_years, created_at.
    SET EXACTLY ONCE: reviewed_at, reviewer_user_id, reviewer_name.

    Time-based status (Active / ExpiringSoon / Expired) is never stored; it is
    derived on read by services.warranty_status.
    """
    __tablename__ = "warranty_registrations"
    __table_args__ = (
        db.CheckConstraint("period_years IN (1, 2, 3)", name="ck_warranty_period_years"),
        db.CheckConstraint(
            "review_status IN ('PendingReview', 'Approved', 'Declined')",
            name="ck_warranty_review_status",
        ),
        db.Index("ix_warranty_registrations_vin_status", "vin", "review_status"),
        db.Index("ix_warranty_registrations_created", "created_at"),
    )

    id = db.Column(db.String(16), primary_key=True)

    # Customer (email stored lowercase; primary customer lookup key)
    customer_email = db.Column(db.String(255), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    # Vehicle; model name denormalized so catalog edits never change history
    vehicle_model_id = db.Column(db.String(64), nullable=True)
    vehicle_model_name = db.Column(db.String(255), nullable=False)
    vin = db.Column(db.String(20), nullable=False, index=True)  # stored uppercase

    # Coverage window
    purchase_date = db.Column(db.Date, nullable=False)
    period_years = db.Column(db.Integer, nullable=False)

    # Submitting dealer
    dealer_id = db.Column(db.Integer, db.ForeignKey("dealers.id"), nullable=True, index=True)
    dealer_name = db.Column(db.String(255), nullable=False, index=True)
    submitted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Opaque references to externally stored documents
    invoice_ref = db.Column(db.String(1024), nullable=True)
    signature_ref = db.Column(db.String(1024), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Review workflow
    review_status = db.Column(db.String(16), nullable=False, default="PendingReview", index=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewer_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reviewer_name = db.Column(db.String(255), nullable=True)
    review_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    dealer = db.relationship("Dealer", backref=db.backref("warranty_registrations", lazy=True))

    def __repr__(self) -> str:
        return f"<WarrantyRegistration id={self.id} vin={self.vin!r} status={self.review_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "vehicle_model_id": self.vehicle_model_id,
            "vehicle_model_name": self.vehicle_model_name,
            "vin": self.vin,
            "purchase_date": to_iso_date(self.purchase_date),
            "period_years": self.period_years,
            "dealer_id": self.dealer_id,
            "dealer_name": self.dealer_name,
            "submitted_by_user_id": self.submitted_by_user_id,
            "invoice_ref": self.invoice_ref,
            "signature_ref": self.signature_ref,
            "notes": self.notes,
            "review_status": self.review_status,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "reviewer_user_id": self.reviewer_user_id,
            "reviewer_name": self.reviewer_name,
            "review_notes": self.review_notes,
            "created_at": to_utc_z(self.created_at),
        }
