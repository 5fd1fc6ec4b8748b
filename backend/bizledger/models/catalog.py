from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z


class Service(db.Model):
    """
    Catalog item (service or product) sold by a business unit.

    base_price_cents and tax_rate_bps pre-populate a cart line; the line
    may override both at checkout.
    """
    __tablename__ = "services"
    __table_args__ = (
        db.UniqueConstraint("business_id", "sku", name="uq_services_business_sku"),
        db.CheckConstraint("base_price_cents >= 0", name="ck_services_price_non_negative"),
        db.CheckConstraint("tax_rate_bps >= 0 AND tax_rate_bps <= 10000", name="ck_services_tax_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_units.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    base_price_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (750 = 7.5%)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("BusinessUnit", backref=db.backref("services", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "base_price_cents": self.base_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
