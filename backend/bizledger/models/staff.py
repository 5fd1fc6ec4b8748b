from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z


class Employee(db.Model):
    """
    Commission-earning employee of a business unit.

    COMMISSION TYPES:
    - percentage: commission_percentage_bps of the sale total (1500 = 15%)
    - fixed: fixed_commission_cents per sale, capped at the sale total
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_business_active", "business_id", "is_active"),
        db.CheckConstraint(
            "commission_percentage_bps >= 0 AND commission_percentage_bps <= 10000",
            name="ck_employees_percentage_range",
        ),
        db.CheckConstraint("fixed_commission_cents >= 0", name="ck_employees_fixed_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_units.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    commission_type = db.Column(db.String(16), nullable=False, default="percentage")
    commission_percentage_bps = db.Column(db.Integer, nullable=False, default=0)
    fixed_commission_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("BusinessUnit", backref=db.backref("employees", lazy=True))

    def __repr__(self) -> str:
        return f"<Employee id={self.id} name={self.name!r} type={self.commission_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "commission_type": self.commission_type,
            "commission_percentage_bps": self.commission_percentage_bps,
            "fixed_commission_cents": self.fixed_commission_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
