from __future__ import annotations

from ..extensions import db
from bizledger.time_utils import to_utc_z


class CommissionTransaction(db.Model):
    """
    Commission-bearing sale event for an employee.

    commission_amount + house_amount == total_amount, both non-negative.
    is_commission_paid/paid_at move once from unpaid to paid and never back.
    """
    __tablename__ = "commission_transactions"
    __table_args__ = (
        db.Index("ix_commission_txns_employee_paid", "employee_id", "is_commission_paid"),
        db.CheckConstraint(
            "commission_amount_cents + house_amount_cents = total_amount_cents",
            name="ck_commission_txns_split_complete",
        ),
        db.CheckConstraint("commission_amount_cents >= 0", name="ck_commission_txns_commission_non_negative"),
        db.CheckConstraint("house_amount_cents >= 0", name="ck_commission_txns_house_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_units.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    commission_amount_cents = db.Column(db.Integer, nullable=False)
    house_amount_cents = db.Column(db.Integer, nullable=False)

    is_commission_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", backref=db.backref("commission_transactions", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("commission_transactions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "employee_id": self.employee_id,
            "service_id": self.service_id,
            "sale_id": self.sale_id,
            "total_amount_cents": self.total_amount_cents,
            "commission_amount_cents": self.commission_amount_cents,
            "house_amount_cents": self.house_amount_cents,
            "is_commission_paid": self.is_commission_paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
