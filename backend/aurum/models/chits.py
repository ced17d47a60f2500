from __future__ import annotations

from ..extensions import db
from .columns import FineWeight, Money
from aurum.time_utils import to_utc_z


class ChitPlan(db.Model):
    """
    Customer savings plan.

    AMOUNT plans accumulate rupees; GOLD plans convert each instalment to
    fine gold at that day's rate. customer_id refers to a customer record
    held outside this service.
    """
    __tablename__ = "chit_plans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    plan_type = db.Column(db.String(16), nullable=False)
    plan_name = db.Column(db.String(255), nullable=False)
    monthly_amount = db.Column(Money, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "plan_type": self.plan_type,
            "plan_name": self.plan_name,
            "monthly_amount": self.monthly_amount,
            "status": self.status,
            "start_date": to_utc_z(self.start_date),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }


class ChitPayment(db.Model):
    """Instalment or bonus. gold_rate is frozen at payment time."""
    __tablename__ = "chit_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("chit_plans.id"), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)
    gold_rate = db.Column(Money, nullable=False, default=0)
    gold_weight = db.Column(FineWeight, nullable=False, default=0)
    is_bonus = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.String(255), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    plan = db.relationship("ChitPlan", backref=db.backref("payments", lazy=True, order_by="ChitPayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "amount": self.amount,
            "gold_rate": self.gold_rate,
            "gold_weight": self.gold_weight,
            "is_bonus": self.is_bonus,
            "notes": self.notes,
            "payment_date": to_utc_z(self.payment_date),
        }


class DailyRate(db.Model):
    """Today's rate per metal label (e.g. 'GOLD 999', 'SILVER')."""
    __tablename__ = "daily_rates"

    metal_type = db.Column(db.String(32), primary_key=True)
    rate = db.Column(Money, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "metal_type": self.metal_type,
            "rate": self.rate,
            "updated_at": to_utc_z(self.updated_at),
        }
