from __future__ import annotations

from ..extensions import db
from .columns import Money, Percent, Weight
from aurum.time_utils import to_utc_z


class OldMetalPurchase(db.Model):
    """
    Scrap bought from a customer, either over the counter or as the
    exchange part of a bill. Exchange vouchers reuse the invoice number
    and carry the sale_id so a void can remove them.
    """
    __tablename__ = "old_metal_purchases"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    voucher_no = db.Column(db.String(64), nullable=False, index=True)
    source = db.Column(db.String(32), nullable=False, default="DIRECT_PURCHASE")
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)

    customer_name = db.Column(db.String(255), nullable=True)
    mobile = db.Column(db.String(32), nullable=True)

    total_amount = db.Column(Money, nullable=False, default=0)
    gst_deducted = db.Column(Money, nullable=False, default=0)
    net_payout = db.Column(Money, nullable=False, default=0)
    payment_mode = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "voucher_no": self.voucher_no,
            "source": self.source,
            "sale_id": self.sale_id,
            "customer_name": self.customer_name,
            "mobile": self.mobile,
            "total_amount": self.total_amount,
            "gst_deducted": self.gst_deducted,
            "net_payout": self.net_payout,
            "payment_mode": self.payment_mode,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OldMetalItem(db.Model):
    """One scrap piece; AVAILABLE until put into a refinery batch."""
    __tablename__ = "old_metal_items"
    __table_args__ = (
        db.Index("ix_old_metal_items_metal_status", "metal_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("old_metal_purchases.id"), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    metal_type = db.Column(db.String(16), nullable=False)
    gross_weight = db.Column(Weight, nullable=False, default=0)
    less_percent = db.Column(Percent, nullable=False, default=0)
    less_weight = db.Column(Weight, nullable=False, default=0)
    net_weight = db.Column(Weight, nullable=False, default=0)
    rate = db.Column(Money, nullable=False, default=0)
    amount = db.Column(Money, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="AVAILABLE")
    batch_id = db.Column(db.Integer, db.ForeignKey("refinery_batches.id"), nullable=True, index=True)

    purchase = db.relationship("OldMetalPurchase", backref=db.backref("items", lazy=True, order_by="OldMetalItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "item_name": self.item_name,
            "metal_type": self.metal_type,
            "gross_weight": self.gross_weight,
            "less_percent": self.less_percent,
            "less_weight": self.less_weight,
            "net_weight": self.net_weight,
            "rate": self.rate,
            "amount": self.amount,
            "status": self.status,
            "batch_id": self.batch_id,
        }


class RefineryBatch(db.Model):
    """
    Scrap sent out for refining.

    Lifecycle SENT -> REFINED (on receipt, pure_weight fixed) ->
    COMPLETED (once used_weight has consumed pure_weight).
    """
    __tablename__ = "refinery_batches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    batch_no = db.Column(db.String(32), nullable=False, unique=True)
    metal_type = db.Column(db.String(16), nullable=False)

    gross_weight = db.Column(Weight, nullable=False, default=0)
    refined_weight = db.Column(Weight, nullable=False, default=0)
    touch = db.Column(Percent, nullable=False, default=0)
    pure_weight = db.Column(Weight, nullable=False, default=0)
    used_weight = db.Column(Weight, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="SENT", index=True)
    sent_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.relationship("OldMetalItem", backref="batch", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_no": self.batch_no,
            "metal_type": self.metal_type,
            "gross_weight": self.gross_weight,
            "refined_weight": self.refined_weight,
            "touch": self.touch,
            "pure_weight": self.pure_weight,
            "used_weight": self.used_weight,
            "status": self.status,
            "sent_date": to_utc_z(self.sent_date),
            "received_date": to_utc_z(self.received_date) if self.received_date else None,
        }
