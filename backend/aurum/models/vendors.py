from __future__ import annotations

from ..extensions import db
from .columns import Money, Weight
from aurum.time_utils import to_utc_z


class Vendor(db.Model):
    """
    Metal supplier. balance_pure_weight is signed: positive means the shop
    owes the vendor fine metal.
    """
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(32), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    balance_pure_weight = db.Column(Weight, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "contact_number": self.contact_number,
            "gst_number": self.gst_number,
            "address": self.address,
            "balance_pure_weight": self.balance_pure_weight,
            "created_at": to_utc_z(self.created_at),
        }


class VendorTransaction(db.Model):
    """
    Append-only vendor ledger.

    pure_weight_delta is the exact signed change applied to the vendor
    balance and balance_after the balance right after it, so the ledger
    can be replayed and checked against the running figure.
    """
    __tablename__ = "vendor_transactions"
    __table_args__ = (
        db.Index("ix_vendor_txn_vendor_created", "vendor_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)

    pure_weight_delta = db.Column(Weight, nullable=False, default=0)
    stock_pure_weight = db.Column(Weight, nullable=False, default=0)
    repaid_metal_weight = db.Column(Weight, nullable=False, default=0)
    repaid_cash_amount = db.Column(Money, nullable=False, default=0)
    conversion_rate = db.Column(Money, nullable=False, default=0)
    cash_converted_weight = db.Column(Weight, nullable=False, default=0)
    balance_after = db.Column(Weight, nullable=False, default=0)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "type": self.type,
            "pure_weight_delta": self.pure_weight_delta,
            "stock_pure_weight": self.stock_pure_weight,
            "repaid_metal_weight": self.repaid_metal_weight,
            "repaid_cash_amount": self.repaid_cash_amount,
            "conversion_rate": self.conversion_rate,
            "cash_converted_weight": self.cash_converted_weight,
            "balance_after": self.balance_after,
            "item_id": self.item_id,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
