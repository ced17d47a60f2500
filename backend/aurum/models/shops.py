from __future__ import annotations

from ..extensions import db
from .columns import Money, Percent, Weight
from aurum.time_utils import to_utc_z


class ExternalShop(db.Model):
    """
    Neighbouring shop we borrow from / lend to.

    Balances are signed: positive means we owe the shop, negative means
    the shop owes us. Gold, silver and cash run independently.
    """
    __tablename__ = "external_shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_name = db.Column(db.String(255), nullable=False)
    nick_id = db.Column(db.String(32), nullable=True)
    person_name = db.Column(db.String(255), nullable=True)
    mobile = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    balance_gold = db.Column(Weight, nullable=False, default=0)
    balance_silver = db.Column(Weight, nullable=False, default=0)
    balance_cash = db.Column(Money, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_name": self.shop_name,
            "nick_id": self.nick_id,
            "person_name": self.person_name,
            "mobile": self.mobile,
            "address": self.address,
            "balance_gold": self.balance_gold,
            "balance_silver": self.balance_silver,
            "balance_cash": self.balance_cash,
            "created_at": to_utc_z(self.created_at),
        }


class ShopTransaction(db.Model):
    """
    One borrow/lend movement. Magnitudes are stored unsigned; the type
    decides the direction through the shop sign table.
    """
    __tablename__ = "shop_transactions"
    __table_args__ = (
        db.Index("ix_shop_txn_shop_type_settled", "shop_id", "type", "is_settled"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("external_shops.id"), nullable=False)
    type = db.Column(db.String(16), nullable=False)

    # pure_weight is the gold column for historical reasons
    pure_weight = db.Column(Weight, nullable=False, default=0)
    silver_weight = db.Column(Weight, nullable=False, default=0)
    cash_amount = db.Column(Money, nullable=False, default=0)

    gross_weight = db.Column(Weight, nullable=False, default=0)
    wastage_percent = db.Column(Percent, nullable=False, default=0)
    making_charges = db.Column(Money, nullable=False, default=0)

    description = db.Column(db.String(255), nullable=True)
    is_settled = db.Column(db.Boolean, nullable=False, default=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True)
    # Invoice the row was booked by or reversed for; such rows only change through billing
    invoice_ref = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("ExternalShop", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "type": self.type,
            "pure_weight": self.pure_weight,
            "silver_weight": self.silver_weight,
            "cash_amount": self.cash_amount,
            "gross_weight": self.gross_weight,
            "wastage_percent": self.wastage_percent,
            "making_charges": self.making_charges,
            "description": self.description,
            "is_settled": self.is_settled,
            "sale_id": self.sale_id,
            "invoice_ref": self.invoice_ref,
            "created_at": to_utc_z(self.created_at),
        }


class ShopSettlement(db.Model):
    """
    Part-payment against a BORROW_ADD / LEND_ADD row.

    AUTO_ALLOC rows are written by FIFO allocation and point back at the
    allocating transaction through parent_txn_id; manual rows move the
    shop balance themselves and have no parent.
    """
    __tablename__ = "shop_transaction_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("shop_transactions.id"), nullable=False, index=True)
    parent_txn_id = db.Column(db.Integer, db.ForeignKey("shop_transactions.id"), nullable=True, index=True)

    payment_mode = db.Column(db.String(16), nullable=False)
    gold_weight = db.Column(Weight, nullable=False, default=0)
    silver_weight = db.Column(Weight, nullable=False, default=0)
    cash_amount = db.Column(Money, nullable=False, default=0)

    # Cash converted to metal at a rate; metal_rate is per gram
    metal_rate = db.Column(Money, nullable=False, default=0)
    converted_metal_weight = db.Column(Weight, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "parent_txn_id": self.parent_txn_id,
            "payment_mode": self.payment_mode,
            "gold_weight": self.gold_weight,
            "silver_weight": self.silver_weight,
            "cash_amount": self.cash_amount,
            "metal_rate": self.metal_rate,
            "converted_metal_weight": self.converted_metal_weight,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
