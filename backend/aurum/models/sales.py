from __future__ import annotations

from ..extensions import db
from .columns import Money, Percent, Weight
from aurum.time_utils import to_utc_z


class Sale(db.Model):
    """
    Bill header.

    Totals are server-computed at creation time and again when a line is
    returned. paid_amount, balance_amount and final_amount always move
    together: paid_amount + balance_amount == final_amount.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "payment_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    gross_total = db.Column(Money, nullable=False, default=0)
    discount = db.Column(Money, nullable=False, default=0)
    taxable_amount = db.Column(Money, nullable=False, default=0)
    sgst_amount = db.Column(Money, nullable=False, default=0)
    cgst_amount = db.Column(Money, nullable=False, default=0)
    round_off_amount = db.Column(Money, nullable=False, default=0)
    exchange_total = db.Column(Money, nullable=False, default=0)
    final_amount = db.Column(Money, nullable=False, default=0)
    is_gst_bill = db.Column(db.Boolean, nullable=False, default=False)

    paid_amount = db.Column(Money, nullable=False, default=0)
    balance_amount = db.Column(Money, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="PARTIAL", index=True)
    last_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "gross_total": self.gross_total,
            "discount": self.discount,
            "taxable_amount": self.taxable_amount,
            "sgst_amount": self.sgst_amount,
            "cgst_amount": self.cgst_amount,
            "round_off_amount": self.round_off_amount,
            "exchange_total": self.exchange_total,
            "final_amount": self.final_amount,
            "is_gst_bill": self.is_gst_bill,
            "paid_amount": self.paid_amount,
            "balance_amount": self.balance_amount,
            "payment_status": self.payment_status,
            "last_payment_date": to_utc_z(self.last_payment_date) if self.last_payment_date else None,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """
    One billed line.

    Records exactly what left the shelf (weight, quantity, pure weight)
    and what shop debt it created, so a void can replay it in reverse.
    item_id is NULL for manual entries.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    metal_type = db.Column(db.String(16), nullable=True)
    stock_type = db.Column(db.String(16), nullable=True)

    sold_weight = db.Column(Weight, nullable=False, default=0)
    sold_quantity = db.Column(db.Integer, nullable=False, default=1)
    sold_pure_weight = db.Column(Weight, nullable=False, default=0)

    sold_rate = db.Column(Money, nullable=False, default=0)
    making_charges_collected = db.Column(Money, nullable=False, default=0)
    total_item_price = db.Column(Money, nullable=False, default=0)

    # Shop debt created by this line (gross weight, metal per metal_type)
    neighbour_shop_id = db.Column(db.Integer, db.ForeignKey("external_shops.id"), nullable=True)
    debt_weight = db.Column(Weight, nullable=False, default=0)

    # Set when the line alone is taken back; the bill is re-priced without it
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "metal_type": self.metal_type,
            "stock_type": self.stock_type,
            "sold_weight": self.sold_weight,
            "sold_quantity": self.sold_quantity,
            "sold_pure_weight": self.sold_pure_weight,
            "sold_rate": self.sold_rate,
            "making_charges_collected": self.making_charges_collected,
            "total_item_price": self.total_item_price,
            "neighbour_shop_id": self.neighbour_shop_id,
            "debt_weight": self.debt_weight,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
        }


class SalePayment(db.Model):
    """Money received against a sale; refunds for returned lines are negative."""
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)
    payment_mode = db.Column(db.String(16), nullable=False, default="CASH")
    note = db.Column(db.String(255), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True, order_by="SalePayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "payment_mode": self.payment_mode,
            "note": self.note,
            "payment_date": to_utc_z(self.payment_date),
        }


class SaleExchangeItem(db.Model):
    """Old metal taken from the customer as part payment."""
    __tablename__ = "sale_exchange_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    metal_type = db.Column(db.String(16), nullable=False)
    gross_weight = db.Column(Weight, nullable=False, default=0)
    less_percent = db.Column(Percent, nullable=False, default=0)
    less_weight = db.Column(Weight, nullable=False, default=0)
    net_weight = db.Column(Weight, nullable=False, default=0)
    rate = db.Column(Money, nullable=False, default=0)
    total_amount = db.Column(Money, nullable=False, default=0)

    sale = db.relationship("Sale", backref=db.backref("exchange_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_name": self.item_name,
            "metal_type": self.metal_type,
            "gross_weight": self.gross_weight,
            "less_percent": self.less_percent,
            "less_weight": self.less_weight,
            "net_weight": self.net_weight,
            "rate": self.rate,
            "total_amount": self.total_amount,
        }
