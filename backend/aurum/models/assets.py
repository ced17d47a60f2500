from __future__ import annotations

from ..extensions import db
from .columns import Money
from aurum.time_utils import to_utc_z


class ShopAssets(db.Model):
    """
    Singleton (id=1) holding the shop's cash drawer and bank balances.

    Only ever changed with SQL-side increments, never read-modify-write.
    """
    __tablename__ = "shop_assets"

    id = db.Column(db.Integer, primary_key=True)
    cash_balance = db.Column(Money, nullable=False, default=0)
    bank_balance = db.Column(Money, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "cash_balance": self.cash_balance,
            "bank_balance": self.bank_balance,
            "updated_at": to_utc_z(self.updated_at),
        }


class GeneralExpense(db.Model):
    __tablename__ = "general_expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(Money, nullable=False)
    category = db.Column(db.String(32), nullable=False, default="EXPENSE", index=True)
    payment_mode = db.Column(db.String(16), nullable=False, default="CASH")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "payment_mode": self.payment_mode,
            "created_at": to_utc_z(self.created_at),
        }
