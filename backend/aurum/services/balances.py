# Overview: Signed-delta arithmetic for the shop's money accounts and neighbour-shop balances.

"""
Balance accounts are never assigned, only moved by signed deltas.

Column selection goes through the fixed lookup tables below (enum ->
mapped column attribute); no column name is ever built from a string.

SHOP SIGN TABLE (balance = what we owe the neighbour):
    BORROW_ADD    +   we took metal/cash on credit
    BORROW_REPAY  -   we paid some of it back
    LEND_ADD      -   we gave metal/cash on credit
    LEND_COLLECT  +   they paid some of it back
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Numeric, cast, func, update

from ..models import ShopAssets, ExternalShop, ShopTransaction
from ..models.enums import MetalType, PaymentMode, ShopTxnType
from ..validation import MONEY_PLACES, WEIGHT_PLACES, round_money, round_weight

ASSETS_ROW_ID = 1

# Cash goes to the drawer, every other mode lands in the bank
ASSET_COLUMNS = {
    PaymentMode.CASH: ShopAssets.cash_balance,
    PaymentMode.ONLINE: ShopAssets.bank_balance,
    PaymentMode.CARD: ShopAssets.bank_balance,
    PaymentMode.UPI: ShopAssets.bank_balance,
}

SHOP_METAL_COLUMNS = {
    MetalType.GOLD: ExternalShop.balance_gold,
    MetalType.SILVER: ExternalShop.balance_silver,
}

SHOP_SIGNS = {
    ShopTxnType.BORROW_ADD: 1,
    ShopTxnType.BORROW_REPAY: -1,
    ShopTxnType.LEND_ADD: -1,
    ShopTxnType.LEND_COLLECT: 1,
}

INVERSE_TYPES = {
    ShopTxnType.BORROW_ADD: ShopTxnType.BORROW_REPAY,
    ShopTxnType.BORROW_REPAY: ShopTxnType.BORROW_ADD,
    ShopTxnType.LEND_ADD: ShopTxnType.LEND_COLLECT,
    ShopTxnType.LEND_COLLECT: ShopTxnType.LEND_ADD,
}


@dataclass(frozen=True)
class ShopAmounts:
    """Gold / silver / cash triple, either magnitudes or signed deltas."""
    gold: float = 0.0
    silver: float = 0.0
    cash: float = 0.0

    @classmethod
    def for_metal(cls, metal: MetalType, weight: float) -> "ShopAmounts":
        if MetalType(metal) == MetalType.SILVER:
            return cls(silver=weight)
        return cls(gold=weight)

    @classmethod
    def of_transaction(cls, txn: ShopTransaction) -> "ShopAmounts":
        return cls(gold=txn.pure_weight or 0, silver=txn.silver_weight or 0, cash=txn.cash_amount or 0)

    def scaled(self, factor: float) -> "ShopAmounts":
        return ShopAmounts(
            gold=round_weight(self.gold * factor),
            silver=round_weight(self.silver * factor),
            cash=round_money(self.cash * factor),
        )

    def __neg__(self) -> "ShopAmounts":
        return self.scaled(-1)

    def is_zero(self) -> bool:
        return abs(self.gold) < 0.0005 and abs(self.silver) < 0.0005 and abs(self.cash) < 0.005


def shop_delta(txn_type: ShopTxnType, amounts: ShopAmounts) -> ShopAmounts:
    """Signed balance change for a transaction of `txn_type` with magnitudes `amounts`."""
    return amounts.scaled(SHOP_SIGNS[ShopTxnType(txn_type)])


def inverse(txn_type: ShopTxnType) -> ShopTxnType:
    """The type whose delta exactly cancels `txn_type`."""
    return INVERSE_TYPES[ShopTxnType(txn_type)]


def asset_column(mode: PaymentMode):
    return ASSET_COLUMNS[PaymentMode(mode)]


def _rounded(expr, places: int):
    # Running sums are re-rounded on every increment so they never drift
    return func.round(cast(expr, Numeric), places)


def ensure_assets_row(session) -> ShopAssets:
    assets = session.get(ShopAssets, ASSETS_ROW_ID)
    if assets is None:
        assets = ShopAssets(id=ASSETS_ROW_ID, cash_balance=0, bank_balance=0)
        session.add(assets)
        session.flush()
    return assets


def apply_asset_delta(session, mode: PaymentMode, delta: float) -> None:
    """`col = col + :delta` on the cash or bank column selected by `mode`."""
    delta = round_money(delta)
    if delta == 0:
        return
    ensure_assets_row(session)
    column = asset_column(mode)
    session.execute(
        update(ShopAssets)
        .where(ShopAssets.id == ASSETS_ROW_ID)
        .values({column: _rounded(column + delta, MONEY_PLACES)})
        .execution_options(synchronize_session="fetch")
    )


def apply_shop_delta(session, shop_id: int, delta: ShopAmounts) -> None:
    """Increment all three shop balances by a signed delta in one statement."""
    if delta.is_zero():
        return
    session.execute(
        update(ExternalShop)
        .where(ExternalShop.id == shop_id)
        .values({
            ExternalShop.balance_gold: _rounded(ExternalShop.balance_gold + delta.gold, WEIGHT_PLACES),
            ExternalShop.balance_silver: _rounded(ExternalShop.balance_silver + delta.silver, WEIGHT_PLACES),
            ExternalShop.balance_cash: _rounded(ExternalShop.balance_cash + delta.cash, MONEY_PLACES),
        })
        .execution_options(synchronize_session="fetch")
    )


def shop_metal_balance(shop: ExternalShop, metal: MetalType) -> float:
    return getattr(shop, SHOP_METAL_COLUMNS[MetalType(metal)].key)
