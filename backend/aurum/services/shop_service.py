# Overview: Service-layer operations for neighbour shops; borrow/lend balances, settlement and undo.

"""
Shop Service

Every balance change is shop_delta(type, magnitudes) applied as a SQL
increment under the shop row lock, paired with a ShopTransaction row
holding the unsigned magnitudes. Undo applies shop_delta(inverse(type),
same magnitudes), which cancels the original exactly.

FIFO AUTO-ALLOCATION:
Outgoing movements (BORROW_REPAY, LEND_ADD) pay down the oldest unsettled
BORROW_ADD rows; incoming movements (BORROW_ADD, LEND_COLLECT) pay down
the oldest unsettled LEND_ADD rows. Allocations are bookkeeping only
(they never move a balance) and are recorded as AUTO_ALLOC settlement
rows pointing back at the allocating transaction.
"""

from __future__ import annotations

from sqlalchemy import delete, func

from ..extensions import db
from ..models import ExternalShop, InventoryItem, ShopSettlement, ShopTransaction
from ..models.enums import ShopTxnType
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_number,
    parse_weight,
    require_text,
    round_money,
    round_weight,
)
from .audit_service import Actor, log_action
from .balances import ShopAmounts, apply_shop_delta, inverse, shop_delta
from .concurrency import atomic, lock_for_update

AUTO_ALLOC = "AUTO_ALLOC"

WEIGHT_SETTLE_TOLERANCE = 0.005
CASH_SETTLE_TOLERANCE = 0.01

# Below these an amount is nothing left to allocate / nothing due
WEIGHT_DUST = 0.001
CASH_DUST = 0.01

ALLOCATION_TARGETS = {
    ShopTxnType.BORROW_REPAY: ShopTxnType.BORROW_ADD,
    ShopTxnType.LEND_ADD: ShopTxnType.BORROW_ADD,
    ShopTxnType.BORROW_ADD: ShopTxnType.LEND_ADD,
    ShopTxnType.LEND_COLLECT: ShopTxnType.LEND_ADD,
}

SETTLEABLE_TYPES = (ShopTxnType.BORROW_ADD, ShopTxnType.LEND_ADD)


def create_shop(
    shop_name: str,
    nick_id: str | None = None,
    person_name: str | None = None,
    mobile: str | None = None,
    address: str | None = None,
    actor: Actor | None = None,
) -> ExternalShop:
    shop_name = require_text(shop_name, "shop_name")
    with atomic() as session:
        shop = ExternalShop(
            shop_name=shop_name,
            nick_id=optional_text(nick_id, max_length=32),
            person_name=optional_text(person_name),
            mobile=optional_text(mobile, max_length=32),
            address=optional_text(address, max_length=2000),
            balance_gold=0,
            balance_silver=0,
            balance_cash=0,
        )
        session.add(shop)
        session.flush()
        shop_id = shop.id

    log_action(actor, "SHOP_CREATE", f"Created shop {shop_name}", shop_id)
    return db.session.get(ExternalShop, shop_id)


def list_shops() -> list[ExternalShop]:
    return db.session.query(ExternalShop).order_by(ExternalShop.id.desc()).all()


def get_shop(shop_id: int) -> ExternalShop:
    shop = db.session.get(ExternalShop, shop_id)
    if not shop:
        raise NotFoundError(f"Shop {shop_id} not found")
    return shop


def _paid_totals(session, txn_ids) -> dict[int, ShopAmounts]:
    """Sum of settlements per target row; converted metal counts as gold."""
    if not txn_ids:
        return {}
    rows = (
        session.query(
            ShopSettlement.transaction_id,
            func.coalesce(func.sum(ShopSettlement.gold_weight + ShopSettlement.converted_metal_weight), 0),
            func.coalesce(func.sum(ShopSettlement.silver_weight), 0),
            func.coalesce(func.sum(ShopSettlement.cash_amount), 0),
        )
        .filter(ShopSettlement.transaction_id.in_(list(txn_ids)))
        .group_by(ShopSettlement.transaction_id)
        .all()
    )
    return {
        txn_id: ShopAmounts(gold=float(gold), silver=float(silver), cash=float(cash))
        for txn_id, gold, silver, cash in rows
    }


def _is_fully_paid(txn: ShopTransaction, paid: ShopAmounts) -> bool:
    return (
        paid.gold >= (txn.pure_weight or 0) - WEIGHT_SETTLE_TOLERANCE
        and paid.silver >= (txn.silver_weight or 0) - WEIGHT_SETTLE_TOLERANCE
        and paid.cash >= (txn.cash_amount or 0) - CASH_SETTLE_TOLERANCE
    )


def get_shop_details(shop_id: int) -> dict:
    shop = get_shop(shop_id)
    txns = (
        db.session.query(ShopTransaction)
        .filter_by(shop_id=shop_id)
        .order_by(ShopTransaction.created_at.desc(), ShopTransaction.id.desc())
        .all()
    )
    paid = _paid_totals(db.session, [t.id for t in txns])

    transactions = []
    for txn in txns:
        totals = paid.get(txn.id, ShopAmounts())
        data = txn.to_dict()
        data["total_gold_paid"] = round_weight(totals.gold)
        data["total_silver_paid"] = round_weight(totals.silver)
        data["total_cash_paid"] = round_money(totals.cash)
        transactions.append(data)

    return {"shop": shop.to_dict(), "transactions": transactions}


def delete_shop(shop_id: int, actor: Actor | None = None) -> None:
    """Remove a shop that has never been used and owes/is owed nothing."""
    with atomic() as session:
        shop = lock_for_update(session.query(ExternalShop).filter_by(id=shop_id)).first()
        if not shop:
            raise NotFoundError(f"Shop {shop_id} not found")

        gold, silver, cash = shop.balance_gold or 0, shop.balance_silver or 0, shop.balance_cash or 0
        if abs(gold) > WEIGHT_DUST or abs(silver) > WEIGHT_DUST or abs(cash) > CASH_DUST:
            raise ConflictError(
                f"Cannot delete: shop has outstanding balance (G: {gold}, S: {silver}, C: {cash})"
            )
        if session.query(ShopTransaction.id).filter_by(shop_id=shop_id).first():
            raise ConflictError("Cannot delete: shop has transaction history")
        if session.query(InventoryItem.id).filter_by(neighbour_shop_id=shop_id).first():
            raise ConflictError("Cannot delete: shop still has stock on our shelf")

        shop_name = shop.shop_name
        session.delete(shop)

    log_action(actor, "SHOP_DELETE", f"Deleted shop {shop_name}", shop_id)


def _auto_allocate(session, txn: ShopTransaction, amounts: ShopAmounts) -> list[ShopSettlement]:
    target_type = ALLOCATION_TARGETS[ShopTxnType(txn.type)]
    targets = (
        session.query(ShopTransaction)
        .filter(
            ShopTransaction.shop_id == txn.shop_id,
            ShopTransaction.type == target_type.value,
            ShopTransaction.is_settled.is_(False),
            ShopTransaction.id != txn.id,
        )
        .order_by(ShopTransaction.created_at.asc(), ShopTransaction.id.asc())
        .all()
    )
    if not targets:
        return []

    paid = _paid_totals(session, [t.id for t in targets])
    avail_gold, avail_silver, avail_cash = amounts.gold, amounts.silver, amounts.cash
    allocations = []

    for target in targets:
        if avail_gold <= WEIGHT_DUST and avail_silver <= WEIGHT_DUST and avail_cash <= CASH_DUST:
            break

        already = paid.get(target.id, ShopAmounts())
        due_gold = (target.pure_weight or 0) - already.gold
        due_silver = (target.silver_weight or 0) - already.silver
        due_cash = (target.cash_amount or 0) - already.cash

        pay_gold = pay_silver = pay_cash = 0.0
        if avail_gold > 0 and due_gold > WEIGHT_DUST:
            pay_gold = round_weight(min(avail_gold, due_gold))
            avail_gold -= pay_gold
        if avail_silver > 0 and due_silver > WEIGHT_DUST:
            pay_silver = round_weight(min(avail_silver, due_silver))
            avail_silver -= pay_silver
        if avail_cash > 0 and due_cash > CASH_DUST:
            pay_cash = round_money(min(avail_cash, due_cash))
            avail_cash -= pay_cash

        if pay_gold <= 0 and pay_silver <= 0 and pay_cash <= 0:
            continue

        allocation = ShopSettlement(
            transaction_id=target.id,
            parent_txn_id=txn.id,
            payment_mode=AUTO_ALLOC,
            gold_weight=pay_gold,
            silver_weight=pay_silver,
            cash_amount=pay_cash,
        )
        session.add(allocation)
        allocations.append(allocation)

        now_paid = ShopAmounts(
            gold=already.gold + pay_gold,
            silver=already.silver + pay_silver,
            cash=already.cash + pay_cash,
        )
        if _is_fully_paid(target, now_paid):
            target.is_settled = True

    session.flush()
    return allocations


def post_shop_transaction(
    session,
    shop_id: int,
    txn_type: ShopTxnType,
    amounts: ShopAmounts,
    *,
    description: str | None = None,
    sale_id: int | None = None,
    invoice_ref: str | None = None,
    gross_weight: float = 0,
    wastage_percent: float = 0,
    making_charges: float = 0,
) -> ShopTransaction:
    """
    Apply one movement to a shop inside the caller's scope.

    `amounts` are unsigned magnitudes; the sign comes from the type.
    """
    txn_type = ShopTxnType(txn_type)
    shop = lock_for_update(session.query(ExternalShop).filter_by(id=shop_id)).first()
    if not shop:
        raise NotFoundError(f"Shop {shop_id} not found")

    magnitudes = ShopAmounts(
        gold=round_weight(abs(amounts.gold)),
        silver=round_weight(abs(amounts.silver)),
        cash=round_money(abs(amounts.cash)),
    )
    if magnitudes.is_zero():
        raise ValidationError("Transaction moves nothing: give a gold, silver or cash amount")

    apply_shop_delta(session, shop.id, shop_delta(txn_type, magnitudes))

    txn = ShopTransaction(
        shop_id=shop.id,
        type=txn_type.value,
        pure_weight=magnitudes.gold,
        silver_weight=magnitudes.silver,
        cash_amount=magnitudes.cash,
        gross_weight=round_weight(gross_weight or 0),
        wastage_percent=wastage_percent or 0,
        making_charges=round_money(making_charges or 0),
        description=description,
        is_settled=False,
        sale_id=sale_id,
        invoice_ref=invoice_ref,
    )
    session.add(txn)
    session.flush()

    _auto_allocate(session, txn, magnitudes)
    return txn


def _parse_amounts(pure_weight, silver_weight, cash_amount) -> ShopAmounts:
    # Magnitudes only; direction is carried by the type
    return ShopAmounts(
        gold=round_weight(abs(parse_number(pure_weight, "pure_weight", default=0, allow_negative=True))),
        silver=round_weight(abs(parse_number(silver_weight, "silver_weight", default=0, allow_negative=True))),
        cash=round_money(abs(parse_number(cash_amount, "cash_amount", default=0, allow_negative=True))),
    )


def apply_transaction(
    shop_id: int,
    action,
    *,
    pure_weight=None,
    silver_weight=None,
    cash_amount=None,
    description: str | None = None,
    gross_weight=None,
    wastage_percent=None,
    making_charges=None,
    actor: Actor | None = None,
) -> ShopTransaction:
    txn_type = parse_choice(action, ShopTxnType, "action")
    amounts = _parse_amounts(pure_weight, silver_weight, cash_amount)

    with atomic() as session:
        txn = post_shop_transaction(
            session,
            shop_id,
            txn_type,
            amounts,
            description=optional_text(description),
            gross_weight=parse_weight(gross_weight, "gross_weight", default=0),
            wastage_percent=parse_number(wastage_percent, "wastage_percent", default=0),
            making_charges=parse_amount(making_charges, "making_charges", default=0),
        )
        txn_id = txn.id

    log_action(
        actor,
        "SHOP_TXN",
        f"Shop {shop_id} {txn_type.value} G:{amounts.gold} S:{amounts.silver} C:{amounts.cash}",
        txn_id,
    )
    return db.session.get(ShopTransaction, txn_id)


def _recompute_settled(session, txn_ids) -> None:
    if not txn_ids:
        return
    paid = _paid_totals(session, txn_ids)
    for target in session.query(ShopTransaction).filter(ShopTransaction.id.in_(list(txn_ids))).all():
        target.is_settled = _is_fully_paid(target, paid.get(target.id, ShopAmounts()))


def reverse_shop_transaction(session, txn: ShopTransaction) -> None:
    """
    Exact inverse of a posted transaction, inside the caller's scope.

    Drops the allocations it made (un-settling their targets) and the
    automatic allocations made against it. Manual settlements against it
    moved the balance on their own, so their presence blocks the undo.
    """
    manual = (
        session.query(ShopSettlement.id)
        .filter(ShopSettlement.transaction_id == txn.id, ShopSettlement.payment_mode != AUTO_ALLOC)
        .first()
    )
    if manual:
        raise ConflictError("Cannot undo: transaction has manual settlements recorded against it")

    lock_for_update(session.query(ExternalShop).filter_by(id=txn.shop_id)).first()
    apply_shop_delta(session, txn.shop_id, shop_delta(inverse(txn.type), ShopAmounts.of_transaction(txn)))

    affected = {
        target_id
        for (target_id,) in session.query(ShopSettlement.transaction_id).filter_by(parent_txn_id=txn.id).all()
    }
    session.execute(
        delete(ShopSettlement)
        .where((ShopSettlement.parent_txn_id == txn.id) | (ShopSettlement.transaction_id == txn.id))
        .execution_options(synchronize_session=False)
    )
    session.flush()
    affected.discard(txn.id)
    _recompute_settled(session, affected)

    session.delete(txn)
    session.flush()


def _ensure_not_invoice_row(txn: ShopTransaction) -> None:
    if txn.sale_id or txn.invoice_ref:
        raise ConflictError(
            f"Transaction belongs to invoice {txn.invoice_ref or txn.sale_id}; change it through billing",
            details={"transaction_id": txn.id, "invoice_ref": txn.invoice_ref},
        )


def delete_transaction(txn_id: int, actor: Actor | None = None) -> None:
    with atomic() as session:
        txn = lock_for_update(session.query(ShopTransaction).filter_by(id=txn_id)).first()
        if not txn:
            raise NotFoundError(f"Shop transaction {txn_id} not found")
        _ensure_not_invoice_row(txn)
        shop_id, txn_type = txn.shop_id, txn.type
        reverse_shop_transaction(session, txn)

    log_action(actor, "SHOP_TXN_UNDO", f"Undid {txn_type} on shop {shop_id}", txn_id)


def update_transaction(
    txn_id: int,
    *,
    pure_weight=None,
    silver_weight=None,
    cash_amount=None,
    description: str | None = None,
    gross_weight=None,
    wastage_percent=None,
    making_charges=None,
    actor: Actor | None = None,
) -> ShopTransaction:
    """
    Edit magnitudes of a transaction without changing its type.

    The old delta is reverted and the new one applied. Rows that take
    part in any settlement cannot be edited; undo and re-enter instead.
    """
    amounts = _parse_amounts(pure_weight, silver_weight, cash_amount)
    if amounts.is_zero():
        raise ValidationError("Transaction moves nothing: give a gold, silver or cash amount")

    with atomic() as session:
        txn = lock_for_update(session.query(ShopTransaction).filter_by(id=txn_id)).first()
        if not txn:
            raise NotFoundError(f"Shop transaction {txn_id} not found")
        _ensure_not_invoice_row(txn)

        linked = (
            session.query(ShopSettlement.id)
            .filter((ShopSettlement.transaction_id == txn.id) | (ShopSettlement.parent_txn_id == txn.id))
            .first()
        )
        if linked:
            raise ConflictError("Cannot edit: transaction is part of a settlement")

        lock_for_update(session.query(ExternalShop).filter_by(id=txn.shop_id)).first()
        txn_type = ShopTxnType(txn.type)
        apply_shop_delta(session, txn.shop_id, shop_delta(inverse(txn_type), ShopAmounts.of_transaction(txn)))
        apply_shop_delta(session, txn.shop_id, shop_delta(txn_type, amounts))

        txn.pure_weight = amounts.gold
        txn.silver_weight = amounts.silver
        txn.cash_amount = amounts.cash
        if description is not None:
            txn.description = optional_text(description)
        if gross_weight is not None:
            txn.gross_weight = parse_weight(gross_weight, "gross_weight")
        if wastage_percent is not None:
            txn.wastage_percent = parse_number(wastage_percent, "wastage_percent")
        if making_charges is not None:
            txn.making_charges = parse_amount(making_charges, "making_charges")
        session.flush()

    log_action(actor, "SHOP_TXN_EDIT", f"Edited shop transaction {txn_id}", txn_id)
    return db.session.get(ShopTransaction, txn_id)


def settle_item(
    transaction_id: int,
    *,
    payment_mode: str | None = None,
    gold_val=None,
    silver_val=None,
    cash_val=None,
    metal_rate=None,
    converted_weight=None,
    description: str | None = None,
    actor: Actor | None = None,
) -> ShopSettlement:
    """
    Manually pay down one BORROW_ADD / LEND_ADD row.

    The payment moves the shop balance in the direction that cancels the
    row: shop_delta(inverse(row.type), paid). Converted metal (cash
    turned into grams at metal_rate) counts as gold.
    """
    gold = parse_weight(gold_val, "gold_val", default=0)
    silver = parse_weight(silver_val, "silver_val", default=0)
    cash = parse_amount(cash_val, "cash_val", default=0)
    rate = parse_number(metal_rate, "metal_rate", default=0)
    converted = parse_weight(converted_weight, "converted_weight", default=0)
    mode = (optional_text(payment_mode, max_length=16) or "MANUAL").upper()
    if mode == AUTO_ALLOC:
        raise ValidationError("AUTO_ALLOC is reserved for automatic allocation")

    paid = ShopAmounts(gold=round_weight(gold + converted), silver=silver, cash=cash)
    if paid.is_zero():
        raise ValidationError("Settlement pays nothing")

    with atomic() as session:
        target = lock_for_update(session.query(ShopTransaction).filter_by(id=transaction_id)).first()
        if not target:
            raise NotFoundError(f"Shop transaction {transaction_id} not found")
        target_type = ShopTxnType(target.type)
        if target_type not in SETTLEABLE_TYPES:
            raise ValidationError("Only BORROW_ADD and LEND_ADD rows can be settled")
        if target.is_settled:
            raise ConflictError("Transaction is already settled")

        already = _paid_totals(session, [target.id]).get(target.id, ShopAmounts())
        if (
            already.gold + paid.gold > (target.pure_weight or 0) + WEIGHT_SETTLE_TOLERANCE
            or already.silver + paid.silver > (target.silver_weight or 0) + WEIGHT_SETTLE_TOLERANCE
            or already.cash + paid.cash > (target.cash_amount or 0) + CASH_SETTLE_TOLERANCE
        ):
            raise ConflictError("Settlement exceeds the amount due on this transaction")

        lock_for_update(session.query(ExternalShop).filter_by(id=target.shop_id)).first()
        apply_shop_delta(session, target.shop_id, shop_delta(inverse(target_type), paid))

        settlement = ShopSettlement(
            transaction_id=target.id,
            parent_txn_id=None,
            payment_mode=mode,
            gold_weight=gold,
            silver_weight=silver,
            cash_amount=cash,
            metal_rate=rate,
            converted_metal_weight=converted,
            description=optional_text(description),
        )
        session.add(settlement)
        session.flush()

        now_paid = ShopAmounts(
            gold=already.gold + paid.gold,
            silver=already.silver + paid.silver,
            cash=already.cash + paid.cash,
        )
        target.is_settled = _is_fully_paid(target, now_paid)
        settlement_id = settlement.id
        shop_id = target.shop_id

    log_action(actor, "SHOP_SETTLE", f"Settled shop transaction {transaction_id} on shop {shop_id}", settlement_id)
    return db.session.get(ShopSettlement, settlement_id)


def list_settlements(transaction_id: int) -> list[ShopSettlement]:
    return (
        db.session.query(ShopSettlement)
        .filter_by(transaction_id=transaction_id)
        .order_by(ShopSettlement.id.desc())
        .all()
    )
