"""Neighbour-shop balances: sign table, FIFO allocation, settlement and undo."""

import pytest

from aurum.extensions import db
from aurum.models import ExternalShop, ShopSettlement, ShopTransaction
from aurum.services import billing_service, shop_service
from aurum.services.shop_service import AUTO_ALLOC
from aurum.validation import ConflictError, NotFoundError, ValidationError


def balances(shop_id):
    db.session.expire_all()
    shop = db.session.get(ExternalShop, shop_id)
    return shop.balance_gold, shop.balance_silver, shop.balance_cash


def txn_row(txn_id):
    db.session.expire_all()
    return db.session.get(ShopTransaction, txn_id)


@pytest.mark.parametrize("action, expected", [
    ("BORROW_ADD", (2.5, 100, 1000)),
    ("BORROW_REPAY", (-2.5, -100, -1000)),
    ("LEND_ADD", (-2.5, -100, -1000)),
    ("LEND_COLLECT", (2.5, 100, 1000)),
])
def test_each_type_moves_balance_by_its_sign(shop, action, expected):
    shop_service.apply_transaction(
        shop.id, action, pure_weight=2.5, silver_weight=100, cash_amount=1000,
    )
    assert balances(shop.id) == expected


def test_negative_input_is_stored_as_magnitude(shop):
    txn = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=-3)
    assert txn.pure_weight == 3
    assert balances(shop.id) == (3, 0, 0)


def test_zero_movement_is_rejected(shop):
    with pytest.raises(ValidationError):
        shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=0, cash_amount=0)


def test_unknown_shop(db_session):
    with pytest.raises(NotFoundError):
        shop_service.apply_transaction(777, "BORROW_ADD", pure_weight=1)


def test_repay_allocates_oldest_borrow_first(shop):
    first = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)
    second = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=5)
    first_id, second_id = first.id, second.id

    repay = shop_service.apply_transaction(shop.id, "BORROW_REPAY", pure_weight=12)

    assert balances(shop.id) == (3, 0, 0)
    assert txn_row(first_id).is_settled is True
    assert txn_row(second_id).is_settled is False

    allocations = db.session.query(ShopSettlement).filter_by(parent_txn_id=repay.id).order_by(ShopSettlement.id).all()
    assert [(a.transaction_id, a.gold_weight) for a in allocations] == [(first_id, 10), (second_id, 2)]
    assert all(a.payment_mode == AUTO_ALLOC for a in allocations)

    details = shop_service.get_shop_details(shop.id)
    paid = {row["id"]: row["total_gold_paid"] for row in details["transactions"]}
    assert paid[first_id] == 10
    assert paid[second_id] == 2


def test_collect_allocates_against_lend(shop):
    lend = shop_service.apply_transaction(shop.id, "LEND_ADD", cash_amount=5000)
    shop_service.apply_transaction(shop.id, "LEND_COLLECT", cash_amount=2000)

    assert balances(shop.id) == (0, 0, -3000)
    allocation = db.session.query(ShopSettlement).filter_by(transaction_id=lend.id).one()
    assert allocation.cash_amount == 2000
    assert txn_row(lend.id).is_settled is False


def test_undo_restores_balance_and_unsettles(shop):
    first = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)
    second = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=5)
    first_id, second_id = first.id, second.id
    repay = shop_service.apply_transaction(shop.id, "BORROW_REPAY", pure_weight=12)
    repay_id = repay.id

    shop_service.delete_transaction(repay_id)

    assert balances(shop.id) == (15, 0, 0)
    assert txn_row(repay_id) is None
    assert txn_row(first_id).is_settled is False
    assert txn_row(second_id).is_settled is False
    assert db.session.query(ShopSettlement).count() == 0


def test_undo_of_borrow_drops_allocations_against_it(shop):
    borrow = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=4)
    borrow_id = borrow.id
    shop_service.apply_transaction(shop.id, "BORROW_REPAY", pure_weight=1)

    shop_service.delete_transaction(borrow_id)

    assert balances(shop.id) == (-1, 0, 0)
    assert db.session.query(ShopSettlement).count() == 0


@pytest.mark.parametrize("action", ["BORROW_ADD", "BORROW_REPAY", "LEND_ADD", "LEND_COLLECT"])
def test_undo_returns_all_three_balances_to_zero(shop, action):
    txn = shop_service.apply_transaction(
        shop.id, action, pure_weight=2.5, silver_weight=100, cash_amount=1000,
    )

    shop_service.delete_transaction(txn.id)

    assert balances(shop.id) == (0, 0, 0)
    assert db.session.query(ShopTransaction).count() == 0


def test_edit_replaces_delta(shop):
    txn = shop_service.apply_transaction(shop.id, "BORROW_ADD", cash_amount=1000)

    updated = shop_service.update_transaction(txn.id, cash_amount=1500, description="Corrected")

    assert updated.cash_amount == 1500
    assert updated.description == "Corrected"
    assert balances(shop.id) == (0, 0, 1500)


def test_edit_blocked_when_part_of_settlement(shop):
    txn = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)
    shop_service.apply_transaction(shop.id, "BORROW_REPAY", pure_weight=1)

    with pytest.raises(ConflictError):
        shop_service.update_transaction(txn.id, pure_weight=12)
    assert balances(shop.id) == (9, 0, 0)


def test_manual_settlement_with_converted_cash(shop):
    borrow = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)
    borrow_id = borrow.id

    settlement = shop_service.settle_item(
        borrow_id, payment_mode="cash", gold_val=4, metal_rate=7000, converted_weight=2,
        description="Part payment",
    )

    assert settlement.payment_mode == "CASH"
    assert settlement.converted_metal_weight == 2
    assert balances(shop.id) == (4, 0, 0)
    assert txn_row(borrow_id).is_settled is False

    shop_service.settle_item(borrow_id, gold_val=4)

    assert balances(shop.id) == (0, 0, 0)
    assert txn_row(borrow_id).is_settled is True
    assert len(shop_service.list_settlements(borrow_id)) == 2


def test_settlement_cannot_exceed_due(shop):
    borrow = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)

    with pytest.raises(ConflictError):
        shop_service.settle_item(borrow.id, gold_val=11)
    assert balances(shop.id) == (10, 0, 0)


def test_settlement_of_lend_moves_balance_up(shop):
    lend = shop_service.apply_transaction(shop.id, "LEND_ADD", silver_weight=200)

    shop_service.settle_item(lend.id, silver_val=50)

    assert balances(shop.id) == (0, -150, 0)


def test_only_add_rows_are_settleable(shop):
    repay = shop_service.apply_transaction(shop.id, "BORROW_REPAY", pure_weight=1)
    with pytest.raises(ValidationError):
        shop_service.settle_item(repay.id, gold_val=1)


def test_auto_alloc_mode_is_reserved(shop):
    borrow = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=1)
    with pytest.raises(ValidationError):
        shop_service.settle_item(borrow.id, payment_mode=AUTO_ALLOC, gold_val=1)


def test_undo_blocked_by_manual_settlement(shop):
    borrow = shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=10)
    shop_service.settle_item(borrow.id, gold_val=3)

    with pytest.raises(ConflictError):
        shop_service.delete_transaction(borrow.id)
    assert balances(shop.id) == (7, 0, 0)


def test_invoice_rows_cannot_be_undone_or_edited(shop):
    sale = billing_service.create_bill(
        customer={},
        items=[{"item_name": "Gold Stud", "metal_type": "GOLD", "gross_weight": 2, "total": 12000,
                "neighbour_id": shop.id}],
        totals={"net_payable": 12000},
    )
    debt = db.session.query(ShopTransaction).filter_by(sale_id=sale.id).one()

    with pytest.raises(ConflictError):
        shop_service.delete_transaction(debt.id)
    with pytest.raises(ConflictError):
        shop_service.update_transaction(debt.id, pure_weight=1)
    assert balances(shop.id) == (2, 0, 0)


def test_rows_of_a_voided_invoice_stay_locked(shop):
    shop_id = shop.id
    sale = billing_service.create_bill(
        customer={},
        items=[{"item_name": "Gold Stud", "metal_type": "GOLD", "gross_weight": 2, "total": 12000,
                "neighbour_id": shop_id}],
        totals={"net_payable": 12000},
    )
    invoice = sale.invoice_number

    billing_service.void_bill(sale.id, restore_mode="DEFAULT")

    rows = db.session.query(ShopTransaction).order_by(ShopTransaction.id).all()
    assert [(row.type, row.sale_id, row.invoice_ref) for row in rows] == [
        ("BORROW_ADD", None, invoice),
        ("BORROW_REPAY", None, invoice),
    ]
    for row_id in [row.id for row in rows]:
        with pytest.raises(ConflictError):
            shop_service.delete_transaction(row_id)
        with pytest.raises(ConflictError):
            shop_service.update_transaction(row_id, pure_weight=1)
    assert balances(shop_id) == (0, 0, 0)


def test_delete_shop_guards(shop):
    shop_id = shop.id
    shop_service.apply_transaction(shop_id, "BORROW_ADD", pure_weight=1)
    with pytest.raises(ConflictError):
        shop_service.delete_shop(shop_id)

    shop_service.apply_transaction(shop_id, "BORROW_REPAY", pure_weight=1)
    assert balances(shop_id) == (0, 0, 0)
    with pytest.raises(ConflictError):
        shop_service.delete_shop(shop_id)

    fresh = shop_service.create_shop("Kumar Gold House")
    fresh_id = fresh.id
    shop_service.delete_shop(fresh_id)
    db.session.expire_all()
    assert db.session.get(ExternalShop, fresh_id) is None
