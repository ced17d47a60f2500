"""Scrap intake, refinery batches and spending refined metal."""

import pytest

from aurum.extensions import db
from aurum.models import (
    ExternalShop,
    GeneralExpense,
    InventoryItem,
    OldMetalItem,
    RefineryBatch,
    Vendor,
)
from aurum.services import old_metal_service, refinery_service, shop_service, vendor_service
from aurum.validation import ConflictError, IntegrityViolation, NotFoundError, ValidationError


@pytest.fixture
def gold_scrap(db_session):
    return old_metal_service.purchase(
        customer_name="Walk-in",
        mobile=None,
        items=[{"name": "Broken Chain", "metal_type": "GOLD", "gross_weight": 10, "rate": 5000}],
    )


def test_direct_purchase_pays_out_and_books_expense(gold_scrap, read_assets):
    assert gold_scrap.voucher_no.startswith("PUR-")
    assert gold_scrap.source == "DIRECT_PURCHASE"
    assert gold_scrap.total_amount == 50000
    assert gold_scrap.net_payout == 50000
    assert read_assets() == (-50000, 0)

    expense = db.session.query(GeneralExpense).one()
    assert expense.category == "OLD_METAL_PURCHASE"
    assert expense.amount == 50000
    assert gold_scrap.voucher_no in expense.description


def test_purchase_with_gst_withheld(db_session, read_assets):
    header = old_metal_service.purchase(
        customer_name="Sunita",
        mobile="9000000000",
        items=[
            {"item_name": "Old Earrings", "metal_type": "GOLD", "gross_weight": 4, "less_percent": 5, "rate": 6000},
            {"item_name": "Old Payal", "metal_type": "SILVER", "gross_weight": 100, "rate": 80},
        ],
        gst_deducted=228,
        payment_mode="UPI",
    )

    # 3.8g x 6000 + 100g x 80
    assert header.total_amount == 30800
    assert header.net_payout == 30572
    assert read_assets() == (0, -30572)
    assert refinery_service.pending_weight_by_metal() == {"GOLD": 4, "SILVER": 100}


def test_purchase_validation(db_session):
    with pytest.raises(ValidationError):
        old_metal_service.purchase(customer_name=None, mobile=None, items=[])
    with pytest.raises(ValidationError):
        old_metal_service.purchase(
            customer_name=None, mobile=None,
            items=[{"gross_weight": 5, "rate": 100}], gst_deducted=1000,
        )
    with pytest.raises(ValidationError):
        old_metal_service.purchase(
            customer_name=None, mobile=None,
            items=[{"gross_weight": 5, "net_weight": 6, "rate": 100}],
        )


def test_full_refinery_cycle(gold_scrap, vendor, shop):
    vendor_service.record_transaction(vendor.id, "STOCK_ADDED", metal_weight=5)
    shop_service.apply_transaction(shop.id, "BORROW_ADD", pure_weight=4)

    batch = refinery_service.create_batch("GOLD")
    batch_id = batch.id
    assert batch.batch_no == "RB-G-0001"
    assert batch.gross_weight == 10
    assert batch.status == "SENT"
    assert old_metal_service.pending_scrap("GOLD") == []
    assert {p.status for p in db.session.query(OldMetalItem)} == {"BATCHED"}

    with pytest.raises(ConflictError):
        refinery_service.use_stock(batch_id, "INVENTORY", 1)

    batch = refinery_service.receive_refined(batch_id, 8, 99.5)
    assert batch.pure_weight == pytest.approx(7.96)
    assert batch.status == "REFINED"
    assert {p.status for p in db.session.query(OldMetalItem)} == {"REFINED"}

    with pytest.raises(ConflictError):
        refinery_service.receive_refined(batch_id, 8, 99.5)

    to_vendor = refinery_service.use_stock(batch_id, "VENDOR", 3, target_id=vendor.id)
    assert "vendor_transaction_id" in to_vendor
    db.session.expire_all()
    assert db.session.get(Vendor, vendor.id).balance_pure_weight == 2
    assert vendor_service.verify_vendor_balance(vendor.id)["consistent"] is True

    to_shop = refinery_service.use_stock(batch_id, "SHOP", 2, target_id=shop.id)
    assert "shop_transaction_id" in to_shop
    db.session.expire_all()
    assert db.session.get(ExternalShop, shop.id).balance_gold == 2

    with pytest.raises(ConflictError):
        refinery_service.use_stock(batch_id, "INVENTORY", 3)

    to_shelf = refinery_service.use_stock(batch_id, "INVENTORY", 2.96, item_name="Fine Gold Bar")
    assert to_shelf["batch"]["status"] == "COMPLETED"
    assert to_shelf["barcode"] == "G-FGB-0001"

    bar = db.session.get(InventoryItem, to_shelf["item_id"])
    assert bar.stock_type == "RAW"
    assert bar.source_type == "REFINERY"
    assert bar.wastage_percent == 100
    assert bar.pure_weight == bar.gross_weight == 2.96

    batch = db.session.get(RefineryBatch, batch_id)
    assert batch.used_weight == pytest.approx(7.96)
    assert [b.id for b in refinery_service.list_batches("COMPLETED")] == [batch_id]


def test_refined_pure_cannot_exceed_sent(gold_scrap):
    batch = refinery_service.create_batch("GOLD")

    with pytest.raises(IntegrityViolation):
        refinery_service.receive_refined(batch.id, 11, 100)
    with pytest.raises(ValidationError):
        refinery_service.receive_refined(batch.id, 8, 101)
    assert db.session.get(RefineryBatch, batch.id).status == "SENT"


def test_batch_of_listed_items(gold_scrap):
    piece_id = db.session.query(OldMetalItem.id).scalar()

    with pytest.raises(NotFoundError):
        refinery_service.create_batch("GOLD", item_ids=[piece_id, 9999])
    with pytest.raises(NotFoundError):
        refinery_service.create_batch("SILVER", item_ids=[piece_id])

    refinery_service.create_batch("GOLD", item_ids=[piece_id])
    with pytest.raises(ConflictError):
        refinery_service.create_batch("GOLD", item_ids=[piece_id])
    with pytest.raises(ValidationError):
        refinery_service.create_batch("GOLD")


def test_use_stock_needs_target_id(gold_scrap):
    batch = refinery_service.create_batch("GOLD")
    refinery_service.receive_refined(batch.id, 8, 99.5)

    with pytest.raises(ValidationError):
        refinery_service.use_stock(batch.id, "VENDOR", 1)
    with pytest.raises(ValidationError):
        refinery_service.use_stock(batch.id, "MELT", 1)
