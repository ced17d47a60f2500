"""
Bill creation and void.

Every test starts from an empty ledger (cash 0, bank 0) and checks the
stock, shop debt, scrap intake and money accounts a bill touches.
"""

import pytest

from aurum.extensions import db
from aurum.models import (
    ExternalShop,
    InventoryItem,
    OldMetalItem,
    OldMetalPurchase,
    Sale,
    SaleItem,
    SalePayment,
    ShopTransaction,
    StockLog,
    Vendor,
)
from aurum.services import billing_service, inventory_service, refinery_service, shop_service
from aurum.validation import ConflictError, IntegrityViolation, NotFoundError, ValidationError


def reload(model, ident):
    db.session.expire_all()
    return db.session.get(model, ident)


def line_for(item, total, **extra):
    line = {
        "item_id": item.id,
        "item_name": item.item_name,
        "metal_type": item.metal_type,
        "gross_weight": item.gross_weight,
        "rate": 6000,
        "making_charges": item.making_charges,
        "total": total,
    }
    line.update(extra)
    return line


def test_single_item_gst_bill_and_void(make_item, read_assets):
    item = make_item()
    assert item.pure_weight == 9.16

    sale = billing_service.create_bill(
        customer={"name": "Anita", "phone": "9000012345"},
        items=[line_for(item, 60000)],
        include_gst=True,
        totals={
            "net_payable": 61800,
            "cash_received": 20000,
            "online_received": 41800,
            "online_mode": "UPI",
        },
    )

    assert sale.invoice_number.startswith("INV-")
    assert sale.taxable_amount == 60000
    assert sale.sgst_amount == 900
    assert sale.cgst_amount == 900
    assert sale.final_amount == 61800
    assert sale.paid_amount == 61800
    assert sale.balance_amount == 0
    assert sale.payment_status == "PAID"
    assert read_assets() == (20000, 41800)

    item = reload(InventoryItem, item.id)
    assert item.status == "SOLD"
    lines = db.session.query(SaleItem).filter_by(sale_id=sale.id).all()
    assert len(lines) == 1
    assert lines[0].sold_weight == 10
    assert lines[0].sold_pure_weight == 9.16

    modes = sorted(p.payment_mode for p in db.session.query(SalePayment).filter_by(sale_id=sale.id))
    assert modes == ["CASH", "UPI"]

    sale_id = sale.id
    result = billing_service.void_bill(sale_id)

    assert result["refunded"] == 61800
    assert result["items_restored"] == 1
    assert reload(InventoryItem, item.id).status == "AVAILABLE"
    assert db.session.get(Sale, sale_id) is None
    assert db.session.query(SalePayment).count() == 0
    assert db.session.query(SaleItem).count() == 0
    assert read_assets() == (0, 0)

    actions = [log.action for log in db.session.query(StockLog).filter_by(item_id=item.id).order_by(StockLog.id)]
    assert actions == ["ADD", "SALE", "RETURN"]


def test_total_mismatch_persists_nothing(make_item, read_assets):
    item = make_item()

    with pytest.raises(IntegrityViolation) as exc:
        billing_service.create_bill(
            customer={},
            items=[line_for(item, 60000)],
            include_gst=True,
            totals={"net_payable": 50000, "cash_received": 50000},
        )

    assert exc.value.details["server_net_payable"] == 61800
    assert reload(InventoryItem, item.id).status == "AVAILABLE"
    assert db.session.query(Sale).count() == 0
    assert db.session.query(SalePayment).count() == 0
    assert read_assets() == (0, 0)


def test_small_drift_within_tolerance_is_accepted(make_item):
    item = make_item()
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(item, 60000)],
        totals={"net_payable": 60001.5},
    )
    assert sale.final_amount == 60000
    assert sale.payment_status == "PARTIAL"


def test_sold_item_cannot_be_billed_again(make_item):
    item = make_item()
    billing_service.create_bill(customer={}, items=[line_for(item, 50000)], totals={"net_payable": 50000})

    with pytest.raises(ConflictError):
        billing_service.create_bill(customer={}, items=[line_for(item, 50000)], totals={"net_payable": 50000})

    assert db.session.query(Sale).count() == 1


def test_bill_needs_items(make_item):
    with pytest.raises(ValidationError):
        billing_service.create_bill(customer={}, items=[], totals={"net_payable": 0})


def test_online_mode_cannot_be_cash(make_item):
    item = make_item()
    with pytest.raises(ValidationError):
        billing_service.create_bill(
            customer={},
            items=[line_for(item, 1000)],
            totals={"net_payable": 1000, "online_received": 1000, "online_mode": "CASH"},
        )


def test_bulk_partial_sale_and_void(make_item):
    chain = make_item(item_name="Gold Chain", stock_type="BULK", gross_weight=100, quantity=10)
    assert chain.pure_weight == 91.6

    sale = billing_service.create_bill(
        customer={},
        items=[line_for(chain, 30000, gross_weight=30, quantity=3)],
        totals={"net_payable": 30000, "cash_received": 30000},
    )

    chain = reload(InventoryItem, chain.id)
    assert chain.status == "AVAILABLE"
    assert chain.gross_weight == 70
    assert chain.quantity == 7
    assert chain.pure_weight == pytest.approx(64.12)

    line = db.session.query(SaleItem).filter_by(sale_id=sale.id).one()
    assert line.sold_weight == 30
    assert line.sold_quantity == 3
    assert line.sold_pure_weight == pytest.approx(27.48)

    billing_service.void_bill(sale.id)

    chain = reload(InventoryItem, chain.id)
    assert chain.gross_weight == 100
    assert chain.quantity == 10
    assert chain.pure_weight == pytest.approx(91.6)


def test_bulk_sold_out_needs_weight_and_pieces_gone(make_item):
    coins = make_item(item_name="Gold Coin", stock_type="BULK", gross_weight=10, quantity=2)

    billing_service.create_bill(
        customer={},
        items=[line_for(coins, 1000, gross_weight=10, quantity=1)],
        totals={"net_payable": 1000},
    )
    coins = reload(InventoryItem, coins.id)
    assert coins.gross_weight == 0
    assert coins.quantity == 1
    assert coins.status == "AVAILABLE"

    billing_service.create_bill(
        customer={},
        items=[line_for(coins, 1000, gross_weight=0, quantity=1)],
        totals={"net_payable": 1000},
    )
    coins = reload(InventoryItem, coins.id)
    assert coins.quantity == 0
    assert coins.status == "SOLD"


def test_bulk_oversell_is_rejected(make_item):
    chain = make_item(item_name="Gold Chain", stock_type="BULK", gross_weight=20, quantity=2)

    with pytest.raises(ConflictError):
        billing_service.create_bill(
            customer={},
            items=[line_for(chain, 1000, gross_weight=25, quantity=1)],
            totals={"net_payable": 1000},
        )
    assert reload(InventoryItem, chain.id).gross_weight == 20


def test_neighbour_item_debt_reversed_on_default_void(make_item, shop):
    item = make_item(item_name="Gold Bangle", gross_weight=5, neighbour_shop_id=shop.id)
    assert item.source_type == "NEIGHBOUR"

    sale = billing_service.create_bill(customer={}, items=[line_for(item, 35000)], totals={"net_payable": 35000})

    assert reload(ExternalShop, shop.id).balance_gold == 5
    debt = db.session.query(ShopTransaction).filter_by(sale_id=sale.id).one()
    assert debt.type == "BORROW_ADD"
    assert debt.description == f"Sold Item: Gold Bangle ({sale.invoice_number})"

    billing_service.void_bill(sale.id, restore_mode="DEFAULT")

    assert reload(ExternalShop, shop.id).balance_gold == 0
    item = reload(InventoryItem, item.id)
    assert item.status == "AVAILABLE"
    assert item.source_type == "NEIGHBOUR"
    assert db.session.query(ShopTransaction).filter(ShopTransaction.sale_id.isnot(None)).count() == 0


def test_take_ownership_keeps_debt(make_item, shop):
    item = make_item(item_name="Gold Bangle", gross_weight=5, neighbour_shop_id=shop.id)
    sale = billing_service.create_bill(customer={}, items=[line_for(item, 35000)], totals={"net_payable": 35000})

    result = billing_service.void_bill(sale.id, restore_mode="TAKE_OWNERSHIP")

    assert result["restore_mode"] == "TAKE_OWNERSHIP"
    assert reload(ExternalShop, shop.id).balance_gold == 5
    item = reload(InventoryItem, item.id)
    assert item.status == "AVAILABLE"
    assert item.source_type == "OWN"
    assert item.neighbour_shop_id is None


def test_manual_neighbour_line_books_silver_debt(shop):
    sale = billing_service.create_bill(
        customer={},
        items=[{
            "item_name": "Silver Anklet",
            "metal_type": "SILVER",
            "gross_weight": 50,
            "total": 5000,
            "neighbour_id": shop.id,
        }],
        totals={"net_payable": 5000},
    )

    shop_row = reload(ExternalShop, shop.id)
    assert shop_row.balance_silver == 50
    assert shop_row.balance_gold == 0

    # No item to take over, so the debt goes back either way
    billing_service.void_bill(sale.id, restore_mode="TAKE_OWNERSHIP")
    assert reload(ExternalShop, shop.id).balance_silver == 0


def test_exchange_nets_bill_and_mirrors_scrap(make_item, read_assets):
    item = make_item()

    sale = billing_service.create_bill(
        customer={"name": "Ravi"},
        items=[line_for(item, 60000)],
        exchange_items=[{
            "item_name": "Old Chain",
            "metal_type": "GOLD",
            "gross_weight": 5,
            "less_percent": 10,
            "rate": 6000,
        }],
        totals={"net_payable": 33000, "cash_received": 33000},
    )

    assert sale.exchange_total == 27000
    assert sale.final_amount == 33000
    assert read_assets() == (33000, 0)

    mirror = db.session.query(OldMetalPurchase).filter_by(sale_id=sale.id).one()
    assert mirror.voucher_no == sale.invoice_number
    assert mirror.source == "BILL_EXCHANGE"
    assert mirror.net_payout == 0
    scrap = db.session.query(OldMetalItem).filter_by(purchase_id=mirror.id).one()
    assert scrap.net_weight == 4.5
    assert scrap.amount == 27000
    assert scrap.status == "AVAILABLE"

    billing_service.void_bill(sale.id)
    assert db.session.query(OldMetalPurchase).count() == 0
    assert db.session.query(OldMetalItem).count() == 0
    assert read_assets() == (0, 0)


def test_void_blocked_once_exchange_scrap_is_batched(make_item):
    item = make_item()
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(item, 60000)],
        exchange_items=[{"metal_type": "GOLD", "gross_weight": 5, "rate": 6000}],
        totals={"net_payable": 30000},
    )
    refinery_service.create_batch("GOLD")

    with pytest.raises(ConflictError):
        billing_service.void_bill(sale.id)

    assert reload(Sale, sale.id) is not None
    assert reload(InventoryItem, item.id).status == "SOLD"


def test_exchange_larger_than_bill_is_rejected(make_item):
    item = make_item()
    with pytest.raises(ValidationError):
        billing_service.create_bill(
            customer={},
            items=[line_for(item, 10000)],
            exchange_items=[{"metal_type": "GOLD", "gross_weight": 5, "rate": 6000}],
            totals={"net_payable": -20000},
        )
    assert reload(InventoryItem, item.id).status == "AVAILABLE"


def test_get_invoice(make_item):
    item = make_item()
    sale = billing_service.create_bill(
        customer={"name": "Meena"},
        items=[line_for(item, 50000)],
        totals={"net_payable": 50000, "cash_received": 10000},
    )

    invoice = billing_service.get_invoice(sale.invoice_number)

    assert invoice["sale"]["customer_name"] == "Meena"
    assert invoice["sale"]["balance_amount"] == 40000
    assert [line["item_id"] for line in invoice["items"]] == [item.id]
    assert [p["amount"] for p in invoice["payments"]] == [10000]
    assert invoice["exchange_items"] == []


def test_void_waits_until_deleted_bulk_item_is_restored(make_item, vendor):
    vendor_id = vendor.id
    bar = make_item(
        item_name="Fine Gold",
        stock_type="BULK",
        gross_weight=100,
        quantity=10,
        wastage_percent=100,
        vendor_id=vendor_id,
    )
    bar_id = bar.id
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(bar, 70000, gross_weight=10, quantity=1)],
        totals={"net_payable": 70000},
    )
    sale_id = sale.id
    inventory_service.delete_item(bar_id)
    assert reload(Vendor, vendor_id).balance_pure_weight == 10

    with pytest.raises(ConflictError):
        billing_service.void_bill(sale_id)

    bar = reload(InventoryItem, bar_id)
    assert bar.is_deleted is True
    assert bar.gross_weight == 90
    assert reload(Vendor, vendor_id).balance_pure_weight == 10
    assert reload(Sale, sale_id) is not None

    inventory_service.restore_item(bar_id)
    assert reload(Vendor, vendor_id).balance_pure_weight == 100

    billing_service.void_bill(sale_id)

    bar = reload(InventoryItem, bar_id)
    assert bar.status == "AVAILABLE"
    assert bar.is_deleted is False
    assert (bar.gross_weight, bar.quantity, bar.pure_weight) == (100, 10, 100)
    assert reload(Vendor, vendor_id).balance_pure_weight == 100


@pytest.fixture
def ring_and_chain(make_item):
    return make_item(), make_item(item_name="Gold Chain", gross_weight=5)


def _line_of(sale_id, item_id):
    return db.session.query(SaleItem).filter_by(sale_id=sale_id, item_id=item_id).one().id


def test_return_one_line_refunds_the_overpayment(ring_and_chain, read_assets):
    ring, chain = ring_and_chain
    ring_id, chain_id = ring.id, chain.id
    sale = billing_service.create_bill(
        customer={"name": "Meena"},
        items=[line_for(ring, 40000), line_for(chain, 20000)],
        include_gst=True,
        totals={"net_payable": 61800, "cash_received": 61800},
    )
    sale_id = sale.id
    line_id = _line_of(sale_id, ring_id)

    result = billing_service.return_item(line_id)

    assert result["refunded"] == 41200
    assert result["final_amount"] == 20600
    assert result["balance_amount"] == 0
    assert result["payment_status"] == "PAID"
    assert read_assets() == (20600, 0)

    sale = reload(Sale, sale_id)
    assert sale.taxable_amount == 20000
    assert sale.sgst_amount == 300
    assert sale.paid_amount + sale.balance_amount == sale.final_amount
    assert reload(SaleItem, line_id).returned_at is not None
    assert reload(InventoryItem, ring_id).status == "AVAILABLE"
    assert reload(InventoryItem, chain_id).status == "SOLD"
    assert sorted(p.amount for p in billing_service.list_payments(sale_id)) == [-41200, 61800]

    with pytest.raises(ConflictError):
        billing_service.return_item(line_id)

    result = billing_service.void_bill(sale_id)

    assert result["refunded"] == 20600
    assert read_assets() == (0, 0)
    assert reload(InventoryItem, chain_id).status == "AVAILABLE"
    actions = [log.action for log in db.session.query(StockLog).filter_by(item_id=ring_id).order_by(StockLog.id)]
    assert actions == ["ADD", "SALE", "RETURN"]


def test_return_on_open_bill_only_lowers_the_balance(ring_and_chain, read_assets):
    ring, chain = ring_and_chain
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(ring, 40000), line_for(chain, 20000)],
        include_gst=True,
        totals={"net_payable": 61800, "cash_received": 10000},
    )
    sale_id = sale.id

    result = billing_service.return_item(_line_of(sale_id, ring.id))

    assert result["refunded"] == 0
    assert result["final_amount"] == 20600
    assert result["balance_amount"] == 10600
    assert result["payment_status"] == "PARTIAL"
    assert read_assets() == (10000, 0)
    assert len(billing_service.list_payments(sale_id)) == 1


def test_return_of_neighbour_line_repays_the_shop(make_item, shop):
    shop_id = shop.id
    bangle = make_item(item_name="Gold Bangle", gross_weight=5, neighbour_shop_id=shop_id)
    ring = make_item()
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(bangle, 35000), line_for(ring, 40000)],
        totals={"net_payable": 75000},
    )
    invoice = sale.invoice_number
    line_id = _line_of(sale.id, bangle.id)

    billing_service.return_item(line_id, restore_mode="DEFAULT")

    assert reload(ExternalShop, shop_id).balance_gold == 0
    rows = db.session.query(ShopTransaction).order_by(ShopTransaction.id).all()
    assert [(row.type, row.invoice_ref) for row in rows] == [
        ("BORROW_ADD", invoice),
        ("BORROW_REPAY", invoice),
    ]
    for row_id in [row.id for row in rows]:
        with pytest.raises(ConflictError):
            shop_service.delete_transaction(row_id)
    assert reload(ExternalShop, shop_id).balance_gold == 0


def test_return_that_leaves_exchange_uncovered_is_rejected(ring_and_chain):
    ring, chain = ring_and_chain
    sale = billing_service.create_bill(
        customer={},
        items=[line_for(ring, 40000), line_for(chain, 20000)],
        exchange_items=[{"metal_type": "GOLD", "gross_weight": 5, "rate": 6000}],
        totals={"net_payable": 30000},
    )
    line_id = _line_of(sale.id, ring.id)

    with pytest.raises(ConflictError):
        billing_service.return_item(line_id)

    assert reload(SaleItem, line_id).returned_at is None
    assert reload(InventoryItem, ring.id).status == "SOLD"


def test_return_unknown_line(db_session):
    with pytest.raises(NotFoundError):
        billing_service.return_item(999)
