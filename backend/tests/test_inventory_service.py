"""Item lifecycle, barcodes and vendor-backed stock."""

import pytest

from aurum.extensions import db
from aurum.models import InventoryItem, ItemUpdate, StockLog, Vendor, VendorTransaction
from aurum.services import inventory_service, vendor_service
from aurum.services.document_service import name_initials
from aurum.validation import ConflictError, NotFoundError, ValidationError


def vendor_balance(vendor_id):
    db.session.expire_all()
    return db.session.get(Vendor, vendor_id).balance_pure_weight


@pytest.mark.parametrize("name, initials", [
    ("Gold Ring", "GR"),
    ("anklet", "AN"),
    ("X", "XX"),
    ("Ring  Necklace Set Combo", "RNS"),
    ("", "XX"),
    ("22k-bangle", "2B"),
])
def test_name_initials(name, initials):
    assert name_initials(name) == initials


def test_barcodes_count_per_metal_and_initials(make_item):
    first = make_item()
    second = make_item()
    anklet = make_item(item_name="Anklet", metal_type="SILVER", wastage_percent=92.5)

    assert first.barcode == "G-GR-0001"
    assert second.barcode == "G-GR-0002"
    assert anklet.barcode == "S-AN-0001"


def test_pure_weight_from_purity_or_explicit(make_item):
    assert make_item(gross_weight=12.5, wastage_percent=75).pure_weight == 9.375
    assert make_item(gross_weight=12.5, wastage_percent=75, pure_weight=9.4).pure_weight == 9.4


@pytest.mark.parametrize("overrides", [
    {"wastage_percent": 100.5},
    {"gross_weight": 0},
    {"gross_weight": "abc"},
    {"stock_type": "RAW"},
    {"metal_type": "PLATINUM"},
    {"item_name": "  "},
    {"source_type": "REFINERY"},
    {"source_type": "VENDOR"},
])
def test_add_item_rejects_bad_input(make_item, overrides):
    with pytest.raises(ValidationError):
        make_item(**overrides)
    assert db.session.query(InventoryItem).count() == 0


def test_unknown_vendor(make_item):
    with pytest.raises(NotFoundError):
        make_item(vendor_id=4242)


def test_add_writes_stock_log(make_item):
    item = make_item(stock_type="BULK", gross_weight=50, quantity=5)

    entries = inventory_service.get_stock_log(item.id)

    assert [(e.action, e.weight_delta, e.quantity_delta) for e in entries] == [("ADD", 50, 5)]
    assert entries[0].pure_weight_delta == pytest.approx(45.8)


def test_vendor_item_lifecycle_keeps_ledger_consistent(make_item, vendor):
    vendor_id = vendor.id
    item = make_item(vendor_id=vendor_id)
    item_id = item.id
    assert item.source_type == "VENDOR"
    assert vendor_balance(vendor_id) == 9.16

    inventory_service.update_item(item_id, {"gross_weight": 12, "update_comment": "Reweighed"})
    assert vendor_balance(vendor_id) == pytest.approx(10.992)

    history = db.session.query(ItemUpdate).filter_by(item_id=item_id).one()
    assert history.old_values["gross_weight"] == 10
    assert history.update_comment == "Reweighed"

    inventory_service.delete_item(item_id)
    assert vendor_balance(vendor_id) == 0
    item = db.session.get(InventoryItem, item_id)
    assert item.status == "DELETED"
    assert item.is_deleted is True

    inventory_service.restore_item(item_id)
    assert vendor_balance(vendor_id) == pytest.approx(10.992)
    assert db.session.get(InventoryItem, item_id).status == "AVAILABLE"

    types = [t.type for t in db.session.query(VendorTransaction).order_by(VendorTransaction.id)]
    assert types == ["STOCK_ADDED", "STOCK_UPDATE", "REPAYMENT", "STOCK_ADDED"]

    report = vendor_service.verify_vendor_balance(vendor_id)
    assert report["consistent"] is True
    assert report["transaction_count"] == 4


def test_update_without_weight_change_leaves_vendor_alone(make_item, vendor):
    item = make_item(vendor_id=vendor.id)
    inventory_service.update_item(item.id, {"item_name": "Gold Ring Plain", "making_charges": 800})

    assert db.session.query(VendorTransaction).count() == 1
    refreshed = db.session.get(InventoryItem, item.id)
    assert refreshed.item_name == "Gold Ring Plain"
    assert refreshed.making_charges == 800


def test_delete_and_restore_state_guards(make_item):
    item = make_item()
    with pytest.raises(ConflictError):
        inventory_service.restore_item(item.id)

    inventory_service.delete_item(item.id)
    with pytest.raises(ConflictError):
        inventory_service.delete_item(item.id)
    with pytest.raises(ConflictError):
        inventory_service.update_item(item.id, {"gross_weight": 5})


def test_restock_bulk_only(make_item, vendor):
    chain = make_item(item_name="Gold Chain", stock_type="BULK", gross_weight=20, quantity=2, vendor_id=vendor.id)

    inventory_service.restock(chain.id, 10, 1)

    db.session.expire_all()
    chain = db.session.get(InventoryItem, chain.id)
    assert chain.gross_weight == 30
    assert chain.quantity == 3
    assert chain.pure_weight == pytest.approx(27.48)
    assert vendor_balance(vendor.id) == pytest.approx(27.48)

    ring = make_item()
    with pytest.raises(ValidationError):
        inventory_service.restock(ring.id, 5)
    with pytest.raises(ValidationError):
        inventory_service.restock(chain.id, 0, 0)


def test_list_and_search(make_item):
    make_item()
    make_item(item_name="Silver Anklet", metal_type="SILVER", wastage_percent=92.5)

    assert len(inventory_service.list_items()) == 2
    silver = inventory_service.list_items(metal_type="silver")
    assert [row["item_name"] for row in silver] == ["Silver Anklet"]

    assert [i.barcode for i in inventory_service.search_available("G-GR-0001")] == ["G-GR-0001"]
    assert [i.item_name for i in inventory_service.search_available("ankl")] == ["Silver Anklet"]
    assert inventory_service.search_available("   ") == []
