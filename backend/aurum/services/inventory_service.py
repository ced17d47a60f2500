# Overview: Service-layer operations for inventory; item lifecycle, bulk counters and the stock log.

"""
Inventory Service

Item lifecycle: AVAILABLE -> SOLD (sale) -> AVAILABLE (void);
AVAILABLE -> DELETED (soft delete) -> AVAILABLE (restore).

BULK items keep running gross_weight / quantity / pure_weight counters.
A bulk item only becomes SOLD when gross < 0.01 AND quantity == 0; a
residual weight with zero pieces, or pieces with no weight, stays
AVAILABLE.

Every counter or status change writes a StockLog row with the exact
signed delta. Vendor-sourced stock also moves the vendor balance through
vendor_service.post_vendor_delta().

Helpers taking a `session` argument run inside the caller's atomic()
scope; billing and refinery use them to stay in one transaction.
"""

from __future__ import annotations

from ..extensions import db
from ..models import ExternalShop, InventoryItem, ItemUpdate, StockLog, Vendor, VendorTransaction
from ..models.enums import ItemStatus, MetalType, SourceType, StockAction, StockType, VendorTxnType
from ..validation import (
    WEIGHT_EPSILON,
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_int,
    parse_number,
    parse_weight,
    require_text,
    round_weight,
)
from .audit_service import Actor, log_action
from .concurrency import atomic, lock_for_update
from .document_service import next_barcode
from .vendor_service import post_vendor_delta

# Allowed over-request when a bulk sale asks for "everything left"
BULK_WEIGHT_TOLERANCE = 0.001


def compute_pure_weight(gross_weight: float, purity: float) -> float:
    return round_weight(gross_weight * purity / 100.0)


def is_bulk_sold_out(gross_weight: float, quantity: int) -> bool:
    return gross_weight < WEIGHT_EPSILON and quantity == 0


def _log_stock(
    session,
    item: InventoryItem,
    action: StockAction,
    *,
    weight_delta: float = 0,
    quantity_delta: int = 0,
    pure_weight_delta: float = 0,
    reference: str | None = None,
    note: str | None = None,
) -> StockLog:
    log = StockLog(
        item_id=item.id,
        action=StockAction(action).value,
        weight_delta=round_weight(weight_delta),
        quantity_delta=quantity_delta,
        pure_weight_delta=round_weight(pure_weight_delta),
        reference=reference,
        note=note,
    )
    session.add(log)
    return log


def lock_item(session, item_id: int) -> InventoryItem:
    item = lock_for_update(session.query(InventoryItem).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def _item_dict_with_names(item: InventoryItem) -> dict:
    data = item.to_dict()
    data["vendor_name"] = item.vendor.business_name if item.vendor else None
    data["neighbour_name"] = item.neighbour_shop.shop_name if item.neighbour_shop else None
    return data


def list_items(*, status: str | None = None, metal_type: str | None = None) -> list[dict]:
    status = parse_choice(status, ItemStatus, "status", default=ItemStatus.AVAILABLE)
    query = db.session.query(InventoryItem).filter(InventoryItem.status == status.value)
    if metal_type:
        query = query.filter(InventoryItem.metal_type == parse_choice(metal_type, MetalType, "metal_type").value)
    items = query.order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc()).all()
    return [_item_dict_with_names(item) for item in items]


def list_vendor_items(vendor_id: int) -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter_by(vendor_id=vendor_id)
        .order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
        .all()
    )


def search_available(q: str | None) -> list[InventoryItem]:
    """Exact barcode hit or name substring, sellable items only."""
    q = (q or "").strip()
    if not q:
        return []
    return (
        db.session.query(InventoryItem)
        .filter(
            (InventoryItem.barcode == q) | InventoryItem.item_name.ilike(f"%{q}%"),
            InventoryItem.status == ItemStatus.AVAILABLE.value,
            InventoryItem.is_deleted.is_(False),
        )
        .order_by(InventoryItem.id.desc())
        .limit(50)
        .all()
    )


def get_stock_log(item_id: int) -> list[StockLog]:
    get_item(item_id)
    return (
        db.session.query(StockLog)
        .filter_by(item_id=item_id)
        .order_by(StockLog.id.asc())
        .all()
    )


def _resolve_source(session, data: dict) -> tuple[SourceType, int | None, int | None]:
    vendor_id = data.get("vendor_id") or None
    shop_id = data.get("neighbour_shop_id") or data.get("neighbour_id") or None

    default_source = SourceType.OWN
    if vendor_id:
        default_source = SourceType.VENDOR
    elif shop_id:
        default_source = SourceType.NEIGHBOUR
    source = parse_choice(data.get("source_type"), SourceType, "source_type", default=default_source)

    if source == SourceType.VENDOR:
        if not vendor_id:
            raise ValidationError("vendor_id is required for VENDOR stock")
        vendor_id = parse_int(vendor_id, "vendor_id", minimum=1)
        if not session.get(Vendor, vendor_id):
            raise NotFoundError(f"Vendor {vendor_id} not found")
        return source, vendor_id, None

    if source == SourceType.NEIGHBOUR:
        if not shop_id:
            raise ValidationError("neighbour_shop_id is required for NEIGHBOUR stock")
        shop_id = parse_int(shop_id, "neighbour_shop_id", minimum=1)
        if not session.get(ExternalShop, shop_id):
            raise NotFoundError(f"Shop {shop_id} not found")
        return source, None, shop_id

    if source == SourceType.REFINERY:
        raise ValidationError("REFINERY stock is created from refinery batches only")
    return source, None, None


def _parse_purity(value, default: float = 0) -> float:
    purity = parse_number(value, "wastage_percent", default=default)
    if purity > 100:
        raise ValidationError("wastage_percent (purity) must be between 0 and 100")
    return purity


def add_item(data: dict, actor: Actor | None = None) -> InventoryItem:
    """
    Put a new item on the shelf.

    pure_weight defaults to gross x purity / 100; an explicit pure_weight
    overrides it. Vendor stock adds its pure weight to the vendor balance
    as STOCK_ADDED.
    """
    item_name = require_text(data.get("item_name"), "item_name")
    metal = parse_choice(data.get("metal_type"), MetalType, "metal_type")
    stock_type = parse_choice(data.get("stock_type"), StockType, "stock_type", default=StockType.SINGLE)
    if stock_type == StockType.RAW:
        raise ValidationError("RAW stock is created from refinery batches only")

    gross = parse_weight(data.get("gross_weight"), "gross_weight")
    if gross <= 0:
        raise ValidationError("gross_weight must be > 0")
    purity = _parse_purity(data.get("wastage_percent"))
    if data.get("pure_weight") not in (None, ""):
        pure = parse_weight(data.get("pure_weight"), "pure_weight")
    else:
        pure = compute_pure_weight(gross, purity)

    if stock_type == StockType.BULK:
        quantity = parse_int(data.get("quantity"), "quantity", default=1, minimum=0)
    else:
        quantity = 1

    making = parse_amount(data.get("making_charges"), "making_charges", default=0)

    with atomic() as session:
        source, vendor_id, shop_id = _resolve_source(session, data)
        item = InventoryItem(
            barcode=next_barcode(session, metal, item_name),
            item_name=item_name,
            huid=optional_text(data.get("huid"), max_length=32),
            metal_type=metal.value,
            stock_type=stock_type.value,
            gross_weight=gross,
            wastage_percent=purity,
            pure_weight=pure,
            making_charges=making,
            quantity=quantity,
            status=ItemStatus.AVAILABLE.value,
            is_deleted=False,
            source_type=source.value,
            vendor_id=vendor_id,
            neighbour_shop_id=shop_id,
            image_ref=optional_text(data.get("image_ref")),
        )
        session.add(item)
        session.flush()

        _log_stock(
            session, item, StockAction.ADD,
            weight_delta=gross, quantity_delta=quantity, pure_weight_delta=pure,
            reference=item.barcode,
        )
        if source == SourceType.VENDOR:
            post_vendor_delta(
                session, vendor_id, VendorTxnType.STOCK_ADDED, pure,
                description=f"Added Stock: {item_name} ({item.barcode})",
                item_id=item.id,
                stock_pure_weight=pure,
            )
        item_id, barcode = item.id, item.barcode

    log_action(actor, "ITEM_ADD", f"Added {metal.value} item {item_name} ({barcode}) {gross}g", item_id)
    return db.session.get(InventoryItem, item_id)


def update_item(item_id: int, data: dict, actor: Actor | None = None) -> InventoryItem:
    """
    Edit an item on the shelf; the previous values are kept in item_updates.

    A change in pure weight on vendor stock moves the vendor balance by
    the difference only (STOCK_UPDATE).
    """
    with atomic() as session:
        item = lock_item(session, item_id)
        if item.is_deleted or item.status != ItemStatus.AVAILABLE.value:
            raise ConflictError("Only available items can be edited")

        session.add(ItemUpdate(
            item_id=item.id,
            old_values=item.to_dict(),
            update_comment=optional_text(data.get("update_comment")),
        ))

        old_gross, old_pure, old_qty = item.gross_weight, item.pure_weight, item.quantity

        gross = parse_weight(data.get("gross_weight"), "gross_weight", default=old_gross)
        if gross <= 0:
            raise ValidationError("gross_weight must be > 0")
        purity = _parse_purity(data.get("wastage_percent"), default=item.wastage_percent or 0)
        if data.get("pure_weight") not in (None, ""):
            pure = parse_weight(data.get("pure_weight"), "pure_weight")
        else:
            pure = compute_pure_weight(gross, purity)

        item.gross_weight = gross
        item.wastage_percent = purity
        item.pure_weight = pure
        if "item_name" in data:
            item.item_name = require_text(data.get("item_name"), "item_name")
        if "making_charges" in data:
            item.making_charges = parse_amount(data.get("making_charges"), "making_charges", default=0)
        if "huid" in data:
            item.huid = optional_text(data.get("huid"), max_length=32)
        if "image_ref" in data:
            item.image_ref = optional_text(data.get("image_ref"))
        if item.stock_type == StockType.BULK.value and "quantity" in data:
            item.quantity = parse_int(data.get("quantity"), "quantity", minimum=0)

        _log_stock(
            session, item, StockAction.UPDATE,
            weight_delta=gross - old_gross,
            quantity_delta=item.quantity - old_qty,
            pure_weight_delta=pure - old_pure,
            reference=item.barcode,
            note=optional_text(data.get("update_comment")),
        )

        diff = round_weight(pure - old_pure)
        if item.source_type == SourceType.VENDOR.value and item.vendor_id and diff != 0:
            post_vendor_delta(
                session, item.vendor_id, VendorTxnType.STOCK_UPDATE, diff,
                description=f"Updated Item: {item.item_name} ({item.barcode})",
                item_id=item.id,
                stock_pure_weight=diff,
            )
        barcode = item.barcode

    log_action(actor, "ITEM_UPDATE", f"Updated item {barcode}: pure {old_pure} -> {pure}", item_id)
    return db.session.get(InventoryItem, item_id)


def delete_item(item_id: int, actor: Actor | None = None) -> InventoryItem:
    """
    Soft-delete an available item.

    Vendor stock hands its pure weight back to the vendor as a REPAYMENT
    tagged with the item id, which restore_item() later replays.
    """
    with atomic() as session:
        item = lock_item(session, item_id)
        if item.is_deleted:
            raise ConflictError("Item is already deleted")
        if item.status != ItemStatus.AVAILABLE.value:
            raise ConflictError("Only available items can be deleted")

        item.status = ItemStatus.DELETED.value
        item.is_deleted = True
        _log_stock(
            session, item, StockAction.DELETE,
            weight_delta=-item.gross_weight,
            quantity_delta=-item.quantity,
            pure_weight_delta=-item.pure_weight,
            reference=item.barcode,
        )

        if item.source_type == SourceType.VENDOR.value and item.vendor_id and item.pure_weight:
            post_vendor_delta(
                session, item.vendor_id, VendorTxnType.REPAYMENT, -item.pure_weight,
                description=f"Deleted: {item.item_name} ({item.barcode})",
                item_id=item.id,
                repaid_metal_weight=item.pure_weight,
            )
        barcode = item.barcode

    log_action(actor, "ITEM_DELETE", f"Deleted item {barcode}", item_id)
    return db.session.get(InventoryItem, item_id)


def restore_item(item_id: int, actor: Actor | None = None) -> InventoryItem:
    """Undo a soft delete, replaying the vendor debt with the magnitude that was removed."""
    with atomic() as session:
        item = lock_item(session, item_id)
        if not item.is_deleted or item.status != ItemStatus.DELETED.value:
            raise ConflictError("Only deleted items can be restored")

        item.status = ItemStatus.AVAILABLE.value
        item.is_deleted = False
        _log_stock(
            session, item, StockAction.RESTORE,
            weight_delta=item.gross_weight,
            quantity_delta=item.quantity,
            pure_weight_delta=item.pure_weight,
            reference=item.barcode,
        )

        if item.source_type == SourceType.VENDOR.value and item.vendor_id:
            removal = (
                session.query(VendorTransaction)
                .filter_by(
                    vendor_id=item.vendor_id,
                    item_id=item.id,
                    type=VendorTxnType.REPAYMENT.value,
                )
                .order_by(VendorTransaction.id.desc())
                .first()
            )
            magnitude = -removal.pure_weight_delta if removal else item.pure_weight
            if magnitude:
                post_vendor_delta(
                    session, item.vendor_id, VendorTxnType.STOCK_ADDED, magnitude,
                    description=f"Restored: {item.item_name} ({item.barcode})",
                    item_id=item.id,
                    stock_pure_weight=magnitude,
                )
        barcode = item.barcode

    log_action(actor, "ITEM_RESTORE", f"Restored item {barcode}", item_id)
    return db.session.get(InventoryItem, item_id)


def restock(item_id: int, added_weight, added_quantity=None, actor: Actor | None = None) -> InventoryItem:
    """
    Add weight/pieces to a BULK item at its recorded purity.

    A sold-out bulk item comes back to AVAILABLE. Vendor stock owes the
    vendor the added pure weight.
    """
    weight = parse_weight(added_weight, "added_weight", default=0)
    quantity = parse_int(added_quantity, "added_quantity", default=0, minimum=0)
    if weight <= 0 and quantity <= 0:
        raise ValidationError("Restock must add weight or quantity")

    with atomic() as session:
        item = lock_item(session, item_id)
        if item.stock_type != StockType.BULK.value:
            raise ValidationError("Only BULK items can be restocked")
        if item.is_deleted:
            raise ConflictError("Deleted items cannot be restocked")

        added_pure = compute_pure_weight(weight, item.wastage_percent or 0)
        item.gross_weight = round_weight(item.gross_weight + weight)
        item.quantity = item.quantity + quantity
        item.pure_weight = round_weight(item.pure_weight + added_pure)
        if not is_bulk_sold_out(item.gross_weight, item.quantity):
            item.status = ItemStatus.AVAILABLE.value

        _log_stock(
            session, item, StockAction.RESTOCK,
            weight_delta=weight, quantity_delta=quantity, pure_weight_delta=added_pure,
            reference=item.barcode,
        )
        if item.source_type == SourceType.VENDOR.value and item.vendor_id and added_pure:
            post_vendor_delta(
                session, item.vendor_id, VendorTxnType.STOCK_ADDED, added_pure,
                description=f"Restocked: {item.item_name} ({item.barcode}) +{weight}g",
                item_id=item.id,
                stock_pure_weight=added_pure,
            )
        barcode = item.barcode

    log_action(actor, "ITEM_RESTOCK", f"Restocked {barcode}: +{weight}g / +{quantity} pcs", item_id)
    return db.session.get(InventoryItem, item_id)


def sell_from_item(
    session,
    item: InventoryItem,
    weight: float,
    quantity: int,
    reference: str,
) -> tuple[float, int, float]:
    """
    Take stock off a locked item for a sale.

    Returns (sold_weight, sold_quantity, sold_pure_weight), the exact
    amounts a void has to put back.
    """
    if item.is_deleted or item.status != ItemStatus.AVAILABLE.value:
        raise ConflictError(
            f"Item {item.barcode} is no longer available",
            details={"item_id": item.id, "status": item.status},
        )

    if item.stock_type != StockType.BULK.value:
        sold = (item.gross_weight, item.quantity, item.pure_weight)
        item.status = ItemStatus.SOLD.value
        _log_stock(
            session, item, StockAction.SALE,
            weight_delta=-sold[0], quantity_delta=-sold[1], pure_weight_delta=-sold[2],
            reference=reference,
        )
        return sold

    if weight <= 0 and quantity <= 0:
        raise ValidationError(f"Sale of bulk item {item.barcode} needs a weight or quantity")
    if weight > item.gross_weight + BULK_WEIGHT_TOLERANCE or quantity > item.quantity:
        raise ConflictError(
            f"Not enough stock on {item.barcode}",
            details={
                "item_id": item.id,
                "available_weight": item.gross_weight,
                "available_quantity": item.quantity,
            },
        )

    if weight >= item.gross_weight - BULK_WEIGHT_TOLERANCE:
        weight = item.gross_weight
        sold_pure = item.pure_weight
    elif item.gross_weight > 0:
        sold_pure = round_weight(item.pure_weight * weight / item.gross_weight)
    else:
        sold_pure = 0.0

    item.gross_weight = round_weight(item.gross_weight - weight)
    item.quantity = item.quantity - quantity
    item.pure_weight = max(0.0, round_weight(item.pure_weight - sold_pure))
    if is_bulk_sold_out(item.gross_weight, item.quantity):
        item.status = ItemStatus.SOLD.value

    _log_stock(
        session, item, StockAction.SALE,
        weight_delta=-weight, quantity_delta=-quantity, pure_weight_delta=-sold_pure,
        reference=reference,
    )
    return round_weight(weight), quantity, sold_pure


def return_to_item(
    session,
    item: InventoryItem,
    weight: float,
    quantity: int,
    pure_weight: float,
    reference: str,
) -> None:
    """
    Put sold stock back on a locked item; the mirror of sell_from_item().

    A bulk item deleted after the sale has already been handed back to
    its vendor, so it has to be restored before stock can return to it.
    """
    if item.is_deleted:
        raise ConflictError(
            f"Item {item.barcode} was deleted after the sale; restore it first",
            details={"item_id": item.id, "status": item.status},
        )
    if item.stock_type != StockType.BULK.value and item.status != ItemStatus.SOLD.value:
        raise ConflictError(
            f"Item {item.barcode} is not in SOLD state; cannot return it",
            details={"item_id": item.id, "status": item.status},
        )

    if item.stock_type == StockType.BULK.value:
        item.gross_weight = round_weight(item.gross_weight + weight)
        item.quantity = item.quantity + quantity
        item.pure_weight = round_weight(item.pure_weight + pure_weight)
    item.status = ItemStatus.AVAILABLE.value

    _log_stock(
        session, item, StockAction.RETURN,
        weight_delta=weight, quantity_delta=quantity, pure_weight_delta=pure_weight,
        reference=reference,
    )


def take_ownership(session, item: InventoryItem, reference: str) -> None:
    """Convert a neighbour's item into our own stock; the shop debt stays."""
    shop_id = item.neighbour_shop_id
    item.source_type = SourceType.OWN.value
    item.neighbour_shop_id = None
    _log_stock(
        session, item, StockAction.OWNERSHIP,
        reference=reference,
        note=f"Taken over from shop {shop_id}",
    )


def create_refined_item(session, metal: MetalType, item_name: str, weight: float) -> InventoryItem:
    """RAW bar from a refinery batch: fine metal, so gross = pure and purity 100."""
    weight = round_weight(weight)
    item = InventoryItem(
        barcode=next_barcode(session, metal, item_name),
        item_name=item_name,
        metal_type=MetalType(metal).value,
        stock_type=StockType.RAW.value,
        gross_weight=weight,
        wastage_percent=100,
        pure_weight=weight,
        making_charges=0,
        quantity=1,
        status=ItemStatus.AVAILABLE.value,
        is_deleted=False,
        source_type=SourceType.REFINERY.value,
    )
    session.add(item)
    session.flush()
    _log_stock(
        session, item, StockAction.ADD,
        weight_delta=weight, quantity_delta=1, pure_weight_delta=weight,
        reference=item.barcode, note="Refinery output",
    )
    return item
